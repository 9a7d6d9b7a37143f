from fastapi import Depends, Request

from cineprompt.engine.workspace import PromptWorkspace


def build_workspace() -> PromptWorkspace:
    return PromptWorkspace.from_settings()


def get_workspace(request: Request) -> PromptWorkspace:
    """Return the process-wide workspace, building it on first use.

    Building needs Gemini credentials, so the service can start (and report
    health) before they are configured.
    """
    workspace = getattr(request.app.state, "workspace", None)
    if workspace is None:
        workspace = build_workspace()
        request.app.state.workspace = workspace
    return workspace


WorkspaceDep = Depends(get_workspace)
