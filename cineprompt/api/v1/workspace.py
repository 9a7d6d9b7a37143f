import base64

from fastapi import APIRouter

from cineprompt.api.deps import WorkspaceDep
from cineprompt.api.v1.schemas import (
    ContentUpdate,
    EnhanceResponse,
    RecordingResponse,
    ReferenceImageUpload,
    ShotTypeUpdate,
    TranslateResponse,
    WorkspaceRead,
)
from cineprompt.core.request_context import log_context
from cineprompt.engine.catalog import get_movement
from cineprompt.engine.workspace import PromptWorkspace


router = APIRouter(prefix="/workspace", tags=["workspace"])


def _read(workspace: PromptWorkspace) -> WorkspaceRead:
    return WorkspaceRead.model_validate(workspace.snapshot())


@router.get("", response_model=WorkspaceRead)
async def get_workspace_state(workspace: PromptWorkspace = WorkspaceDep):
    return _read(workspace)


@router.put("/content", response_model=WorkspaceRead)
async def update_content(payload: ContentUpdate, workspace: PromptWorkspace = WorkspaceDep):
    with log_context(operation="content.update"):
        workspace.set_content(payload.text)
    return _read(workspace)


@router.put("/shot-type", response_model=WorkspaceRead)
async def update_shot_type(payload: ShotTypeUpdate, workspace: PromptWorkspace = WorkspaceDep):
    with log_context(operation="shot_type.update"):
        workspace.set_shot_type(payload.shot_type)
    return _read(workspace)


@router.post("/movements/{movement_id}/toggle", response_model=WorkspaceRead)
async def toggle_movement(movement_id: str, workspace: PromptWorkspace = WorkspaceDep):
    movement = get_movement(movement_id)
    with log_context(operation="movement.toggle"):
        workspace.toggle_movement(movement.id)
    return _read(workspace)


@router.post("/translate", response_model=TranslateResponse)
async def translate_content(workspace: PromptWorkspace = WorkspaceDep):
    with log_context(operation="translation.manual"):
        translated = await workspace.translate()
    return TranslateResponse(performed=translated is not None, workspace=_read(workspace))


@router.post("/enhance", response_model=EnhanceResponse)
async def enhance_prompt(workspace: PromptWorkspace = WorkspaceDep):
    with log_context(operation="enhancement"):
        outcome = await workspace.enhance()
    if outcome is None:
        return EnhanceResponse(performed=False, workspace=_read(workspace))
    return EnhanceResponse(
        performed=True,
        enhanced=outcome.enhanced,
        error=outcome.error,
        workspace=_read(workspace),
    )


@router.put("/reference-image", response_model=WorkspaceRead)
async def attach_reference_image(payload: ReferenceImageUpload, workspace: PromptWorkspace = WorkspaceDep):
    data = base64.b64decode(payload.data_base64, validate=True)
    workspace.attach_reference_image(data, payload.mime_type)
    return _read(workspace)


@router.delete("/reference-image", response_model=WorkspaceRead)
async def remove_reference_image(workspace: PromptWorkspace = WorkspaceDep):
    workspace.remove_reference_image()
    return _read(workspace)


@router.post("/recording/start", response_model=RecordingResponse)
async def start_recording(workspace: PromptWorkspace = WorkspaceDep):
    with log_context(operation="recording"):
        started = await workspace.start_recording()
    return RecordingResponse(started=started, workspace=_read(workspace))


@router.post("/recording/stop", response_model=WorkspaceRead)
async def stop_recording(workspace: PromptWorkspace = WorkspaceDep):
    with log_context(operation="recording"):
        await workspace.stop_recording()
    return _read(workspace)
