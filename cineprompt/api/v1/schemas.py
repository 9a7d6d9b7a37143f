from pydantic import BaseModel, Field

from cineprompt.engine.catalog import MovementGroup, ShotType


class ShotConfigRead(BaseModel):
    shot_type: ShotType
    shot: str
    lens: str
    aperture: str
    visuals: str


class MovementRead(BaseModel):
    id: str
    name: str
    description: str
    group: MovementGroup

    model_config = {"from_attributes": True}


class MovementGroupRead(BaseModel):
    group: MovementGroup
    movements: list[MovementRead]


class WorkspaceRead(BaseModel):
    """Serialized snapshot of the prompt workspace."""

    shot_type: ShotType
    movement_ids: list[str]
    raw_content: str
    translated_draft: str
    assembled_prompt: str
    is_ai_generated: bool
    needs_translation: bool
    translation_pending: bool
    is_translating: bool
    is_enhancing: bool
    is_recording: bool
    has_reference_image: bool
    can_enhance: bool

    model_config = {"from_attributes": True}


class ContentUpdate(BaseModel):
    text: str = Field(default="", max_length=20_000)


class ShotTypeUpdate(BaseModel):
    shot_type: ShotType


class ReferenceImageUpload(BaseModel):
    data_base64: str = Field(min_length=1)
    mime_type: str = Field(pattern=r"^image/[\w.+-]+$")


class EnhanceResponse(BaseModel):
    performed: bool
    enhanced: bool = False
    error: str | None = None
    workspace: WorkspaceRead


class TranslateResponse(BaseModel):
    performed: bool
    workspace: WorkspaceRead


class RecordingResponse(BaseModel):
    started: bool
    workspace: WorkspaceRead
