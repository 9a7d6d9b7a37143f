from fastapi import APIRouter

from cineprompt.api.v1.schemas import MovementGroupRead, MovementRead, ShotConfigRead
from cineprompt.engine.catalog import SHOT_CONFIGS, group_movements


router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/shots", response_model=list[ShotConfigRead])
def list_shots():
    return [
        ShotConfigRead(
            shot_type=shot_type,
            shot=config.shot,
            lens=config.lens,
            aperture=config.aperture,
            visuals=config.visuals,
        )
        for shot_type, config in SHOT_CONFIGS.items()
    ]


@router.get("/movements", response_model=list[MovementGroupRead])
def list_movements():
    return [
        MovementGroupRead(
            group=group,
            movements=[MovementRead.model_validate(movement) for movement in movements],
        )
        for group, movements in group_movements().items()
    ]
