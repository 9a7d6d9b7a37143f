"""Shot presets and the camera movement catalog.

Both tables are loaded once at import and never mutated. Movement order is
significant: prompt text lists selected movements in catalog order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from cineprompt.core.exceptions import UnknownMovementError

STATIC_LOCKED = "STATIC_LOCKED"


class ShotType(str, Enum):
    CLOSEUP = "CLOSEUP"
    MEDIUM = "MEDIUM"
    FULLBODY = "FULLBODY"


class MovementGroup(str, Enum):
    AXIS_ROTATION = "Axis rotation"
    ZOOM_OPTICS = "Zoom & optics"
    PHYSICAL_TRAVEL = "Physical travel"
    COMPLEX_CINEMATIC = "Cinematic effects"
    STYLE_VIBE = "Style & vibe"
    DYNAMIC_ACTION = "Action & dynamics"


@dataclass(frozen=True)
class ShotConfig:
    shot: str
    lens: str
    aperture: str
    visuals: str


@dataclass(frozen=True)
class Movement:
    id: str
    name: str
    description: str
    group: MovementGroup


SHOT_CONFIGS: dict[ShotType, ShotConfig] = {
    ShotType.CLOSEUP: ShotConfig(
        shot="Extreme Close-up or Close-up",
        lens="85mm or 100mm Macro Lens",
        aperture="f/1.8 or f/2.8",
        visuals="Shallow depth of field, creamy bokeh, high texture detail, focus on eyes/objects",
    ),
    ShotType.MEDIUM: ShotConfig(
        shot="Medium Shot, Waist-up",
        lens="35mm or 50mm Prime Lens",
        aperture="f/4.0 or f/5.6",
        visuals="Natural perception, clear subject, balanced background context",
    ),
    ShotType.FULLBODY: ShotConfig(
        shot="Wide Shot, Full Body, Establishing Shot",
        lens="24mm or 16mm Wide Angle",
        aperture="f/11 or f/16",
        visuals="Deep depth of field, everything in focus (subject + environment), epic scale",
    ),
}


def _m(movement_id: str, name: str, description: str, group: MovementGroup) -> Movement:
    return Movement(id=movement_id, name=name, description=description, group=group)


_AXIS = MovementGroup.AXIS_ROTATION
_ZOOM = MovementGroup.ZOOM_OPTICS
_TRAVEL = MovementGroup.PHYSICAL_TRAVEL
_CINEMATIC = MovementGroup.COMPLEX_CINEMATIC
_STYLE = MovementGroup.STYLE_VIBE
_ACTION = MovementGroup.DYNAMIC_ACTION

MOVEMENTS: tuple[Movement, ...] = (
    _m(STATIC_LOCKED, "Static camera", "Static, locked-off camera shot with no movement.", _AXIS),
    _m("PAN_LEFT", "Pan left", "Slow cinematic pan to the left.", _AXIS),
    _m("PAN_RIGHT", "Pan right", "Slow cinematic pan to the right.", _AXIS),
    _m("TILT_UP", "Tilt up", "Camera tilting upwards from ground to sky.", _AXIS),
    _m("TILT_DOWN", "Tilt down", "Camera tilting downwards.", _AXIS),
    _m("ROLL", "Dutch angle", "Dutch angle roll, camera rotating on Z-axis, disorienting.", _AXIS),
    _m("WHIP_PAN", "Whip pan", "Fast, blurred cinematic whip pan for high-speed transition.", _AXIS),
    _m("SWISH_TILT", "Swish tilt", "Aggressive vertical swish tilt, creating a rapid motion blur.", _AXIS),
    _m("ZOOM_IN", "Zoom in", "Smooth optical zoom in, compressing background.", _ZOOM),
    _m("ZOOM_OUT", "Zoom out", "Smooth optical zoom out, revealing context.", _ZOOM),
    _m("CRASH_ZOOM", "Crash zoom", "Fast aggressive snap-zoom, dramatic impact.", _ZOOM),
    _m("RACK_FOCUS", "Rack focus", "Rack focus, shifting sharpness from foreground to background.", _ZOOM),
    _m("DOLLY_ZOOM", "Vertigo effect", "Vertigo effect, background warps while subject size remains constant.", _ZOOM),
    _m("SLOW_ZOOM", "Slow push", "Extremely subtle and slow optical zoom for building tension.", _ZOOM),
    _m("SNAP_FOCUS", "Snap focus", "Instant snap focus shift from a blurred foreground to a sharp subject.", _ZOOM),
    _m("DOLLY_IN", "Dolly in", "Physical camera pushing forward towards subject.", _TRAVEL),
    _m("DOLLY_OUT", "Dolly out", "Physical camera pulling back away from subject.", _TRAVEL),
    _m("TRUCK_LEFT", "Truck left", "Camera sliding sideways (left) parallel to scene.", _TRAVEL),
    _m("TRUCK_RIGHT", "Truck right", "Camera sliding sideways (right) parallel to scene.", _TRAVEL),
    _m("PEDESTAL_UP", "Pedestal up", "Camera lifting vertically straight up.", _TRAVEL),
    _m("PEDESTAL_DOWN", "Pedestal down", "Camera lowering vertically straight down.", _TRAVEL),
    _m(
        "FOLLOW_LEAD",
        "Leading follow",
        "Tracking shot from the front, leading the subject as they move forward.",
        _TRAVEL,
    ),
    _m("RETRO_FOLLOW", "Follow from behind", "Classic follow shot from behind the subject at shoulder height.", _TRAVEL),
    _m(
        "WORM_ANGLE_SLIDE",
        "Low slide",
        "Low-to-ground worm's eye view slide, emphasizing scale and height.",
        _TRAVEL,
    ),
    _m("TRACKING", "Tracking", "Tracking shot, following the subject at a fixed distance.", _CINEMATIC),
    _m("ORBIT", "Orbit", "Orbital shot, circling 360 degrees around the subject.", _CINEMATIC),
    _m("ARC", "Arc", "Arc shot, semi-circular movement around subject.", _CINEMATIC),
    _m("CRANE", "Crane", "Jib/Crane shot, high sweeping movement over the scene.", _CINEMATIC),
    _m(
        "SPIRAL_ASCENT",
        "Spiral ascent",
        "Complex spiral movement ascending upwards, combining rotation and elevation.",
        _CINEMATIC,
    ),
    _m(
        "OVERHEAD_SWEEP",
        "Overhead sweep",
        "Bird's eye view overhead sweep, flying straight over the scene.",
        _CINEMATIC,
    ),
    _m("HANDHELD", "Handheld", "Handheld camera, organic shake, documentary realism.", _STYLE),
    _m("STEADICAM", "Steadicam", "Steadicam, ultra-smooth floating movement.", _STYLE),
    _m("POV", "Point of view", "First Person View, seeing through character's eyes.", _STYLE),
    _m("FPV_DRONE", "FPV drone", "FPV Drone, high speed, banking turns, acrobatic flight.", _STYLE),
    _m(
        "BODY_CAM",
        "Body cam",
        "Rigidly attached body camera, moving in perfect sync with the character's torso.",
        _STYLE,
    ),
    _m(
        "DREAM_WOBBLE",
        "Dream wobble",
        "Slow, floating, slightly disorienting wobble for a dream-like sequence.",
        _STYLE,
    ),
    _m(
        "FPV_ORBIT",
        "FPV orbit",
        "High-speed dynamic FPV drone orbital flight around the subject with aggressive banking "
        "and immersive rotation.",
        _ACTION,
    ),
    _m(
        "SNORRICAM",
        "Snorricam",
        "Snorricam mount fixed to the subject, keeping the face centered while the background moves wildly.",
        _ACTION,
    ),
    _m(
        "BULLET_TIME",
        "Bullet time",
        "Static rotation effect where the scene freezes and the camera circles the subject.",
        _ACTION,
    ),
    _m(
        "SHAKY_EXPLOSION",
        "Explosion shake",
        "High-intensity erratic vibration simulating a nearby explosion or heavy impact.",
        _ACTION,
    ),
    _m("WHIRL_ORBIT", "Whirl orbit", "Fast, dizzying orbital spin around the subject at high velocity.", _ACTION),
    _m(
        "CRASH_CAM",
        "Crash cam",
        "Camera charging directly into a subject or obstacle, stopping inches before impact.",
        _ACTION,
    ),
)

_MOVEMENTS_BY_ID: dict[str, Movement] = {movement.id: movement for movement in MOVEMENTS}


def get_shot_config(shot_type: ShotType) -> ShotConfig:
    return SHOT_CONFIGS[ShotType(shot_type)]


def get_movement(movement_id: str) -> Movement:
    try:
        return _MOVEMENTS_BY_ID[movement_id]
    except KeyError:
        raise UnknownMovementError(movement_id) from None


def is_known_movement(movement_id: str) -> bool:
    return movement_id in _MOVEMENTS_BY_ID


def selected_movements(movement_ids: Iterable[str]) -> list[Movement]:
    """Return the selected movements in catalog order, ignoring unknown ids."""
    wanted = set(movement_ids)
    return [movement for movement in MOVEMENTS if movement.id in wanted]


def describe_movements(movement_ids: Iterable[str]) -> str:
    """Join the English descriptions of the selected movements with single spaces."""
    return " ".join(movement.description for movement in selected_movements(movement_ids))


def group_movements() -> dict[MovementGroup, list[Movement]]:
    groups: dict[MovementGroup, list[Movement]] = {}
    for movement in MOVEMENTS:
        groups.setdefault(movement.group, []).append(movement)
    return groups
