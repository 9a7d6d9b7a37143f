from __future__ import annotations

import logging

from cineprompt.engine.catalog import STATIC_LOCKED, ShotType

logger = logging.getLogger(__name__)


class SelectionState:
    """Current shot type plus the selected movement ids.

    The selection is never empty, and STATIC_LOCKED is selected exactly when
    nothing else is.
    """

    def __init__(self, shot_type: ShotType = ShotType.MEDIUM) -> None:
        self.shot_type = ShotType(shot_type)
        self._movement_ids: list[str] = [STATIC_LOCKED]

    @property
    def movement_ids(self) -> tuple[str, ...]:
        self._repair()
        return tuple(self._movement_ids)

    def set_shot_type(self, shot_type: ShotType) -> None:
        self.shot_type = ShotType(shot_type)

    def toggle_movement(self, movement_id: str) -> None:
        if movement_id == STATIC_LOCKED:
            self._movement_ids = [STATIC_LOCKED]
            return

        if movement_id in self._movement_ids:
            remaining = [mid for mid in self._movement_ids if mid != movement_id]
            self._movement_ids = remaining or [STATIC_LOCKED]
            return

        self._movement_ids = [mid for mid in self._movement_ids if mid != STATIC_LOCKED]
        self._movement_ids.append(movement_id)

    def _repair(self) -> None:
        if not self._movement_ids:
            logger.error("selection.empty_repaired")
            self._movement_ids = [STATIC_LOCKED]
        elif STATIC_LOCKED in self._movement_ids and len(self._movement_ids) > 1:
            logger.error("selection.static_conflict_repaired", extra={"movement_ids": list(self._movement_ids)})
            self._movement_ids = [mid for mid in self._movement_ids if mid != STATIC_LOCKED]
