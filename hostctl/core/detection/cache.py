"""
Descriptor cache: detection results per (software_id, session_id).

Running a full probe chain costs up to five round trips, so results are
kept until something invalidates them (an install, a removal, or the
session closing).
"""

from __future__ import annotations

import logging

from hostctl.core.models.software import DetectionResult

logger = logging.getLogger(__name__)


class DescriptorCache:
    def __init__(self):
        self._entries: dict[tuple[str, str], DetectionResult] = {}

    def get(self, software_id: str, session_id: str) -> DetectionResult | None:
        return self._entries.get((software_id, session_id))

    def put(self, session_id: str, result: DetectionResult) -> None:
        self._entries[(result.software_id, session_id)] = result

    def invalidate(self, session_id: str, software_id: str | None = None) -> None:
        """Drop one software's entry, or every entry of the session."""
        if software_id is not None:
            self._entries.pop((software_id, session_id), None)
        else:
            for key in [k for k in self._entries if k[1] == session_id]:
                del self._entries[key]
        logger.debug("Invalidated detection cache: session=%s software=%s", session_id, software_id)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._entries
