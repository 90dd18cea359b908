from __future__ import annotations

import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class CheatOverlay:
    enabled: bool
    bookmarked: bool
    codes: str

    def to_dict(self) -> dict[str, Any]:
        return {"is_enabled": self.enabled, "is_bookmarked": self.bookmarked, "codes": self.codes}


# Cheat name -> user state imported from a Delta store.
SessionOverlay = Mapping[str, CheatOverlay]


class OverlayRegistry:
    """In-memory overlays keyed by content key. Lost on restart; the stores on disk are the record."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._overlays: dict[str, SessionOverlay] = {}

    def get(self, content_key: str) -> Optional[SessionOverlay]:
        with self._lock:
            return self._overlays.get(content_key)

    def replace(self, content_key: str, overlay: Mapping[str, CheatOverlay]) -> SessionOverlay:
        frozen = MappingProxyType(dict(overlay))
        with self._lock:
            self._overlays[content_key] = frozen
        return frozen

    def discard(self, content_key: str) -> None:
        with self._lock:
            self._overlays.pop(content_key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._overlays)
