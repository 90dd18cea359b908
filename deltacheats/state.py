from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from .core.config import CHEATS_XML_PATH, CONTENT_HASH_ALGORITHM, DELTA_STORE_DIR, UPLOAD_DIR
from .services.cheat_catalog import CheatCatalog, load_catalog
from .services.delta_repository import DeltaStoreRepository
from .services.game_id import ProductCodeExtractor, get_extractor
from .services.locks import KeyedLocks
from .services.overlays import OverlayRegistry


@dataclass(frozen=True)
class ActiveGame:
    identifier: str
    content_key: str


@dataclass
class StudioState:
    """
    Everything the services share for the life of the process.

    The catalog is immutable after load; the overlay registry, the lock
    registries and the active-game slot synchronize themselves.
    """

    catalog: CheatCatalog
    extractor: ProductCodeExtractor
    delta_repository: DeltaStoreRepository
    upload_dir: Path
    hash_algorithm: str = CONTENT_HASH_ALGORITHM
    overlays: OverlayRegistry = field(default_factory=OverlayRegistry)
    store_locks: KeyedLocks = field(default_factory=KeyedLocks)
    bookmark_locks: KeyedLocks = field(default_factory=KeyedLocks)
    _active_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _active: Optional[ActiveGame] = field(default=None, repr=False)
    _known_games: dict[str, str] = field(default_factory=dict, repr=False)

    def set_active_game(self, identifier: str, content_key: str) -> ActiveGame:
        active = ActiveGame(identifier=identifier, content_key=content_key)
        with self._active_lock:
            self._active = active
            self._known_games[content_key] = identifier
        return active

    @property
    def active_game(self) -> Optional[ActiveGame]:
        with self._active_lock:
            return self._active

    def identifier_for(self, content_key: str) -> Optional[str]:
        with self._active_lock:
            return self._known_games.get(content_key)

    def ensure_dirs(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.delta_repository.root.mkdir(parents=True, exist_ok=True)


def build_state(
    catalog: Optional[CheatCatalog] = None,
    catalog_path: Union[str, Path] = CHEATS_XML_PATH,
    extractor: Optional[ProductCodeExtractor] = None,
    upload_dir: Union[str, Path] = UPLOAD_DIR,
    delta_store_dir: Union[str, Path] = DELTA_STORE_DIR,
    hash_algorithm: str = CONTENT_HASH_ALGORITHM,
) -> StudioState:
    return StudioState(
        catalog=catalog if catalog is not None else load_catalog(catalog_path),
        extractor=extractor or get_extractor(),
        delta_repository=DeltaStoreRepository(delta_store_dir),
        upload_dir=Path(upload_dir),
        hash_algorithm=hash_algorithm,
    )
