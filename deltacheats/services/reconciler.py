from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from ..exceptions import InputValidationError, StoreNotFoundError
from .cheat_catalog import CheatCatalogEntry
from .content_hash import compute_content_key_async
from .delta_store import SelectedCheat, apply_cheats, read_overlay
from .game_id import derive_game_id_async
from .overlays import SessionOverlay

if TYPE_CHECKING:
    from ..state import StudioState

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class GameCheatsResult:
    identifier: str
    content_key: str
    found: bool
    game_name: Optional[str] = None
    folders: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        if not self.found:
            return {"error": "No cheats found for this GameID.", "identifier": self.identifier}
        return {
            "identifier": self.identifier,
            "content_key": self.content_key,
            "game_name": self.game_name,
            "folders": self.folders,
        }


def merge_overlay(entry: CheatCatalogEntry, overlay: Optional[SessionOverlay]) -> list[dict[str, Any]]:
    """Flag each catalog cheat with the user's enabled/bookmarked state from ``overlay``."""
    folders = []
    for folder in entry.folders:
        cheats = []
        for cheat in folder.cheats:
            state = overlay.get(cheat.name) if overlay else None
            cheats.append(
                {
                    **cheat.to_dict(),
                    "is_enabled": state.enabled if state else False,
                    "is_bookmarked": state.bookmarked if state else False,
                }
            )
        folders.append({"folder_name": folder.folder_name, "allowed_on": folder.allowed_on, "cheats": cheats})
    return folders


async def build_game_response(state: "StudioState", rom_path: PathLike) -> GameCheatsResult:
    content_key, identifier = await asyncio.gather(
        compute_content_key_async(rom_path, state.hash_algorithm),
        derive_game_id_async(rom_path, state.extractor),
    )
    state.set_active_game(identifier, content_key)
    logger.info("ROM identified as %s (content key %s)", identifier, content_key)

    entry = state.catalog.by_identifier(identifier)
    if entry is None:
        return GameCheatsResult(identifier=identifier, content_key=content_key, found=False)

    return GameCheatsResult(
        identifier=identifier,
        content_key=content_key,
        found=True,
        game_name=entry.name,
        folders=merge_overlay(entry, state.overlays.get(content_key)),
    )


def resolve_content_key(state: "StudioState", content_key: Optional[str] = None) -> str:
    if content_key:
        return content_key.strip().lower()
    active = state.active_game
    if active is None:
        raise InputValidationError("Please upload a ROM file first to set the current game.")
    return active.content_key


def import_delta_store(state: "StudioState", store_path: PathLike, content_key: str) -> SessionOverlay:
    """
    Validate an uploaded store against ``content_key`` and keep it for later generation.

    Nothing is persisted or merged unless the whole store belongs to the game.
    """
    state.delta_repository.path_for(content_key)
    with state.store_locks.hold(content_key):
        overlay = read_overlay(store_path, content_key)
        state.delta_repository.save_file(content_key, store_path)
        return state.overlays.replace(content_key, overlay)


def generate_delta_store(
    state: "StudioState", content_key: str, selected: Iterable[SelectedCheat]
) -> bytes:
    cheats = list(selected)
    if not cheats:
        raise InputValidationError("Select at least one cheat.")
    with state.store_locks.hold(content_key):
        if not state.delta_repository.exists(content_key):
            # An overlay without a store on disk is stale.
            state.overlays.discard(content_key)
            raise StoreNotFoundError("No Delta store uploaded for the current game.")
        original = state.delta_repository.load(content_key)
        modified = apply_cheats(original, content_key, cheats)
        stored_path = state.delta_repository.save(content_key, modified)
        state.overlays.replace(content_key, read_overlay(stored_path, content_key))
    logger.info("Generated modified Delta store for %s", content_key)
    return modified


def list_overlay_games(state: "StudioState") -> list[dict[str, Any]]:
    games = []
    for content_key in state.overlays.keys():
        identifier = state.identifier_for(content_key)
        entry = state.catalog.by_identifier(identifier) if identifier else None
        if entry is None:
            continue
        games.append(
            {
                "identifier": identifier,
                "content_key": content_key,
                "game_name": entry.name,
                "folders": merge_overlay(entry, state.overlays.get(content_key)),
            }
        )
    return games
