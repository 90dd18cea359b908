from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

logger = logging.getLogger(__name__)

GENERAL_FOLDER_NAME = "General"
UNNAMED_CHEAT = "Unnamed Cheat"
UNNAMED_FOLDER = "Unnamed Folder"
UNKNOWN_GAME = "Unknown Game"
UNKNOWN_DATE = "Unknown Date"
UNKNOWN_GAME_ID = "UNKNOWN"


@dataclass(frozen=True)
class Cheat:
    name: str
    notes: str = ""
    codes: str = ""

    def matches(self, lowered_term: str) -> bool:
        return (
            lowered_term in self.name.lower()
            or lowered_term in self.notes.lower()
            or lowered_term in self.codes.lower()
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "notes": self.notes, "codes": self.codes}


@dataclass(frozen=True)
class CheatFolder:
    folder_name: str
    allowed_on: int = 0
    cheats: tuple[Cheat, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "folder_name": self.folder_name,
            "allowed_on": self.allowed_on,
            "cheats": [cheat.to_dict() for cheat in self.cheats],
        }


@dataclass(frozen=True)
class CheatCatalogEntry:
    identifier: str
    name: str
    date: str
    folders: tuple[CheatFolder, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "name": self.name,
            "date": self.date,
            "folders": [folder.to_dict() for folder in self.folders],
        }


class CheatCatalog:
    """Read-only view over the parsed cheat database, keyed by game id."""

    def __init__(self, entries: Optional[Mapping[str, CheatCatalogEntry]] = None) -> None:
        self._entries: Mapping[str, CheatCatalogEntry] = MappingProxyType(dict(entries or {}))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def by_identifier(self, identifier: str) -> Optional[CheatCatalogEntry]:
        return self._entries.get(identifier)

    def search(self, identifier: str, term: str) -> Optional[CheatCatalogEntry]:
        """Filter one game's cheats by name, notes or codes; empty folders are dropped."""
        entry = self._entries.get(identifier)
        if entry is None:
            return None
        lowered = (term or "").lower()
        folders = []
        for folder in entry.folders:
            cheats = tuple(cheat for cheat in folder.cheats if cheat.matches(lowered))
            if cheats:
                folders.append(replace(folder, cheats=cheats))
        return replace(entry, folders=tuple(folders))

    def search_games(self, term: str) -> dict[str, CheatCatalogEntry]:
        lowered = (term or "").lower()
        return {
            identifier: entry
            for identifier, entry in self._entries.items()
            if lowered in entry.name.lower() or lowered in identifier.lower()
        }


def _child_text(element: ET.Element, tag: str, default: str) -> str:
    child = element.find(tag)
    if child is None or child.text is None:
        return default
    text = child.text.strip()
    return text or default


def _parse_allowed_on(folder: ET.Element) -> int:
    raw = folder.get("allowedon", folder.get("allowed_on"))
    if raw is None:
        raw = _child_text(folder, "allowedon", "")
    try:
        return int(str(raw).strip() or 0)
    except ValueError:
        return 0


def _parse_cheats(elements: Iterable[ET.Element]) -> tuple[Cheat, ...]:
    return tuple(
        Cheat(
            name=_child_text(element, "name", UNNAMED_CHEAT),
            notes=_child_text(element, "note", ""),
            codes=_child_text(element, "codes", ""),
        )
        for element in elements
    )


def _parse_game(game: ET.Element) -> CheatCatalogEntry:
    folders: list[CheatFolder] = []

    loose_cheats = game.findall("cheat")
    if loose_cheats:
        folders.append(CheatFolder(folder_name=GENERAL_FOLDER_NAME, cheats=_parse_cheats(loose_cheats)))

    for folder in game.findall("folder"):
        folders.append(
            CheatFolder(
                folder_name=_child_text(folder, "name", UNNAMED_FOLDER),
                allowed_on=_parse_allowed_on(folder),
                cheats=_parse_cheats(folder.findall("cheat")),
            )
        )

    return CheatCatalogEntry(
        identifier=_child_text(game, "gameid", UNKNOWN_GAME_ID),
        name=_child_text(game, "name", UNKNOWN_GAME),
        date=_child_text(game, "date", UNKNOWN_DATE),
        folders=tuple(folders),
    )


def parse_catalog(xml_data: Union[bytes, str]) -> CheatCatalog:
    """
    Parse a ``<codelist>`` document into a catalog.

    ``findall`` yields a list whatever the number of ``game``, ``folder`` or
    ``cheat`` children, so nothing downstream has to care about cardinality.
    Raises ET.ParseError on malformed input.
    """
    root = ET.fromstring(xml_data)
    games = [root] if root.tag == "game" else root.findall("game")
    entries: dict[str, CheatCatalogEntry] = {}
    for game in games:
        entry = _parse_game(game)
        if entry.identifier in entries:
            logger.debug("Duplicate game id %s in cheat catalog; keeping the later entry", entry.identifier)
        entries[entry.identifier] = entry
    return CheatCatalog(entries)


def load_catalog(path: Union[str, Path]) -> CheatCatalog:
    """Load the bundled catalog, degrading to an empty one when it is missing or broken."""
    source = Path(path)
    if not source.exists():
        logger.error("Cheat catalog %s not found; serving an empty catalog", source)
        return CheatCatalog()
    try:
        catalog = parse_catalog(source.read_bytes())
    except (OSError, ET.ParseError) as exc:
        logger.error("Failed to load cheat catalog %s: %s", source, exc)
        return CheatCatalog()
    logger.info("Loaded cheats for %d games from %s", len(catalog), source)
    return catalog
