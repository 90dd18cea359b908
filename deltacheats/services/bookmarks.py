from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from sqlalchemy.orm import Session

from ..exceptions import InputValidationError
from ..models import Bookmark
from .locks import KeyedLocks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookmarkItem:
    cheat_name: str
    cheat_code: Optional[str] = None


def normalize_bookmark_items(raw_items: Iterable[Union[str, dict[str, Any], BookmarkItem]]) -> list[BookmarkItem]:
    """Accept plain cheat names as well as ``{cheat_name, cheat_code}`` objects."""
    items: list[BookmarkItem] = []
    for raw in raw_items:
        if isinstance(raw, BookmarkItem):
            item = raw
        elif isinstance(raw, str):
            item = BookmarkItem(cheat_name=raw)
        elif isinstance(raw, dict):
            item = BookmarkItem(cheat_name=str(raw.get("cheat_name") or ""), cheat_code=raw.get("cheat_code"))
        else:
            raise InputValidationError("Bookmarks must be cheat names or {cheat_name, cheat_code} objects.")
        if not item.cheat_name.strip():
            raise InputValidationError("Bookmark cheat_name must not be empty.")
        items.append(item)
    return items


def replace_bookmarks(
    db: Session,
    gameid: str,
    items: Iterable[Union[str, dict[str, Any], BookmarkItem]],
    locks: Optional[KeyedLocks] = None,
) -> list[BookmarkItem]:
    """Delete every bookmark for ``gameid`` and insert ``items`` in one transaction."""
    cleaned_gameid = str(gameid or "").strip()
    if not cleaned_gameid:
        raise InputValidationError("GameID is required.")
    bookmarks = normalize_bookmark_items(items)

    def _replace() -> None:
        try:
            db.query(Bookmark).filter(Bookmark.gameid == cleaned_gameid).delete(synchronize_session=False)
            db.add_all(
                Bookmark(gameid=cleaned_gameid, cheat_name=item.cheat_name, cheat_code=item.cheat_code)
                for item in bookmarks
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

    if locks is None:
        _replace()
    else:
        with locks.hold(cleaned_gameid):
            _replace()

    logger.info("Bookmarks saved for gameid %s: %d entries", cleaned_gameid, len(bookmarks))
    return bookmarks


def list_bookmarks(db: Session, gameid: str) -> list[Bookmark]:
    return db.query(Bookmark).filter(Bookmark.gameid == gameid).order_by(Bookmark.id).all()


def list_all_bookmarks(db: Session) -> list[Bookmark]:
    return db.query(Bookmark).order_by(Bookmark.gameid, Bookmark.id).all()
