from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import AllBookmarksOut, BookmarkItemIn, BookmarksIn, BookmarksOut, ErrorOut, MessageOut
from ..services.bookmarks import BookmarkItem, list_all_bookmarks, list_bookmarks, replace_bookmarks
from ..state import StudioState
from .deps import get_state

router = APIRouter()


@router.post("/save-bookmarks", response_model=MessageOut, responses={400: {"model": ErrorOut}})
def save_bookmarks(
    payload: BookmarksIn,
    db: Session = Depends(get_db),
    state: StudioState = Depends(get_state),
):
    items = [
        BookmarkItem(cheat_name=item.cheat_name, cheat_code=item.cheat_code)
        if isinstance(item, BookmarkItemIn)
        else item
        for item in payload.bookmarks
    ]
    replace_bookmarks(db, payload.gameid, items, locks=state.bookmark_locks)
    return {"message": "Bookmarks saved successfully."}


@router.get("/get-bookmarks", response_model=BookmarksOut)
def get_bookmarks(gameid: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return {"bookmarks": [row.cheat_name for row in list_bookmarks(db, gameid.strip())]}


@router.get("/api/bookmarks", response_model=AllBookmarksOut)
def all_bookmarks(db: Session = Depends(get_db)):
    return {"bookmarks": list_all_bookmarks(db)}
