from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..exceptions import GameNotFoundError
from ..schemas import CatalogEntryOut, CatalogGameOut, ErrorOut
from ..state import StudioState
from .deps import get_state

router = APIRouter()


@router.get("/games", response_model=List[CatalogGameOut])
def search_games(term: str = Query(""), state: StudioState = Depends(get_state)):
    matches = state.catalog.search_games(term)
    return [
        {"identifier": identifier, "name": entry.name, "date": entry.date}
        for identifier, entry in sorted(matches.items(), key=lambda item: item[1].name.lower())
    ]


@router.get("/games/{gameid}", response_model=CatalogEntryOut, responses={404: {"model": ErrorOut}})
def get_game(gameid: str, term: Optional[str] = Query(None), state: StudioState = Depends(get_state)):
    if term:
        entry = state.catalog.search(gameid, term)
    else:
        entry = state.catalog.by_identifier(gameid)
    if entry is None:
        raise GameNotFoundError(gameid, "No cheats found for this GameID.")
    return entry.to_dict()
