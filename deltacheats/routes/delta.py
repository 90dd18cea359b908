from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import Response

from ..core.config import DELTA_DOWNLOAD_FILENAME, DELTA_STORE_EXTENSIONS
from ..schemas import DeltaImportOut, ErrorOut, GamesOut, GenerateDeltaIn
from ..services.delta_store import SelectedCheat
from ..services.reconciler import (
    generate_delta_store,
    import_delta_store,
    list_overlay_games,
    resolve_content_key,
)
from ..state import StudioState
from .deps import get_state, spool_upload, validate_upload

router = APIRouter()

SQLITE_MEDIA_TYPE = "application/vnd.sqlite3"


@router.post(
    "/upload-delta",
    response_model=DeltaImportOut,
    responses={400: {"model": ErrorOut}, 404: {"model": ErrorOut}},
)
async def upload_delta(
    delta: UploadFile = File(...),
    content_key: Optional[str] = Form(None),
    state: StudioState = Depends(get_state),
):
    validate_upload(delta, DELTA_STORE_EXTENSIONS, "Delta database")
    key = resolve_content_key(state, content_key)
    store_path = await spool_upload(delta, state.upload_dir, suffix=".sqlite")
    try:
        overlay = await asyncio.to_thread(import_delta_store, state, store_path, key)
    finally:
        store_path.unlink(missing_ok=True)
    return {"message": "Delta database uploaded successfully.", "content_key": key, "cheats": len(overlay)}


@router.post("/generate-delta", responses={400: {"model": ErrorOut}, 404: {"model": ErrorOut}})
def generate_delta(payload: GenerateDeltaIn, state: StudioState = Depends(get_state)):
    key = resolve_content_key(state, payload.content_key)
    selected = [
        SelectedCheat(name=item.name, codes=item.codes, enabled=item.enabled)
        for item in payload.selected_cheats
    ]
    data = generate_delta_store(state, key, selected)
    return Response(
        content=data,
        media_type=SQLITE_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{DELTA_DOWNLOAD_FILENAME}"'},
    )


@router.get("/api/games", response_model=GamesOut)
def list_games(state: StudioState = Depends(get_state)):
    return {"games": list_overlay_games(state)}
