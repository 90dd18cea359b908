from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from ..core.config import ROM_EXTENSIONS
from ..schemas import ErrorOut, GameCheatsOut
from ..services.reconciler import build_game_response
from ..state import StudioState
from .deps import get_state, spool_upload, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/upload-rom",
    response_model=GameCheatsOut,
    responses={404: {"model": ErrorOut}, 400: {"model": ErrorOut}, 422: {"model": ErrorOut}},
)
async def upload_rom(rom: UploadFile = File(...), state: StudioState = Depends(get_state)):
    validate_upload(rom, ROM_EXTENSIONS, "ROM")
    rom_path = await spool_upload(rom, state.upload_dir, suffix=".nds")
    try:
        result = await build_game_response(state, rom_path)
    finally:
        rom_path.unlink(missing_ok=True)

    if not result.found:
        logger.info("No catalog entry for %s", result.identifier)
        return JSONResponse(status_code=404, content=result.to_dict())
    return result.to_dict()
