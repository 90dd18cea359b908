import asyncio
from pathlib import Path
import shutil
import tempfile
from typing import Iterable

from fastapi import Request, UploadFile

from ..exceptions import InputValidationError
from ..state import StudioState


def get_state(request: Request) -> StudioState:
    return request.app.state.studio


def validate_upload(file: UploadFile, extensions: Iterable[str], label: str) -> None:
    filename = (file.filename or "").lower()
    allowed = tuple(extensions)
    if not filename.endswith(allowed):
        raise InputValidationError(f"Invalid file format. Please upload a {' or '.join(allowed)} {label}.")


async def spool_upload(file: UploadFile, upload_dir: Path, suffix: str) -> Path:
    """Copy an upload to a private temp file off the event loop; the caller deletes it when done."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=upload_dir, prefix="upload-", suffix=suffix)
    path = Path(temp_name)
    try:
        with open(fd, "wb") as handle:
            await file.seek(0)
            await asyncio.to_thread(shutil.copyfileobj, file.file, handle)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    return path
