from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Union

from ..exceptions import InputValidationError, StoreNotFoundError

logger = logging.getLogger(__name__)

_JOIN_KEY_RE = re.compile(r"^[0-9a-f]{32,128}$")


class DeltaStoreRepository:
    """Uploaded Delta stores on disk, one file per content key: ``<root>/<key>.sqlite``."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def path_for(self, join_key: str) -> Path:
        normalized = str(join_key or "").strip().lower()
        if not _JOIN_KEY_RE.match(normalized):
            raise InputValidationError("Invalid content key.", content_key=join_key)
        return self.root / f"{normalized}.sqlite"

    def exists(self, join_key: str) -> bool:
        return self.path_for(join_key).is_file()

    def load(self, join_key: str) -> bytes:
        path = self.path_for(join_key)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise StoreNotFoundError("No Delta store uploaded for the current game.") from exc

    def save(self, join_key: str, data: bytes) -> Path:
        target = self.path_for(join_key)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=".incoming-", suffix=".sqlite")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(temp_name, target)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        logger.info("Stored Delta database for %s (%d bytes)", target.stem, len(data))
        return target

    def save_file(self, join_key: str, source: Union[str, Path]) -> Path:
        target = self.path_for(join_key)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=".incoming-", suffix=".sqlite")
        os.close(fd)
        try:
            shutil.copyfile(source, temp_name)
            os.replace(temp_name, target)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        logger.info("Stored Delta database for %s from %s", target.stem, Path(source).name)
        return target
