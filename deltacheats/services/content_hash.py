from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Union

from ..core.config import CONTENT_HASH_ALGORITHM

CHUNK_SIZE = 1024 * 1024


def compute_content_key(path: Union[str, Path], algorithm: str = CONTENT_HASH_ALGORITHM) -> str:
    """Hex digest of the whole file, read in chunks. OSError propagates on read failure."""
    try:
        digest = hashlib.new(algorithm)
    except ValueError as exc:
        raise ValueError(f"Unsupported content hash algorithm: {algorithm!r}") from exc
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


async def compute_content_key_async(
    path: Union[str, Path], algorithm: str = CONTENT_HASH_ALGORITHM
) -> str:
    return await asyncio.to_thread(compute_content_key, path, algorithm)
