from __future__ import annotations

import asyncio
import logging
import subprocess
import zlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

from ..core.config import NDSTOOL_BIN, NDSTOOL_TIMEOUT_SECONDS, PRODUCT_CODE_SOURCE
from ..exceptions import ExtractionError, TruncatedInputError

logger = logging.getLogger(__name__)

HEADER_CHECKSUM_BYTES = 512
PRODUCT_CODE_LENGTH = 4
GAME_CODE_LABEL = "Game code"
# Offset of the 4-character game code in the DS cartridge header.
NDS_GAME_CODE_OFFSET = 0x0C

PathLike = Union[str, Path]


def _normalize_product_code(raw: str) -> str:
    code = raw[:PRODUCT_CODE_LENGTH].upper()
    if len(code) != PRODUCT_CODE_LENGTH or not code.isalnum() or not code.isascii():
        raise ExtractionError(f"Invalid game code {raw!r}.")
    return code


class ProductCodeExtractor(ABC):
    """Reads the 4-character product code from a ROM file."""

    @abstractmethod
    def extract_product_code(self, rom_path: PathLike) -> str:
        """Return the upper-case product code or raise ExtractionError."""


def parse_ndstool_report(report: str) -> str:
    """
    Pull the game code out of an ``ndstool -i`` report.

    The relevant line looks like ``0x0C  Game code  IPKE (NTR-IPKE-USA)``; the
    code is the first four characters following the label.
    """
    for line in report.splitlines():
        if GAME_CODE_LABEL not in line:
            continue
        remainder = line.split(GAME_CODE_LABEL, 1)[1].strip()
        if not remainder:
            break
        return _normalize_product_code(remainder)
    raise ExtractionError("Game code not found in ndstool output.")


class NdsToolExtractor(ProductCodeExtractor):
    def __init__(self, binary: str = NDSTOOL_BIN, timeout_seconds: int = NDSTOOL_TIMEOUT_SECONDS) -> None:
        self.binary = binary
        self.timeout_seconds = timeout_seconds

    def extract_product_code(self, rom_path: PathLike) -> str:
        try:
            completed = subprocess.run(
                [self.binary, "-i", str(rom_path)],
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout_seconds,
                check=True,
            )
        except FileNotFoundError as exc:
            raise ExtractionError(f"{self.binary} is not installed.") from exc
        except subprocess.TimeoutExpired as exc:
            raise ExtractionError(f"{self.binary} timed out after {self.timeout_seconds}s.") from exc
        except subprocess.CalledProcessError as exc:
            logger.error("ndstool failed for %s: %s", rom_path, (exc.stderr or "").strip())
            raise ExtractionError(f"{self.binary} exited with status {exc.returncode}.") from exc
        return parse_ndstool_report(completed.stdout)


class NdsHeaderExtractor(ProductCodeExtractor):
    """Reads the game code straight from the cartridge header, no external tool needed."""

    def extract_product_code(self, rom_path: PathLike) -> str:
        with open(rom_path, "rb") as handle:
            handle.seek(NDS_GAME_CODE_OFFSET)
            raw = handle.read(PRODUCT_CODE_LENGTH)
        if len(raw) < PRODUCT_CODE_LENGTH:
            raise ExtractionError("ROM header is too short to contain a game code.")
        return _normalize_product_code(raw.decode("ascii", errors="replace"))


def get_extractor(source: str = PRODUCT_CODE_SOURCE) -> ProductCodeExtractor:
    normalized = (source or "").strip().lower()
    if normalized == "header":
        return NdsHeaderExtractor()
    if normalized == "ndstool":
        return NdsToolExtractor()
    raise ValueError(f"Unknown product code source: {source!r}")


def jamcrc(data: bytes) -> int:
    """CRC-32 with the final XOR left out, i.e. the bitwise complement of CRC-32."""
    return (zlib.crc32(data) ^ 0xFFFFFFFF) & 0xFFFFFFFF


def format_jamcrc(value: int) -> str:
    return f"{value & 0xFFFFFFFF:08X}"


def read_checksum_header(rom_path: PathLike) -> bytes:
    with open(rom_path, "rb") as handle:
        header = handle.read(HEADER_CHECKSUM_BYTES)
    if len(header) < HEADER_CHECKSUM_BYTES:
        raise TruncatedInputError(
            f"ROM header is {len(header)} bytes; {HEADER_CHECKSUM_BYTES} are required."
        )
    return header


def derive_game_id(rom_path: PathLike, extractor: ProductCodeExtractor) -> str:
    """
    Build the cheat database key for a ROM: ``"{code} {jamcrc}"``.

    The header is read first so a short file always fails with
    TruncatedInputError rather than an extraction error.
    """
    header = read_checksum_header(rom_path)
    code = extractor.extract_product_code(rom_path)
    game_id = f"{code} {format_jamcrc(jamcrc(header))}"
    logger.debug("Derived game id %s for %s", game_id, rom_path)
    return game_id


async def derive_game_id_async(rom_path: PathLike, extractor: ProductCodeExtractor) -> str:
    return await asyncio.to_thread(derive_game_id, rom_path, extractor)
