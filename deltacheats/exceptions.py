"""
Error hierarchy for the cheat studio.

Every error raised by the services derives from DeltaCheatsError and carries the
HTTP status the API layer should answer with, so routes never translate errors
by hand.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

__all__ = [
    "DeltaCheatsError",
    "InputValidationError",
    "IdentityError",
    "ExtractionError",
    "TruncatedInputError",
    "ForeignStoreError",
    "StoreNotFoundError",
    "SchemaError",
    "UnsupportedFormatError",
    "JoinMismatchError",
    "GameNotFoundError",
]


class DeltaCheatsError(Exception):
    """Root exception for all cheat studio errors."""

    status_code = 500

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = {key: value for key, value in extra.items() if value is not None}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class InputValidationError(DeltaCheatsError):
    """Wrong file type, missing field or malformed key supplied by the caller."""

    status_code = 400


# ── Identity ──────────────────────────────────────────────────────────────────

class IdentityError(DeltaCheatsError):
    """Base class for ROM identification failures."""

    status_code = 422


class ExtractionError(IdentityError):
    """The product code could not be read from the ROM metadata."""


class TruncatedInputError(IdentityError):
    """The ROM is shorter than the header the checksum is computed over."""


# ── Foreign store ─────────────────────────────────────────────────────────────

class ForeignStoreError(DeltaCheatsError):
    """Base class for Delta store reconciliation errors."""

    status_code = 400


class StoreNotFoundError(ForeignStoreError):
    """No store has been uploaded for the requested game."""

    status_code = 404


class SchemaError(ForeignStoreError):
    """The file is not a Delta store: tables or columns are missing."""


class UnsupportedFormatError(SchemaError):
    """The store declares a model version this adapter has no format table for."""


class JoinMismatchError(ForeignStoreError):
    """The store holds cheats for games other than the active one."""

    def __init__(self, expected: str, present: Iterable[str]) -> None:
        present_keys = sorted({str(key) for key in present})
        super().__init__(
            "Delta store does not match the uploaded ROM.",
            expected=expected,
            present=present_keys,
        )
        self.expected = expected
        self.present = present_keys


class GameNotFoundError(ForeignStoreError):
    """The store has no game row for the requested join key."""

    status_code = 404

    def __init__(self, join_key: str, message: Optional[str] = None) -> None:
        super().__init__(message or "Game not found in Delta store.", identifier=join_key)
        self.join_key = join_key
