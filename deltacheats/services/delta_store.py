"""
Adapter for Delta's cheat database.

Delta persists cheats in a Core Data SQLite store. Only the ZGAME and ZCHEAT
tables (plus the Core Data bookkeeping tables Z_PRIMARYKEY and Z_METADATA) are
touched here. Tables are reflected rather than declared so that every column
and row this module does not know about is written back unchanged.
"""

from __future__ import annotations

import logging
import os
import tempfile
import textwrap
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from sqlalchemy import MetaData, Table, create_engine, func, insert, inspect, select, text, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DatabaseError
from sqlalchemy.pool import NullPool
from sqlalchemy.types import NullType

from ..exceptions import (
    GameNotFoundError,
    JoinMismatchError,
    SchemaError,
    StoreNotFoundError,
    UnsupportedFormatError,
)
from .overlays import CheatOverlay, SessionOverlay

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

CORE_DATA_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)
PRIMARY_KEY_TABLE = "Z_PRIMARYKEY"
METADATA_TABLE = "Z_METADATA"
DEFAULT_FORMAT_VERSION = 1

CODE_GROUP_WIDTH = 8
CODE_LINE_WIDTH = 16


@dataclass(frozen=True)
class DeltaStoreFormat:
    version: int
    game_table: str
    cheat_table: str
    game_columns: frozenset[str]
    cheat_columns: frozenset[str]
    cheat_entity_name: str
    cheat_entity_fallback: int
    cheat_type_template: bytes


DELTA_STORE_FORMATS: dict[int, DeltaStoreFormat] = {
    1: DeltaStoreFormat(
        version=1,
        game_table="ZGAME",
        cheat_table="ZCHEAT",
        game_columns=frozenset({"Z_PK", "ZIDENTIFIER", "ZNAME"}),
        cheat_columns=frozenset(
            {
                "Z_PK",
                "Z_ENT",
                "Z_OPT",
                "ZISENABLED",
                "ZGAME",
                "ZCREATIONDATE",
                "ZMODIFIEDDATE",
                "ZCODE",
                "ZIDENTIFIER",
                "ZNAME",
                "ZTYPE",
            }
        ),
        cheat_entity_name="Cheat",
        cheat_entity_fallback=16,
        cheat_type_template=b"actionReplay",
    ),
}


@dataclass(frozen=True)
class SelectedCheat:
    name: str
    codes: str
    enabled: bool = True


@dataclass
class ApplyResult:
    game_pk: int
    updated: list[str] = field(default_factory=list)
    inserted: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class _StoreTables:
    store_format: DeltaStoreFormat
    game: Table
    cheat: Table
    primary_keys: Optional[Table]


def canonicalize_code(code: Optional[str]) -> str:
    """
    Normalize a hex code string for storage and comparison.

    Whitespace is dropped, an odd digit count is padded with one trailing "0",
    and the digits are split into 8-character groups that are wrapped at 16
    columns. ``"02012345 00002710"`` becomes ``"02012345\\n00002710"``.
    """
    digits = "".join((code or "").split())
    if len(digits) % 2:
        digits += "0"
    groups = [digits[start:start + CODE_GROUP_WIDTH] for start in range(0, len(digits), CODE_GROUP_WIDTH)]
    return "\n".join(textwrap.wrap(" ".join(groups), width=CODE_LINE_WIDTH))


def core_data_timestamp(moment: Optional[datetime] = None) -> float:
    """Seconds since 2001-01-01 UTC, the reference date Core Data stores dates against."""
    current = moment or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return (current - CORE_DATA_EPOCH).total_seconds()


def _keep_raw_types(inspector, table, column_info) -> None:
    # Foreign values go back to SQLite exactly as they came out.
    column_info["type"] = NullType()


@contextmanager
def _store_engine(path: Path) -> Iterator[Engine]:
    engine = create_engine(f"sqlite:///{path.as_posix()}", poolclass=NullPool)
    try:
        yield engine
    finally:
        engine.dispose()


def _detect_format(connection: Connection, table_names: set[str]) -> DeltaStoreFormat:
    if METADATA_TABLE not in table_names:
        return DELTA_STORE_FORMATS[DEFAULT_FORMAT_VERSION]
    version = connection.execute(text(f'SELECT MAX("Z_VERSION") FROM "{METADATA_TABLE}"')).scalar()
    if version is None:
        return DELTA_STORE_FORMATS[DEFAULT_FORMAT_VERSION]
    store_format = DELTA_STORE_FORMATS.get(int(version))
    if store_format is None:
        raise UnsupportedFormatError(f"Unsupported Delta store model version {version}.", version=int(version))
    return store_format


def _reflect_table(connection: Connection, metadata: MetaData, name: str, required: Iterable[str]) -> Table:
    table = Table(name, metadata, autoload_with=connection, listeners=[("column_reflect", _keep_raw_types)])
    missing = sorted(set(required) - set(table.c.keys()))
    if missing:
        raise SchemaError(f"Table {name} is missing columns: {', '.join(missing)}.", table=name)
    return table


def _reflect(connection: Connection) -> _StoreTables:
    table_names = set(inspect(connection).get_table_names())
    store_format = _detect_format(connection, table_names)
    missing = sorted({store_format.game_table, store_format.cheat_table} - table_names)
    if missing:
        raise SchemaError(f"Not a Delta store; missing tables: {', '.join(missing)}.")

    metadata = MetaData()
    game = _reflect_table(connection, metadata, store_format.game_table, store_format.game_columns)
    cheat = _reflect_table(connection, metadata, store_format.cheat_table, store_format.cheat_columns)
    primary_keys = None
    if PRIMARY_KEY_TABLE in table_names:
        primary_keys = _reflect_table(connection, metadata, PRIMARY_KEY_TABLE, ("Z_ENT", "Z_NAME", "Z_MAX"))
    return _StoreTables(store_format=store_format, game=game, cheat=cheat, primary_keys=primary_keys)


def read_overlay(store_path: PathLike, expected_join_key: str) -> SessionOverlay:
    """
    Read the user's cheat state out of a Delta store.

    Every cheat in the store must belong to the game whose ZIDENTIFIER equals
    ``expected_join_key``; otherwise the whole store is rejected.
    """
    path = Path(store_path)
    if not path.is_file():
        raise StoreNotFoundError("No Delta store uploaded for this game.")

    with _store_engine(path) as engine:
        try:
            with engine.connect() as connection:
                tables = _reflect(connection)
                cheat, game = tables.cheat, tables.game
                rows = connection.execute(
                    select(cheat.c.ZNAME, cheat.c.ZCODE, cheat.c.ZISENABLED, game.c.ZIDENTIFIER)
                    .select_from(cheat.join(game, cheat.c.ZGAME == game.c.Z_PK))
                    .where(cheat.c.ZGAME.is_not(None))
                    .order_by(cheat.c.Z_PK)
                ).all()
        except DatabaseError as exc:
            raise SchemaError("Uploaded file is not a readable SQLite database.") from exc

    present = {row.ZIDENTIFIER for row in rows}
    logger.info("Identifiers present in uploaded Delta store: %s", sorted(str(key) for key in present))
    if present - {expected_join_key}:
        raise JoinMismatchError(expected_join_key, present)

    overlay: dict[str, CheatOverlay] = {}
    for row in rows:
        if row.ZNAME is None:
            continue
        enabled = bool(row.ZISENABLED)
        overlay[str(row.ZNAME)] = CheatOverlay(
            enabled=enabled,
            bookmarked=enabled,
            codes=canonicalize_code(row.ZCODE),
        )
    return overlay


def _resolve_game_pk(connection: Connection, tables: _StoreTables, join_key: str) -> int:
    game = tables.game
    game_pk = connection.execute(
        select(game.c.Z_PK).where(game.c.ZIDENTIFIER == join_key).order_by(game.c.Z_PK).limit(1)
    ).scalar()
    if game_pk is None:
        raise GameNotFoundError(join_key)
    return int(game_pk)


def _cheat_entity(connection: Connection, tables: _StoreTables) -> int:
    entity_name = tables.store_format.cheat_entity_name
    if tables.primary_keys is not None:
        entity = connection.execute(
            select(tables.primary_keys.c.Z_ENT).where(tables.primary_keys.c.Z_NAME == entity_name)
        ).scalar()
        if entity is not None:
            return int(entity)
    entity = connection.execute(
        select(tables.cheat.c.Z_ENT).where(tables.cheat.c.Z_ENT.is_not(None)).limit(1)
    ).scalar()
    if entity is not None:
        return int(entity)
    return tables.store_format.cheat_entity_fallback


def _max_cheat_pk(connection: Connection, tables: _StoreTables) -> int:
    highest = int(connection.execute(select(func.max(tables.cheat.c.Z_PK))).scalar() or 0)
    if tables.primary_keys is not None:
        recorded = connection.execute(
            select(tables.primary_keys.c.Z_MAX).where(
                tables.primary_keys.c.Z_NAME == tables.store_format.cheat_entity_name
            )
        ).scalar()
        highest = max(highest, int(recorded or 0))
    return highest


def _cheat_type_template(connection: Connection, tables: _StoreTables) -> bytes:
    cheat = tables.cheat
    existing = connection.execute(
        select(cheat.c.ZTYPE).where(cheat.c.ZTYPE.is_not(None)).order_by(cheat.c.Z_PK).limit(1)
    ).scalar()
    if existing is not None:
        return existing
    return tables.store_format.cheat_type_template


def apply_cheats_to_path(
    store_path: PathLike,
    join_key: str,
    selected: Iterable[SelectedCheat],
    now: Optional[datetime] = None,
) -> ApplyResult:
    """
    Enable ``selected`` cheats in the store at ``store_path`` inside one transaction.

    Existing rows (matched by name under the game's primary key) have their
    enabled flag, code and modification date updated; everything else about
    them is kept. Missing cheats are inserted with primary keys above the
    current maximum. Any error rolls the whole call back.
    """
    path = Path(store_path)
    if not path.is_file():
        raise StoreNotFoundError("No Delta store uploaded for this game.")
    timestamp = core_data_timestamp(now)

    with _store_engine(path) as engine:
        try:
            with engine.begin() as connection:
                tables = _reflect(connection)
                cheat = tables.cheat
                result = ApplyResult(game_pk=_resolve_game_pk(connection, tables, join_key))
                entity = _cheat_entity(connection, tables)
                next_pk = _max_cheat_pk(connection, tables)
                type_template = _cheat_type_template(connection, tables)

                for item in selected:
                    code = canonicalize_code(item.codes)
                    existing_pk = connection.execute(
                        select(cheat.c.Z_PK)
                        .where(cheat.c.ZGAME == result.game_pk, cheat.c.ZNAME == item.name)
                        .order_by(cheat.c.Z_PK)
                        .limit(1)
                    ).scalar()
                    if existing_pk is not None:
                        connection.execute(
                            update(cheat)
                            .where(cheat.c.Z_PK == existing_pk)
                            .values(ZISENABLED=int(item.enabled), ZCODE=code, ZMODIFIEDDATE=timestamp)
                        )
                        result.updated.append(item.name)
                        continue

                    next_pk += 1
                    connection.execute(
                        insert(cheat).values(
                            Z_PK=next_pk,
                            Z_ENT=entity,
                            Z_OPT=1,
                            ZISENABLED=int(item.enabled),
                            ZGAME=result.game_pk,
                            ZCREATIONDATE=timestamp,
                            ZMODIFIEDDATE=timestamp,
                            ZCODE=code,
                            ZIDENTIFIER=str(uuid.uuid4()).upper(),
                            ZNAME=item.name,
                            ZTYPE=type_template,
                        )
                    )
                    result.inserted[item.name] = next_pk

                if result.inserted and tables.primary_keys is not None:
                    primary_keys = tables.primary_keys
                    connection.execute(
                        update(primary_keys)
                        .where(primary_keys.c.Z_NAME == tables.store_format.cheat_entity_name)
                        .values(Z_MAX=next_pk)
                    )
        except DatabaseError as exc:
            raise SchemaError("Delta store could not be updated.") from exc

    logger.info(
        "Applied cheats to %s for %s (updated=%d, inserted=%d)",
        path.name,
        join_key,
        len(result.updated),
        len(result.inserted),
    )
    return result


def _remove_sqlite_files(path: Path) -> None:
    for suffix in ("", "-wal", "-shm", "-journal"):
        Path(f"{path}{suffix}").unlink(missing_ok=True)


def apply_cheats(
    store_bytes: bytes,
    join_key: str,
    selected: Iterable[SelectedCheat],
    now: Optional[datetime] = None,
) -> bytes:
    """Byte-in, byte-out variant of apply_cheats_to_path; the input buffer is never touched."""
    fd, temp_name = tempfile.mkstemp(prefix="delta-", suffix=".sqlite")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(store_bytes)
        apply_cheats_to_path(temp_path, join_key, selected, now=now)
        return temp_path.read_bytes()
    finally:
        _remove_sqlite_files(temp_path)
