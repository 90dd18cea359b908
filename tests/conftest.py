"""
Shared fixtures: synthetic ROMs, Delta stores, a bookmark database and an
API client wired to an isolated studio state.
"""

import hashlib
from pathlib import Path
from typing import Iterable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from deltacheats.db import Base, get_db
from deltacheats.services.cheat_catalog import parse_catalog
from deltacheats.services.game_id import ProductCodeExtractor, format_jamcrc, jamcrc
from deltacheats.state import build_state

PRODUCT_CODE = "AMCE"
CHEAT_ENTITY = 3


class FixedProductCodeExtractor(ProductCodeExtractor):
    """Returns one product code for every ROM and remembers what it was asked."""

    def __init__(self, code: str = PRODUCT_CODE) -> None:
        self.code = code
        self.calls = []

    def extract_product_code(self, rom_path):
        self.calls.append(Path(rom_path))
        return self.code


def rom_bytes(size: int = 2048, seed: int = 7) -> bytes:
    data = bytearray((seed + index * 31) % 256 for index in range(size))
    if size >= 0x10:
        data[0x0C:0x10] = PRODUCT_CODE.encode("ascii")
    return bytes(data)


def expected_game_id(data: bytes, code: str = PRODUCT_CODE) -> str:
    return f"{code} {format_jamcrc(jamcrc(data[:512]))}"


def catalog_xml(game_id: str, name: str = "Mario Kart DS") -> str:
    return f"""<?xml version="1.0" encoding="utf-8"?>
<codelist>
  <game>
    <name>{name}</name>
    <gameid>{game_id}</gameid>
    <date>2005-11-14</date>
    <cheat>
      <name>Always 1st Place</name>
      <codes>02012345 00000001</codes>
    </cheat>
    <folder allowedon="1">
      <name>Items</name>
      <cheat>
        <name>Infinite Mushrooms</name>
        <note>Hold L</note>
        <codes>021E4E48 00000005</codes>
      </cheat>
      <cheat>
        <name>Always Star</name>
        <codes>021E4E44 00000009</codes>
      </cheat>
    </folder>
  </game>
</codelist>"""


def create_delta_store(
    path: Path,
    games: Iterable[tuple],
    cheats: Iterable[dict] = (),
    z_max: Optional[int] = None,
    with_primary_keys: bool = True,
    model_version: Optional[int] = 1,
) -> Path:
    """
    Write a minimal Core Data store shaped like Delta's.

    ``games`` holds ``(pk, identifier, name)`` tuples; each cheat dict needs
    ``pk``, ``name`` and ``game`` and may set ``code``, ``enabled``, ``type``.
    ZGAME carries an extra column the adapter does not know about.
    """
    cheats = list(cheats)
    engine = create_engine(f"sqlite:///{path.as_posix()}")
    with engine.begin() as connection:
        connection.execute(text(
            "CREATE TABLE ZGAME (Z_PK INTEGER PRIMARY KEY, Z_ENT INTEGER, Z_OPT INTEGER, "
            "ZIDENTIFIER VARCHAR, ZNAME VARCHAR, ZTYPE VARCHAR, ZFILENAME VARCHAR)"
        ))
        connection.execute(text(
            "CREATE TABLE ZCHEAT (Z_PK INTEGER PRIMARY KEY, Z_ENT INTEGER, Z_OPT INTEGER, "
            "ZISENABLED INTEGER, ZGAME INTEGER, ZCREATIONDATE TIMESTAMP, ZMODIFIEDDATE TIMESTAMP, "
            "ZCODE VARCHAR, ZIDENTIFIER VARCHAR, ZNAME VARCHAR, ZTYPE BLOB)"
        ))
        for pk, identifier, name in games:
            connection.execute(
                text(
                    "INSERT INTO ZGAME (Z_PK, Z_ENT, Z_OPT, ZIDENTIFIER, ZNAME, ZTYPE, ZFILENAME) "
                    "VALUES (:pk, 2, 1, :identifier, :name, 'com.rileytestut.delta.game.ds', :filename)"
                ),
                {"pk": pk, "identifier": identifier, "name": name, "filename": f"{name}.nds"},
            )
        for cheat in cheats:
            connection.execute(
                text(
                    "INSERT INTO ZCHEAT (Z_PK, Z_ENT, Z_OPT, ZISENABLED, ZGAME, ZCREATIONDATE, "
                    "ZMODIFIEDDATE, ZCODE, ZIDENTIFIER, ZNAME, ZTYPE) VALUES (:pk, :ent, 4, :enabled, "
                    ":game, 600000000.5, 600000100.5, :code, :identifier, :name, :type)"
                ),
                {
                    "pk": cheat["pk"],
                    "ent": CHEAT_ENTITY,
                    "enabled": int(cheat.get("enabled", False)),
                    "game": cheat["game"],
                    "code": cheat.get("code", "02000000 00000000"),
                    "identifier": f"CHEAT-{cheat['pk']}",
                    "name": cheat["name"],
                    "type": cheat.get("type", b"actionReplay"),
                },
            )
        if with_primary_keys:
            connection.execute(text(
                "CREATE TABLE Z_PRIMARYKEY (Z_ENT INTEGER PRIMARY KEY, Z_NAME VARCHAR, "
                "Z_SUPER INTEGER, Z_MAX INTEGER)"
            ))
            highest_cheat = max((cheat["pk"] for cheat in cheats), default=0)
            connection.execute(
                text("INSERT INTO Z_PRIMARYKEY VALUES (2, 'Game', 0, :game_max), (:ent, 'Cheat', 0, :cheat_max)"),
                {
                    "game_max": max((game[0] for game in games), default=0),
                    "ent": CHEAT_ENTITY,
                    "cheat_max": highest_cheat if z_max is None else z_max,
                },
            )
        if model_version is not None:
            connection.execute(text(
                "CREATE TABLE Z_METADATA (Z_VERSION INTEGER PRIMARY KEY, Z_UUID VARCHAR(255), Z_PLIST BLOB)"
            ))
            connection.execute(
                text("INSERT INTO Z_METADATA VALUES (:version, 'STORE-UUID', NULL)"),
                {"version": model_version},
            )
    engine.dispose()
    return path


# ── ROM fixtures ──────────────────────────────────────────────────────────────

@pytest.fixture
def fixed_extractor():
    return FixedProductCodeExtractor()


@pytest.fixture
def rom_data():
    return rom_bytes()


@pytest.fixture
def rom_path(tmp_path, rom_data):
    path = tmp_path / "game.nds"
    path.write_bytes(rom_data)
    return path


@pytest.fixture
def rom_game_id(rom_data):
    return expected_game_id(rom_data)


@pytest.fixture
def rom_content_key(rom_data):
    return hashlib.sha1(rom_data).hexdigest()


@pytest.fixture
def rom_factory(tmp_path):
    def _factory(name: str = "custom.nds", size: int = 2048, seed: int = 7) -> Path:
        path = tmp_path / name
        path.write_bytes(rom_bytes(size=size, seed=seed))
        return path
    return _factory


# ── Delta store fixtures ──────────────────────────────────────────────────────

@pytest.fixture
def delta_store_factory(tmp_path):
    def _factory(name: str = "delta.sqlite", **kwargs) -> Path:
        return create_delta_store(tmp_path / name, **kwargs)
    return _factory


# ── Studio / API fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def catalog(rom_game_id):
    return parse_catalog(catalog_xml(rom_game_id))


@pytest.fixture
def studio(tmp_path, catalog, fixed_extractor):
    state = build_state(
        catalog=catalog,
        extractor=fixed_extractor,
        upload_dir=tmp_path / "uploads",
        delta_store_dir=tmp_path / "deltas",
        hash_algorithm="sha1",
    )
    state.ensure_dirs()
    return state


@pytest.fixture
def bookmark_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{(tmp_path / 'bookmarks.sqlite').as_posix()}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(bookmark_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=bookmark_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(studio, session_factory):
    """TestClient without the lifespan, so startup never touches real config paths."""
    from deltacheats.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.state.studio = studio
    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        del app.state.studio
