from typing import Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from .db import Base, engine as default_engine
from .models import Bookmark


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the bookmark tables and upgrade older ones in place."""
    engine = bind or default_engine
    Base.metadata.create_all(bind=engine, tables=[Bookmark.__table__])
    ensure_schema(engine)


def ensure_schema(bind: Optional[Engine] = None) -> None:
    """Bring bookmark databases created before cheat codes were tracked up to date."""
    engine = bind or default_engine
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())

    if "bookmarks" in tables:
        columns = {col["name"] for col in inspector.get_columns("bookmarks")}
        alters = []
        if "cheat_code" not in columns:
            alters.append("ALTER TABLE bookmarks ADD COLUMN cheat_code TEXT")
        _apply_alters(engine, alters)

        indexes = {index["name"] for index in inspector.get_indexes("bookmarks")}
        if "ix_bookmarks_gameid" not in indexes:
            _apply_alters(engine, ["CREATE INDEX IF NOT EXISTS ix_bookmarks_gameid ON bookmarks (gameid)"])


def _apply_alters(engine: Engine, statements: list[str]) -> None:
    if not statements:
        return
    with engine.begin() as connection:
        for statement in statements:
            connection.execute(text(statement))
