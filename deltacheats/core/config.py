import os
import sys
from pathlib import Path
from typing import Iterable, Optional


def read_env_file(path: Path) -> dict[str, str]:
    """Parse ``KEY=value`` lines; ``export`` prefixes, comments and surrounding quotes are ignored."""
    values: dict[str, str] = {}
    if not path.is_file():
        return values
    for line in path.read_text(encoding="utf-8").splitlines():
        entry = line.strip()
        if entry.startswith("export "):
            entry = entry[len("export "):].lstrip()
        key, sep, value = entry.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        values[key] = value.strip().strip('"').strip("'")
    return values


def _env_candidates() -> list[Path]:
    explicit = os.getenv("DELTACHEATS_ENV_FILE")
    if explicit:
        return [Path(explicit)]
    if getattr(sys, "frozen", False):
        return [Path(sys.executable).parent / ".env"]
    return [Path(__file__).resolve().parents[2] / ".env", Path.cwd() / ".env"]


def load_env(candidates: Optional[Iterable[Path]] = None) -> None:
    """Fill os.environ from .env files; variables already set always win."""
    for candidate in candidates if candidates is not None else _env_candidates():
        for key, value in read_env_file(candidate).items():
            os.environ.setdefault(key, value)


load_env()


def _normalize_cors(origins: str) -> list[str]:
    items: list[str] = []
    for raw in origins.split(","):
        value = raw.strip()
        if value and value not in items:
            items.append(value)
    return items


_PROJECT_ROOT = Path(__file__).resolve().parents[2]

DATA_DIR = Path(os.getenv("DATA_DIR", str(_PROJECT_ROOT / "data")))
CHEATS_XML_PATH = Path(os.getenv("CHEATS_XML_PATH", str(DATA_DIR / "cheats.xml")))


def _default_database_url() -> str:
    explicit_path = os.getenv("BOOKMARKS_DB_PATH", "").strip()
    if explicit_path:
        return f"sqlite:///{Path(explicit_path).as_posix()}"
    return f"sqlite:///{(DATA_DIR / 'bookmarks.sqlite').resolve().as_posix()}"


DATABASE_URL = os.getenv("DATABASE_URL", _default_database_url())
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(_PROJECT_ROOT / "uploads")))
DELTA_STORE_DIR = Path(os.getenv("DELTA_STORE_DIR", str(UPLOAD_DIR / "deltas")))

# "ndstool" shells out to the devkitPro tool; "header" reads the cartridge header directly.
PRODUCT_CODE_SOURCE = os.getenv("PRODUCT_CODE_SOURCE", "ndstool").strip().lower() or "ndstool"
NDSTOOL_BIN = os.getenv("NDSTOOL_BIN", "ndstool")
NDSTOOL_TIMEOUT_SECONDS = int(os.getenv("NDSTOOL_TIMEOUT_SECONDS", "30"))

# Delta keys games by the SHA-1 of the ROM file.
CONTENT_HASH_ALGORITHM = os.getenv("CONTENT_HASH_ALGORITHM", "sha1").strip().lower() or "sha1"

ROM_EXTENSIONS = (".nds",)
DELTA_STORE_EXTENSIONS = (".sqlite",)
DELTA_DOWNLOAD_FILENAME = os.getenv("DELTA_DOWNLOAD_FILENAME", "delta_cheats_modified.sqlite")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

_BACKEND_PORT = os.getenv("BACKEND_PORT", "5050").strip() or "5050"
BACKEND_PORT = int(_BACKEND_PORT)

_DEFAULT_CORS_ORIGINS = (
    f"http://localhost:{_BACKEND_PORT},http://127.0.0.1:{_BACKEND_PORT},"
    "http://localhost:5173,http://127.0.0.1:5173"
)
CORS_ORIGINS = _normalize_cors(os.getenv("CORS_ORIGINS", _DEFAULT_CORS_ORIGINS))
