import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, Response
import uvicorn

from .core.config import BACKEND_PORT, CORS_ORIGINS, DATA_DIR, LOG_LEVEL
from .exceptions import DeltaCheatsError
from .migrations import init_db
from .routes import bookmarks, catalog, delta, roms
from .state import build_state

logger = logging.getLogger(__name__)

app = FastAPI(title="Delta Cheats Studio API", version="0.1.0")


@app.exception_handler(DeltaCheatsError)
async def delta_cheats_error_handler(request: Request, exc: DeltaCheatsError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(OSError)
async def os_error_handler(request: Request, exc: OSError):
    logger.exception("I/O failure while handling %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal storage error."})


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.on_event("startup")
def on_startup() -> None:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if getattr(app.state, "studio", None) is not None:
        return
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    init_db()
    studio = build_state()
    studio.ensure_dirs()
    app.state.studio = studio
    logger.info("Cheat catalog ready with %d games", len(studio.catalog))


@app.get("/health")
def health_check():
    studio = getattr(app.state, "studio", None)
    return {
        "status": "ok",
        "catalog_games": len(studio.catalog) if studio is not None else 0,
    }


@app.head("/health")
def health_check_head():
    return Response(status_code=200)


app.include_router(roms.router, tags=["roms"])
app.include_router(delta.router, tags=["delta"])
app.include_router(bookmarks.router, tags=["bookmarks"])
app.include_router(catalog.router, prefix="/catalog", tags=["catalog"])


def run() -> None:
    uvicorn.run(app, host="127.0.0.1", port=BACKEND_PORT, log_level=LOG_LEVEL.lower())
