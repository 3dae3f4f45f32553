from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from .config import SWEEP_ENABLED, SWEEP_INTERVAL_SECONDS
from .db import engine
from .errors import install_handlers
from .log import configure_logging
from .routers import admin, providers
from .scheduler import start_background


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    stop = start_background(SWEEP_INTERVAL_SECONDS) if SWEEP_ENABLED else None
    yield
    if stop is not None:
        stop.set()


app = FastAPI(title="Listing Service", version="0.1.0", lifespan=lifespan)
install_handlers(app)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/ready")
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            return {"ready": True}
    except Exception:
        return {"ready": False}


app.include_router(providers.router)
app.include_router(admin.router)
