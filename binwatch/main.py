from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from binwatch.api.routes import router as api_router
from binwatch.api.websocket import ConnectionManager, router as websocket_router
from binwatch.config import load_config
from binwatch.ingestion.processor import IngestionProcessor
from binwatch.models.database import DatabaseManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = load_config()
    logging.getLogger().setLevel(config.logging.level)

    db = DatabaseManager(config.database.path)
    db.initialize()

    ws_manager = ConnectionManager()
    processor = IngestionProcessor(db, on_change=ws_manager.publish_bin)

    app.state.config = config
    app.state.db = db
    app.state.ws_manager = ws_manager
    app.state.processor = processor
    LOGGER.info("Bin store ready at %s", config.database.path)

    yield

    db.close()


app = FastAPI(
    title="Smart Waste Bin Monitoring API",
    version="1.0.0",
    description="Fill level ingestion, live updates and compliance scoring for waste bins",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
app.include_router(websocket_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
