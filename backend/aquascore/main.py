# backend/aquascore/main.py
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CORS_ORIGINS, HOST, PORT, SEED_DEMO_DATA
from .database import engine, Base, SessionLocal
from .models import WaterBody
from .orchestrator import HealthOrchestrator
from .provider import SqlDataProvider
from .routes import router

logger = logging.getLogger(__name__)


def _seed_water_bodies(session_factory) -> None:
    db = session_factory()
    try:
        if db.query(WaterBody).count() == 0:
            db.add_all([
                WaterBody(name="Living Room Reef", body_type="reef"),
                WaterBody(name="Backyard Pond", body_type="pond"),
                WaterBody(name="Garden Pool", body_type="pool_chlorine"),
            ])
            db.commit()
            logger.info("Seeded demo water bodies")
    finally:
        db.close()


def create_app(session_factory=SessionLocal, bind=engine, seed: bool = SEED_DEMO_DATA) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Base.metadata.create_all(bind=bind)
        if seed:
            _seed_water_bodies(session_factory)
        yield

    app = FastAPI(title="AquaScore", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.health = HealthOrchestrator(SqlDataProvider(session_factory))

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    uvicorn.run("aquascore.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()
