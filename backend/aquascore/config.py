# backend/aquascore/config.py
import os

from dotenv import load_dotenv

load_dotenv()


def _parse_origins(raw: str) -> list[str]:
    if not raw:
        return ["*"]
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    return parts or ["*"]


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./aquascore.db")
CORS_ORIGINS = _parse_origins(os.getenv("CORS_ORIGINS", ""))

# Health engine tuning
HEALTH_CACHE_TTL_SEC = float(os.getenv("HEALTH_CACHE_TTL_SEC", "60"))
HEALTH_FETCH_TIMEOUT_SEC = float(os.getenv("HEALTH_FETCH_TIMEOUT_SEC", "10"))
HEALTH_WINDOW_DAYS = int(os.getenv("HEALTH_WINDOW_DAYS", "30"))
HEALTH_TEST_LIMIT = int(os.getenv("HEALTH_TEST_LIMIT", "10"))

SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "1") == "1"

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
