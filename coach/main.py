import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coach.api.routes import health, sessions
from coach.core import config
from coach.core.logging_config import sanitize_log_data, setup_logging
from coach.db.init_db import init_db

logger = logging.getLogger(__name__)


def startup_settings() -> dict:
    return {
        "database_url": config.DATABASE_URL,
        "openai_api_key": config.OPENAI_API_KEY,
        "gemini_api_key": config.GEMINI_API_KEY,
        "auth_jwt_algorithm": config.AUTH_JWT_ALGORITHM,
        "cors_origins": config.CORS_ORIGINS,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL, log_dir=config.LOG_DIR)
    init_db()
    logger.info("Interview Coach API started")
    logger.debug(f"Settings: {sanitize_log_data(startup_settings())}")
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Interview Coach", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(sessions.router, prefix="/api")
app.include_router(health.router, prefix="/api")
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "Interview Coach API running"}
