import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from accountability.logger import get_logger
from web.backend.routers import account

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Final flush of pending snapshot writes.
    await account.close_store()


def create_app() -> FastAPI:
    app = FastAPI(title="Stay on One API", version="1.0", lifespan=lifespan)

    raw_origins = os.getenv("STAY_ON_ONE_ALLOWED_ORIGINS", "*")
    allow_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    allow_credentials = "*" not in allow_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": "Stay on One"}

    app.include_router(account.router, prefix="/api/v1/account", tags=["account"])

    logger.info("API routes registered")
    return app


app = create_app()
