import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
load_dotenv()  # ★ 라우터/모듈 임포트 전에!

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edugrade.api.v1.evaluations import router as eval_router
from edugrade.core.config import Settings, settings as default_settings
from edugrade.core.dependencies import ServiceContainer, build_services
from edugrade.core.exceptions import register_exception_handlers
from edugrade.core.log_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config: Optional[Settings] = None, services: Optional[ServiceContainer] = None) -> FastAPI:
    config = config or default_settings
    setup_logging(config.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        startup_time = time.time()
        logger.info("Starting EduGrade service...")
        if services is None:
            app.state.services = build_services(config)
        if not config.has_credential:
            logger.warning("AZURE_OPENAI_API_KEY is not configured; evaluations will be rejected")
        logger.info(f"Application startup completed in {(time.time() - startup_time) * 1000:.1f}ms")
        yield
        logger.info("Shutting down EduGrade service")

    app = FastAPI(title="EduGrade", version="1.0.0", lifespan=lifespan)
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(eval_router, prefix="/v1", tags=["evaluation"])

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "credential_configured": config.has_credential,
            "deployment": config.AZURE_OPENAI_DEPLOYMENT or None,
        }

    return app


app = create_app()
