import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sakubun.api.dependencies import build_services, get_settings
from sakubun.api.v1.feedback import router as feedback_router
from sakubun.client.bootstrap import build_generation_client, close_generation_client
from sakubun.core.config import Settings
from sakubun.utils.tracer import GenerationClient

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, generation_client: Optional[GenerationClient] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """애플리케이션 수명주기: 클라이언트/서비스 생성 및 정리"""
        startup_time = time.time()
        owns_client = generation_client is None
        client = generation_client or build_generation_client(settings)
        app.state.settings = settings
        app.state.orchestrator, app.state.followup = build_services(settings, client)
        if not settings.GEMINI_API_KEY:
            logger.warning("GEMINI_API_KEY is not set; every request will report a configuration error")
        logger.info(
            f"Application startup completed in {(time.time() - startup_time) * 1000:.1f}ms "
            f"(model={settings.DEFAULT_MODEL}, prompts={settings.PROMPT_VERSION})"
        )
        try:
            yield
        finally:
            if owns_client:
                await close_generation_client(client)
            logger.info("Application shutdown completed")

    app = FastAPI(
        title="Essay Feedback API",
        version="1.0.0",
        description="Rubric feedback for short English compositions",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.ALLOWED_ORIGINS),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(feedback_router, prefix="/api", tags=["feedback"])

    @app.get("/health")
    async def health(current: Settings = Depends(get_settings)):
        return {
            "status": "healthy",
            "version": "1.0.0",
            "prompt_version": current.PROMPT_VERSION,
            "default_model": current.DEFAULT_MODEL,
            "api_key_configured": bool(current.GEMINI_API_KEY),
            "tracing": current.langfuse_enabled,
        }

    return app


settings = Settings.from_env()
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT)
