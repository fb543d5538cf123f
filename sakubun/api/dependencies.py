# sakubun/api/dependencies.py
from typing import Tuple

from fastapi import Request

from sakubun.core.config import Settings
from sakubun.services.evaluation.prompt_builder import PromptBuilder
from sakubun.services.feedback_orchestrator import FeedbackOrchestrator
from sakubun.services.followup import FollowUpService
from sakubun.utils.prompt_loader import PromptLoader
from sakubun.utils.tracer import GenerationClient


def build_services(settings: Settings, client: GenerationClient) -> Tuple[FeedbackOrchestrator, FollowUpService]:
    """Wire the workflows once per process; both share one client and one prompt set."""
    builder = PromptBuilder(PromptLoader(version=settings.PROMPT_VERSION))
    return FeedbackOrchestrator(settings, client, builder), FollowUpService(settings, client, builder)


# FastAPI 의존성 함수들: lifespan 에서 만든 객체를 app.state 에서 꺼낸다
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_orchestrator(request: Request) -> FeedbackOrchestrator:
    return request.app.state.orchestrator


def get_followup_service(request: Request) -> FollowUpService:
    return request.app.state.followup
