# edugrade/core/dependencies.py
import logging
from dataclasses import dataclass
from functools import partial
from typing import Optional

from fastapi import Depends, Request

from edugrade.client.bootstrap import build_llm
from edugrade.core.config import Settings
from edugrade.services.document_encoder import DocumentEncoder
from edugrade.services.evaluation_client import EvaluationClient
from edugrade.services.grading_session import GradingSession
from edugrade.services.history_store import HistoryStore
from edugrade.services.request_composer import RequestComposer
from edugrade.utils.prompt_loader import PromptLoader
from edugrade.utils.tracer import LLM
from edugrade.utils.usage_tracker import UsageTracker

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Services built once at startup and shared by reference."""
    settings: Settings
    encoder: DocumentEncoder
    composer: RequestComposer
    client: EvaluationClient
    history: HistoryStore
    usage: UsageTracker

    def new_session(self) -> GradingSession:
        return GradingSession(
            self.encoder, self.composer, self.client, self.history,
            pass_mark=self.settings.PASS_MARK_PERCENT,
        )


def build_services(config: Settings, llm: Optional[LLM] = None) -> ServiceContainer:
    loader = PromptLoader(version=config.PROMPT_VERSION)
    history = HistoryStore(config.HISTORY_PATH, key=config.HISTORY_KEY)
    history.load()
    usage = UsageTracker()
    return ServiceContainer(
        settings=config,
        encoder=DocumentEncoder(config),
        composer=RequestComposer(loader),
        client=EvaluationClient(config, llm=llm, llm_factory=partial(build_llm, tracker=usage)),
        history=history,
        usage=usage,
    )


# FastAPI 의존성 함수들
def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_history(services: ServiceContainer = Depends(get_services)) -> HistoryStore:
    return services.history


def get_usage(services: ServiceContainer = Depends(get_services)) -> UsageTracker:
    return services.usage


def get_session(services: ServiceContainer = Depends(get_services)) -> GradingSession:
    return services.new_session()
