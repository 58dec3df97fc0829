# edugrade/client/bootstrap.py
from typing import Optional

from edugrade.client.azure_openai import AzureOpenAILLM
from edugrade.core.config import Settings
from edugrade.utils.tracer import ObservedLLM, LLM
from edugrade.utils.usage_tracker import UsageTracker


def build_llm(config: Optional[Settings] = None, tracker: Optional[UsageTracker] = None) -> LLM:
    base = AzureOpenAILLM(config)           # 순수 LLM 클라이언트
    return ObservedLLM(base, tracker=tracker)  # Langfuse 관측 래퍼
