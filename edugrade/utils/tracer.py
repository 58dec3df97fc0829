# edugrade/utils/tracer.py
from typing import Any, Dict, Optional, List, Protocol, runtime_checkable
import asyncio
import logging, os

from langfuse import Langfuse

from edugrade.utils.usage_tracker import UsageTracker

logger = logging.getLogger(__name__)

public_key = os.getenv("LANGFUSE_PUBLIC_KEY")
secret_key = os.getenv("LANGFUSE_SECRET_KEY")
host = os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")

LANGFUSE_AVAILABLE = bool(public_key and secret_key)

lf: Optional[Langfuse] = None

if LANGFUSE_AVAILABLE:
    try:
        lf = Langfuse(public_key=public_key, secret_key=secret_key, host=host, release="v1.0.0")
        logger.info(f"Langfuse initialized. Host: {host}")
    except Exception as e:
        logger.warning(f"Langfuse initialization failed: {e}. Tracing disabled.")
        LANGFUSE_AVAILABLE = False
else:
    logger.info("Langfuse credentials not set. Tracing disabled.")


@runtime_checkable
class LLM(Protocol):
    deployment: Optional[str]
    async def run_azure_openai(
        self, *, messages: List[Dict[str, Any]],
        json_schema: Dict[str, Any],
        name: Optional[str] = None,
    ) -> Dict[str, Any]: ...


def redact_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Replace inline base64 payloads with a size marker so traces stay small."""
    redacted = []
    for msg in messages:
        content = msg.get("content")
        if not isinstance(content, list):
            redacted.append(msg)
            continue
        parts = []
        for part in content:
            if part.get("type") == "image_url":
                url = part["image_url"]["url"]
                parts.append({"type": "image_url", "image_url": {"url": f"{url.split(',', 1)[0]},<{len(url)} chars>"}})
            elif part.get("type") == "file":
                data = part["file"].get("file_data", "")
                parts.append({"type": "file", "file": {"filename": part["file"].get("filename"), "file_data": f"<{len(data)} chars>"}})
            else:
                parts.append(part)
        redacted.append({**msg, "content": parts})
    return redacted


class ObservedLLM:
    """Wraps an LLM; records a Langfuse generation and usage/cost per call."""

    def __init__(self, inner: LLM, service: str = "azure-openai", tracker: Optional[UsageTracker] = None):
        self.inner = inner
        self.service = service
        self.tracker = tracker or UsageTracker()

    @property
    def deployment(self) -> Optional[str]:
        return getattr(self.inner, "deployment", None)

    async def run_azure_openai(
        self,
        *,
        messages: List[Dict[str, Any]],
        json_schema: Dict[str, Any],
        name: Optional[str] = None,
        prompt_meta: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        op = name or "evaluate"

        if not (LANGFUSE_AVAILABLE and lf):
            result = await self.inner.run_azure_openai(messages=messages, json_schema=json_schema, name=name)
            self.tracker.track_usage(result.get("usage", {}), operation=f"llm.{op}")
            return result

        model_name = self.deployment or "azure-openai"
        with lf.start_as_current_generation(name=f"llm.{op}", model=model_name) as gen:
            md = {"service": self.service, **(prompt_meta or {})}
            gen.update(input={"messages": redact_messages(messages)}, metadata=md)
            try:
                result = await self.inner.run_azure_openai(messages=messages, json_schema=json_schema, name=name)

                usage_info = result.get("usage", {})
                cost = self.tracker.track_usage(usage_info, operation=f"llm.{op}")["cost"]
                gen.update(
                    output=result.get("content"),
                    metadata={**md, "cost_usd": cost["total_cost"]},
                    usage_details={
                        "input": usage_info.get("prompt_tokens", 0),
                        "output": usage_info.get("completion_tokens", 0),
                    },
                )
                return result
            except Exception as e:
                gen.update(level="ERROR", status_message=str(e))
                raise
            finally:
                try:
                    await asyncio.to_thread(lf.flush)
                except Exception as e:
                    logger.warning(f"Langfuse flush failed: {e}")
