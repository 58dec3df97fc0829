import asyncio
import logging
from typing import Any, Dict, List, Optional

from openai import AzureOpenAI

from edugrade.core.config import Settings, settings as default_settings
from edugrade.models.request import DocumentPart, EvaluationRequest, TextPart

logger = logging.getLogger(__name__)


def request_to_messages(request: EvaluationRequest) -> List[Dict[str, Any]]:
    """Render the ordered request parts as one multimodal user message.

    Images travel as ``image_url`` data URLs, PDFs as inline ``file`` parts.
    """
    content: List[Dict[str, Any]] = []
    for part in request.parts:
        if isinstance(part, TextPart):
            content.append({"type": "text", "text": part.text})
        elif isinstance(part, DocumentPart):
            encoded = part.part
            if encoded.media_type.startswith("image/"):
                content.append({"type": "image_url", "image_url": {"url": encoded.data_url, "detail": "high"}})
            else:
                content.append({
                    "type": "file",
                    "file": {"filename": encoded.filename or "document.pdf", "file_data": encoded.data_url},
                })
    return [{"role": "user", "content": content}]


class AzureOpenAILLM:
    """Multimodal structured-output wrapper: JSON schema enforced on every call"""

    def __init__(self, config: Optional[Settings] = None):
        cfg = config or default_settings
        # max_retries=0: one submission is one billable call
        self.client = AzureOpenAI(
            api_key=cfg.AZURE_OPENAI_API_KEY,
            api_version=cfg.AZURE_OPENAI_API_VERSION,
            azure_endpoint=cfg.AZURE_OPENAI_ENDPOINT,
            timeout=cfg.API_TIMEOUT_S,
            max_retries=0,
        )
        self.deployment = cfg.AZURE_OPENAI_DEPLOYMENT

    async def run_azure_openai(
        self,
        *,
        messages: List[Dict[str, Any]],
        json_schema: Dict[str, Any],
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Returns the raw text payload (unparsed) plus token usage.

        SDK exceptions propagate untouched; callers translate them.
        """

        def _invoke_sync() -> Dict[str, Any]:
            resp = self.client.chat.completions.create(
                model=self.deployment,
                messages=messages,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": json_schema.get("title", "EvaluationReport"),
                        "schema": json_schema,
                        "strict": True,
                    },
                },
            )

            choice = resp.choices[0] if resp.choices else None
            return {
                "content": choice.message.content if choice else None,
                "finish_reason": choice.finish_reason if choice else None,
                "usage": {
                    "prompt_tokens": resp.usage.prompt_tokens if resp.usage else 0,
                    "completion_tokens": resp.usage.completion_tokens if resp.usage else 0,
                    "total_tokens": resp.usage.total_tokens if resp.usage else 0,
                },
            }

        return await asyncio.to_thread(_invoke_sync)
