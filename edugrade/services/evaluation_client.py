import logging
import time
from typing import Callable, Optional

import openai

from edugrade.client.azure_openai import request_to_messages
from edugrade.client.bootstrap import build_llm
from edugrade.core.config import Settings, settings as default_settings
from edugrade.core.exceptions import (
    CredentialInvalidException,
    CredentialMissingException,
    EmptyServiceResponseException,
    EvaluationException,
    MalformedReportException,
    QuotaExceededException,
    ServiceException,
    TransientNetworkException,
)
from edugrade.models.report import EvaluationReport, report_json_schema
from edugrade.models.request import EvaluationRequest
from edugrade.services.report_parser import parse_report
from edugrade.utils.tracer import LLM

logger = logging.getLogger(__name__)


def _retry_after(exc: openai.APIStatusError) -> Optional[int]:
    value = exc.response.headers.get("retry-after") if exc.response is not None else None
    try:
        return int(float(value)) if value else None
    except ValueError:
        return None


def translate_error(exc: Exception) -> EvaluationException:
    """Map an openai SDK exception onto the evaluation error taxonomy."""
    if isinstance(exc, EvaluationException):
        return exc
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return CredentialInvalidException(f"Service rejected the credential: {exc.message}")
    if isinstance(exc, openai.RateLimitError):
        return QuotaExceededException(f"Service quota exceeded: {exc.message}", retry_after=_retry_after(exc))
    if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError)):
        return TransientNetworkException(f"Could not reach the inference service: {exc}")
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code >= 500:
            return TransientNetworkException(
                f"Inference service unavailable ({exc.status_code}): {exc.message}",
                details={"status_code": exc.status_code},
            )
        return ServiceException(
            f"Inference service error ({exc.status_code}): {exc.message}",
            details={"status_code": exc.status_code},
        )
    return ServiceException(f"Evaluation failed: {exc}", details={"exception": type(exc).__name__})


class EvaluationClient:
    """Owns the contract with the structured-output inference service.

    One ``evaluate`` call is exactly one service call: no internal retries.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        llm: Optional[LLM] = None,
        llm_factory: Optional[Callable[[Settings], LLM]] = None,
    ):
        self.settings = config or default_settings
        self._llm = llm
        self._llm_factory = llm_factory or build_llm

    def _get_llm(self) -> LLM:
        # Built lazily so a missing credential never constructs an SDK client
        if self._llm is None:
            self._llm = self._llm_factory(self.settings)
        return self._llm

    async def evaluate(self, request: EvaluationRequest) -> EvaluationReport:
        if not self.settings.has_credential:
            raise CredentialMissingException(
                "No inference service credential configured",
                details={"env": "AZURE_OPENAI_API_KEY"},
            )

        llm = self._get_llm()
        summary = request.summary()
        logger.info(f"Submitting evaluation to {getattr(llm, 'deployment', None)}: {summary}")

        start = time.perf_counter()
        try:
            response = await llm.run_azure_openai(
                messages=request_to_messages(request),
                json_schema=report_json_schema(),
                name="evaluate_answer_sheet",
            )
        except Exception as exc:
            translated = translate_error(exc)
            logger.error(f"Evaluation call failed after {time.perf_counter() - start:.2f}s: "
                         f"{translated.error_code}: {translated.message}")
            if translated is exc:
                raise
            raise translated from exc

        elapsed = time.perf_counter() - start
        usage = response.get("usage") or {}
        logger.info(f"Evaluation call finished in {elapsed:.2f}s, tokens={usage.get('total_tokens', 0)}")

        text = response.get("content")
        if isinstance(text, str):
            text = text.strip()
        if not text:
            logger.error(f"Empty service response (finish_reason={response.get('finish_reason')})")
            raise EmptyServiceResponseException(
                "Evaluation failed: no response text received from model.",
                details={"finish_reason": response.get("finish_reason")},
            )

        try:
            report = parse_report(text)
        except MalformedReportException as exc:
            logger.error(f"Malformed report: {exc.message}; raw text: {exc.raw_text!r}")
            raise
        logger.info(
            f"Parsed report: {len(report.grades)} questions, "
            f"{report.total_score:g}/{report.max_score:g} ({report.percentage:g}%)"
        )
        return report
