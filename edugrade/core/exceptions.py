# edugrade/core/exceptions.py
from typing import Any, Dict, Optional
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class EvaluationException(Exception):
    """Base exception for evaluation errors"""
    error_code = "EVALUATION_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    remediation = "The evaluation failed. Please try again."
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "type": self.__class__.__name__,
            "error_code": self.error_code,
            "remediation": self.remediation,
            "retryable": self.retryable,
            "details": self.details,
        }


# ---- Document intake -------------------------------------------------------

class FileTooLargeException(EvaluationException):
    """A single upload exceeds the configured size ceiling"""
    error_code = "FILE_TOO_LARGE"
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    remediation = "Compress or split the file so each upload stays under the size limit."

    def __init__(self, filename: str, size_bytes: int, limit_bytes: int):
        self.filename = filename
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        limit_mb = limit_bytes / (1024 * 1024)
        super().__init__(
            f'File "{filename}" is too large. Please keep each file under {limit_mb:g}MB.',
            details={"filename": filename, "size_bytes": size_bytes, "limit_bytes": limit_bytes},
        )


class UnsupportedMediaTypeException(EvaluationException):
    """Upload is not a PDF, JPEG or PNG"""
    error_code = "UNSUPPORTED_MEDIA_TYPE"
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    remediation = "Upload PDF, JPEG or PNG files only."

    def __init__(self, filename: str, media_type: Optional[str]):
        self.filename = filename
        self.media_type = media_type
        super().__init__(
            f'File "{filename}" has unsupported type {media_type or "unknown"}.',
            details={"filename": filename, "media_type": media_type},
        )


class MissingRequiredInputException(EvaluationException):
    """A required role group has no ready documents"""
    error_code = "MISSING_REQUIRED_INPUT"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    remediation = "Please upload both the Question Paper and the Student Answer Sheet."

    def __init__(self, missing_roles):
        self.missing_roles = list(missing_roles)
        super().__init__(
            f"Missing required documents: {', '.join(self.missing_roles)}",
            details={"missing_roles": self.missing_roles},
        )


class EvaluationInProgressException(EvaluationException):
    """A second submit while an evaluation is outstanding"""
    error_code = "EVALUATION_IN_PROGRESS"
    status_code = status.HTTP_409_CONFLICT
    remediation = "Wait for the running evaluation to finish."


# ---- Inference service -----------------------------------------------------

class CredentialMissingException(EvaluationException):
    """No service credential configured; raised before any network I/O"""
    error_code = "CREDENTIAL_MISSING"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    remediation = "Configure the AZURE_OPENAI_API_KEY environment variable and restart."


class CredentialInvalidException(EvaluationException):
    """Credential configured but rejected by the service"""
    error_code = "CREDENTIAL_INVALID"
    status_code = status.HTTP_401_UNAUTHORIZED
    remediation = "The configured API key was rejected. Select or configure a valid key."


class QuotaExceededException(EvaluationException):
    """Rate limiting or quota exhaustion"""
    error_code = "QUOTA_EXCEEDED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    remediation = "The AI service quota is exhausted. Wait a minute before submitting again."

    def __init__(self, message: str, retry_after: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.retry_after = retry_after
        details = dict(details or {})
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(message, details)


class TransientNetworkException(EvaluationException):
    """Connection, timeout or upstream 5xx failures"""
    error_code = "TRANSIENT_NETWORK_FAILURE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    remediation = "Could not reach the AI service. Check your connection and submit again."
    retryable = True


class EmptyServiceResponseException(EvaluationException):
    """Service answered without a text payload"""
    error_code = "EMPTY_SERVICE_RESPONSE"
    status_code = status.HTTP_502_BAD_GATEWAY
    remediation = "The AI returned no result. Check that the scans are clear and try again."


class MalformedReportException(EvaluationException):
    """Service text is not JSON or does not match the report schema"""
    error_code = "MALFORMED_REPORT"
    status_code = status.HTTP_502_BAD_GATEWAY
    remediation = "The AI result could not be read. Check that the scans are clear and try again."

    def __init__(self, message: str, raw_text: str, details: Optional[Dict[str, Any]] = None):
        # raw_text stays on the exception for diagnostics; it is never sent to the client
        self.raw_text = raw_text
        super().__init__(message, details)


class ServiceException(EvaluationException):
    """Unclassified inference service failure"""
    error_code = "SERVICE_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY
    remediation = "The evaluation failed unexpectedly. Please try again."


# Exception handlers
async def evaluation_exception_handler(request: Request, exc: EvaluationException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"Evaluation error: {exc.message}", extra={"details": exc.details})
    else:
        logger.warning(f"Evaluation rejected: {exc.message}")

    headers = None
    if isinstance(exc, QuotaExceededException) and exc.retry_after is not None:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EvaluationException, evaluation_exception_handler)
