"""
Worker Exception Hierarchy

Base classes carry an ErrorCode plus a retryable flag; the domain errors
below map onto the pipeline's failure modes.

Hierarchy:
    WorkerError (base)
    ├── RetryableError (transient)
    │   ├── ProviderError       - primary and backup model both failed
    │   └── (AcquisitionError)  - retryable depending on its kind
    └── PermanentError (not worth retrying)
        ├── ConfigurationError  - unknown workflow / stage / model
        └── ValidationError     - model output failed to parse or validate

    StageExecutionError wraps the failure of a required stage and mirrors
    the retryable flag of its cause.

Usage:
    try:
        outcome = await engine.execute("auto", ctx)
    except StageExecutionError as e:
        logger.error(f"[Pipeline] {e.stage_name} failed [{e.code}]: {e.message}")
"""

from typing import Optional, Dict, Any, Set, Type
from enum import Enum
import json
import logging

import anthropic
import httpx
import openai

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Error codes (retryability is decided by the exception class)"""
    # ─────────────────────────────────────────────────
    # Retryable
    # ─────────────────────────────────────────────────
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    SCRAPER_RATE_LIMITED = "SCRAPER_RATE_LIMITED"
    SCRAPER_TIMEOUT = "SCRAPER_TIMEOUT"
    SCRAPER_ERROR = "SCRAPER_ERROR"
    CACHE_ERROR = "CACHE_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"

    # ─────────────────────────────────────────────────
    # Permanent
    # ─────────────────────────────────────────────────
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    PROFILE_PRIVATE = "PROFILE_PRIVATE"
    STAGE_FAILED = "STAGE_FAILED"

    # ─────────────────────────────────────────────────
    # Other
    # ─────────────────────────────────────────────────
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN = "UNKNOWN"


class WorkerError(Exception):
    """
    Base worker exception

    retryable tells callers whether repeating the operation can succeed.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        retryable: bool,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        self.details = details or {}

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.value}, "
            f"retryable={self.retryable}, "
            f"message='{self.message[:50]}...')"
        )

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.code.value,
            "error_message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class RetryableError(WorkerError):
    """Transient failure (timeouts, rate limits, upstream 5xx)"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code, retryable=True, details=details)


class PermanentError(WorkerError):
    """Failure that repeats identically on retry"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code, retryable=False, details=details)


# ─────────────────────────────────────────────────
# Domain errors
# ─────────────────────────────────────────────────

class ConfigurationError(PermanentError):
    """Unknown workflow, stage kind or model id. Programmer error, fails fast."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.CONFIGURATION_ERROR, details=details)


class ValidationError(PermanentError):
    """Malformed or schema-violating model output"""

    def __init__(
        self,
        message: str,
        raw_content: str = "",
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        if raw_content:
            details.setdefault("raw_preview", raw_content[:300])
        super().__init__(message, code=ErrorCode.VALIDATION_ERROR, details=details)
        self.raw_content = raw_content


class ProviderError(RetryableError):
    """
    LLM call failed on the primary model (and on its backup, if any).

    message always carries the primary model's error.
    """

    def __init__(
        self,
        message: str,
        model_id: str,
        backup_model_id: Optional[str] = None,
        backup_error: Optional[str] = None,
    ):
        details = {"model_id": model_id}
        if backup_model_id:
            details["backup_model_id"] = backup_model_id
            details["backup_error"] = backup_error
        super().__init__(message, code=ErrorCode.PROVIDER_ERROR, details=details)
        self.model_id = model_id
        self.backup_model_id = backup_model_id


class AcquisitionErrorKind(str, Enum):
    """Classification of scraper failures"""
    NOT_FOUND = "NOT_FOUND"
    PRIVATE = "PRIVATE"
    RATE_LIMITED = "RATE_LIMITED"
    TIMEOUT = "TIMEOUT"
    SCRAPER_ERROR = "SCRAPER_ERROR"
    UNKNOWN = "UNKNOWN"


_ACQUISITION_CODES = {
    AcquisitionErrorKind.NOT_FOUND: ErrorCode.PROFILE_NOT_FOUND,
    AcquisitionErrorKind.PRIVATE: ErrorCode.PROFILE_PRIVATE,
    AcquisitionErrorKind.RATE_LIMITED: ErrorCode.SCRAPER_RATE_LIMITED,
    AcquisitionErrorKind.TIMEOUT: ErrorCode.SCRAPER_TIMEOUT,
    AcquisitionErrorKind.SCRAPER_ERROR: ErrorCode.SCRAPER_ERROR,
    AcquisitionErrorKind.UNKNOWN: ErrorCode.UNKNOWN,
}

_ACQUISITION_USER_MESSAGES = {
    AcquisitionErrorKind.NOT_FOUND: "Instagram profile not found",
    AcquisitionErrorKind.PRIVATE: "This Instagram profile is private",
    AcquisitionErrorKind.RATE_LIMITED: (
        "Instagram is temporarily limiting requests. Please try again in a few minutes."
    ),
    AcquisitionErrorKind.TIMEOUT: "Profile scraping timed out. Please try again.",
    AcquisitionErrorKind.SCRAPER_ERROR: "Failed to retrieve profile data",
    AcquisitionErrorKind.UNKNOWN: "Failed to retrieve profile data",
}

_RETRYABLE_ACQUISITION_KINDS = {
    AcquisitionErrorKind.RATE_LIMITED,
    AcquisitionErrorKind.TIMEOUT,
    AcquisitionErrorKind.SCRAPER_ERROR,
}


class AcquisitionError(WorkerError):
    """Every scraper backend failed for a subject"""

    def __init__(
        self,
        kind: AcquisitionErrorKind,
        subject_id: str,
        cause: Optional[str] = None,
    ):
        message = f"{_ACQUISITION_USER_MESSAGES[kind]} (@{subject_id})"
        super().__init__(
            message,
            code=_ACQUISITION_CODES[kind],
            retryable=kind in _RETRYABLE_ACQUISITION_KINDS,
            details={"kind": kind.value, "subject_id": subject_id, "cause": cause},
        )
        self.kind = kind
        self.subject_id = subject_id
        self.cause = cause

    @property
    def user_message(self) -> str:
        return _ACQUISITION_USER_MESSAGES[self.kind]


class StageExecutionError(WorkerError):
    """A required workflow stage failed; the run is aborted"""

    def __init__(self, stage_name: str, cause: Exception, partial_result: Any = None):
        cause_message = cause.message if isinstance(cause, WorkerError) else str(cause)
        super().__init__(
            f"Required stage {stage_name} failed: {cause_message}",
            code=ErrorCode.STAGE_FAILED,
            retryable=is_retryable(cause),
            details={"stage": stage_name, "cause_type": type(cause).__name__},
        )
        self.stage_name = stage_name
        self.cause = cause
        # WorkflowResult of the stages completed before the failure
        self.partial_result = partial_result


# ─────────────────────────────────────────────────
# Whitelist-based retry decision
# ─────────────────────────────────────────────────

RETRYABLE_EXCEPTIONS: Set[Type[Exception]] = {
    ConnectionError,
    TimeoutError,
    httpx.TransportError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
}

PERMANENT_EXCEPTIONS: Set[Type[Exception]] = {
    ValueError,
    TypeError,
    KeyError,
    AttributeError,
    json.JSONDecodeError,
}


def register_retryable(exc_type: Type[Exception]) -> None:
    """Add a retryable exception type at runtime"""
    RETRYABLE_EXCEPTIONS.add(exc_type)
    logger.debug(f"[Exception] Registered retryable exception: {exc_type.__name__}")


def is_retryable(exc: Exception) -> bool:
    """
    Decide whether an exception is worth retrying

    Unregistered exception types are treated as permanent and logged so they
    can be classified later.
    """
    if isinstance(exc, WorkerError):
        return exc.retryable

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500

    for retryable_type in RETRYABLE_EXCEPTIONS:
        if isinstance(exc, retryable_type):
            return True

    for permanent_type in PERMANENT_EXCEPTIONS:
        if isinstance(exc, permanent_type):
            return False

    logger.warning(
        f"[Exception] Unclassified exception type: {type(exc).__name__}. "
        f"Treating as non-retryable. Details: {str(exc)[:200]}"
    )
    return False


__all__ = [
    "WorkerError",
    "RetryableError",
    "PermanentError",
    "ErrorCode",
    "ConfigurationError",
    "ValidationError",
    "ProviderError",
    "AcquisitionError",
    "AcquisitionErrorKind",
    "StageExecutionError",
    "is_retryable",
    "register_retryable",
]
