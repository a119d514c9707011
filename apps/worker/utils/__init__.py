# Utils Package

from .profile_parser import (
    extract_username,
    extract_hashtags,
    extract_mentions,
    parse_post,
    compute_engagement,
    normalize_profile,
)
from .llm_output import strip_code_fences, parse_json_output
from .structured_logger import LogContext, log_context, configure_logging

__all__ = [
    # Profile parsing
    "extract_username",
    "extract_hashtags",
    "extract_mentions",
    "parse_post",
    "compute_engagement",
    "normalize_profile",
    # LLM output
    "strip_code_fences",
    "parse_json_output",
    # Logging
    "LogContext",
    "log_context",
    "configure_logging",
]
