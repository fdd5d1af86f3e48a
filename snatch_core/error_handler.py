"""
Error Handler - classification and user-facing formatting.

Pipeline stages surface a stable taxonomy regardless of the underlying
capability's own error shape:

- typed ``SnatchError``s pass through unchanged
- untyped errors from the LLM-backed stages (locate, transform) are matched
  against message patterns into timeout / unavailable / generic LLM errors
- anything else is wrapped in ``UnclassifiedError``

Every function here is pure: no logging side effects, no I/O.
"""

import asyncio
import re
from typing import Dict, Optional, Sequence, Pattern

from .errors import (
    SnatchError,
    LLMError,
    LLMNotAvailableError,
    LLMTimeoutError,
    UnclassifiedError,
)


LLM_STAGES = frozenset({"locate", "transform"})

ERROR_PATTERNS: Dict[str, Sequence[Pattern]] = {
    "timeout": [
        re.compile(r"TIMEOUT", re.I),
        re.compile(r"ETIMEDOUT", re.I),
        re.compile(r"timed?\s*out", re.I),
    ],
    "unavailable": [
        re.compile(r"CLI_NOT_FOUND", re.I),
        re.compile(r"NOT_AUTHENTICATED", re.I),
        re.compile(r"ENOENT.*claude", re.I),
        re.compile(r"api[\s_-]?key", re.I),
        re.compile(r"unauthori[sz]ed", re.I),
        re.compile(r"connection refused", re.I),
        re.compile(r"cannot connect", re.I),
        re.compile(r"\b(401|403)\b"),
    ],
}


def matches_error_pattern(message: str, patterns: Sequence[Pattern]) -> bool:
    return any(p.search(message) for p in patterns)


def _stage_name(stage) -> str:
    return str(getattr(stage, "value", stage) or "").lower()


def classify_error(error: BaseException, stage=None) -> SnatchError:
    """
    Map an exception raised inside a pipeline stage onto the error taxonomy.

    Args:
        error: The exception that escaped the stage
        stage: Stage name (or ``PipelineStage``) where it happened

    Returns:
        A ``SnatchError``; the original object when it is already typed
    """
    if isinstance(error, SnatchError):
        return error

    message = str(error) or error.__class__.__name__

    if _stage_name(stage) in LLM_STAGES:
        if isinstance(error, (asyncio.TimeoutError, TimeoutError)) or \
                matches_error_pattern(message, ERROR_PATTERNS["timeout"]):
            return LLMTimeoutError(message=message, cause=error)
        if matches_error_pattern(message, ERROR_PATTERNS["unavailable"]):
            return LLMNotAvailableError(message, cause=error)
        return LLMError(message, cause=error)

    return UnclassifiedError(message, cause=error)


# User-facing info keyed by error code
ERROR_MAPPINGS = {
    "VALIDATION_ERROR": {
        "message": "The extraction job is incomplete or inconsistent",
        "suggestion": "Pass exactly one of --selector, --find or --interactive",
        "severity": "error",
        "can_retry": False,
    },
    "NAVIGATION_ERROR": {
        "message": "The page could not be loaded",
        "suggestion": "Check that the URL is correct and reachable",
        "severity": "error",
        "can_retry": True,
    },
    "BROWSER_ERROR": {
        "message": "The browser failed during the operation",
        "suggestion": "Make sure Playwright browsers are installed: playwright install chromium",
        "severity": "critical",
        "can_retry": True,
    },
    "ELEMENT_NOT_FOUND": {
        "message": "No matching element was found on the page",
        "suggestion": "Try a different selector or a more specific description",
        "severity": "warning",
        "can_retry": False,
    },
    "PICKER_CANCELLED": {
        "message": "Element selection was cancelled",
        "suggestion": "Run again and click an element instead of pressing Escape",
        "severity": "warning",
        "can_retry": True,
    },
    "PICKER_TIMEOUT": {
        "message": "No element was selected in time",
        "suggestion": "Run again and click an element before the picker times out",
        "severity": "warning",
        "can_retry": True,
    },
    "EXTRACTION_ERROR": {
        "message": "The element could not be extracted",
        "suggestion": "The page may have changed while extracting; try again",
        "severity": "error",
        "can_retry": True,
    },
    "LLM_TIMEOUT": {
        "message": "The language model took too long to respond",
        "suggestion": "Try again or raise llm.timeout in your config",
        "severity": "error",
        "can_retry": True,
    },
    "LLM_NOT_AVAILABLE": {
        "message": "The language model is not available",
        "suggestion": "Set ANTHROPIC_API_KEY or point SNATCH_LLM_PROVIDER at a running Ollama",
        "severity": "critical",
        "can_retry": False,
    },
    "LLM_ERROR": {
        "message": "The language model request failed",
        "suggestion": "Check the technical details and try again",
        "severity": "error",
        "can_retry": True,
    },
    "TRANSFORMATION_ERROR": {
        "message": "The component could not be generated",
        "suggestion": "Try a different framework/styling combination",
        "severity": "error",
        "can_retry": True,
    },
    "OUTPUT_ERROR": {
        "message": "Generated files could not be written",
        "suggestion": "Check permissions of the output directory",
        "severity": "error",
        "can_retry": False,
    },
    "CONFIG_ERROR": {
        "message": "The configuration file is invalid",
        "suggestion": "Fix the listed keys in .snatchrc.json",
        "severity": "critical",
        "can_retry": False,
    },
}


def format_user_friendly_error(error: BaseException, technical_details: Optional[str] = None) -> Dict:
    """
    Convert an error to a user-friendly message.

    Returns:
        Dictionary with message, suggestion, technical, severity, can_retry
    """
    code = getattr(error, "code", None)
    friendly = ERROR_MAPPINGS.get(code) if code else None
    if friendly is None:
        return {
            "message": "An unexpected error occurred",
            "suggestion": "Re-run with --verbose and check the technical details",
            "technical": technical_details or str(error),
            "severity": "error",
            "can_retry": True,
        }
    result = dict(friendly)
    result["technical"] = technical_details or str(error)
    return result


def get_error_category(error: BaseException) -> str:
    """
    Categorize error type.

    Returns:
        Category name: "input", "browser", "llm", "output", "unknown"
    """
    code = getattr(error, "code", "")
    if code in ("VALIDATION_ERROR", "CONFIG_ERROR"):
        return "input"
    if code in ("NAVIGATION_ERROR", "BROWSER_ERROR", "ELEMENT_NOT_FOUND",
                "EXTRACTION_ERROR", "PICKER_CANCELLED", "PICKER_TIMEOUT"):
        return "browser"
    if code.startswith("LLM_") or code == "TRANSFORMATION_ERROR":
        return "llm"
    if code == "OUTPUT_ERROR":
        return "output"
    return "unknown"


def should_retry_error(error: BaseException) -> bool:
    return format_user_friendly_error(error).get("can_retry", False)


def format_error_for_logging(error: BaseException, context: str = "") -> str:
    """Format error for structured logging."""
    friendly = format_user_friendly_error(error)

    lines = [
        f"❌ {friendly['message']}",
        f"💡 {friendly['suggestion']}",
        f"🔧 Technical: {friendly['technical']}",
    ]
    if context:
        lines.insert(0, f"📍 Context: {context}")
    return "\n".join(lines)


def create_error_response(error: BaseException, context: str = "") -> Dict:
    """Create standardized error response for CLI/batch reports."""
    friendly = format_user_friendly_error(error)
    return {
        "success": False,
        "error": {
            "code": getattr(error, "code", "UNCLASSIFIED_ERROR"),
            "message": friendly["message"],
            "suggestion": friendly["suggestion"],
            "severity": friendly["severity"],
            "can_retry": friendly["can_retry"],
            "category": get_error_category(error),
            "technical": friendly["technical"],
            "context": context,
        },
    }
