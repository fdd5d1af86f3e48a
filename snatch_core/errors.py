"""
Snatch exceptions

Every error raised by the pipeline carries a stable ``code`` so callers can
branch on the taxonomy instead of on message text.
"""

from typing import Optional


class SnatchError(Exception):
    """Base exception for snatch"""

    def __init__(self, message: str, code: str = "SNATCH_ERROR", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.cause = cause


class BrowserError(SnatchError):
    """Browser launch or page lifecycle error"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, "BROWSER_ERROR", cause)


class NavigationError(BrowserError):
    """Invalid URL, unsupported protocol or navigation timeout"""

    def __init__(self, url: str, message: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message or f"Failed to navigate to: {url}", cause)
        self.url = url
        self.code = "NAVIGATION_ERROR"


class ElementNotFoundError(SnatchError):
    """Locate or extract miss"""

    def __init__(self, selector: str, message: Optional[str] = None):
        super().__init__(message or f"Element not found: {selector}", "ELEMENT_NOT_FOUND")
        self.selector = selector


class LLMError(SnatchError):
    """Generic LLM-origin error"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, "LLM_ERROR", cause)


class LLMNotAvailableError(LLMError):
    """LLM provider unreachable, unauthenticated or not configured"""

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message or "LLM provider is not available. Check your API key and provider settings.", cause)
        self.code = "LLM_NOT_AVAILABLE"


class LLMTimeoutError(LLMError):
    """LLM request timed out"""

    def __init__(self, timeout: Optional[float] = None, message: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        if message is None:
            message = f"LLM request timed out after {timeout}s" if timeout else "LLM request timed out"
        super().__init__(message, cause)
        self.timeout = timeout
        self.code = "LLM_TIMEOUT"


class ExtractionError(SnatchError):
    """Element was found but could not be extracted"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, "EXTRACTION_ERROR", cause)


class TransformationError(SnatchError):
    """Component generation failed"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, "TRANSFORMATION_ERROR", cause)


class OutputError(SnatchError):
    """File writing error"""

    def __init__(self, path: str, message: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message or f"Failed to write output: {path}", "OUTPUT_ERROR", cause)
        self.path = path


class ConfigError(SnatchError):
    """Invalid config file or environment"""

    def __init__(self, message: str):
        super().__init__(message, "CONFIG_ERROR")


class ValidationError(SnatchError):
    """Malformed or incomplete job"""

    def __init__(self, field: str, message: str):
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field


class PickerCancelledError(SnatchError):
    """User dismissed the interactive picker"""

    def __init__(self, message: str = "Element selection cancelled"):
        super().__init__(message, "PICKER_CANCELLED")


class PickerTimeoutError(SnatchError):
    """No element was picked before the picker timeout"""

    def __init__(self, timeout: float):
        super().__init__(f"No element selected within {timeout:g}s", "PICKER_TIMEOUT")
        self.timeout = timeout


class UnclassifiedError(SnatchError):
    """Last-resort wrapper for errors outside the taxonomy"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, "UNCLASSIFIED_ERROR", cause)


def is_snatch_error(error: BaseException) -> bool:
    return isinstance(error, SnatchError)


def format_error(error: BaseException) -> str:
    """Format error for user display"""
    if isinstance(error, SnatchError):
        return f"[{error.code}] {error.message}"
    return str(error) or error.__class__.__name__
