"""
snatch_core package: extract UI elements from live pages as framework components

Usage:
    from snatch_core import ExtractionJob, PipelineOrchestrator, load_config

    config = load_config()
    outcome = await PipelineOrchestrator.from_config(config).run(
        ExtractionJob(url="stripe.com/pricing", find="pricing card")
    )
"""
from .batch import BatchCoordinator, load_batch_config
from .browser import BrowserSession, PerJobSessions, SharedSessions, normalize_url
from .config import Config, load_config
from .errors import (
    ElementNotFoundError,
    LLMError,
    LLMNotAvailableError,
    LLMTimeoutError,
    NavigationError,
    PickerCancelledError,
    PickerTimeoutError,
    SnatchError,
    ValidationError,
    format_error,
)
from .models import BatchResult, ExtractionJob, PickerSelection, PipelineOutcome, PipelineTiming
from .orchestrator import PipelineCapabilities, PipelineOrchestrator, PipelineStage
from .picker import InteractivePicker, launch_picker
from .selector_synthesis import DomArena, SelectorSynthesizer, synthesize_selector

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "ExtractionJob",
    "PipelineOrchestrator",
    "PipelineCapabilities",
    "PipelineStage",
    "PipelineOutcome",
    "PipelineTiming",
    # Batch
    "BatchCoordinator",
    "BatchResult",
    "load_batch_config",
    # Browser / picker
    "BrowserSession",
    "PerJobSessions",
    "SharedSessions",
    "normalize_url",
    "InteractivePicker",
    "PickerSelection",
    "launch_picker",
    # Selectors
    "DomArena",
    "SelectorSynthesizer",
    "synthesize_selector",
    # Config
    "Config",
    "load_config",
    # Errors
    "SnatchError",
    "ValidationError",
    "NavigationError",
    "ElementNotFoundError",
    "LLMError",
    "LLMNotAvailableError",
    "LLMTimeoutError",
    "PickerCancelledError",
    "PickerTimeoutError",
    "format_error",
]
