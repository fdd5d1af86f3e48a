"""
Pipeline Orchestrator - drive one extraction job

    Idle -> Browse -> Locate -> Extract -> Transform -> Write -> Done | Failed

Every stage delegates to a capability (see ``PipelineCapabilities``), so the
orchestrator itself only sequences, times, classifies errors and cleans up.

Usage:
    orchestrator = PipelineOrchestrator.from_config(config)
    outcome = await orchestrator.run(ExtractionJob(url="example.com", selector=".card"))

    if outcome.success:
        print(outcome.output.import_path)
    else:
        print(format_error(outcome.error))
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

from .browser import PerJobSessions, normalize_url
from .constants import SUPPORTED_FRAMEWORKS, SUPPORTED_STYLING
from .diagnostics import format_bytes, set_verbose
from .error_handler import classify_error
from .errors import ElementNotFoundError, PickerCancelledError, SnatchError, ValidationError
from .extractor import extract_element
from .llm import LLMClient
from .locator import locate_element
from .models import (
    Asset,
    DownloadedAsset,
    ExtractedElement,
    ExtractionJob,
    LocateMode,
    LocateResult,
    OutputResult,
    PageSnapshot,
    PipelineOutcome,
    PipelineTiming,
    TransformRequest,
    TransformResult,
)
from .output import OutputWriter, download_assets
from .snapshot import create_snapshot, resolve_ref_to_selector
from .transformer import derive_component_name, transform_to_component, validate_component_name

logger = logging.getLogger(__name__)

LOCATE_OPTIONS = "--selector, --find, --interactive"


class PipelineStage(str, Enum):
    IDLE = "idle"
    BROWSE = "browse"
    LOCATE = "locate"
    EXTRACT = "extract"
    TRANSFORM = "transform"
    WRITE = "write"
    DONE = "done"
    FAILED = "failed"


async def _write_output(output_dir: str, component_name: str, result: TransformResult) -> OutputResult:
    return await asyncio.to_thread(OutputWriter(output_dir).write, component_name, result)


@dataclass
class PipelineCapabilities:
    """
    External collaborators the pipeline delegates to.

    ``sessions.acquire()`` returns an object with ``launch``, ``navigate``,
    ``get_page``, ``run_interactive_picker`` and an idempotent ``close``.
    """
    sessions: Any
    snapshot: Callable[[Any], Awaitable[PageSnapshot]]
    locate: Callable[[list, str], Awaitable[LocateResult]]
    resolve_ref: Callable[..., Awaitable[Optional[str]]]
    extract: Callable[[Any, str], Awaitable[ExtractedElement]]
    transform: Callable[[TransformRequest], Awaitable[TransformResult]]
    write: Callable[[str, str, TransformResult], Awaitable[OutputResult]]
    download_assets: Callable[[List[Asset], str], Awaitable[List[DownloadedAsset]]]

    @classmethod
    def default(cls, config, sessions=None, llm: Optional[LLMClient] = None) -> "PipelineCapabilities":
        llm = llm or LLMClient.from_config(config)
        if sessions is None:
            sessions = PerJobSessions(
                headless=config.headless,
                viewport=config.browser.viewport,
                timeout=config.browser.timeout,
                user_agent=config.browser.user_agent,
            )
        return cls(
            sessions=sessions,
            snapshot=create_snapshot,
            locate=partial(locate_element, llm),
            resolve_ref=resolve_ref_to_selector,
            extract=extract_element,
            transform=partial(transform_to_component, llm),
            write=_write_output,
            download_assets=download_assets,
        )


def validate_job(job: ExtractionJob) -> None:
    """Reject malformed jobs before any browser work. Missing locate mode is left to the Locate stage."""
    if not job.url or not job.url.strip():
        raise ValidationError("url", "URL is required")
    modes = job.locate_modes()
    if len(modes) > 1:
        names = ", ".join(m.value for m in modes)
        raise ValidationError("locate", f"Locate modes are mutually exclusive, got: {names}")
    if job.framework not in SUPPORTED_FRAMEWORKS:
        raise ValidationError(
            "framework", f"Invalid framework: {job.framework}. Expected one of: {', '.join(SUPPORTED_FRAMEWORKS)}")
    if job.styling not in SUPPORTED_STYLING:
        raise ValidationError(
            "styling", f"Invalid styling: {job.styling}. Expected one of: {', '.join(SUPPORTED_STYLING)}")
    if job.component_name and not validate_component_name(job.component_name):
        raise ValidationError("component_name", f"Component name must be PascalCase: {job.component_name}")


class PipelineOrchestrator:
    """
    Runs jobs one at a time. ``run`` never raises for job failures; the
    returned ``PipelineOutcome`` carries either the output or a typed error,
    and always the timing.
    """

    def __init__(self, capabilities: PipelineCapabilities):
        self.capabilities = capabilities
        self.stage = PipelineStage.IDLE

    @classmethod
    def from_config(cls, config, sessions=None) -> "PipelineOrchestrator":
        return cls(PipelineCapabilities.default(config, sessions=sessions))

    async def run(self, job: ExtractionJob) -> PipelineOutcome:
        caps = self.capabilities
        timing = PipelineTiming()
        started = time.perf_counter()
        set_verbose(job.verbose)
        self.stage = PipelineStage.IDLE

        try:
            validate_job(job)
        except ValidationError as e:
            logger.error(f"❌ Invalid job: {e.message}")
            self.stage = PipelineStage.FAILED
            return PipelineOutcome(success=False, timing=timing, error=e)

        session = None
        component_name = job.component_name
        try:
            # Browse
            self.stage = PipelineStage.BROWSE
            stage_start = time.perf_counter()
            url = normalize_url(job.url)
            logger.info(f"🌐 Opening {url}")
            session = await caps.sessions.acquire()
            await session.launch()
            await session.navigate(url)
            page = session.get_page()
            timing.browse = _elapsed_ms(stage_start)

            # Locate
            self.stage = PipelineStage.LOCATE
            stage_start = time.perf_counter()
            selector = await self._locate(job, session, page)
            timing.locate = _elapsed_ms(stage_start)
            logger.info(f"🎯 Located element: {selector}")

            # Extract
            self.stage = PipelineStage.EXTRACT
            stage_start = time.perf_counter()
            extracted = await caps.extract(page, selector)
            reduced_size = len(extracted.html.encode("utf-8")) + len(extracted.css.encode("utf-8"))
            logger.debug(
                f"Extracted {len(extracted.html)} chars HTML, {len(extracted.css)} chars CSS, "
                f"{len(extracted.assets)} assets ({format_bytes(extracted.original_size)} -> {format_bytes(reduced_size)})"
            )
            timing.extract = _elapsed_ms(stage_start)
            logger.info(f"📦 Extracted <{extracted.tag_name}>")

            # Transform
            self.stage = PipelineStage.TRANSFORM
            stage_start = time.perf_counter()
            component_name = component_name or derive_component_name(job.find or selector)
            logger.info(f"🧩 Transforming to {job.framework} + {job.styling} as {component_name}")
            transformed = await caps.transform(TransformRequest(
                html=extracted.html,
                css=extracted.css,
                framework=job.framework,
                styling=job.styling,
                component_name=component_name,
            ))
            if transformed.tokens:
                logger.debug(f"Tokens used: {transformed.tokens.total}")
            timing.transform = _elapsed_ms(stage_start)

            # Write
            self.stage = PipelineStage.WRITE
            stage_start = time.perf_counter()
            output = await caps.write(job.output_dir, component_name, transformed)
            if job.include_assets and extracted.assets:
                output.assets = await self._download_assets(
                    extracted.assets, str(Path(job.output_dir) / component_name))
            timing.write = _elapsed_ms(stage_start)
            logger.info(f"📝 Wrote {len(output.files)} files, {len(output.assets)} assets to {output.import_path}")

            self.stage = PipelineStage.DONE
            timing.total = max(_elapsed_ms(started), timing.stage_sum())
            return PipelineOutcome(success=True, timing=timing, output=output, component_name=component_name)

        except Exception as e:
            failed_stage = self.stage
            error = classify_error(e, failed_stage)
            self.stage = PipelineStage.FAILED
            logger.error(f"❌ {failed_stage.value} failed: [{error.code}] {error.message}")
            if not isinstance(e, SnatchError):
                logger.debug(f"Original {type(e).__name__}: {e}", exc_info=True)
            timing.total = max(_elapsed_ms(started), timing.stage_sum())
            return PipelineOutcome(success=False, timing=timing, error=error, component_name=component_name)

        finally:
            if session is not None:
                try:
                    await session.close()
                except Exception as e:
                    logger.warning(f"⚠️ Session cleanup failed: {e}")

    async def _locate(self, job: ExtractionJob, session, page) -> str:
        caps = self.capabilities
        modes = job.locate_modes()
        if not modes:
            raise ValidationError("locate", f"No element to extract: pass one of {LOCATE_OPTIONS}")

        mode = modes[0]
        if mode == LocateMode.SELECTOR:
            logger.debug(f"Using selector: {job.selector}")
            return job.selector

        if mode == LocateMode.QUERY:
            snapshot = await caps.snapshot(page)
            if not snapshot.tree:
                raise ElementNotFoundError(job.find, f"Page has no accessible elements to match \"{job.find}\"")
            result = await caps.locate(snapshot.tree, job.find)
            if not result.ref:
                raise ElementNotFoundError(job.find, f"Could not locate element matching: \"{job.find}\"")
            logger.debug(f"LLM picked {result.ref} (confidence {result.confidence:.2f})")
            selector = await caps.resolve_ref(page, result.ref, snapshot)
            if not selector:
                raise ElementNotFoundError(result.ref, f"Could not resolve element reference: {result.ref}")
            return selector

        logger.info("🖱️ Waiting for element selection in the browser...")
        selection = await session.run_interactive_picker()
        if selection.is_cancelled:
            raise PickerCancelledError()
        logger.debug(f"Picked <{selection.tag_name}> \"{selection.text_preview}\"")
        return selection.selector

    async def _download_assets(self, assets: List[Asset], directory: str) -> List[DownloadedAsset]:
        try:
            downloaded = await self.capabilities.download_assets(assets, directory)
        except Exception as e:
            logger.warning(f"⚠️ Asset download failed, continuing without assets: {e}")
            return []
        if len(downloaded) < len(assets):
            logger.warning(f"⚠️ Downloaded {len(downloaded)} of {len(assets)} assets")
        return downloaded


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


async def run_job(job: ExtractionJob, config, sessions=None) -> PipelineOutcome:
    """One-shot helper: build an orchestrator from config and run ``job``."""
    return await PipelineOrchestrator.from_config(config, sessions=sessions).run(job)
