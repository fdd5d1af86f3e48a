"""
Batch extraction - many components from one JSON/YAML file.

File shape:

    {
      "components": [
        {"url": "https://stripe.com/pricing", "find": "pricing card", "name": "PricingCard"},
        {"url": "https://linear.app", "selector": "nav", "name": "Navigation", "framework": "vue"}
      ],
      "defaults": {"framework": "react", "styling": "tailwind", "outputDir": "./components"}
    }

Jobs run strictly one after another. A failing job never stops the batch.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .browser import PerJobSessions, SharedSessions
from .constants import DEFAULTS, SUPPORTED_FRAMEWORKS, SUPPORTED_STYLING
from .errors import format_error
from .models import BatchJobResult, BatchResult, ExtractionJob
from .orchestrator import PipelineCapabilities, PipelineOrchestrator
from .transformer import validate_component_name

logger = logging.getLogger(__name__)

SESSION_MODES = ("per-job", "shared")

# Keys a component or the defaults block may set, file key -> job field
OVERRIDE_KEYS = {
    "framework": "framework",
    "styling": "styling",
    "outputDir": "output_dir",
    "includeAssets": "include_assets",
}


@dataclass
class BatchConfigResult:
    valid: bool
    config: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)


def _validate_choices(block: Dict[str, Any], where: str, errors: List[str]) -> None:
    framework = block.get("framework")
    if framework is not None and framework not in SUPPORTED_FRAMEWORKS:
        errors.append(f"{where}: invalid framework \"{framework}\". Expected one of: {', '.join(SUPPORTED_FRAMEWORKS)}")
    styling = block.get("styling")
    if styling is not None and styling not in SUPPORTED_STYLING:
        errors.append(f"{where}: invalid styling \"{styling}\". Expected one of: {', '.join(SUPPORTED_STYLING)}")
    if "outputDir" in block and not isinstance(block["outputDir"], str):
        errors.append(f"{where}: outputDir must be a string")
    if "includeAssets" in block and not isinstance(block["includeAssets"], bool):
        errors.append(f"{where}: includeAssets must be a boolean")


def validate_batch_config(raw: Any) -> List[str]:
    """Every problem in a parsed batch document, or ``[]``."""
    if not isinstance(raw, dict):
        return ["Batch config must be an object with a \"components\" array"]

    errors: List[str] = []
    components = raw.get("components")
    if not isinstance(components, list):
        return ["Batch config must have a \"components\" array"]
    if not components:
        return ["Batch config \"components\" array is empty"]

    for i, comp in enumerate(components):
        where = f"components[{i}]"
        if not isinstance(comp, dict):
            errors.append(f"{where}: must be an object")
            continue
        if not comp.get("url"):
            errors.append(f"{where}: missing required \"url\"")
        name = comp.get("name")
        if not name:
            errors.append(f"{where}: missing required \"name\"")
        elif not validate_component_name(str(name)):
            errors.append(f"{where}: name \"{name}\" must be PascalCase")
        has_selector, has_find = bool(comp.get("selector")), bool(comp.get("find"))
        if not has_selector and not has_find:
            errors.append(f"{where}: needs either \"selector\" or \"find\"")
        elif has_selector and has_find:
            errors.append(f"{where}: cannot have both \"selector\" and \"find\"")
        _validate_choices(comp, where, errors)

    defaults = raw.get("defaults")
    if defaults is not None:
        if not isinstance(defaults, dict):
            errors.append("defaults: must be an object")
        else:
            _validate_choices(defaults, "defaults", errors)

    return errors


def load_batch_config(path: str) -> BatchConfigResult:
    """Read and validate a batch file (``.json``, ``.yaml`` or ``.yml``)."""
    file_path = Path(path)
    if not file_path.is_file():
        return BatchConfigResult(valid=False, errors=[f"Batch config file not found: {path}"])

    try:
        text = file_path.read_text(encoding="utf-8")
        if file_path.suffix.lower() in (".yaml", ".yml"):
            raw = yaml.safe_load(text)
        else:
            raw = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        return BatchConfigResult(valid=False, errors=[f"Failed to parse batch config {path}: {e}"])
    except OSError as e:
        return BatchConfigResult(valid=False, errors=[f"Failed to read batch config {path}: {e}"])

    errors = validate_batch_config(raw)
    if errors:
        return BatchConfigResult(valid=False, errors=errors)
    return BatchConfigResult(valid=True, config=raw)


def build_job(component: Dict[str, Any], defaults: Optional[Dict[str, Any]], fallback: Dict[str, Any]) -> ExtractionJob:
    """Component values win over batch defaults, which win over ``fallback``."""
    merged = dict(fallback)
    for source in (defaults or {}, component):
        for key, target in OVERRIDE_KEYS.items():
            if source.get(key) is not None:
                merged[target] = source[key]
    return ExtractionJob(
        url=component["url"],
        selector=component.get("selector"),
        find=component.get("find"),
        component_name=component.get("name"),
        framework=merged["framework"],
        styling=merged["styling"],
        output_dir=merged["output_dir"],
        include_assets=bool(merged["include_assets"]),
        verbose=bool(merged.get("verbose", False)),
    )


def component_name(component: Any, position: int) -> str:
    if isinstance(component, dict) and component.get("name"):
        return str(component["name"])
    return f"component-{position}"


class BatchCoordinator:
    """
    Runs every component of a batch through the pipeline, in order.

    ``session_mode`` picks how browsers are handed out:
    ``"per-job"`` launches a fresh browser for each component,
    ``"shared"`` keeps one browser and gives each component a fresh page.
    Both are supported; neither is required for correctness.
    """

    def __init__(
        self,
        config=None,
        session_mode: str = "per-job",
        orchestrator: Optional[PipelineOrchestrator] = None,
    ):
        if session_mode not in SESSION_MODES:
            raise ValueError(f"session_mode must be one of {SESSION_MODES}, got {session_mode!r}")
        self.config = config
        self.session_mode = session_mode
        self._orchestrator = orchestrator
        self._sessions = None

    def fallback(self) -> Dict[str, Any]:
        if self.config is None:
            return {
                "framework": DEFAULTS["framework"],
                "styling": DEFAULTS["styling"],
                "output_dir": DEFAULTS["output_dir"],
                "include_assets": DEFAULTS["include_assets"],
                "verbose": DEFAULTS["verbose"],
            }
        return {
            "framework": self.config.framework,
            "styling": self.config.styling,
            "output_dir": self.config.output_dir,
            "include_assets": self.config.include_assets,
            "verbose": self.config.verbose,
        }

    def _build_orchestrator(self) -> PipelineOrchestrator:
        if self._orchestrator is not None:
            return self._orchestrator
        browser = self.config.browser
        options = dict(
            headless=self.config.headless,
            viewport=browser.viewport,
            timeout=browser.timeout,
            user_agent=browser.user_agent,
        )
        self._sessions = SharedSessions(**options) if self.session_mode == "shared" else PerJobSessions(**options)
        return PipelineOrchestrator(PipelineCapabilities.default(self.config, sessions=self._sessions))

    async def run(self, batch: Dict[str, Any]) -> BatchResult:
        components = batch.get("components") or []
        defaults = batch.get("defaults")
        fallback = self.fallback()
        results: List[BatchJobResult] = []
        started = time.perf_counter()

        logger.info(f"📋 Batch: {len(components)} components ({self.session_mode} sessions)")
        try:
            orchestrator = self._build_orchestrator()
        except Exception as e:
            # No pipeline to run: every job fails with the setup error
            message = format_error(e)
            logger.error(f"❌ Batch setup failed: {message}")
            results = [
                BatchJobResult(name=component_name(c, i), success=False, error=message)
                for i, c in enumerate(components, 1)
            ]
        else:
            for i, component in enumerate(components, 1):
                name = component_name(component, i)
                logger.info(f"[{i}/{len(components)}] {name}")
                results.append(await self._run_one(orchestrator, name, component, defaults, fallback))
        finally:
            await self._close_sessions()

        succeeded = sum(1 for r in results if r.success)
        result = BatchResult(
            total=len(components),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            results=results,
            total_time=(time.perf_counter() - started) * 1000,
        )
        logger.info(f"🏁 Batch done: {result.succeeded} succeeded, {result.failed} failed")
        return result

    async def _run_one(self, orchestrator, name: str, component: Dict[str, Any],
                       defaults: Optional[Dict[str, Any]], fallback: Dict[str, Any]) -> BatchJobResult:
        try:
            outcome = await orchestrator.run(build_job(component, defaults, fallback))
        except Exception as e:
            logger.error(f"❌ {name}: {format_error(e)}")
            return BatchJobResult(name=name, success=False, error=format_error(e))

        if outcome.success:
            logger.info(f"✅ {name}")
            return BatchJobResult(name=name, success=True, result=outcome)
        message = format_error(outcome.error) if outcome.error else "Unknown error"
        logger.error(f"❌ {name}: {message}")
        return BatchJobResult(name=name, success=False, error=message, result=outcome)

    async def _close_sessions(self) -> None:
        if self._sessions is None:
            return
        try:
            await self._sessions.aclose()
        except Exception as e:
            logger.warning(f"⚠️ Closing shared browser failed: {e}")
        self._sessions = None
