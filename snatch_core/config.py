#!/usr/bin/env python3
"""
Configuration loading.

Priority (lowest to highest): defaults < config file < environment < CLI.
The config file is the first of ``CONFIG_FILES`` found in the working
directory, then in the home directory.
"""

import copy
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from .constants import (
    CONFIG_FILES,
    DEFAULTS,
    ENV_PREFIX,
    SUPPORTED_FRAMEWORKS,
    SUPPORTED_LLM_PROVIDERS,
    SUPPORTED_STYLING,
)
from .errors import ConfigError

load_dotenv()

logger = logging.getLogger(__name__)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_flag(name: str) -> Optional[bool]:
    value = _env(name)
    if value is None:
        return None
    return value.lower() in ("true", "1", "yes")


@dataclass
class LLMSettings:
    provider: str = DEFAULTS["llm_provider"]
    model: str = DEFAULTS["llm_model"]
    timeout: float = DEFAULTS["llm_timeout"]
    max_tokens: int = DEFAULTS["llm_max_tokens"]
    ollama_host: str = DEFAULTS["ollama_host"]
    api_key: Optional[str] = None


@dataclass
class BrowserSettings:
    viewport: Dict[str, int] = field(default_factory=lambda: dict(DEFAULTS["viewport"]))
    timeout: int = DEFAULTS["timeout"]
    user_agent: Optional[str] = None


@dataclass
class Config:
    """Resolved configuration for one CLI invocation"""
    framework: str = DEFAULTS["framework"]
    styling: str = DEFAULTS["styling"]
    output_dir: str = DEFAULTS["output_dir"]
    headless: bool = DEFAULTS["headless"]
    include_assets: bool = DEFAULTS["include_assets"]
    verbose: bool = DEFAULTS["verbose"]
    llm: LLMSettings = field(default_factory=LLMSettings)
    browser: BrowserSettings = field(default_factory=BrowserSettings)

    @classmethod
    def from_env(cls) -> "Config":
        """Defaults overlaid with ``SNATCH_*`` environment variables."""
        config = cls()
        apply_overrides(config, env_overrides())
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "framework": self.framework,
            "styling": self.styling,
            "output_dir": self.output_dir,
            "headless": self.headless,
            "include_assets": self.include_assets,
            "verbose": self.verbose,
            "llm": {k: v for k, v in vars(self.llm).items() if k != "api_key"},
            "browser": copy.deepcopy(vars(self.browser)),
        }


def env_overrides() -> Dict[str, Any]:
    """Collect overrides from the environment; unsupported values are ignored."""
    overrides: Dict[str, Any] = {}

    framework = _env("FRAMEWORK")
    if framework in SUPPORTED_FRAMEWORKS:
        overrides["framework"] = framework
    elif framework:
        logger.warning(f"Ignoring {ENV_PREFIX}FRAMEWORK={framework!r}")

    styling = _env("STYLING")
    if styling in SUPPORTED_STYLING:
        overrides["styling"] = styling
    elif styling:
        logger.warning(f"Ignoring {ENV_PREFIX}STYLING={styling!r}")

    if _env("OUTPUT_DIR"):
        overrides["output_dir"] = _env("OUTPUT_DIR")

    for key in ("VERBOSE", "HEADLESS", "INCLUDE_ASSETS"):
        flag = _env_flag(key)
        if flag is not None:
            overrides[key.lower()] = flag

    llm: Dict[str, Any] = {}
    provider = _env("LLM_PROVIDER")
    if provider in SUPPORTED_LLM_PROVIDERS:
        llm["provider"] = provider
    if _env("LLM_MODEL"):
        llm["model"] = _env("LLM_MODEL")
    if _env("LLM_TIMEOUT"):
        try:
            llm["timeout"] = float(_env("LLM_TIMEOUT"))
        except ValueError:
            logger.warning(f"Ignoring {ENV_PREFIX}LLM_TIMEOUT={_env('LLM_TIMEOUT')!r}")
    if _env("OLLAMA_HOST"):
        llm["ollama_host"] = _env("OLLAMA_HOST")
    if os.getenv("ANTHROPIC_API_KEY"):
        llm["api_key"] = os.getenv("ANTHROPIC_API_KEY")
    if llm:
        overrides["llm"] = llm

    if _env("BROWSER_TIMEOUT"):
        try:
            overrides["browser"] = {"timeout": int(_env("BROWSER_TIMEOUT"))}
        except ValueError:
            logger.warning(f"Ignoring {ENV_PREFIX}BROWSER_TIMEOUT={_env('BROWSER_TIMEOUT')!r}")

    return overrides


def apply_overrides(config: Config, overrides: Dict[str, Any]) -> Config:
    """Deep-merge a partial config dict (snake_case keys) into ``config``."""
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "llm":
            for k, v in value.items():
                setattr(config.llm, k, v)
        elif key == "browser":
            for k, v in value.items():
                if k == "viewport":
                    config.browser.viewport.update(v)
                else:
                    setattr(config.browser, k, v)
        else:
            setattr(config, key, value)
    return config


def _positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def validate_file_config(raw: Any, path: str) -> Tuple[Dict[str, Any], List[str]]:
    """
    Validate a parsed config file.

    File keys are camelCase (``outputDir``, ``includeAssets``). Returns the
    valid part as snake_case overrides plus a list of ``"<key>: <message>"``
    errors; every problem is reported, not just the first.
    """
    errors: List[str] = []
    config: Dict[str, Any] = {}

    if not isinstance(raw, dict):
        return config, [f"{path}: Config must be an object"]

    def fail(key: str, message: str, received: Any = None):
        suffix = f" (got: {json.dumps(received)})" if received is not None else ""
        errors.append(f"{key}: {message}{suffix}")

    framework = raw.get("framework")
    if framework is not None:
        if framework in SUPPORTED_FRAMEWORKS:
            config["framework"] = framework
        else:
            fail("framework", f"Invalid framework. Expected one of: {', '.join(SUPPORTED_FRAMEWORKS)}", framework)

    styling = raw.get("styling")
    if styling is not None:
        if styling in SUPPORTED_STYLING:
            config["styling"] = styling
        else:
            fail("styling", f"Invalid styling. Expected one of: {', '.join(SUPPORTED_STYLING)}", styling)

    if "outputDir" in raw:
        if isinstance(raw["outputDir"], str):
            config["output_dir"] = raw["outputDir"]
        else:
            fail("outputDir", "outputDir must be a string", raw["outputDir"])

    for key, target in (("headless", "headless"), ("includeAssets", "include_assets"), ("verbose", "verbose")):
        if key in raw:
            if isinstance(raw[key], bool):
                config[target] = raw[key]
            else:
                fail(key, f"{key} must be a boolean", raw[key])

    if "llm" in raw:
        llm = raw["llm"]
        if not isinstance(llm, dict):
            fail("llm", "llm must be an object")
        else:
            settings: Dict[str, Any] = {}
            if "provider" in llm:
                if llm["provider"] in SUPPORTED_LLM_PROVIDERS:
                    settings["provider"] = llm["provider"]
                else:
                    fail("llm.provider", f"llm.provider must be one of: {', '.join(SUPPORTED_LLM_PROVIDERS)}",
                         llm["provider"])
            if "model" in llm:
                if isinstance(llm["model"], str) and llm["model"]:
                    settings["model"] = llm["model"]
                else:
                    fail("llm.model", "llm.model must be a non-empty string", llm["model"])
            if "timeout" in llm:
                if _positive_number(llm["timeout"]):
                    settings["timeout"] = llm["timeout"]
                else:
                    fail("llm.timeout", "llm.timeout must be a positive number", llm["timeout"])
            if "maxTokens" in llm:
                if _positive_number(llm["maxTokens"]):
                    settings["max_tokens"] = int(llm["maxTokens"])
                else:
                    fail("llm.maxTokens", "llm.maxTokens must be a positive number", llm["maxTokens"])
            if settings:
                config["llm"] = settings

    if "browser" in raw:
        browser = raw["browser"]
        if not isinstance(browser, dict):
            fail("browser", "browser must be an object")
        else:
            settings = {}
            if "timeout" in browser:
                if _positive_number(browser["timeout"]):
                    settings["timeout"] = browser["timeout"]
                else:
                    fail("browser.timeout", "browser.timeout must be a positive number", browser["timeout"])
            if "viewport" in browser:
                viewport = browser["viewport"]
                if not isinstance(viewport, dict):
                    fail("browser.viewport", "browser.viewport must be an object")
                else:
                    dims = {}
                    for dim in ("width", "height"):
                        if dim in viewport:
                            if _positive_number(viewport[dim]):
                                dims[dim] = int(viewport[dim])
                            else:
                                fail(f"browser.viewport.{dim}", f"browser.viewport.{dim} must be a positive number",
                                     viewport[dim])
                    if dims:
                        settings["viewport"] = dims
            if settings:
                config["browser"] = settings

    return config, errors


def find_config_file(search_dirs: Optional[List[Path]] = None) -> Optional[Path]:
    for directory in search_dirs or [Path.cwd(), Path.home()]:
        for filename in CONFIG_FILES:
            candidate = Path(directory) / filename
            if candidate.is_file():
                return candidate
    return None


def load_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """Read and validate the config file; ``ConfigError`` lists every problem."""
    path = path or find_config_file()
    if path is None:
        return {}

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file errors:\n  {path}: Invalid JSON: {e}")
    except OSError as e:
        logger.warning(f"Could not read config file {path}: {e}")
        return {}

    partial, errors = validate_file_config(raw, str(path))
    if errors:
        raise ConfigError("Config file errors:\n  " + "\n  ".join(errors))

    logger.debug(f"Loaded config from {path}")
    return partial


def cli_to_overrides(options: Dict[str, Any]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for key in ("framework", "styling", "output_dir", "verbose", "include_assets", "headless"):
        if options.get(key) is not None:
            overrides[key] = options[key]
    # The picker needs a visible browser
    if options.get("interactive"):
        overrides["headless"] = False
    return overrides


def load_config(cli_overrides: Optional[Dict[str, Any]] = None, config_path: Optional[Path] = None) -> Config:
    """Build the effective ``Config``: defaults < file < env < CLI."""
    config = Config()
    apply_overrides(config, load_config_file(config_path))
    apply_overrides(config, env_overrides())
    if cli_overrides:
        apply_overrides(config, cli_to_overrides(cli_overrides))
    return config
