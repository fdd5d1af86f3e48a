"""
Constants - supported values and configuration defaults.
"""

SUPPORTED_FRAMEWORKS = ("react", "vue", "svelte", "html")
SUPPORTED_STYLING = ("tailwind", "css-modules", "vanilla", "inline")
SUPPORTED_LLM_PROVIDERS = ("anthropic", "ollama")

DEFAULTS = {
    "framework": "react",
    "styling": "tailwind",
    "output_dir": "./components",
    "viewport": {"width": 1920, "height": 1080},
    # Navigation timeout in ms
    "timeout": 30000,
    "llm_provider": "anthropic",
    "llm_model": "claude-sonnet-4-20250514",
    # LLM request timeout in seconds
    "llm_timeout": 120,
    "llm_max_tokens": 8192,
    "ollama_host": "http://localhost:11434",
    "headless": True,
    "include_assets": False,
    "verbose": False,
}

FRAMEWORK_EXTENSIONS = {
    "react": ".tsx",
    "vue": ".vue",
    "svelte": ".svelte",
    "html": ".html",
}

CONFIG_FILES = (".snatchrc.json", ".snatchrc", "snatch.config.json")

ENV_PREFIX = "SNATCH_"

# Ids, classes and attributes injected by the tool itself live under this prefix
RESERVED_PREFIX = "__snatch"

# Fallback component name when nothing usable can be derived
DEFAULT_COMPONENT_NAME = "ExtractedComponent"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
