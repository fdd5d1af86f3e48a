"""
Component Transformer - extracted HTML+CSS to framework component source.

Also home of the component naming rules used when the user gives no name.
"""

import logging
import re
from typing import Optional

from .constants import DEFAULT_COMPONENT_NAME, FRAMEWORK_EXTENSIONS
from .errors import TransformationError
from .llm import LLMClient
from .models import TransformRequest, TransformResult
from .prompts import build_transform_prompt, transform_system_prompt

logger = logging.getLogger(__name__)

CODE_BLOCK = re.compile(r"```(?:tsx?|jsx?|typescript|javascript|vue|svelte|html)?[ \t]*\n(.*?)```", re.S)
CSS_BLOCK = re.compile(r"```css[ \t]*\n(.*?)```", re.S)
PROPS_INTERFACE = re.compile(r"interface\s+\w+Props\s*\{.*?\n\}", re.S)

# Prefix for derived names that would start with a digit
LEADING_DIGIT_PREFIX = "Element"

# Names that clash with framework built-ins or JS globals
RESERVED_NAMES = frozenset({
    "Array", "Boolean", "Component", "Date", "Document", "Element", "Error",
    "Event", "Fragment", "Function", "Html", "Image", "Json", "KeepAlive",
    "Map", "Math", "Node", "Number", "Object", "Option", "Promise", "Set",
    "Slot", "String", "Suspense", "Symbol", "Teleport", "Template",
    "Text", "Transition", "Window",
})
RESERVED_SUFFIX = "Component"

MAX_NAME_WORDS = 6

PASCAL_CASE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")


def validate_component_name(name: str) -> bool:
    return bool(PASCAL_CASE.match(name or ""))

def derive_component_name(source: Optional[str]) -> str:
    """
    Deterministic PascalCase name from a query or selector.

    >>> derive_component_name("the pricing table")
    'ThePricingTable'
    >>> derive_component_name("#main-nav > ul")
    'MainNavUl'
    """
    words = [w for w in re.split(r"[^A-Za-z0-9]+", source or "") if w][:MAX_NAME_WORDS]
    name = "".join(w[0].upper() + w[1:].lower() for w in words)
    if not name:
        return DEFAULT_COMPONENT_NAME
    if name[0].isdigit():
        name = LEADING_DIGIT_PREFIX + name
    if name in RESERVED_NAMES:
        name += RESERVED_SUFFIX
    return name


def generate_filename(component_name: str, framework: str) -> str:
    return component_name + FRAMEWORK_EXTENSIONS.get(framework, ".tsx")


def parse_transform_response(content: str, component_name: str, framework: str) -> TransformResult:
    css_match = CSS_BLOCK.search(content)
    # CSS fences removed first so a closing ``` is never read as an opening one
    code_match = CODE_BLOCK.search(CSS_BLOCK.sub("", content))
    props_match = PROPS_INTERFACE.search(content)

    code = (code_match.group(1) if code_match else content).strip()
    if not code:
        raise TransformationError(f"LLM returned no code for {component_name}")

    return TransformResult(
        code=code,
        filename=generate_filename(component_name, framework),
        styles=css_match.group(1).strip() if css_match else None,
        props_interface=props_match.group(0) if props_match else None,
    )


async def transform_to_component(client: LLMClient, request: TransformRequest) -> TransformResult:
    prompt = build_transform_prompt(
        html=request.html,
        css=request.css,
        framework=request.framework,
        styling=request.styling,
        component_name=request.component_name,
        instructions=request.instructions,
    )
    response = await client.ask(prompt, transform_system_prompt(request.framework, request.styling))

    result = parse_transform_response(response.content, request.component_name, request.framework)
    result.tokens = response.tokens
    logger.debug(
        f"🧩 Generated {result.filename}: {len(result.code)} chars"
        f"{', separate styles' if result.styles else ''}"
    )
    return result
