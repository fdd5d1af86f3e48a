"""
Element Locator - natural-language query to accessibility-tree ref.
"""

import asyncio
import logging
import re
from typing import List

from .llm import LLMClient
from .models import AccessibilityNode, LocateResult
from .prompts import LOCATE_SYSTEM, build_locate_prompt, truncate_for_preview
from .snapshot import format_tree_for_llm

logger = logging.getLogger(__name__)

# Used when the reply has no "Confidence:" line
DEFAULT_CONFIDENCE = 0.8

REF_PATTERN = re.compile(r"@e\d+(?:\.\d+)*")
CONFIDENCE_PATTERN = re.compile(r"confidence[:\s]+(\d+(?:\.\d+)?)", re.I)


def parse_locate_response(content: str) -> LocateResult:
    """Pull the ref and confidence out of an LLM reply; ``ref`` is ``None`` if absent."""
    ref_match = REF_PATTERN.search(content or "")
    confidence_match = CONFIDENCE_PATTERN.search(content or "")
    confidence = float(confidence_match.group(1)) if confidence_match else DEFAULT_CONFIDENCE
    return LocateResult(
        ref=ref_match.group(0) if ref_match else None,
        confidence=min(max(confidence, 0.0), 1.0),
        reasoning=content or "",
    )


async def locate_element(client: LLMClient, tree: List[AccessibilityNode], query: str) -> LocateResult:
    prompt = build_locate_prompt(format_tree_for_llm(tree), query)
    response = await client.ask(prompt, LOCATE_SYSTEM)
    result = parse_locate_response(response.content)

    if result.ref is None:
        logger.warning(f"No element ref in LLM reply for \"{query}\": {truncate_for_preview(response.content)}")
    elif not CONFIDENCE_PATTERN.search(response.content):
        logger.debug(f"No confidence score for \"{query}\", using default {DEFAULT_CONFIDENCE}")

    logger.debug(f"🔎 \"{query}\" -> {result.ref} (confidence {result.confidence:.2f})")
    return result


async def locate_elements(client: LLMClient, tree: List[AccessibilityNode], queries: List[str]) -> List[LocateResult]:
    """Locate several queries concurrently; results keep the order of ``queries``."""
    return list(await asyncio.gather(*(locate_element(client, tree, q) for q in queries)))
