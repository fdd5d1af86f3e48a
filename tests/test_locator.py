"""
Tests for natural-language element location
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from snatch_core.llm import LLMResponse
from snatch_core.locator import DEFAULT_CONFIDENCE, locate_element, locate_elements, parse_locate_response
from snatch_core.models import AccessibilityNode
from snatch_core.prompts import LOCATE_SYSTEM

TREE = [AccessibilityNode(ref="@e0", role="document", name="Shop", children=[
    AccessibilityNode(ref="@e0.0", role="navigation", name="Main"),
    AccessibilityNode(ref="@e0.1", role="region", name="Pricing"),
])]


class TestParseLocateResponse:
    def test_full_reply(self):
        result = parse_locate_response("@e0.1\nConfidence: 0.92\nReasoning: the pricing region")

        assert result.ref == "@e0.1"
        assert result.confidence == pytest.approx(0.92)
        assert "pricing region" in result.reasoning

    def test_default_confidence(self):
        result = parse_locate_response("Best match is @e0.0")

        assert result.ref == "@e0.0"
        assert result.confidence == DEFAULT_CONFIDENCE

    def test_confidence_clamped(self):
        assert parse_locate_response("@e1 confidence: 7").confidence == 1.0

    def test_no_ref(self):
        result = parse_locate_response("I could not find anything like that.")

        assert result.ref is None

    def test_empty(self):
        assert parse_locate_response("").ref is None


@pytest.mark.asyncio
class TestLocate:
    async def test_prompt_contains_tree_and_query(self):
        client = AsyncMock()
        client.ask = AsyncMock(return_value=LLMResponse(content="@e0.1\nConfidence: 0.9"))

        result = await locate_element(client, TREE, "pricing section")

        prompt, system = client.ask.await_args.args
        assert '@e0.1 [region] "Pricing"' in prompt
        assert '"pricing section"' in prompt
        assert system == LOCATE_SYSTEM
        assert result.ref == "@e0.1"

    async def test_many_queries_keep_order(self):
        replies = {"nav": ("@e0.0", 0.03), "pricing": ("@e0.1", 0.0)}

        async def ask(prompt, system):
            for query, (ref, delay) in replies.items():
                if f'"{query}"' in prompt:
                    await asyncio.sleep(delay)
                    return LLMResponse(content=ref)
            return LLMResponse(content="nothing")

        client = AsyncMock()
        client.ask = AsyncMock(side_effect=ask)

        results = await locate_elements(client, TREE, ["nav", "pricing", "footer"])

        assert [r.ref for r in results] == ["@e0.0", "@e0.1", None]
