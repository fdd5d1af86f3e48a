"""
Tests for element extraction helpers
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from snatch_core.errors import ElementNotFoundError, ExtractionError
from snatch_core.extractor import (
    ASSETS_JS,
    EXTRACT_JS,
    MAX_STYLE_DEPTH,
    StyleReducer,
    clean_html,
    extract_element,
    extract_filename,
)


class TestStyleReducer:
    def test_drops_defaults(self):
        reducer = StyleReducer()

        kept = reducer.reduce_rule({
            "position": "static",
            "visibility": "visible",
            "color": "rgb(0, 0, 0)",
            "background-color": "rgba(0, 0, 0, 0)",
        })

        assert kept == {"color": "rgb(0, 0, 0)"}

    def test_display_is_kept(self):
        assert StyleReducer().reduce_rule({"display": "block"}) == {"display": "block"}

    def test_drops_vendor_prefixed(self):
        kept = StyleReducer().reduce_rule({"-webkit-font-smoothing": "antialiased", "font-size": "16px"})

        assert kept == {"font-size": "16px"}

    def test_drops_empty_values(self):
        assert StyleReducer().reduce_rule({"color": "  "}) == {}

    def test_shorthand(self):
        kept = StyleReducer(use_shorthand=True).reduce_rule({
            "margin-top": "1px",
            "margin-right": "2px",
            "margin-bottom": "3px",
            "margin-left": "4px",
            "padding-top": "8px",
        })

        assert kept == {"padding-top": "8px", "margin": "1px 2px 3px 4px"}

    def test_no_shorthand_by_default(self):
        kept = StyleReducer().reduce_rule({f"margin-{s}": "0px" for s in ("top", "right", "bottom", "left")})

        assert "margin" not in kept
        assert len(kept) == 4

    def test_reduce_formats_rules(self):
        css = StyleReducer().reduce({
            ".card": {"color": "red", "position": "static"},
            ".card > :nth-child(1)": {"position": "static"},
            ".card > :nth-child(2)": {"font-weight": "700"},
        })

        assert css == ".card {\n  color: red;\n}\n\n.card > :nth-child(2) {\n  font-weight: 700;\n}"

    def test_reduce_empty(self):
        assert StyleReducer().reduce({}) == ""


class TestCleanHtml:
    def test_strips_noise(self):
        html = (
            '<div class="" data-reactid="1" data-testid="card" onclick="go()" style="color:red">\n'
            '    <span   data-v-123="">Hi</span>\n'
            "</div>"
        )

        assert clean_html(html) == '<div data-testid="card"> <span>Hi</span> </div>'

    def test_keeps_real_attributes(self):
        html = '<a href="/pricing" class="link">Pricing</a>'

        assert clean_html(html) == html


class TestExtractFilename:
    def test_url_path(self):
        assert extract_filename("https://cdn.example.com/img/logo.svg?v=2") == "logo.svg"

    def test_no_extension(self):
        assert extract_filename("https://example.com/avatar") == "avatar.png"

    def test_no_path(self):
        assert extract_filename("https://example.com/") == "asset.png"

    def test_data_url(self):
        url = "data:image/svg+xml;base64,PHN2Zy8+"

        name = extract_filename(url)

        assert name.startswith("asset-")
        assert name.endswith(".svg")
        assert name == extract_filename(url)


def make_page(raw, assets=None):
    page = MagicMock()

    async def evaluate(script, arg):
        if script == EXTRACT_JS:
            return raw
        if script == ASSETS_JS:
            if isinstance(assets, Exception):
                raise assets
            return assets or []
        raise AssertionError("unexpected script")

    page.evaluate = AsyncMock(side_effect=evaluate)
    return page


RAW = {
    "html": '<div class="hero" data-x="1">  <img src="/a.png">  </div>',
    "styles": {".hero": {"display": "flex", "position": "static"}},
    "tagName": "div",
    "classNames": ["hero"],
    "boundingBox": {"x": 0, "y": 10, "width": 300, "height": 120},
}


@pytest.mark.asyncio
class TestExtractElement:
    async def test_extract(self):
        page = make_page(RAW, assets=[
            {"type": "image", "url": "https://example.com/a.png"},
            {"type": "image", "url": "https://example.com/a.png"},
            {"type": "background", "url": "https://example.com/bg.jpg"},
        ])

        element = await extract_element(page, ".hero")

        assert element.html == '<div class="hero"> <img src="/a.png"> </div>'
        assert element.css == ".hero {\n  display: flex;\n}"
        assert element.tag_name == "div"
        assert element.class_names == ["hero"]
        assert element.bounding_box.height == 120
        assert [a.filename for a in element.assets] == ["a.png", "bg.jpg"]
        assert element.original_size == len(RAW["html"].encode("utf-8"))
        first_call = page.evaluate.await_args_list[0]
        assert first_call.args[1] == {"sel": ".hero", "maxDepth": MAX_STYLE_DEPTH}

    async def test_missing_element(self):
        with pytest.raises(ElementNotFoundError) as exc_info:
            await extract_element(make_page(None), ".nope")

        assert exc_info.value.selector == ".nope"

    async def test_page_error(self):
        page = MagicMock()
        page.evaluate = AsyncMock(side_effect=PlaywrightError("Execution context was destroyed"))

        with pytest.raises(ExtractionError):
            await extract_element(page, ".hero")

    async def test_asset_discovery_failure_is_not_fatal(self):
        page = make_page(RAW, assets=PlaywrightError("frame detached"))

        element = await extract_element(page, ".hero")

        assert element.assets == []
