"""
Element Extractor

Pulls an element's markup, computed styles (reduced to what matters) and
referenced assets out of the live page.
"""

import hashlib
import logging
import re
from typing import Dict, List, Optional
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError

from .errors import ElementNotFoundError, ExtractionError
from .models import Asset, BoundingBox, ExtractedElement

logger = logging.getLogger(__name__)

# Children deeper than this do not get their own style rule
MAX_STYLE_DEPTH = 10

REGEX_DATA_ATTRS = re.compile(r'\s+data-(?!testid)[a-z0-9-]+="[^"]*"', re.I)
REGEX_EVENT_HANDLERS = re.compile(r'\s+on[a-z]+="[^"]*"', re.I)
REGEX_STYLE_ATTRS = re.compile(r'\s+style="[^"]*"', re.I)
REGEX_EMPTY_CLASS = re.compile(r'\s+class=""')
REGEX_WHITESPACE = re.compile(r"\s+")


EXTRACT_JS = r"""
({ sel, maxDepth }) => {
  const element = document.querySelector(sel);
  if (!element) return null;

  const styles = {};
  const collect = (el, path, depth) => {
    if (depth >= maxDepth) return;
    const computed = window.getComputedStyle(el);
    const rule = {};
    for (let i = 0; i < computed.length; i++) {
      const prop = computed[i];
      rule[prop] = computed.getPropertyValue(prop);
    }
    styles[path] = rule;
    Array.from(el.children).forEach((child, i) => {
      collect(child, path + ' > :nth-child(' + (i + 1) + ')', depth + 1);
    });
  };
  collect(element, sel, 0);

  const rect = element.getBoundingClientRect();
  return {
    html: element.outerHTML,
    styles,
    tagName: element.tagName.toLowerCase(),
    classNames: Array.from(element.classList),
    boundingBox: { x: rect.x, y: rect.y, width: rect.width, height: rect.height },
  };
}
"""

ASSETS_JS = r"""
(sel) => {
  const element = document.querySelector(sel);
  if (!element) return [];
  const found = [];
  const resolve = (url) => {
    if (url.startsWith('data:')) return url;
    try {
      return new URL(url, document.baseURI).href;
    } catch (e) {
      return url;
    }
  };
  const visit = (el) => {
    if (el instanceof HTMLImageElement && el.src) {
      found.push({ type: 'image', url: resolve(el.currentSrc || el.src) });
    }
    if (el instanceof SVGUseElement) {
      const href = el.getAttribute('href') || el.getAttribute('xlink:href');
      if (href && !href.startsWith('#')) found.push({ type: 'icon', url: resolve(href) });
    }
    const bg = window.getComputedStyle(el).backgroundImage;
    if (bg && bg !== 'none') {
      const match = bg.match(/url\(["']?([^"')]+)["']?\)/);
      if (match && match[1] && !match[1].startsWith('data:')) {
        found.push({ type: 'background', url: resolve(match[1]) });
      }
    }
    Array.from(el.children).forEach(visit);
  };
  visit(element);
  return found;
}
"""


class StyleReducer:
    """
    Shrinks raw computed styles into readable CSS.

    Drops browser default values and vendor-prefixed properties; optionally
    folds four margin/padding longhands into one shorthand.
    """

    BROWSER_DEFAULTS: Dict[str, set] = {
        "position": {"static"},
        "visibility": {"visible"},
        "float": {"none"},
        "clear": {"none"},
        "opacity": {"1"},
        "z-index": {"auto"},
        "transform": {"none"},
        "filter": {"none"},
        "box-shadow": {"none"},
        "text-shadow": {"none"},
        "text-decoration-line": {"none"},
        "text-transform": {"none"},
        "text-indent": {"0px"},
        "letter-spacing": {"normal"},
        "word-spacing": {"0px"},
        "white-space": {"normal"},
        "vertical-align": {"baseline"},
        "overflow": {"visible"},
        "overflow-x": {"visible"},
        "overflow-y": {"visible"},
        "cursor": {"auto"},
        "pointer-events": {"auto"},
        "outline-style": {"none"},
        "outline-width": {"0px"},
        "background-image": {"none"},
        "background-color": {"rgba(0, 0, 0, 0)", "transparent"},
        "border-top-style": {"none"},
        "border-right-style": {"none"},
        "border-bottom-style": {"none"},
        "border-left-style": {"none"},
        "border-top-width": {"0px"},
        "border-right-width": {"0px"},
        "border-bottom-width": {"0px"},
        "border-left-width": {"0px"},
        "max-width": {"none"},
        "max-height": {"none"},
        "min-width": {"0px", "auto"},
        "min-height": {"0px", "auto"},
        "flex-grow": {"0"},
        "flex-shrink": {"1"},
        "flex-basis": {"auto"},
        "order": {"0"},
        "animation-name": {"none"},
        "transition-property": {"all"},
        "transition-duration": {"0s"},
        "content": {"normal", "none"},
        "direction": {"ltr"},
        "unicode-bidi": {"normal"},
    }

    SHORTHANDS = ("margin", "padding")
    SIDES = ("top", "right", "bottom", "left")

    def __init__(self, use_shorthand: bool = False):
        self.use_shorthand = use_shorthand

    def is_default(self, prop: str, value: str) -> bool:
        return value.strip() in self.BROWSER_DEFAULTS.get(prop, ())

    def reduce_rule(self, declarations: Dict[str, str]) -> Dict[str, str]:
        kept = {
            prop: str(value).strip()
            for prop, value in declarations.items()
            if not prop.startswith("-")
            and str(value).strip()
            and not self.is_default(prop, str(value))
        }
        if self.use_shorthand:
            for name in self.SHORTHANDS:
                longhands = [f"{name}-{side}" for side in self.SIDES]
                if all(lh in kept for lh in longhands):
                    kept[name] = " ".join(kept.pop(lh) for lh in longhands)
        return kept

    def reduce(self, styles: Dict[str, Dict[str, str]]) -> str:
        rules = []
        for selector, declarations in styles.items():
            kept = self.reduce_rule(declarations)
            if not kept:
                continue
            body = "\n".join(f"  {prop}: {value};" for prop, value in kept.items())
            rules.append(f"{selector} {{\n{body}\n}}")
        return "\n\n".join(rules)


def clean_html(html: str) -> str:
    html = REGEX_DATA_ATTRS.sub("", html)
    html = REGEX_EVENT_HANDLERS.sub("", html)
    html = REGEX_STYLE_ATTRS.sub("", html)
    html = REGEX_EMPTY_CLASS.sub("", html)
    return REGEX_WHITESPACE.sub(" ", html).strip()


def extract_filename(url: str, default_ext: str = "png") -> str:
    if url.startswith("data:"):
        mime = re.match(r"data:([^;,]+)", url)
        ext = mime.group(1).split("/")[-1].split("+")[0] if mime else "bin"
        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:10]
        return f"asset-{digest}.{ext}"
    name = urlparse(url).path.rstrip("/").split("/")[-1] or "asset"
    if "." not in name:
        name = f"{name}.{default_ext}"
    return name


async def resolve_assets(page, selector: str) -> List[Asset]:
    """Images, external SVG icons and background images under ``selector``."""
    found = await page.evaluate(ASSETS_JS, selector)
    assets: List[Asset] = []
    seen = set()
    for item in found or []:
        if item["url"] in seen:
            continue
        seen.add(item["url"])
        assets.append(Asset(type=item["type"], url=item["url"], filename=extract_filename(item["url"])))
    return assets


async def extract_element(page, selector: str, reducer: Optional[StyleReducer] = None) -> ExtractedElement:
    try:
        raw = await page.evaluate(EXTRACT_JS, {"sel": selector, "maxDepth": MAX_STYLE_DEPTH})
    except PlaywrightError as e:
        raise ExtractionError(f"Failed to extract element \"{selector}\": {e}", cause=e)
    if raw is None:
        raise ElementNotFoundError(selector)

    reducer = reducer or StyleReducer()
    css = reducer.reduce(raw.get("styles") or {})
    html = clean_html(raw["html"])
    try:
        assets = await resolve_assets(page, selector)
    except PlaywrightError as e:
        logger.warning(f"Asset discovery failed for {selector}: {e}")
        assets = []

    box = raw.get("boundingBox")
    return ExtractedElement(
        html=html,
        css=css,
        tag_name=raw.get("tagName", ""),
        class_names=list(raw.get("classNames") or []),
        assets=assets,
        bounding_box=BoundingBox(**box) if box else None,
        original_size=len(raw["html"].encode("utf-8")),
    )
