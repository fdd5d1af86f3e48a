"""
Interactive Element Picker

One-shot request/response channel between this process (host) and a
transient agent injected into the page:

1. host exposes a single callback binding on the page
2. host injects the agent (overlay, tooltip, banner, event handlers)
3. the agent reports exactly one selection, or the empty-selector sentinel
   when the user presses Escape, then tears itself down
4. host resolves a future with the first report; later reports are ignored

Usage:
    picker = InteractivePicker(page)
    selection = await picker.run()      # PickerCancelledError on Escape
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError

from .constants import RESERVED_PREFIX
from .errors import PickerCancelledError, PickerTimeoutError
from .models import PickerSelection
from .selector_synthesis import (
    DEFAULT_MAX_CLASS_LENGTH,
    DEFAULT_MAX_DEPTH,
    SELECTOR_SYNTHESIS_JS,
)

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 16
DEFAULT_PREVIEW_LENGTH = 50


# Agent state lives on a PickerSession object created per injection, so two
# pickers on different pages never share hover state or timers.
PICKER_AGENT_JS = "(opts) => {\n" + SELECTOR_SYNTHESIS_JS + r"""
  const prefix = opts.reservedPrefix;

  class PickerSession {
    constructor() {
      this.hovered = null;
      this.debounceTimer = null;
      this.active = true;

      this.overlay = this.inject('div', prefix + '-overlay',
        'position:fixed;pointer-events:none;border:2px solid #3b82f6;' +
        'background:rgba(59,130,246,0.1);z-index:2147483646;display:none;');
      this.tooltip = this.inject('div', prefix + '-tooltip',
        'position:fixed;pointer-events:none;background:#1f2937;color:#f9fafb;' +
        'padding:8px 12px;border-radius:6px;font:12px ui-monospace,monospace;' +
        'max-width:400px;z-index:2147483647;display:none;word-break:break-all;');
      this.banner = this.inject('div', prefix + '-banner',
        'position:fixed;top:0;left:0;right:0;padding:12px 20px;text-align:center;' +
        'background:linear-gradient(135deg,#3b82f6,#8b5cf6);color:#fff;' +
        'font:14px system-ui,sans-serif;z-index:2147483647;');
      this.banner.textContent = 'Element picker active: hover to highlight, click to select, Esc to cancel';

      this.onMove = this.onMove.bind(this);
      this.onClick = this.onClick.bind(this);
      this.onKey = this.onKey.bind(this);
      document.addEventListener('mousemove', this.onMove, true);
      document.addEventListener('click', this.onClick, true);
      document.addEventListener('keydown', this.onKey, true);
      window[opts.binding + '_teardown'] = () => this.teardown();
    }

    inject(tag, id, css) {
      const el = document.createElement(tag);
      el.id = id;
      el.style.cssText = css;
      document.body.appendChild(el);
      return el;
    }

    isOwn(target) {
      return !(target instanceof Element) || (target.id && target.id.indexOf(prefix) !== -1);
    }

    onMove(e) {
      const target = e.target;
      if (!this.active || this.isOwn(target) || target === this.hovered) return;
      this.hovered = target;

      const rect = target.getBoundingClientRect();
      const o = this.overlay.style;
      o.display = 'block';
      o.top = rect.top + 'px';
      o.left = rect.left + 'px';
      o.width = rect.width + 'px';
      o.height = rect.height + 'px';

      // Pending recomputation for the previous target is dropped, not queued
      if (this.debounceTimer !== null) clearTimeout(this.debounceTimer);
      this.debounceTimer = setTimeout(() => {
        this.debounceTimer = null;
        if (!this.active || this.hovered !== target) return;
        this.showTooltip(target, rect, synthesizeSelector(target, opts));
      }, opts.debounceMs);
    }

    showTooltip(target, rect, selector) {
      this.tooltip.textContent = '<' + target.tagName.toLowerCase() + '> ' + selector;
      const t = this.tooltip.style;
      t.display = 'block';
      t.top = (rect.top > 70 ? rect.top - 68 : rect.bottom + 8) + 'px';
      t.left = Math.max(10, Math.min(rect.left, window.innerWidth - 420)) + 'px';
    }

    preview(target) {
      const text = (target.textContent || '').trim();
      if (text.length > opts.previewLength) return text.slice(0, opts.previewLength) + '...';
      return text;
    }

    onClick(e) {
      const target = e.target;
      if (!this.active || this.isOwn(target)) return;
      e.preventDefault();
      e.stopPropagation();
      try {
        // Fresh computation; the debounced tooltip value may be stale
        this.send({
          selector: synthesizeSelector(target, opts),
          tagName: target.tagName.toLowerCase(),
          textPreview: this.preview(target),
        });
      } catch (err) {
        this.send({ selector: '', tagName: '', textPreview: '', error: String(err) });
      } finally {
        this.teardown();
      }
    }

    onKey(e) {
      if (!this.active || e.key !== 'Escape') return;
      e.preventDefault();
      try {
        this.send({ selector: '', tagName: '', textPreview: '' });
      } finally {
        this.teardown();
      }
    }

    send(payload) {
      Promise.resolve(window[opts.binding](payload)).catch(() => {});
    }

    teardown() {
      this.active = false;
      if (this.debounceTimer !== null) clearTimeout(this.debounceTimer);
      this.debounceTimer = null;
      this.hovered = null;
      document.removeEventListener('mousemove', this.onMove, true);
      document.removeEventListener('click', this.onClick, true);
      document.removeEventListener('keydown', this.onKey, true);
      delete window[opts.binding + '_teardown'];
      this.overlay.remove();
      this.tooltip.remove();
      this.banner.remove();
    }
  }

  new PickerSession();
}
"""

TEARDOWN_JS = "(binding) => { const stop = window[binding + '_teardown']; if (stop) stop(); }"


class InteractivePicker:
    """
    Host side of the picker protocol.

    One instance serves one invocation: ``run()`` may be awaited once.
    """

    def __init__(
        self,
        page,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_class_length: int = DEFAULT_MAX_CLASS_LENGTH,
        preview_length: int = DEFAULT_PREVIEW_LENGTH,
        reserved_prefix: str = RESERVED_PREFIX,
        timeout: Optional[float] = None,
    ):
        self.page = page
        self.debounce_ms = debounce_ms
        self.max_depth = max_depth
        self.max_class_length = max_class_length
        self.preview_length = preview_length
        self.reserved_prefix = reserved_prefix
        self.timeout = timeout
        self.binding_name = f"{reserved_prefix}Select_{uuid.uuid4().hex[:8]}"
        self._selection: Optional[asyncio.Future] = None

    def agent_options(self) -> Dict[str, Any]:
        return {
            "binding": self.binding_name,
            "reservedPrefix": self.reserved_prefix,
            "debounceMs": self.debounce_ms,
            "maxDepth": self.max_depth,
            "maxClassLength": self.max_class_length,
            "previewLength": self.preview_length,
        }

    def handle_selection(self, payload: Any) -> None:
        """Binding callback. Only the first call resolves the pending future."""
        if self._selection is None or self._selection.done():
            logger.debug(f"Ignoring extra picker message: {payload!r}")
            return
        if isinstance(payload, dict) and payload.get("error"):
            logger.warning(f"Picker agent failed while building selector: {payload['error']}")
        self._selection.set_result(PickerSelection.from_payload(payload))

    async def teardown_agent(self) -> None:
        """Remove the agent's overlay and listeners from the page."""
        try:
            await self.page.evaluate(TEARDOWN_JS, self.binding_name)
        except PlaywrightError as e:
            logger.debug(f"Picker teardown failed: {e}")

    async def run(self) -> PickerSelection:
        if self._selection is not None:
            raise RuntimeError("InteractivePicker.run() can only be awaited once")
        self._selection = asyncio.get_running_loop().create_future()

        await self.page.expose_function(self.binding_name, self.handle_selection)
        await self.page.evaluate(PICKER_AGENT_JS, self.agent_options())
        logger.info("🎯 Picker active - hover to highlight, click to select, Esc to cancel")

        if self.timeout:
            try:
                selection = await asyncio.wait_for(self._selection, self.timeout)
            except asyncio.TimeoutError:
                await self.teardown_agent()
                raise PickerTimeoutError(self.timeout)
        else:
            selection = await self._selection

        if selection.is_cancelled:
            raise PickerCancelledError()

        logger.debug(f"Picked <{selection.tag_name}> {selection.selector} \"{selection.text_preview}\"")
        return selection


async def launch_picker(page, **options) -> PickerSelection:
    """Run one picker session on ``page`` and return the selection."""
    return await InteractivePicker(page, **options).run()
