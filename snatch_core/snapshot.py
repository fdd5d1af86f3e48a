"""
Page Snapshot - accessibility-style tree with semantic refs

A single in-page walk returns two views of the document:

- ``records``: every element as ``{tag, attrs, parent}`` in document order,
  loaded into a ``DomArena`` for selector synthesis
- ``tree``: a compact role/name tree for the LLM, each node pointing back at
  its arena index

Refs look like ``@e0``, ``@e0.1``, ``@e0.1.2`` (child positions from the root).
"""

import logging
import time
from typing import Any, Dict, List, Optional

from .constants import RESERVED_PREFIX
from .models import AccessibilityNode, PageSnapshot
from .selector_synthesis import DomArena, SelectorSynthesizer

logger = logging.getLogger(__name__)


CAPTURE_JS = r"""
(opts) => {
  const SKIP = new Set(['script', 'style', 'noscript', 'template', 'meta', 'link', 'head', 'title']);
  const ROLES = {
    a: 'link', button: 'button', nav: 'navigation', main: 'main', header: 'banner',
    footer: 'contentinfo', aside: 'complementary', form: 'form', section: 'region',
    article: 'article', ul: 'list', ol: 'list', li: 'listitem', table: 'table',
    tr: 'row', td: 'cell', th: 'columnheader', img: 'img', select: 'combobox',
    textarea: 'textbox', dialog: 'dialog', h1: 'heading', h2: 'heading', h3: 'heading',
    h4: 'heading', h5: 'heading', h6: 'heading', p: 'paragraph', label: 'label',
    figure: 'figure', svg: 'img', video: 'video', iframe: 'document',
  };
  const INPUT_ROLES = {
    checkbox: 'checkbox', radio: 'radio', button: 'button', submit: 'button',
    range: 'slider', search: 'searchbox',
  };
  const NAMED_FROM_TEXT = new Set(['link', 'button', 'heading', 'listitem', 'cell',
    'columnheader', 'label', 'paragraph', 'option', 'tab', 'menuitem']);

  const records = [];
  const indexOf = new Map();

  const roleOf = (el, tag) => {
    const explicit = el.getAttribute('role');
    if (explicit) return explicit.split(' ')[0];
    if (tag === 'input') return INPUT_ROLES[(el.getAttribute('type') || 'text').toLowerCase()] || 'textbox';
    return ROLES[tag] || '';
  };

  const nameOf = (el, role) => {
    const direct = el.getAttribute('aria-label') || el.getAttribute('alt') ||
      el.getAttribute('title') || el.getAttribute('placeholder');
    if (direct) return direct.trim();
    if (NAMED_FROM_TEXT.has(role)) {
      const text = (el.textContent || '').replace(/\s+/g, ' ').trim();
      return text.length > opts.maxNameLength ? text.slice(0, opts.maxNameLength) + '...' : text;
    }
    return '';
  };

  const isHidden = (el) => {
    if (el.hidden || el.getAttribute('aria-hidden') === 'true') return true;
    const style = window.getComputedStyle(el);
    return style.display === 'none' || style.visibility === 'hidden';
  };

  const isInternal = (el) => !!(el.id && el.id.indexOf(opts.reservedPrefix) !== -1);

  const visit = (el, parentIndex) => {
    const tag = el.tagName.toLowerCase();
    const attrs = {};
    for (const attr of Array.from(el.attributes)) attrs[attr.name] = attr.value;
    const index = records.length;
    records.push({ tag, attrs, parent: parentIndex });
    indexOf.set(el, index);
    for (const child of Array.from(el.children)) visit(child, index);
  };
  visit(document.documentElement, -1);

  const build = (el) => {
    const tag = el.tagName.toLowerCase();
    if (SKIP.has(tag) || isInternal(el) || isHidden(el)) return [];
    const children = [];
    for (const child of Array.from(el.children)) children.push(...build(child));
    const role = roleOf(el, tag);
    const name = role ? nameOf(el, role) : '';
    if (!role && !el.getAttribute('aria-label')) return children;
    return [{ role: role || 'generic', name, index: indexOf.get(el), children }];
  };

  let tree = [];
  if (document.body) {
    const children = Array.from(document.body.children).flatMap(build);
    if (children.length) {
      tree = [{ role: 'document', name: document.title || '', index: indexOf.get(document.body), children }];
    }
  }
  return { records, tree };
}
"""


def build_tree(raw: List[Dict[str, Any]], parent_ref: str = "") -> List[AccessibilityNode]:
    """Assign refs to the raw captured tree (``@e<i>`` at root, ``<parent>.<i>`` below)."""
    nodes = []
    for i, item in enumerate(raw or []):
        ref = f"{parent_ref}.{i}" if parent_ref else f"@e{i}"
        nodes.append(AccessibilityNode(
            ref=ref,
            role=item.get("role") or "unknown",
            name=item.get("name") or "",
            children=build_tree(item.get("children") or [], ref),
            node_index=item.get("index"),
        ))
    return nodes


def find_node(tree: List[AccessibilityNode], ref: str) -> Optional[AccessibilityNode]:
    """Look up a node by ref, ``None`` when the ref is malformed or out of range."""
    ref = (ref or "").strip()
    if not ref.startswith("@e"):
        return None
    try:
        path = [int(p) for p in ref[2:].split(".")]
    except ValueError:
        return None

    level = tree
    node = None
    for position in path:
        if position < 0 or position >= len(level):
            return None
        node = level[position]
        level = node.children
    return node


async def capture_page(page, reserved_prefix: str = RESERVED_PREFIX, max_name_length: int = 80) -> Dict[str, Any]:
    return await page.evaluate(CAPTURE_JS, {"reservedPrefix": reserved_prefix, "maxNameLength": max_name_length})


async def create_snapshot(page) -> PageSnapshot:
    """Capture the current page as a ``PageSnapshot`` (tree may be empty)."""
    captured = await capture_page(page)
    arena = DomArena.from_records(captured.get("records") or [])
    tree = build_tree(captured.get("tree") or [])
    logger.debug(f"📸 Snapshot: {len(arena)} elements, {count_nodes(tree)} tree nodes")
    return PageSnapshot(
        url=page.url,
        title=await page.title(),
        tree=tree,
        timestamp=time.time(),
        dom=arena,
    )


async def resolve_ref_to_selector(page, ref: str, snapshot: Optional[PageSnapshot] = None) -> Optional[str]:
    """
    Turn a tree ref into a CSS selector for the element it points at.

    Re-captures the page unless a snapshot is given, so the selector reflects
    the DOM as it is now. Returns ``None`` for unknown refs.
    """
    if snapshot is None or snapshot.dom is None:
        snapshot = await create_snapshot(page)

    node = find_node(snapshot.tree, ref)
    if node is None or node.node_index is None:
        logger.debug(f"Ref {ref} not present in snapshot")
        return None

    arena: DomArena = snapshot.dom
    selector = SelectorSynthesizer(arena).synthesize(node.node_index)
    logger.debug(f"Resolved {ref} [{node.role}] -> {selector}")
    return selector


def count_nodes(tree: List[AccessibilityNode]) -> int:
    return sum(1 + count_nodes(n.children) for n in tree)


def format_tree_for_llm(tree: List[AccessibilityNode], indent: int = 0) -> str:
    """Render the tree as indented ``@ref [role] "name"`` lines."""
    spaces = "  " * indent
    output = ""
    for node in tree:
        output += f'{spaces}{node.ref} [{node.role}] "{node.name}"\n'
        if node.children:
            output += format_tree_for_llm(node.children, indent + 1)
    return output
