"""
Selector Synthesis - unique CSS selectors for DOM nodes

Pure algorithm, no browser required. Works on a ``DomArena`` (nodes stored by
integer index with an explicit parent-index table) and an oracle that counts
how many nodes a candidate selector matches.

Strategy order (first unique match wins):
1. ``#id``
2. ``tag.class1.class2``
3. ``[data-*="value"]``
4. ``[aria-label="value"]``
5. bounded ancestor path with ``:nth-of-type(k)`` disambiguation

Ids, classes and attributes under the reserved tool prefix never appear in a
synthesized selector, so the picker never selects its own UI.

The same algorithm ships as ``SELECTOR_SYNTHESIS_JS`` for the in-page picker.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .constants import RESERVED_PREFIX
from .models import SelectorCandidate

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5
DEFAULT_MAX_CLASS_LENGTH = 30


def css_escape(value: str) -> str:
    """Escape a string for use as a CSS identifier (CSSOM ``CSS.escape``)."""
    out = []
    length = len(value)
    for i, ch in enumerate(value):
        code = ord(ch)
        if code == 0:
            out.append("�")
        elif 0x01 <= code <= 0x1F or code == 0x7F:
            out.append(f"\\{code:x} ")
        elif i == 0 and ch.isdigit() and ch.isascii():
            out.append(f"\\{code:x} ")
        elif i == 1 and ch.isdigit() and ch.isascii() and value[0] == "-":
            out.append(f"\\{code:x} ")
        elif i == 0 and ch == "-" and length == 1:
            out.append("\\-")
        elif code >= 0x80 or ch in "-_" or (ch.isascii() and ch.isalnum()):
            out.append(ch)
        else:
            out.append("\\" + ch)
    return "".join(out)


# =============================================================================
# SELECTOR PARSING (subset emitted by the synthesizer)
# =============================================================================

@dataclass
class Compound:
    tag: Optional[str] = None
    id: Optional[str] = None
    classes: List[str] = field(default_factory=list)
    attributes: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    nth_of_type: Optional[int] = None
    combinator: str = ""  # relation to the previous compound: "" | ">" | " "


def _is_ident_char(ch: str) -> bool:
    return ch in "-_" or ord(ch) >= 0x80 or (ch.isascii() and ch.isalnum())


def _read_escape(s: str, i: int) -> Tuple[str, int]:
    # s[i] is the backslash
    i += 1
    if i >= len(s):
        return "�", i
    hex_digits = ""
    while i < len(s) and len(hex_digits) < 6 and s[i] in "0123456789abcdefABCDEF":
        hex_digits += s[i]
        i += 1
    if hex_digits:
        if i < len(s) and s[i] in " \t\n":
            i += 1
        code = int(hex_digits, 16)
        return (chr(code) if 0 < code <= 0x10FFFF else "�"), i
    return s[i], i + 1


def _read_ident(s: str, i: int) -> Tuple[str, int]:
    out = []
    while i < len(s):
        ch = s[i]
        if ch == "\\":
            decoded, i = _read_escape(s, i)
            out.append(decoded)
        elif _is_ident_char(ch):
            out.append(ch)
            i += 1
        else:
            break
    if not out:
        raise ValueError(f"Expected identifier at position {i} in {s!r}")
    return "".join(out), i


def _read_string(s: str, i: int) -> Tuple[str, int]:
    quote = s[i]
    i += 1
    out = []
    while i < len(s) and s[i] != quote:
        if s[i] == "\\":
            decoded, i = _read_escape(s, i)
            out.append(decoded)
        else:
            out.append(s[i])
            i += 1
    if i >= len(s):
        raise ValueError(f"Unterminated string in {s!r}")
    return "".join(out), i + 1


def parse_selector(selector: str) -> List[Compound]:
    """Parse a selector into compounds joined by child/descendant combinators."""
    s = selector.strip()
    if not s:
        raise ValueError("Empty selector")
    compounds: List[Compound] = []
    current: Optional[Compound] = None
    pending = ""
    i = 0
    while i < len(s):
        ch = s[i]
        if ch in " \t\n>":
            saw_child = False
            while i < len(s) and s[i] in " \t\n>":
                if s[i] == ">":
                    if saw_child:
                        raise ValueError(f"Unexpected '>' in {selector!r}")
                    saw_child = True
                i += 1
            if current is None:
                raise ValueError(f"Selector cannot start with a combinator: {selector!r}")
            compounds.append(current)
            current = None
            pending = ">" if saw_child else " "
            continue
        if current is None:
            current = Compound(combinator=pending)
        if ch == "#":
            current.id, i = _read_ident(s, i + 1)
        elif ch == ".":
            name, i = _read_ident(s, i + 1)
            current.classes.append(name)
        elif ch == "[":
            j = i + 1
            while j < len(s) and s[j] == " ":
                j += 1
            name, j = _read_ident(s, j)
            while j < len(s) and s[j] == " ":
                j += 1
            value = None
            if j < len(s) and s[j] == "=":
                j += 1
                while j < len(s) and s[j] == " ":
                    j += 1
                if j < len(s) and s[j] in "\"'":
                    value, j = _read_string(s, j)
                else:
                    value, j = _read_ident(s, j)
                while j < len(s) and s[j] == " ":
                    j += 1
            if j >= len(s) or s[j] != "]":
                raise ValueError(f"Unclosed attribute selector in {selector!r}")
            current.attributes.append((name.lower(), value))
            i = j + 1
        elif s.startswith(":nth-of-type(", i):
            j = s.index(")", i)
            current.nth_of_type = int(s[i + len(":nth-of-type("):j].strip())
            i = j + 1
        elif ch == "*":
            i += 1
        elif _is_ident_char(ch) or ch == "\\":
            if current.tag or current.id or current.classes or current.attributes:
                raise ValueError(f"Type selector must come first in {selector!r}")
            tag, i = _read_ident(s, i)
            current.tag = tag.lower()
        else:
            raise ValueError(f"Unsupported selector syntax {ch!r} in {selector!r}")
    if current is None:
        raise ValueError(f"Selector cannot end with a combinator: {selector!r}")
    compounds.append(current)
    return compounds


# =============================================================================
# DOM ARENA
# =============================================================================

class DomArena:
    """
    Element tree stored as parallel lists indexed by node id.

    ``parents[i]`` is the index of node ``i``'s parent element, ``-1`` for
    the document root. Children keep document order.
    """

    def __init__(self):
        self.tags: List[str] = []
        self.attributes: List[Dict[str, str]] = []
        self.parents: List[int] = []
        self._children: List[List[int]] = []

    def __len__(self) -> int:
        return len(self.tags)

    def add(self, tag: str, attributes: Optional[Dict[str, str]] = None, parent: int = -1) -> int:
        index = len(self.tags)
        self.tags.append(tag.lower())
        self.attributes.append(dict(attributes or {}))
        self.parents.append(parent)
        self._children.append([])
        if parent >= 0:
            self._children[parent].append(index)
        return index

    @classmethod
    def from_records(cls, records: List[Dict]) -> "DomArena":
        """Build from ``[{"tag", "attrs", "parent"}, ...]`` in document order."""
        arena = cls()
        for rec in records:
            arena.add(rec.get("tag", "div"), rec.get("attrs") or {}, int(rec.get("parent", -1)))
        return arena

    def parent(self, index: int) -> int:
        return self.parents[index]

    def children(self, index: int) -> List[int]:
        return self._children[index]

    def tag(self, index: int) -> str:
        return self.tags[index]

    def node_id(self, index: int) -> str:
        return self.attributes[index].get("id", "")

    def classes(self, index: int) -> List[str]:
        return self.attributes[index].get("class", "").split()

    def same_tag_siblings(self, index: int) -> List[int]:
        parent = self.parents[index]
        if parent < 0:
            return [index]
        tag = self.tags[index]
        return [c for c in self._children[parent] if self.tags[c] == tag]

    def find_tag(self, tag: str) -> int:
        tag = tag.lower()
        for i, t in enumerate(self.tags):
            if t == tag:
                return i
        return -1

    def _matches_compound(self, index: int, compound: Compound) -> bool:
        if compound.tag and self.tags[index] != compound.tag:
            return False
        attrs = self.attributes[index]
        if compound.id is not None and attrs.get("id") != compound.id:
            return False
        if compound.classes:
            own = set(self.classes(index))
            if not all(c in own for c in compound.classes):
                return False
        for name, value in compound.attributes:
            if name not in attrs:
                return False
            if value is not None and attrs[name] != value:
                return False
        if compound.nth_of_type is not None:
            siblings = self.same_tag_siblings(index)
            if siblings.index(index) + 1 != compound.nth_of_type:
                return False
        return True

    def _matches(self, index: int, compounds: List[Compound], k: int) -> bool:
        if not self._matches_compound(index, compounds[k]):
            return False
        if k == 0:
            return True
        parent = self.parents[index]
        if compounds[k].combinator == ">":
            return parent >= 0 and self._matches(parent, compounds, k - 1)
        while parent >= 0:
            if self._matches(parent, compounds, k - 1):
                return True
            parent = self.parents[parent]
        return False

    def query_all(self, selector: str) -> List[int]:
        compounds = parse_selector(selector)
        last = len(compounds) - 1
        return [i for i in range(len(self.tags)) if self._matches(i, compounds, last)]

    def count(self, selector: str) -> int:
        return len(self.query_all(selector))


# =============================================================================
# SYNTHESIZER
# =============================================================================

class SelectorSynthesizer:
    """
    Build a selector intended to match exactly one node.

    Uniqueness is guaranteed for every strategy except the path fallback,
    which stops after ``max_depth`` levels or at ``boundary`` and may return
    a selector that still matches more than one node.
    """

    def __init__(
        self,
        arena: DomArena,
        count: Optional[Callable[[str], int]] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        boundary: Optional[int] = None,
        max_class_length: int = DEFAULT_MAX_CLASS_LENGTH,
        reserved_prefix: str = RESERVED_PREFIX,
    ):
        self.arena = arena
        self.count = count or arena.count
        self.max_depth = max_depth
        self.boundary = arena.find_tag("body") if boundary is None else boundary
        self.max_class_length = max_class_length
        self.reserved_prefix = reserved_prefix

    def is_internal(self, name: str) -> bool:
        return self.reserved_prefix in name

    def _candidate(self, strategy: str, value: str) -> SelectorCandidate:
        unique = not self.is_internal(value) and self.count(value) == 1
        return SelectorCandidate(strategy=strategy, value=value, is_unique=unique)

    def candidates(self, index: int) -> Iterator[SelectorCandidate]:
        """Yield attribute-based candidates in strategy order (lazy, so the caller can stop early)."""
        arena = self.arena
        tag = arena.tag(index)
        attrs = arena.attributes[index]

        node_id = arena.node_id(index)
        if node_id and not self.is_internal(node_id):
            yield self._candidate("id", "#" + css_escape(node_id))

        classes = [c for c in arena.classes(index) if not self.is_internal(c)]
        if classes:
            yield self._candidate("class", tag + "".join("." + css_escape(c) for c in classes))

        for name, value in attrs.items():
            if name.startswith("data-") and value and not self.is_internal(name):
                yield self._candidate("data-attr", f'[{css_escape(name)}="{css_escape(value)}"]')

        aria_label = attrs.get("aria-label")
        if aria_label:
            yield self._candidate("aria-label", f'[aria-label="{css_escape(aria_label)}"]')

    def _safe_class(self, index: int) -> Optional[str]:
        for c in self.arena.classes(index):
            if not self.is_internal(c) and len(c) < self.max_class_length:
                return c
        return None

    def build_path(self, index: int) -> str:
        arena = self.arena
        path: List[str] = []
        current = index
        while current >= 0 and current != self.boundary and len(path) < self.max_depth:
            part = arena.tag(current)
            safe = self._safe_class(current)
            if safe:
                part += "." + css_escape(safe)

            partial = " > ".join([part] + path)
            if self.count(partial) == 1:
                return partial

            siblings = arena.same_tag_siblings(current)
            if len(siblings) > 1:
                part += f":nth-of-type({siblings.index(current) + 1})"

            path.insert(0, part)
            current = arena.parent(current)

        if not path:
            return arena.tag(index)
        return " > ".join(path)

    def synthesize(self, index: int) -> str:
        for candidate in self.candidates(index):
            logger.debug(f"selector candidate {candidate.strategy}: {candidate.value} unique={candidate.is_unique}")
            if candidate.is_unique:
                return candidate.value
        return self.build_path(index)


def synthesize_selector(arena: DomArena, index: int, **options) -> str:
    return SelectorSynthesizer(arena, **options).synthesize(index)


# Same algorithm for the browser; evaluated inside the picker agent.
# Defines ``synthesizeSelector(el, opts)`` with opts {reservedPrefix, maxDepth, maxClassLength}.
SELECTOR_SYNTHESIS_JS = r"""
const synthesizeSelector = (el, opts) => {
  const isInternal = (name) => name.indexOf(opts.reservedPrefix) !== -1;
  const count = (sel) => {
    try {
      return document.querySelectorAll(sel).length;
    } catch (e) {
      return 0;
    }
  };
  const unique = (sel) => !isInternal(sel) && count(sel) === 1;
  const tag = el.tagName.toLowerCase();

  if (el.id && !isInternal(el.id)) {
    const idSel = '#' + CSS.escape(el.id);
    if (unique(idSel)) return idSel;
  }

  const classes = Array.from(el.classList).filter((c) => !isInternal(c));
  if (classes.length > 0) {
    const classSel = tag + classes.map((c) => '.' + CSS.escape(c)).join('');
    if (unique(classSel)) return classSel;
  }

  for (const attr of Array.from(el.attributes)) {
    if (attr.name.startsWith('data-') && attr.value && !isInternal(attr.name)) {
      const dataSel = '[' + CSS.escape(attr.name) + '="' + CSS.escape(attr.value) + '"]';
      if (unique(dataSel)) return dataSel;
    }
  }

  const ariaLabel = el.getAttribute('aria-label');
  if (ariaLabel) {
    const ariaSel = '[aria-label="' + CSS.escape(ariaLabel) + '"]';
    if (unique(ariaSel)) return ariaSel;
  }

  const path = [];
  let current = el;
  while (current && current !== document.body && path.length < opts.maxDepth) {
    let part = current.tagName.toLowerCase();
    const safe = Array.from(current.classList).find(
      (c) => !isInternal(c) && c.length < opts.maxClassLength
    );
    if (safe) part += '.' + CSS.escape(safe);

    const partial = [part].concat(path).join(' > ');
    if (count(partial) === 1) return partial;

    const parent = current.parentElement;
    if (parent) {
      const siblings = Array.from(parent.children).filter((c) => c.tagName === current.tagName);
      if (siblings.length > 1) part += ':nth-of-type(' + (siblings.indexOf(current) + 1) + ')';
    }
    path.unshift(part);
    current = current.parentElement;
  }
  return path.length ? path.join(' > ') : tag;
};
"""
