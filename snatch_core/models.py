"""
Data model shared by the pipeline, its capabilities and the batch runner.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LocateMode(str, Enum):
    SELECTOR = "selector"
    QUERY = "query"
    INTERACTIVE = "interactive"


@dataclass
class ExtractionJob:
    """One request to extract and transform a single page element"""
    url: str
    selector: Optional[str] = None
    find: Optional[str] = None
    interactive: bool = False
    framework: str = "react"
    styling: str = "tailwind"
    output_dir: str = "./components"
    component_name: Optional[str] = None
    include_assets: bool = False
    verbose: bool = False

    def locate_modes(self) -> List[LocateMode]:
        modes = []
        if self.selector:
            modes.append(LocateMode.SELECTOR)
        if self.find:
            modes.append(LocateMode.QUERY)
        if self.interactive:
            modes.append(LocateMode.INTERACTIVE)
        return modes


@dataclass
class PipelineTiming:
    """Per-stage durations in milliseconds"""
    browse: float = 0.0
    locate: float = 0.0
    extract: float = 0.0
    transform: float = 0.0
    write: float = 0.0
    total: float = 0.0

    def stage_sum(self) -> float:
        return self.browse + self.locate + self.extract + self.transform + self.write

    def to_dict(self) -> Dict[str, int]:
        return {
            "browse": round(self.browse),
            "locate": round(self.locate),
            "extract": round(self.extract),
            "transform": round(self.transform),
            "write": round(self.write),
            "total": round(self.total),
        }


@dataclass
class SelectorCandidate:
    strategy: str  # id | class | data-attr | aria-label | path
    value: str
    is_unique: bool


@dataclass
class PickerSelection:
    """Selection reported by the in-page picker; empty selector means cancelled"""
    selector: str
    tag_name: str = ""
    text_preview: str = ""

    @property
    def is_cancelled(self) -> bool:
        return self.selector == ""

    @classmethod
    def from_payload(cls, payload: Any) -> "PickerSelection":
        if not isinstance(payload, dict):
            return cls(selector="")
        return cls(
            selector=str(payload.get("selector") or ""),
            tag_name=str(payload.get("tagName") or ""),
            text_preview=str(payload.get("textPreview") or ""),
        )


@dataclass
class AccessibilityNode:
    ref: str
    role: str
    name: str = ""
    children: List["AccessibilityNode"] = field(default_factory=list)
    node_index: Optional[int] = None


@dataclass
class PageSnapshot:
    url: str
    title: str
    tree: List[AccessibilityNode]
    timestamp: float
    dom: Any = None


@dataclass
class LocateResult:
    ref: Optional[str]
    confidence: float = 0.0
    reasoning: str = ""


@dataclass
class Asset:
    type: str  # image | font | icon | background
    url: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None


@dataclass
class BoundingBox:
    x: float
    y: float
    width: float
    height: float


@dataclass
class ExtractedElement:
    html: str
    css: str
    tag_name: str
    class_names: List[str] = field(default_factory=list)
    assets: List[Asset] = field(default_factory=list)
    bounding_box: Optional[BoundingBox] = None
    original_size: int = 0


@dataclass
class TokenUsage:
    input: int
    output: int

    @property
    def total(self) -> int:
        return self.input + self.output


@dataclass
class TransformRequest:
    html: str
    css: str
    framework: str
    styling: str
    component_name: str
    instructions: Optional[str] = None


@dataclass
class TransformResult:
    code: str
    filename: str
    styles: Optional[str] = None
    props_interface: Optional[str] = None
    tokens: Optional[TokenUsage] = None


@dataclass
class WrittenFile:
    path: str
    type: str  # component | styles | types | index
    size: int


@dataclass
class DownloadedAsset:
    original_url: str
    local_path: str
    size: int


@dataclass
class OutputResult:
    files: List[WrittenFile]
    assets: List[DownloadedAsset]
    import_path: str


@dataclass(frozen=True)
class PipelineOutcome:
    """Result of one job; built once after the last stage ran"""
    success: bool
    timing: PipelineTiming
    output: Optional[OutputResult] = None
    error: Optional[Exception] = None
    component_name: Optional[str] = None


@dataclass
class BatchJobResult:
    name: str
    success: bool
    error: Optional[str] = None
    result: Optional[PipelineOutcome] = None


@dataclass
class BatchResult:
    total: int
    succeeded: int
    failed: int
    results: List[BatchJobResult]
    total_time: float
