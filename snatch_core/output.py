"""
Output - writes generated components, keeps the barrel index and downloads assets.

Layout under the output directory:

    components/
      index.ts                  # barrel: export * from './<Name>/index.js';
      PricingCard/
        PricingCard.tsx
        PricingCard.module.css  # when styles are separate
        types.ts                # when a props interface was generated
        index.ts
        assets/                 # when assets were downloaded
"""

import asyncio
import base64
import logging
import os
import re
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import unquote_to_bytes

import aiohttp

from .diagnostics import format_bytes
from .errors import OutputError, ValidationError
from .extractor import extract_filename
from .models import Asset, DownloadedAsset, OutputResult, TransformResult, WrittenFile

logger = logging.getLogger(__name__)

BARREL_HEADER = """/**
 * Auto-generated barrel export
 * Do not edit manually - managed by snatch
 */
"""

EXPORT_LINE = re.compile(r"^export \* from '\./([^/]+)/index\.js';$")

DEFAULT_ASSET_SIZE_LIMITS: Dict[str, int] = {
    "image": 10 * 1024 * 1024,
    "icon": 1 * 1024 * 1024,
    "font": 5 * 1024 * 1024,
    "background": 10 * 1024 * 1024,
}

VALID_DATA_URL_MIME_PREFIXES = (
    "image/",
    "font/",
    "application/font",
    "application/x-font",
    "application/octet-stream",
)

DOWNLOAD_TIMEOUT = 30

SAFE_COMPONENT_DIR = re.compile(r"^[A-Za-z0-9_-]+$")


def _export_line(name: str) -> str:
    return f"export * from './{name}/index.js';"


def read_barrel(index_path: Path) -> List[str]:
    try:
        lines = index_path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return []
    return [m.group(1) for m in (EXPORT_LINE.match(line.strip()) for line in lines) if m]


def write_barrel(index_path: Path, names: List[str]) -> None:
    exports = "\n".join(_export_line(n) for n in sorted(set(names)))
    index_path.write_text(f"{BARREL_HEADER}\n{exports}\n" if exports else f"{BARREL_HEADER}\n", encoding="utf-8")


class OutputWriter:
    """Writes one component directory per component name"""

    def __init__(self, base_dir: str = "./components", create_index: bool = True):
        self.base_dir = Path(base_dir)
        self.create_index = create_index

    def _write(self, path: Path, content: str, file_type: str) -> WrittenFile:
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise OutputError(str(path), cause=e)
        return WrittenFile(path=str(path), type=file_type, size=len(content.encode("utf-8")))

    def component_index(self, component_name: str, result: TransformResult) -> str:
        stem = Path(result.filename).stem
        lines = [f"export {{ {component_name} }} from './{stem}.js';"]
        if result.props_interface:
            lines.append(f"export type {{ {component_name}Props }} from './types.js';")
        return "\n".join(lines) + "\n"

    def write(self, component_name: str, result: TransformResult) -> OutputResult:
        component_dir = self.base_dir / component_name
        try:
            component_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(str(component_dir), f"Cannot create output directory {component_dir}: {e}", e)

        files = [self._write(component_dir / result.filename, result.code, "component")]

        if result.styles:
            styles_name = re.sub(r"\.(tsx?|jsx?|vue|svelte|html)$", ".module.css", result.filename)
            files.append(self._write(component_dir / styles_name, result.styles, "styles"))

        if result.props_interface:
            files.append(self._write(component_dir / "types.ts", result.props_interface, "types"))

        files.append(self._write(component_dir / "index.ts", self.component_index(component_name, result), "index"))

        if self.create_index:
            self.update_barrel(component_name)

        for f in files:
            logger.debug(f"📝 {f.path} ({format_bytes(f.size)})")

        return OutputResult(files=files, assets=[], import_path=f"./{os.path.relpath(component_dir)}")

    def update_barrel(self, component_name: str) -> None:
        index_path = self.base_dir / "index.ts"
        names = read_barrel(index_path)
        if component_name in names:
            return
        try:
            write_barrel(index_path, names + [component_name])
        except OSError as e:
            raise OutputError(str(index_path), cause=e)


def list_components(base_dir: str) -> List[Dict]:
    """Component directories under ``base_dir`` with their file names."""
    root = Path(base_dir)
    if not root.is_dir():
        return []
    exported = set(read_barrel(root / "index.ts"))
    components = []
    for entry in sorted(root.iterdir()):
        if entry.is_dir() and (entry / "index.ts").exists():
            components.append({
                "name": entry.name,
                "path": str(entry),
                "files": sorted(p.name for p in entry.iterdir() if p.is_file()),
                "exported": entry.name in exported,
            })
    return components


def remove_component(base_dir: str, name: str) -> bool:
    """Delete a component directory and its barrel entry. False when it did not exist."""
    if not SAFE_COMPONENT_DIR.match(name or ""):
        raise ValidationError("name", f"Invalid component name: {name!r}")

    root = Path(base_dir)
    component_dir = root / name
    index_path = root / "index.ts"
    names = read_barrel(index_path)
    existed = component_dir.is_dir() or name in names

    try:
        if component_dir.is_dir():
            shutil.rmtree(component_dir)
        if name in names:
            write_barrel(index_path, [n for n in names if n != name])
    except OSError as e:
        raise OutputError(str(component_dir), f"Failed to remove {component_dir}: {e}", e)

    return existed


# =============================================================================
# ASSETS
# =============================================================================

class AssetSizeExceededError(Exception):
    def __init__(self, url: str, size: int, limit: int, asset_type: str):
        super().__init__(
            f"Asset exceeds size limit: {url} is {format_bytes(size)} "
            f"but limit for {asset_type} is {format_bytes(limit)}"
        )
        self.url = url
        self.size = size
        self.limit = limit


def sanitize_filename(filename: str) -> str:
    return re.sub(r"-+", "-", re.sub(r"[^a-zA-Z0-9.-]", "-", filename)).lower()


def atomic_write(target: Path, data: bytes) -> Path:
    """Write via a temp file and rename; an existing target gets a random suffix."""
    final = target
    if target.exists():
        final = target.with_name(f"{target.stem}-{uuid.uuid4().hex[:8]}{target.suffix}")
    tmp = target.with_name(f".tmp-{uuid.uuid4().hex}")
    tmp.write_bytes(data)
    os.replace(tmp, final)
    return final


def decode_data_url(url: str) -> bytes:
    header, _, payload = url.partition(",")
    mime = header[5:].split(";")[0].lower()
    if not mime or not mime.startswith(VALID_DATA_URL_MIME_PREFIXES):
        raise ValueError("missing or unsupported mime type")
    if not payload:
        raise ValueError("missing data")
    if header.endswith(";base64"):
        return base64.b64decode(payload)
    return unquote_to_bytes(payload)


async def _fetch(session: aiohttp.ClientSession, asset: Asset, limit: int) -> bytes:
    async with session.get(asset.url) as resp:
        if resp.status != 200:
            raise ValueError(f"HTTP {resp.status} for URL: {asset.url}")
        if limit and resp.content_length and resp.content_length > limit:
            raise AssetSizeExceededError(asset.url, resp.content_length, limit, asset.type)
        return await resp.read()


async def download_assets(
    assets: List[Asset],
    output_dir: str,
    size_limits: Optional[Dict[str, int]] = None,
) -> List[DownloadedAsset]:
    """
    Save assets into ``<output_dir>/assets``.

    Individual failures (network, HTTP status, oversized, bad data URL) are
    logged and skipped; the result holds only what was saved.
    """
    if not assets:
        return []

    limits = dict(DEFAULT_ASSET_SIZE_LIMITS)
    limits.update(size_limits or {})
    asset_dir = Path(output_dir) / "assets"
    try:
        asset_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"⚠️ Cannot create asset directory {asset_dir}: {e}")
        return []

    downloaded: List[DownloadedAsset] = []
    timeout_obj = aiohttp.ClientTimeout(total=DOWNLOAD_TIMEOUT)
    async with aiohttp.ClientSession(timeout=timeout_obj) as session:
        for asset in assets:
            limit = limits.get(asset.type, 0)
            filename = sanitize_filename(asset.filename or extract_filename(asset.url))
            try:
                if asset.url.startswith("data:"):
                    data = decode_data_url(asset.url)
                else:
                    data = await _fetch(session, asset, limit)
                if limit and len(data) > limit:
                    raise AssetSizeExceededError(asset.url[:50], len(data), limit, asset.type)
                path = atomic_write(asset_dir / filename, data)
            except AssetSizeExceededError as e:
                logger.warning(f"⚠️ Skipping oversized asset: {e}")
                continue
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
                logger.warning(f"⚠️ Failed to download asset {asset.url[:80]}: {e}")
                continue
            downloaded.append(DownloadedAsset(original_url=asset.url, local_path=str(path), size=len(data)))
            logger.debug(f"🖼️ {path} ({format_bytes(len(data))})")

    return downloaded
