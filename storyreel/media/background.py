"""Background assets for the export: the stock video and an optional image.

WHY: Every export is composited onto a background video that ships with
the app. Users may also pick a background image; it is normalized to
the selected aspect ratio so later compositing never has to guess at
sizes.

HOW: copy_background_video() copies the stock video into the request
workspace. prepare_background_image() loads the image (local public
asset or remote URL via httpx), center-crops it to the canonical size
with Pillow's ImageOps.fit, and writes a PNG.

RULES:
- A missing background video is fatal (DependencyUnavailableError)
- Background image failures are logged and ignored; the video wins
- Unknown aspect ratios resize to 16:9
- Relative image sources are looked up under the public directory
"""

from __future__ import annotations

import asyncio
import io
import logging
import shutil
from pathlib import Path

import httpx
from PIL import Image, ImageOps

from storyreel.config import dimensions_for
from storyreel.errors import DependencyUnavailableError

logger = logging.getLogger(__name__)

BACKGROUND_VIDEO_NAME = "background.mp4"
BACKGROUND_IMAGE_NAME = "background.png"


def copy_background_video(source: Path, workspace: Path) -> Path:
    """Copy the stock background video into the workspace."""
    dest = workspace / BACKGROUND_VIDEO_NAME
    logger.info("Copying background video from %s to %s", source, dest)
    try:
        shutil.copyfile(source, dest)
    except OSError as exc:
        logger.error("Error copying background video: %s", exc)
        raise DependencyUnavailableError("Failed to load background video") from exc
    return dest


def fit_image(data: bytes, aspect_ratio: str) -> bytes:
    """Center-crop and resize image bytes to the preset size; return PNG bytes."""
    size = dimensions_for(aspect_ratio)
    with Image.open(io.BytesIO(data)) as img:
        fitted = ImageOps.fit(
            img.convert("RGB"),
            size,
            method=Image.Resampling.LANCZOS,
            centering=(0.5, 0.5),
        )
    out = io.BytesIO()
    fitted.save(out, format="PNG")
    return out.getvalue()


async def load_image_source(
    source: str,
    public_dir: Path,
    client: httpx.AsyncClient | None = None,
) -> bytes:
    """Read image bytes from an http(s) URL or a path under ``public_dir``."""
    if source.startswith(("http://", "https://")):
        if client is None:
            async with httpx.AsyncClient(timeout=30.0) as own_client:
                resp = await own_client.get(source)
        else:
            resp = await client.get(source)
        resp.raise_for_status()
        return resp.content

    root = public_dir.resolve()
    candidate = (root / source.lstrip("/")).resolve()
    if root not in candidate.parents:
        raise ValueError("Background image path escapes the public directory")
    return candidate.read_bytes()


async def prepare_background_image(
    source: str | None,
    aspect_ratio: str,
    workspace: Path,
    public_dir: Path,
    client: httpx.AsyncClient | None = None,
) -> Path | None:
    """Materialize the optional background image; None when absent or broken."""
    if not source:
        return None

    width, height = dimensions_for(aspect_ratio)
    logger.info("Using aspect ratio: %s (%dx%d)", aspect_ratio, width, height)
    dest = workspace / BACKGROUND_IMAGE_NAME
    try:
        data = await load_image_source(source, public_dir, client)
        png = await asyncio.to_thread(fit_image, data, aspect_ratio)
        dest.write_bytes(png)
    except Exception as exc:
        logger.warning("Error processing background image (ignored): %s", exc)
        return None
    return dest
