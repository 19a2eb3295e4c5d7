"""
Orientation correction for scanned tickets.

The vision model reports how far the page is currently rotated clockwise.
Undoing that needs the complementary clockwise rotation (90 -> 270,
180 -> 180, 270 -> 90). Detection is best effort: any failure means
"leave the image alone".
"""

import io
import os
import re
from PIL import Image, UnidentifiedImageError
from loguru import logger
from ..core.errors import BadRequestError, InternalError, TicketScannerError
from ..models.session import OrientAllItem, OrientationResult
from .files import fit_filename, is_image, mime_type, to_data_url
from .storage.sessions import SUBDIRS, SessionStore
from .vision import VisionClient

ORIENTED_MARKER = "_oriented"
VALID_ANGLES = (0, 90, 180, 270)
CORRECTION_ANGLES = {90: 270, 180: 180, 270: 90}

# Pillow's ROTATE_* transposes turn counter-clockwise
_CLOCKWISE_TRANSPOSE = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}

ORIENTATION_PROMPT = (
    "This is a scanned document. Look at the direction of the printed text and determine "
    "how many degrees the page is currently rotated clockwise from upright, readable orientation. "
    "Answer with exactly one of these numbers and nothing else: 0, 90, 180, 270."
)


def parse_orientation(text: str) -> int:
    match = re.search(r"-?\d+", text or "")
    if not match:
        return 0
    angle = int(match.group(0))
    return angle if angle in VALID_ANGLES else 0


async def detect_orientation(client: VisionClient | None, data: bytes, mime: str) -> int:
    """Ask the model for the current rotation; every failure yields 0."""
    if client is None or not client.configured:
        logger.warning("Vision model not configured - skipping orientation detection")
        return 0
    try:
        reply = await client.complete(ORIENTATION_PROMPT, [to_data_url(data, mime)], max_tokens=10)
    except Exception as e:
        logger.warning(f"Orientation detection failed, assuming upright: {e}")
        return 0
    return parse_orientation(reply)


def rotate_image(data: bytes, mime: str, degrees: int) -> bytes:
    """Rotate an image clockwise by a right angle, keeping its encoding format."""
    degrees %= 360
    if degrees == 0:
        return data
    if degrees not in _CLOCKWISE_TRANSPOSE:
        raise ValueError(f"Unsupported rotation: {degrees}")

    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format or "PNG"
            if fmt == "MPO":
                fmt = "JPEG"
            rotated = img.transpose(_CLOCKWISE_TRANSPOSE[degrees])
            out = io.BytesIO()
            if fmt == "JPEG":
                rotated.save(out, format=fmt, quality=95)
            else:
                rotated.save(out, format=fmt)
            return out.getvalue()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise InternalError(f"Failed to rotate {mime} image: {e}") from e


async def correct_orientation(client: VisionClient | None, data: bytes, mime: str) -> tuple[bytes, int]:
    """Return (corrected bytes, detected angle); bytes are untouched when upright."""
    detected = await detect_orientation(client, data, mime)
    if detected == 0:
        return data, 0
    logger.info("Correcting orientation", detected=detected, rotation=CORRECTION_ANGLES[detected])
    return rotate_image(data, mime, CORRECTION_ANGLES[detected]), detected


async def orient_one(
    store: SessionStore,
    client: VisionClient | None,
    session_id: str,
    image_url: str,
) -> OrientationResult:
    """
    Correct one stored image.

    A rotated copy named `<base>_oriented<ext>` is written next to the
    source; upright images produce no new file.
    """
    subdir, name, path = store.resolve(session_id, image_url)
    mime = mime_type(name)
    if not is_image(mime):
        raise BadRequestError(f"Not an image: {name}")

    try:
        data = path.read_bytes()
    except OSError as e:
        raise InternalError(f"Failed to read {name}: {e}") from e

    corrected, rotated = await correct_orientation(client, data, mime)
    if rotated == 0:
        return OrientationResult(rotated=0, url=image_url)

    base, ext = os.path.splitext(name)
    stored = store.store_file(session_id, subdir, fit_filename(base, ext, ORIENTED_MARKER), corrected)
    return OrientationResult(rotated=rotated, url=stored.url, original_url=image_url)


async def orient_all(store: SessionStore, client: VisionClient | None, session_id: str) -> list[OrientAllItem]:
    """
    Correct every image of a session, one at a time.

    Files already produced by a correction are skipped. A file that fails is
    reported with its error and the remaining files are still processed.
    """
    store.require(session_id)
    results: list[OrientAllItem] = []

    for subdir in SUBDIRS:
        for stored in store.list_files(session_id, subdir):
            if not is_image(stored.mime_type) or ORIENTED_MARKER in stored.name:
                continue
            try:
                result = await orient_one(store, client, session_id, stored.url)
            except TicketScannerError as e:
                logger.error(f"Orientation failed for {stored.url}: {e.message}")
                results.append(OrientAllItem(url=stored.url, rotated=0, error=e.message))
                continue
            results.append(
                OrientAllItem(
                    url=stored.url,
                    rotated=result.rotated,
                    new_url=result.url if result.rotated else None,
                )
            )

    logger.info(
        "Session orientation finished",
        session_id=session_id,
        processed=len(results),
        rotated=sum(1 for r in results if r.rotated),
    )
    return results
