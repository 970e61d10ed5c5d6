"""
Qt-free image I/O utilities.

Resolves the image references the cropper is invoked with (``data:`` URIs,
``file://`` URLs and plain paths) into decoded Pillow images, including PSD
files via psd-tools, and turns encoded PNG bytes back into data URIs for the
caller.  Safe to import in worker threads.
"""

import base64
import binascii
import io
import logging
from pathlib import Path
from urllib.parse import unquote, unquote_to_bytes, urlparse

from PIL import Image, ImageOps
from psd_tools import PSDImage

logger = logging.getLogger(__name__)

# Allow very large images (Pillow's default limit is ~178MP)
Image.MAX_IMAGE_PIXELS = None

_PSD_SIGNATURE = b"8BPS"
_REMOTE_SCHEMES = {"http", "https", "ftp", "blob"}


class LoadError(ValueError):
    """The source image reference could not be resolved or decoded."""


class EncodeError(RuntimeError):
    """The output raster could not be encoded."""


# =============================================================================
# Data URIs
# =============================================================================
def parse_data_uri(uri: str) -> tuple[str, bytes]:
    """Split a ``data:`` URI into ``(mime_type, payload_bytes)``.

    Supports both ``;base64`` and percent-encoded payloads.  The mime type
    defaults to ``text/plain`` as in RFC 2397.
    """
    if not uri.startswith("data:"):
        raise LoadError("not a data URI")
    header, sep, payload = uri[5:].partition(",")
    if not sep:
        raise LoadError("malformed data URI: missing ','")
    params = header.split(";")
    mime = params[0] or "text/plain"
    if "base64" in params[1:]:
        try:
            data = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise LoadError(f"invalid base64 payload: {exc}") from exc
    else:
        data = unquote_to_bytes(payload)
    return mime, data


def to_data_uri(data: bytes, mime: str = "image/png") -> str:
    """Encode *data* as a base64 ``data:`` URI."""
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def file_to_data_uri(path: Path) -> str:
    """Read a file into a data URI, guessing the mime type from Pillow's format probe."""
    data = path.read_bytes()
    mime = "application/octet-stream"
    try:
        with Image.open(io.BytesIO(data)) as img:
            mime = Image.MIME.get(img.format, mime)
    except OSError:
        if data.startswith(_PSD_SIGNATURE):
            mime = "image/vnd.adobe.photoshop"
    return to_data_uri(data, mime)


# =============================================================================
# Decoding
# =============================================================================
def decode_image(data: bytes) -> Image.Image:
    """Fully decode image bytes, applying EXIF orientation.

    PSD documents are composited with psd-tools; everything else goes
    through Pillow.
    """
    if not data:
        raise LoadError("image data is empty")
    if data.startswith(_PSD_SIGNATURE):
        try:
            img = PSDImage.open(io.BytesIO(data)).composite()
        except Exception as exc:
            raise LoadError(f"cannot composite PSD: {exc}") from exc
        if img is None:
            raise LoadError("PSD has no visible layers")
        return img
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
        img = ImageOps.exif_transpose(img)
    except (OSError, ValueError, EOFError, SyntaxError) as exc:
        raise LoadError(f"cannot decode image: {exc}") from exc
    if img.width <= 0 or img.height <= 0:
        raise LoadError(f"image has no pixels: {img.width}x{img.height}")
    return img


def open_image(path: Path) -> Image.Image:
    """Open an image file, using psd-tools for PSD and Pillow for the rest."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise LoadError(f"cannot read {path}: {exc}") from exc
    return decode_image(data)


def load_image(ref: str) -> Image.Image:
    """Resolve an image reference and return the decoded image.

    Accepts ``data:`` URIs, ``file://`` URLs and filesystem paths.  Remote
    URLs are rejected; fetching belongs to the caller.
    """
    if not ref:
        raise LoadError("no image reference given")
    if ref.startswith("data:"):
        _mime, data = parse_data_uri(ref)
        img = decode_image(data)
        logger.info("Loaded %dx%d image from data URI (%d bytes)", img.width, img.height, len(data))
        return img

    parsed = urlparse(ref)
    if parsed.scheme in _REMOTE_SCHEMES:
        raise LoadError(f"unsupported image reference scheme: {parsed.scheme}")
    if parsed.scheme == "file":
        path = Path(unquote(parsed.path))
    else:
        path = Path(ref)
    img = open_image(path)
    logger.info("Loaded %dx%d image from %s", img.width, img.height, path)
    return img


def unique_path(out_path: Path) -> Path:
    """Return a unique path by appending -01, -02, etc. if file already exists."""
    if not out_path.exists():
        return out_path
    stem = out_path.stem
    suffix = out_path.suffix
    parent = out_path.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}-{counter:02d}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1
