# ollachat/media_helper.py
from __future__ import annotations
import io, logging, os
from pathlib import Path
from typing import List, Sequence, Tuple, Union
from PIL import Image  # Pillow

from ollachat.infra.llm.base import RawImage

log = logging.getLogger("media")

MAX_WIDTH = 1024
MAX_HEIGHT = 1024
JPEG_QUALITY = 80

ImageSource = Union[str, os.PathLike, bytes]


def _fit(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    # Bound the longer side only; the other follows the aspect ratio.
    if width > height:
        if width > max_width:
            height = round(height * max_width / width)
            width = max_width
    else:
        if height > max_height:
            width = round(width * max_height / height)
            height = max_height
    return max(1, width), max(1, height)

def compress_image(source: ImageSource, *, max_width: int = MAX_WIDTH, max_height: int = MAX_HEIGHT,
                   quality: int = JPEG_QUALITY) -> RawImage:
    """Downscale and re-encode an image as JPEG for upload to a vision model."""
    if isinstance(source, (bytes, bytearray)):
        src = io.BytesIO(source)
    else:
        s = os.fspath(source)
        src = s[7:] if s.lower().startswith("file://") else s
    with Image.open(src) as im:
        size = _fit(im.width, im.height, max_width, max_height)
        im = im.convert("RGB")
        if size != im.size:
            im = im.resize(size, Image.LANCZOS)
        out = io.BytesIO()
        im.save(out, format="JPEG", quality=quality)
    return RawImage(out.getvalue())

def load_images(paths: Sequence[ImageSource]) -> Tuple[List[RawImage], List[str]]:
    """
    Compress a batch of attachments. A file that fails is reported in the
    error list and skipped; the rest of the batch still goes out.
    """
    images: List[RawImage] = []
    errors: List[str] = []
    for p in paths:
        name = Path(os.fspath(p)).name if not isinstance(p, (bytes, bytearray)) else "<bytes>"
        try:
            images.append(compress_image(p))
        except (OSError, ValueError) as e:
            log.warning("Error processing image %s: %s", name, e)
            errors.append(f"Error processing image {name}: {e}")
    return images, errors
