"""
Image Decoder

Validates raster image bytes and turns them into the pieces an image
XObject needs. JPEG data is embedded as-is (DCTDecode); every other format is
decoded with Pillow and re-encoded as Flate-compressed samples, with the
alpha channel split off into a soft mask.
"""

import logging
import zlib
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .exceptions import DecodeError, UnsupportedFormatError

# format tag -> Pillow format name
SUPPORTED_FORMATS = {
    'jpg': 'JPEG',
    'jpeg': 'JPEG',
    'png': 'PNG',
    'gif': 'GIF',
}

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedImage:
    format: str
    width: int
    height: int
    color_space: str
    bits_per_component: int
    filter: str
    data: bytes
    smask: Optional[bytes] = None
    decode: Optional[str] = None


def normalize_format(format_tag: Optional[str]) -> str:
    """Lower-case a format tag and check it is supported ('' means infer)."""
    tag = (format_tag or '').strip().lower().lstrip('.')
    if tag and tag not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(f"Unsupported image format: {format_tag}")
    return tag


def decode_image(data: bytes, format_tag: str = '') -> DecodedImage:
    """
    Decode image bytes declared as `format_tag`.

    Args:
        data: Encoded image bytes
        format_tag: 'jpg', 'jpeg', 'png', 'gif' or '' to infer from the bytes

    Returns:
        DecodedImage ready to be written as an image XObject

    Raises:
        UnsupportedFormatError: for unknown tags
        DecodeError: when the bytes are not a well-formed image of that format
    """
    tag = normalize_format(format_tag)
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Could not decode {tag or 'image'} data: {e}") from e

    if tag and image.format != SUPPORTED_FORMATS[tag]:
        raise DecodeError(f"Image data is {image.format}, not {tag}")
    if image.format not in SUPPORTED_FORMATS.values():
        raise UnsupportedFormatError(f"Unsupported image format: {image.format}")

    width, height = image.size
    source_format = image.format.lower()
    if source_format == 'jpeg':
        return _jpeg(image, data)

    smask = None
    if image.mode == 'P' and 'transparency' in image.info:
        image = image.convert('RGBA')
    if image.mode in ('RGBA', 'LA', 'PA'):
        smask = zlib.compress(image.getchannel('A').tobytes())

    if image.mode in ('1', 'L', 'LA', 'I', 'I;16', 'F'):
        image = image.convert('L')
        color_space = 'DeviceGray'
    else:
        image = image.convert('RGB')
        color_space = 'DeviceRGB'

    logger.debug(f"Decoded {width}x{height} {color_space} image (alpha: {smask is not None})")
    return DecodedImage(
        format=source_format,
        width=width,
        height=height,
        color_space=color_space,
        bits_per_component=8,
        filter='FlateDecode',
        data=zlib.compress(image.tobytes()),
        smask=smask,
    )


def _jpeg(image: Image.Image, data: bytes) -> DecodedImage:
    decode = None
    if image.mode == 'L':
        color_space = 'DeviceGray'
    elif image.mode == 'CMYK':
        color_space = 'DeviceCMYK'
        # Adobe CMYK JPEGs store inverted samples
        if 'adobe' in image.info:
            decode = '[1 0 1 0 1 0 1 0]'
    elif image.mode == 'RGB':
        color_space = 'DeviceRGB'
    else:
        raise DecodeError(f"Unsupported JPEG color mode: {image.mode}")
    return DecodedImage(
        format='jpeg',
        width=image.size[0],
        height=image.size[1],
        color_space=color_space,
        bits_per_component=8,
        filter='DCTDecode',
        data=data,
        decode=decode,
    )
