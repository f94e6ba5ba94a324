"""
Resource Manager

Assigns stable numeric IDs to the fonts and images a document uses.
Both tables only ever grow; an ID, once handed out, refers to the same
resource for the lifetime of the document.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .fonts import (
    FontMetrics,
    StandardFontMetrics,
    TrueTypeFontMetrics,
    core_font_name,
    normalize_family,
    normalize_style,
)
from .images import DecodedImage, decode_image, normalize_format


@dataclass
class FontResource:
    id: int
    family: str
    style: str
    metrics: FontMetrics
    data: Optional[bytes] = None

    @property
    def is_core(self) -> bool:
        return self.data is None

    @property
    def name(self) -> str:
        return f"F{self.id}"


@dataclass
class ImageResource:
    id: int
    identifier: str
    format: str
    data: bytes
    decoded: DecodedImage

    @property
    def width(self) -> int:
        return self.decoded.width

    @property
    def height(self) -> int:
        return self.decoded.height

    @property
    def name(self) -> str:
        return f"I{self.id}"


@dataclass(frozen=True)
class ImageHandle:
    """Opaque handle returned by image registration."""
    id: int
    identifier: str
    width: int
    height: int


class ResourceManager:
    """Font and image tables of a single document."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._fonts: List[FontResource] = []
        self._font_keys: Dict[Tuple[str, str], int] = {}
        self._images: List[ImageResource] = []
        self._image_keys: Dict[str, int] = {}

    # Fonts

    def register_font(self, family: str, style: str, data: bytes) -> int:
        """
        Register an embeddable TrueType font.

        Registering the same (family, style) again returns the existing ID
        and keeps the bytes of the first registration.

        Raises:
            InvalidFontDataError: if the bytes are not a usable TrueType font
        """
        key = (normalize_family(family), normalize_style(style)[0])
        if key in self._font_keys:
            self.logger.debug(f"Font {key} already registered as F{self._font_keys[key]}")
            return self._font_keys[key]
        metrics = TrueTypeFontMetrics(data)
        return self._add_font(key, metrics, data)

    def register_core_font(self, family: str, style: str = '') -> int:
        """
        Register one of the standard PDF fonts (no embedding).

        Raises:
            UndefinedFontError: if (family, style) is not a standard font
        """
        key = (normalize_family(family), normalize_style(style)[0])
        if key in self._font_keys:
            return self._font_keys[key]
        metrics = StandardFontMetrics(core_font_name(*key))
        return self._add_font(key, metrics, None)

    def _add_font(self, key: Tuple[str, str], metrics: FontMetrics, data: Optional[bytes]) -> int:
        font_id = len(self._fonts) + 1
        self._fonts.append(FontResource(font_id, key[0], key[1], metrics, data))
        self._font_keys[key] = font_id
        self.logger.debug(f"Registered font {metrics.base_name} ({key[0]} {key[1] or 'regular'}) as F{font_id}")
        return font_id

    def find_font(self, family: str, style: str = '') -> Optional[int]:
        return self._font_keys.get((normalize_family(family), normalize_style(style)[0]))

    def font(self, font_id: int) -> FontResource:
        if not 1 <= font_id <= len(self._fonts):
            raise KeyError(f"No font with ID {font_id}")
        return self._fonts[font_id - 1]

    @property
    def fonts(self) -> List[FontResource]:
        return list(self._fonts)

    # Images

    def register_image(self, identifier: str, format_tag: str, data: bytes) -> ImageHandle:
        """
        Register image bytes under a caller-chosen identifier.

        Re-registering an identifier replaces the bytes but keeps its ID.

        Raises:
            UnsupportedFormatError: for unknown format tags
            DecodeError: for malformed image bytes
        """
        tag = normalize_format(format_tag)
        decoded = decode_image(data, tag)
        tag = tag or decoded.format

        if identifier in self._image_keys:
            image_id = self._image_keys[identifier]
            self._images[image_id - 1] = ImageResource(image_id, identifier, tag, data, decoded)
            self.logger.debug(f"Replaced image '{identifier}' in slot I{image_id}")
        else:
            image_id = len(self._images) + 1
            self._images.append(ImageResource(image_id, identifier, tag, data, decoded))
            self._image_keys[identifier] = image_id
            self.logger.debug(f"Registered image '{identifier}' ({decoded.width}x{decoded.height}) as I{image_id}")
        return ImageHandle(image_id, identifier, decoded.width, decoded.height)

    def image(self, identifier: str) -> Optional[ImageResource]:
        image_id = self._image_keys.get(identifier)
        return self._images[image_id - 1] if image_id else None

    def image_by_id(self, image_id: int) -> ImageResource:
        if not 1 <= image_id <= len(self._images):
            raise KeyError(f"No image with ID {image_id}")
        return self._images[image_id - 1]

    @property
    def images(self) -> List[ImageResource]:
        return list(self._images)
