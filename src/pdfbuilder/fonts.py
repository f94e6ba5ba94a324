"""
Font Metrics

Glyph metrics for the fonts a document can use:

- the standard PDF core fonts, measured with ReportLab's AFM tables
- embedded TrueType fonts, parsed with fontTools

plus text measuring / line splitting on top of them and a small cache for
locating font files on disk.
"""

import logging
import re
import struct
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from fontTools.ttLib import TTFont, TTLibError
from reportlab.pdfbase import pdfmetrics

from .exceptions import InvalidFontDataError, UndefinedFontError


# (family, style) -> PostScript name of the standard font
CORE_FONTS: Dict[Tuple[str, str], str] = {
    ('courier', ''): 'Courier',
    ('courier', 'B'): 'Courier-Bold',
    ('courier', 'I'): 'Courier-Oblique',
    ('courier', 'BI'): 'Courier-BoldOblique',
    ('helvetica', ''): 'Helvetica',
    ('helvetica', 'B'): 'Helvetica-Bold',
    ('helvetica', 'I'): 'Helvetica-Oblique',
    ('helvetica', 'BI'): 'Helvetica-BoldOblique',
    ('times', ''): 'Times-Roman',
    ('times', 'B'): 'Times-Bold',
    ('times', 'I'): 'Times-Italic',
    ('times', 'BI'): 'Times-BoldItalic',
    ('symbol', ''): 'Symbol',
    ('zapfdingbats', ''): 'ZapfDingbats',
}

FAMILY_ALIASES = {
    'arial': 'helvetica',
}


def normalize_family(family: str) -> str:
    family = family.strip().lower()
    return FAMILY_ALIASES.get(family, family)


def normalize_style(style: Optional[str]) -> Tuple[str, bool]:
    """
    Split a style string into the font key part and the underline flag.

    'bu', 'UB', 'B' -> ('B', True), ('B', True), ('B', False)
    """
    style = (style or '').upper()
    underline = 'U' in style
    key = ''
    if 'B' in style:
        key += 'B'
    if 'I' in style:
        key += 'I'
    return key, underline


class FontMetrics:
    """Common interface of the font metric collaborators."""

    base_name: str = ''
    embedded: bool = False

    def string_width(self, text: str, size: float) -> float:
        raise NotImplementedError

    @property
    def underline_position(self) -> float:
        """Underline offset below the baseline, in 1/1000 text space units."""
        return -100.0

    @property
    def underline_thickness(self) -> float:
        return 50.0


class StandardFontMetrics(FontMetrics):
    """Metrics of one of the 14 standard PDF fonts."""

    def __init__(self, base_name: str):
        self.base_name = base_name
        self._face = pdfmetrics.getFont(base_name).face

    def string_width(self, text: str, size: float) -> float:
        # measure the characters that are drawn, after unencodable ones became ?
        return pdfmetrics.stringWidth(self.encode(text).decode(self.encoding), self.base_name, size)

    @property
    def encoding(self) -> str:
        return 'latin-1' if self.base_name in ('Symbol', 'ZapfDingbats') else 'cp1252'

    @property
    def underline_position(self) -> float:
        return float(getattr(self._face, 'underlinePosition', -100))

    @property
    def underline_thickness(self) -> float:
        return float(getattr(self._face, 'underlineThickness', 50))

    def encode(self, text: str) -> bytes:
        return text.encode(self.encoding, errors='replace')


class TrueTypeFontMetrics(FontMetrics):
    """
    Metrics of an embedded TrueType font.

    Text is shown through an Identity-H encoded composite font, so each
    character is written as its two-byte glyph id.
    """

    embedded = True

    def __init__(self, data: bytes):
        try:
            font = TTFont(BytesIO(data), lazy=False)
            cmap = font.getBestCmap()
            head = font['head']
            hhea = font['hhea']
            hmtx = font['hmtx']
        except (TTLibError, KeyError, AssertionError, ValueError, TypeError, IndexError, EOFError, struct.error) as e:
            raise InvalidFontDataError(f"Could not parse font data: {e}") from e

        if not cmap:
            raise InvalidFontDataError("Font has no Unicode character map")
        if 'glyf' not in font:
            raise InvalidFontDataError("Only TrueType outlines (glyf) can be embedded")

        self.data = data
        self.units_per_em = head.unitsPerEm or 1000
        self.bbox = tuple(self._scale(v) for v in (head.xMin, head.yMin, head.xMax, head.yMax))

        os2 = font['OS/2'] if 'OS/2' in font else None
        post = font['post'] if 'post' in font else None
        self.ascent = self._scale(getattr(os2, 'sTypoAscender', hhea.ascent) if os2 else hhea.ascent)
        self.descent = self._scale(getattr(os2, 'sTypoDescender', hhea.descent) if os2 else hhea.descent)
        self.cap_height = self._scale(getattr(os2, "sCapHeight", 0) or hhea.ascent) if os2 else self.ascent
        self.italic_angle = float(post.italicAngle) if post else 0.0
        self._underline_position = self._scale(post.underlinePosition) if post else -100.0
        self._underline_thickness = self._scale(post.underlineThickness) if post else 50.0
        weight = getattr(os2, 'usWeightClass', 400) if os2 else 400
        self.stem_v = 50 + int(pow(weight / 65.0, 2))
        self.is_fixed_pitch = bool(post.isFixedPitch) if post else False

        self.base_name = self._postscript_name(font)
        self._glyph_ids: Dict[int, int] = {code: font.getGlyphID(name) for code, name in cmap.items()}
        glyph_order = font.getGlyphOrder()
        self._advances: List[int] = [hmtx[name][0] for name in glyph_order]
        self.missing_width = self._advances[0] if self._advances else 0

    def _scale(self, value: float) -> float:
        return round(value * 1000.0 / self.units_per_em)

    @staticmethod
    def _postscript_name(font: TTFont) -> str:
        name = None
        if 'name' in font:
            record = font['name'].getName(6, 3, 1, 0x409) or font['name'].getName(6, 1, 0, 0)
            if record is not None:
                name = record.toUnicode()
        name = re.sub(r'[^A-Za-z0-9_-]', '', name or '') or 'EmbeddedFont'
        return name

    @property
    def underline_position(self) -> float:
        return self._underline_position

    @property
    def underline_thickness(self) -> float:
        return self._underline_thickness

    @property
    def flags(self) -> int:
        flags = 32  # nonsymbolic
        if self.is_fixed_pitch:
            flags |= 1
        if self.italic_angle:
            flags |= 64
        return flags

    def glyph_id(self, char: str) -> int:
        return self._glyph_ids.get(ord(char), 0)

    def glyph_width(self, glyph_id: int) -> int:
        """Advance width of a glyph in 1/1000 text space units."""
        if glyph_id < len(self._advances):
            return self._scale(self._advances[glyph_id])
        return self._scale(self.missing_width)

    def string_width(self, text: str, size: float) -> float:
        units = sum(self._advances[gid] if gid < len(self._advances) else self.missing_width
                    for gid in (self.glyph_id(ch) for ch in text))
        return units * size / self.units_per_em

    def glyphs(self, text: str) -> List[Tuple[int, str]]:
        return [(self.glyph_id(ch), ch) for ch in text]

    def encode(self, text: str) -> bytes:
        return b''.join(self.glyph_id(ch).to_bytes(2, 'big') for ch in text)


class TextMeasurer:
    """
    Measures and splits text with the metrics of registered fonts.

    Both operations use the same metrics, so every line returned by
    split_lines() measures at most `max_width` (except single characters
    wider than the limit).
    """

    def __init__(self, resources):
        self.resources = resources

    def metrics(self, font_id: int) -> FontMetrics:
        return self.resources.font(font_id).metrics

    def width(self, font_id: int, text: str, size: float) -> float:
        return self.metrics(font_id).string_width(text, size)

    def split_lines(self, font_id: int, size: float, text: str, max_width: float) -> List[str]:
        """
        Split text into lines no wider than max_width.

        Lines break at spaces; words longer than a line are broken between
        characters. Explicit newlines always start a new line.
        """
        metrics = self.metrics(font_id)

        def fits(value: str) -> bool:
            return metrics.string_width(value, size) <= max_width

        lines: List[str] = []
        for paragraph in text.replace('\r\n', '\n').split('\n'):
            current = ''
            for word in paragraph.split(' '):
                candidate = f"{current} {word}" if current else word
                if fits(candidate):
                    current = candidate
                    continue
                if current:
                    lines.append(current)
                    current = ''
                while word and not fits(word) and len(word) > 1:
                    cut = 1
                    while cut < len(word) and fits(word[:cut + 1]):
                        cut += 1
                    lines.append(word[:cut])
                    word = word[cut:]
                current = word
            lines.append(current)
        return lines


def core_font_name(family: str, style: str) -> str:
    try:
        return CORE_FONTS[(normalize_family(family), style)]
    except KeyError:
        raise UndefinedFontError(f"Undefined font: {family} {style}".strip()) from None


class FontCache:
    """
    Locates TrueType font files by family and style.

    Files are matched on their name: 'DejaVuSans-BoldOblique.ttf' serves
    family 'DejaVu Sans' (or 'dejavusans') with style 'BI'.
    """

    STYLE_SUFFIXES = {
        '': ('', 'regular', 'book', 'roman'),
        'B': ('bold',),
        'I': ('italic', 'oblique'),
        'BI': ('bolditalic', 'boldoblique', 'italicbold'),
    }
    EXTENSIONS = ('.ttf',)

    def __init__(self, search_paths: Optional[Iterable[str]] = None):
        self.logger = logging.getLogger(__name__)
        self.search_paths = [Path(p).expanduser() for p in (search_paths or [])]
        self._index: Optional[Dict[str, Path]] = None
        self._data: Dict[str, bytes] = {}

    @staticmethod
    def _key(value: str) -> str:
        return re.sub(r'[^a-z0-9]', '', value.lower())

    def _build_index(self) -> Dict[str, Path]:
        index: Dict[str, Path] = {}
        for directory in self.search_paths:
            if not directory.is_dir():
                self.logger.debug(f"Font directory not found: {directory}")
                continue
            for path in sorted(directory.rglob('*')):
                if path.suffix.lower() in self.EXTENSIONS and path.is_file():
                    index.setdefault(self._key(path.stem), path)
        self.logger.debug(f"Indexed {len(index)} font files")
        return index

    def find(self, family: str, style: str = '') -> Optional[Path]:
        if self._index is None:
            self._index = self._build_index()
        style, _ = normalize_style(style)
        family_key = self._key(family)
        for suffix in self.STYLE_SUFFIXES[style]:
            path = self._index.get(family_key + suffix)
            if path is not None:
                return path
        return None

    def get(self, family: str, style: str = '') -> Optional[bytes]:
        """Return the font file bytes for (family, style), or None when not found."""
        path = self.find(family, style)
        if path is None:
            return None
        cache_key = str(path)
        if cache_key not in self._data:
            self._data[cache_key] = path.read_bytes()
        return self._data[cache_key]
