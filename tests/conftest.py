"""
Test configuration and shared fixtures for pdfbuilder tests
"""
import pytest
import tempfile
import shutil
from io import BytesIO
from pathlib import Path

from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen
from PIL import Image

from pdfbuilder.utils import get_default_config

# Glyph order of the generated test font; glyph id == list position
TEST_GLYPHS = ['.notdef', 'space', 'A', 'B', 'H', 'e', 'l', 'o']
TEST_CMAP = {32: 'space', 65: 'A', 66: 'B', 72: 'H', 101: 'e', 108: 'l', 111: 'o'}


def _box_glyph(width=600, height=700):
    pen = TTGlyphPen(None)
    pen.moveTo((50, 0))
    pen.lineTo((50, height))
    pen.lineTo((width - 50, height))
    pen.lineTo((width - 50, 0))
    pen.closePath()
    return pen.glyph()


def build_test_font(family='Test Sans', style='Regular', ps_name='TestSans-Regular'):
    """Build a small TrueType font: every letter is 600 units wide, space 250."""
    builder = FontBuilder(1000, isTTF=True)
    builder.setupGlyphOrder(TEST_GLYPHS)
    builder.setupCharacterMap(TEST_CMAP)

    glyphs = {name: _box_glyph() for name in TEST_GLYPHS}
    glyphs['space'] = TTGlyphPen(None).glyph()
    builder.setupGlyf(glyphs)

    metrics = {name: (600, 50) for name in TEST_GLYPHS}
    metrics['space'] = (250, 0)
    builder.setupHorizontalMetrics(metrics)
    builder.setupHorizontalHeader(ascent=800, descent=-200)
    builder.setupNameTable({'familyName': family, 'styleName': style, 'psName': ps_name})
    builder.setupOS2(sTypoAscender=800, sTypoDescender=-200, usWinAscent=800, usWinDescent=200)
    builder.setupPost()

    buffer = BytesIO()
    builder.save(buffer)
    return buffer.getvalue()


def _image_bytes(mode, size, color, fmt):
    buffer = BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests"""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def sample_config():
    """Default configuration for tests"""
    config = get_default_config()
    config['pdf']['compress'] = False  # Easier to inspect output
    config['pdf']['metadata']['title'] = 'Test Document'
    return config


@pytest.fixture
def ttf_bytes():
    """A generated TrueType font"""
    return build_test_font()


@pytest.fixture
def font_factory():
    """Builds further test fonts: font_factory(family=..., style=..., ps_name=...)"""
    return build_test_font


@pytest.fixture
def font_dir(temp_dir, ttf_bytes):
    """Directory holding TestSans.ttf and TestSans-Bold.ttf"""
    directory = temp_dir / 'fonts'
    directory.mkdir()
    (directory / 'TestSans.ttf').write_bytes(ttf_bytes)
    (directory / 'TestSans-Bold.ttf').write_bytes(
        build_test_font(style='Bold', ps_name='TestSans-Bold'))
    return directory


@pytest.fixture
def png_bytes():
    """A 4x2 opaque RGB PNG"""
    return _image_bytes('RGB', (4, 2), (255, 0, 0), 'PNG')


@pytest.fixture
def rgba_png_bytes():
    """A 3x3 PNG with an alpha channel"""
    return _image_bytes('RGBA', (3, 3), (0, 128, 255, 100), 'PNG')


@pytest.fixture
def gray_png_bytes():
    """A 5x5 grayscale PNG"""
    return _image_bytes('L', (5, 5), 128, 'PNG')


@pytest.fixture
def jpeg_bytes():
    """A 96x48 RGB JPEG"""
    return _image_bytes('RGB', (96, 48), (10, 200, 30), 'JPEG')


@pytest.fixture
def gif_bytes():
    """A 6x4 GIF"""
    return _image_bytes('RGB', (6, 4), (0, 0, 255), 'GIF')
