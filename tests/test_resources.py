"""
Unit tests for the font and image resource tables
"""
import pytest

from pdfbuilder.exceptions import (
    DecodeError,
    InvalidFontDataError,
    UndefinedFontError,
    UnsupportedFormatError,
)
from pdfbuilder.resources import ResourceManager


class TestFontRegistration:
    """Test font ID assignment"""

    @pytest.fixture
    def resources(self):
        return ResourceManager()

    def test_register_font_is_idempotent(self, resources, ttf_bytes):
        first = resources.register_font('Helvetica', 'B', ttf_bytes)
        second = resources.register_font('Helvetica', 'B', ttf_bytes)

        assert first == second
        assert len(resources.fonts) == 1

    def test_first_registration_wins(self, resources, ttf_bytes, font_factory):
        other = font_factory(ps_name='Other-Regular')

        font_id = resources.register_font('Test Sans', '', ttf_bytes)
        resources.register_font('Test Sans', '', other)

        assert resources.font(font_id).data == ttf_bytes
        assert resources.font(font_id).metrics.base_name == 'TestSans-Regular'

    def test_distinct_styles_get_distinct_ids(self, resources, ttf_bytes):
        regular = resources.register_font('Test Sans', '', ttf_bytes)
        bold = resources.register_font('Test Sans', 'B', ttf_bytes)

        assert (regular, bold) == (1, 2)

    def test_family_and_style_are_normalized(self, resources, ttf_bytes):
        font_id = resources.register_font('Test Sans', 'bi', ttf_bytes)

        assert resources.find_font('TEST SANS', 'IB') == font_id
        # underline is not part of the font key
        assert resources.find_font('test sans', 'BIU') == font_id

    def test_invalid_font_data(self, resources):
        with pytest.raises(InvalidFontDataError):
            resources.register_font('Broken', '', b'not a font at all')
        assert resources.fonts == []

    def test_core_font(self, resources):
        font_id = resources.register_core_font('Arial', 'B')
        font = resources.font(font_id)

        assert font.is_core
        assert font.metrics.base_name == 'Helvetica-Bold'
        assert font.name == 'F1'
        assert resources.register_core_font('helvetica', 'b') == font_id

    def test_unknown_core_font(self, resources):
        with pytest.raises(UndefinedFontError):
            resources.register_core_font('Comic Sans', '')

    def test_unknown_font_id(self, resources):
        with pytest.raises(KeyError):
            resources.font(1)


class TestImageRegistration:
    """Test image ID assignment and validation"""

    @pytest.fixture
    def resources(self):
        return ResourceManager()

    def test_register_image(self, resources, png_bytes):
        handle = resources.register_image('logo', 'png', png_bytes)

        assert handle.id == 1
        assert (handle.width, handle.height) == (4, 2)
        assert resources.image('logo').name == 'I1'

    def test_reregistration_keeps_id_and_replaces_bytes(self, resources, png_bytes, jpeg_bytes):
        first = resources.register_image('logo', 'png', png_bytes)
        resources.register_image('chart', 'png', png_bytes)
        second = resources.register_image('logo', 'jpg', jpeg_bytes)

        assert first.id == second.id == 1
        assert len(resources.images) == 2
        assert resources.image('logo').data == jpeg_bytes
        assert resources.image('logo').format == 'jpg'

    def test_format_inferred_when_tag_empty(self, resources, gif_bytes):
        resources.register_image('anim', '', gif_bytes)
        assert resources.image('anim').format == 'gif'

    def test_unsupported_format(self, resources, png_bytes):
        with pytest.raises(UnsupportedFormatError):
            resources.register_image('logo', 'bmp', png_bytes)
        assert resources.images == []

    def test_malformed_image(self, resources):
        with pytest.raises(DecodeError):
            resources.register_image('logo', 'png', b'\x89PNG\r\n\x1a\ntruncated')
        assert resources.image('logo') is None

    def test_unknown_image_id(self, resources):
        with pytest.raises(KeyError):
            resources.image_by_id(5)
