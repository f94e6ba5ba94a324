"""
Unit tests for the Document model
"""
from unittest.mock import patch

import pytest
from reportlab.pdfbase.pdfmetrics import stringWidth

from pdfbuilder import Document, DocumentConfig, FontCache, Margins
from pdfbuilder.content import DrawPath, LineTo, MoveTo, SetColor, Text, UseImage
from pdfbuilder.exceptions import (
    DocumentStateError,
    InvalidMarginError,
    OutputError,
    UndefinedFontError,
    UnresolvedAnchorError,
)


@pytest.fixture
def document():
    doc = Document(DocumentConfig(margins=Margins(72, 72, 72, 56.7)))
    doc.set_font('Helvetica', '', 12)
    return doc


class TestPages:
    """Test page creation and page numbering"""

    def test_document_starts_with_one_page(self):
        doc = Document()
        assert doc.page_count == 1
        assert doc.page_no() == 1

    def test_page_indices_follow_call_order(self):
        doc = Document()
        for _ in range(4):
            doc.add_page()
        assert [page.index for page in doc.pages] == [1, 2, 3, 4, 5]
        assert doc.page_no() == 5

    def test_page_size_override(self):
        doc = Document(DocumentConfig(paper_size='A4'))
        doc.add_page(size='Letter', orientation='landscape')

        assert doc.get_page_size() == (792.0, 612.0)
        assert doc.page(1).width == 595.28

    def test_set_page_returns_to_earlier_page(self, document):
        document.write_text(14, 'First')
        document.add_page()
        document.set_page(1)
        document.write_text(14, 'More')

        assert len(document.page(1).operators) == 2
        assert document.page(2).operators == []

    def test_missing_page(self, document):
        with pytest.raises(DocumentStateError):
            document.page(2)


class TestTextPlacement:
    """Test text writing and cursor movement"""

    def test_hello_at_margin_origin(self, document):
        document.write_text(14, 'Hello')

        operators = document.page(1).operators
        assert len(operators) == 1
        text = operators[0]
        assert isinstance(text, Text)
        assert (text.x, text.y) == (72, 72)
        assert text.size == 12
        expected = stringWidth('Hello', 'Helvetica', 12)
        assert text.width == pytest.approx(expected)
        assert document.get_x() == pytest.approx(72 + expected)
        assert document.get_y() == 72

    def test_cursor_advances_by_rendered_width(self, document):
        document.write_text(14, '→ ok')

        rendered = stringWidth('? ok', 'Helvetica', 12)
        assert document.page(1).operators[0].width == pytest.approx(rendered)
        assert document.get_x() == pytest.approx(72 + rendered)

    def test_text_without_font(self):
        doc = Document()
        with pytest.raises(UndefinedFontError):
            doc.write_text(14, 'Hello')

    def test_unknown_font(self, document):
        with pytest.raises(UndefinedFontError):
            document.set_font('No Such Font', '')

    def test_core_fonts_register_on_first_use(self, document):
        first = document.set_font('Times', 'B')
        second = document.set_font('times', 'b', 10)

        assert first == second
        assert len(document.resources.fonts) == 2  # Helvetica + Times-Bold
        assert document.font_size == 10

    def test_font_from_cache(self, font_dir):
        doc = Document(font_cache=FontCache([str(font_dir)]))
        font_id = doc.set_font('Test Sans', 'B', 10)

        assert not doc.resources.font(font_id).is_core
        assert doc.measure_text_width('AB') == pytest.approx(12.0)

    def test_add_font(self, ttf_bytes):
        doc = Document()
        font_id = doc.add_font('Custom', '', ttf_bytes)

        assert doc.set_font('Custom', '', 10) == font_id

    def test_underline_flag(self, document):
        document.set_font('Helvetica', 'U')
        document.write_text(14, 'Underlined')
        assert document.page(1).operators[-1].underline

    def test_br(self, document):
        document.write_text(14, 'Hello')
        document.br(20)
        assert (document.get_x(), document.get_y()) == (72, 92)

    def test_automatic_page_break(self, document):
        document.set_y(document.get_page_size()[1] - 60)
        document.write_text(14, 'Overflow')

        assert document.page_count == 2
        text = document.page(2).operators[0]
        assert text.y == 72

    def test_split_text(self, document):
        lines = document.split_text('one two three four five six', 60)
        assert len(lines) > 1
        assert all(document.measure_text_width(line) <= 60 for line in lines)


class TestCell:
    """Test cell drawing"""

    def test_cell_with_border(self, document):
        document.cell(100, 20, 'Boxed', border=1)

        operators = document.page(1).operators
        assert isinstance(operators[0], MoveTo)
        assert [type(op) for op in operators[1:5]] == [LineTo] * 4
        assert operators[5] == DrawPath('D')
        assert isinstance(operators[6], Text)
        assert document.get_x() == 172

    def test_zero_width_extends_to_right_margin(self, document):
        document.cell(0, 20, '', border=1, ln=1)
        right = document.get_page_size()[0] - 72
        top_right = document.page(1).operators[1]
        assert (top_right.x, top_right.y) == (pytest.approx(right), 72)
        assert (document.get_x(), document.get_y()) == (72, 92)

    def test_alignment(self, document):
        width = document.measure_text_width('R')
        document.cell(100, 20, 'R', align='R')
        assert document.page(1).operators[0].x == pytest.approx(72 + 100 - width)

    def test_cell_link(self, document):
        document.cell(100, 20, 'Go', link='#target')
        document.add_anchor('target')
        annotation, = document.resolve_links()
        assert annotation.is_internal


class TestMargins:
    """Test margin handling on the document"""

    def test_invalid_margins_leave_previous_values(self, document):
        before = document.get_margins()
        with pytest.raises(InvalidMarginError):
            document.set_margins(300, 72, 300)
        assert document.get_margins() == before

    def test_invalid_config_margins(self):
        with pytest.raises(InvalidMarginError):
            Document(DocumentConfig(margins=Margins(400, 10, 400, 10)))


class TestLinks:
    """Test links placed through the document"""

    def test_forward_internal_link(self, document):
        document.write_internal_link(14, 'Contents', 'toc')
        document.add_page()
        document.set_y(150)
        document.add_anchor('toc')

        annotation, = document.resolve_links()

        assert annotation.page == 1
        assert (annotation.target_page, annotation.target_y) == (2, 150)

    def test_undefined_anchor_dropped(self, document):
        document.write_internal_link(14, 'Nowhere', 'missing')
        assert document.resolve_links() == []

    def test_external_link_and_annotations_for(self, document):
        document.write_external_link(14, 'Site', 'https://example.com')
        document.add_page()
        document.link(72, 72, 50, 10, 'https://example.org')

        assert [a.uri for a in document.annotations_for(1)] == ['https://example.com']
        assert [a.uri for a in document.annotations_for(2)] == ['https://example.org']


class TestImages:
    """Test image registration and placement"""

    def test_image_at_96_dpi(self, document, jpeg_bytes):
        document.register_image('photo', 'jpg', jpeg_bytes)
        rect = document.use_image('photo', 100, 100)

        assert rect == (100, 100, 72, 36)
        assert document.page(1).operators[-1] == UseImage(1, (100.0, 100.0, 72.0, 36.0))

    def test_image_aspect_ratio(self, document, jpeg_bytes):
        document.register_image('photo', 'jpg', jpeg_bytes)
        assert document.use_image('photo', 0, 0, w=200) == (0, 0, 200, 100)

    def test_image_flows_below_cursor(self, document, png_bytes):
        document.register_image('logo', 'png', png_bytes)
        document.use_image('logo', w=40)
        assert document.get_y() == 92

    def test_register_from_stream(self, document, temp_dir, png_bytes):
        path = temp_dir / 'logo.png'
        path.write_bytes(png_bytes)
        with open(path, 'rb') as stream:
            handle = document.register_image('logo', 'png', stream)
        assert handle.width == 4

    def test_unregistered_image(self, document):
        with pytest.raises(KeyError):
            document.use_image('missing')

    def test_logo_from_config(self, png_bytes):
        doc = Document(DocumentConfig(logo=png_bytes, logo_format='png'))
        assert doc.resources.image('logo') is not None


class TestHooksAndColors:
    """Test header/footer hooks and graphics state"""

    def test_header_and_footer_run_once_per_page(self):
        calls = []
        config = DocumentConfig(
            header=lambda doc: calls.append(('header', doc.page_no())),
            footer=lambda doc: calls.append(('footer', doc.page_no())),
        )
        doc = Document(config)
        doc.add_page()
        doc.add_page()
        doc.output_bytes()

        assert calls == [
            ('header', 1), ('footer', 1),
            ('header', 2), ('footer', 2),
            ('header', 3), ('footer', 3),
        ]

    def test_hook_font_is_restored(self):
        def header(doc):
            doc.set_font('Courier', 'B', 8)
            doc.write_text(10, 'Header')

        doc = Document(DocumentConfig(header=header))
        doc.set_font('Helvetica', '', 12)
        doc.add_page()
        doc.write_text(14, 'Body')

        body = doc.page(2).operators[-1]
        assert body.size == 12
        assert doc.resources.font(body.font_id).metrics.base_name == 'Helvetica'

    def test_state_restored_when_hook_raises(self):
        def header(doc):
            doc.set_font('Courier', 'B', 8)
            doc.set_text_color(255, 0, 0)
            if doc.page_no() > 1:
                raise RuntimeError("header failed")

        doc = Document(DocumentConfig(header=header))
        doc.set_font('Helvetica', '', 12)
        with pytest.raises(RuntimeError):
            doc.add_page()

        assert doc.font_size == 12
        assert doc.page(2).operators[-1] == SetColor('text', (0, 0, 0))
        doc.write_text(14, 'Body')
        body = doc.page(2).operators[-1]
        assert doc.resources.font(body.font_id).metrics.base_name == 'Helvetica'

    def test_colors_carry_over_to_new_page(self, document):
        document.set_text_color(255, 0, 0)
        document.add_page()
        assert SetColor('text', (255, 0, 0)) in document.page(2).operators

    def test_invalid_color(self, document):
        with pytest.raises(ValueError):
            document.set_fill_color(256, 0, 0)

    def test_line_and_rect(self, document):
        document.set_line_width(2)
        document.line(72, 100, 200, 100)
        document.rect(72, 120, 50, 50, 'F')

        operators = document.page(1).operators
        assert operators[3] == DrawPath('D')
        assert operators[-1] == DrawPath('F')


class TestLifecycle:
    """Test document state after output"""

    def test_no_changes_after_write(self, document):
        document.output_bytes()

        assert document.state == 'closed'
        with pytest.raises(DocumentStateError):
            document.write_text(14, 'Too late')
        with pytest.raises(DocumentStateError):
            document.add_page()

    @pytest.mark.parametrize('change', [
        lambda doc: doc.set_x(100),
        lambda doc: doc.set_y(100),
        lambda doc: doc.set_xy(100, 100),
        lambda doc: doc.set_margins(100, 100),
        lambda doc: doc.set_left_margin(100),
        lambda doc: doc.set_top_margin(100),
        lambda doc: doc.set_right_margin(100),
        lambda doc: doc.set_auto_page_break(False),
        lambda doc: doc.br(10),
        lambda doc: doc.set_font_size(30),
    ])
    def test_no_cursor_or_margin_changes_after_write(self, document, change):
        document.output_bytes()
        position, margins = (document.get_x(), document.get_y()), document.get_margins()

        with pytest.raises(DocumentStateError):
            change(document)

        assert (document.get_x(), document.get_y()) == position
        assert document.get_margins() == margins
        assert document.font_size == 12

    def test_strict_failure_leaves_no_file(self, temp_dir):
        doc = Document(DocumentConfig(strict_links=True))
        doc.set_font('Helvetica', '', 12)
        doc.write_internal_link(14, 'See elsewhere', 'missing')
        path = temp_dir / 'out.pdf'

        with pytest.raises(UnresolvedAnchorError):
            doc.output_file(str(path))

        assert not path.exists()

    def test_partial_file_is_removed(self, document, temp_dir):
        path = temp_dir / 'partial.pdf'

        class FullDisk:
            def __init__(self, name, mode):
                self.handle = open(name, mode)

            def __enter__(self):
                return self

            def __exit__(self, *exc_info):
                self.handle.close()

            def write(self, data):
                self.handle.write(data[:16])
                raise OSError("No space left on device")

        with patch('pdfbuilder.document.open', FullDisk, create=True):
            with pytest.raises(OutputError):
                document.output_file(str(path))

        assert not path.exists()
        assert document.state == 'failed'

    def test_output_file(self, document, temp_dir):
        document.write_text(14, 'Hello')
        path = temp_dir / 'hello.pdf'

        written = document.output_file(str(path))

        assert path.read_bytes()[:8] == b'%PDF-1.4'
        assert written == path.stat().st_size
