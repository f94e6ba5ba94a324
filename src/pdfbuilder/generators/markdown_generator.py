"""
Markdown Generator

Lays out Markdown-flavoured text on a Document: headings (with anchors),
paragraphs with inline links, bullet lists, code blocks, images and
horizontal rules. An optional table of contents at the start links forward
to every heading.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple

from ..config import DocumentConfig
from ..document import Document
from ..exceptions import DecodeError, UndefinedFontError, UnsupportedFormatError
from ..fonts import FontCache
from ..utils import slugify
from . import BaseGenerator, ContentValidator

LINK_PATTERN = re.compile(r'\[([^\]]+)\]\(([^)\s]+)\)')
IMAGE_PATTERN = re.compile(r'^!\[([^\]]*)\]\(([^)\s]+)\)\s*$')

HEADING_SIZES = {1: 18, 2: 15, 3: 13}
BULLET = '•'
LINK_COLOR = (30, 80, 170)
MUTED_COLOR = (120, 120, 120)


@dataclass
class Block:
    kind: str
    text: str = ''
    level: int = 0
    target: str = ''
    lines: List[str] = field(default_factory=list)


@dataclass
class TocEntry:
    level: int
    title: str
    anchor: str


class MarkdownGenerator(BaseGenerator):
    """
    PDF generator for Markdown-flavoured text.

    Supports:
    - '#', '##', '###' headings, each defining an anchor
    - paragraphs with [text](url) and [text](#anchor) links
    - '- ' / '* ' bullet items
    - fenced code blocks
    - ![alt](path) images on their own line
    - '---' horizontal rules
    """

    def __init__(self, config: Dict[str, Any], font_cache: Optional[FontCache] = None):
        super().__init__(config)
        self.pdf_config = config.get('pdf', {})
        self.font_config = self.pdf_config.get('font', {})
        self.font_family = self.font_config.get('family', 'Helvetica')
        self.font_size = float(self.font_config.get('size', 11))
        self.line_height = float(self.font_config.get('line_height', self.font_size * 1.3))
        self.include_toc = self.pdf_config.get('include_toc', True)
        self.include_page_numbers = self.pdf_config.get('include_page_numbers', True)
        self.font_cache = font_cache or FontCache(config.get('fonts', {}).get('search_paths', []))

    def validate_config(self) -> bool:
        """Validate generator configuration"""
        if 'pdf' not in self.config:
            self.logger.error("Missing required config section: pdf")
            return False
        if self.font_size <= 0 or self.line_height <= 0:
            self.logger.error(f"Invalid font size/line height: {self.font_size}/{self.line_height}")
            return False
        return True

    def get_supported_formats(self) -> List[str]:
        return ['md', 'markdown', 'txt']

    # Parsing

    def parse(self, source: str) -> Tuple[List[Block], List[TocEntry]]:
        """Split source text into layout blocks and collect table of contents entries."""
        blocks: List[Block] = []
        toc: List[TocEntry] = []
        slugs: Dict[str, int] = {}
        paragraph: List[str] = []
        code: Optional[List[str]] = None

        def flush_paragraph():
            if paragraph:
                blocks.append(Block('paragraph', ' '.join(paragraph)))
                paragraph.clear()

        for raw in source.splitlines():
            line = raw.rstrip()
            if code is not None:
                if line.strip().startswith('```'):
                    blocks.append(Block('code', lines=code))
                    code = None
                else:
                    code.append(line)
                continue

            stripped = line.strip()
            if stripped.startswith('```'):
                flush_paragraph()
                code = []
                continue
            if not stripped:
                flush_paragraph()
                continue

            heading = re.match(r'^(#{1,3})\s+(.*)$', stripped)
            if heading:
                flush_paragraph()
                level, title = len(heading.group(1)), heading.group(2).strip()
                anchor = slugify(title)
                slugs[anchor] = slugs.get(anchor, 0) + 1
                if slugs[anchor] > 1:
                    anchor = f"{anchor}-{slugs[anchor]}"
                blocks.append(Block('heading', title, level=level, target=anchor))
                toc.append(TocEntry(level, title, anchor))
                continue

            image = IMAGE_PATTERN.match(stripped)
            if image:
                flush_paragraph()
                blocks.append(Block('image', image.group(1), target=image.group(2)))
                continue

            if re.match(r'^(-{3,}|\*{3,})$', stripped):
                flush_paragraph()
                blocks.append(Block('rule'))
                continue

            bullet = re.match(r'^[-*]\s+(.*)$', stripped)
            if bullet:
                flush_paragraph()
                blocks.append(Block('bullet', bullet.group(1)))
                continue

            paragraph.append(stripped)

        flush_paragraph()
        if code is not None:
            blocks.append(Block('code', lines=code))
        return blocks, toc

    @staticmethod
    def split_runs(text: str) -> List[Tuple[str, Optional[str]]]:
        """Split inline text into (text, link target) runs."""
        runs: List[Tuple[str, Optional[str]]] = []
        position = 0
        for match in LINK_PATTERN.finditer(text):
            if match.start() > position:
                runs.append((text[position:match.start()], None))
            runs.append((match.group(1), match.group(2)))
            position = match.end()
        if position < len(text):
            runs.append((text[position:], None))
        return runs

    # Layout

    def build_document(self, source: str, base_dir: Optional[str] = None, **overrides: Any) -> Document:
        """
        Lay out `source` on a new Document.

        Args:
            source: Markdown text
            base_dir: Directory image paths are relative to
            **overrides: DocumentConfig field overrides (title, paper_size, ...)

        Returns:
            The populated, still open Document
        """
        is_valid, errors = ContentValidator.validate_source(source)
        if not is_valid:
            raise ValueError(f"Invalid source: {'; '.join(errors)}")
        if not self.validate_config():
            raise ValueError("Invalid configuration for PDF generation")

        blocks, toc = self.parse(source)
        doc_config = DocumentConfig.from_config(self.config, **overrides)
        if self.include_page_numbers:
            doc_config.footer = self._footer
        if doc_config.title:
            doc_config.header = self._header

        document = Document(doc_config, font_cache=self.font_cache)
        self.logger.info(f"Laying out {len(blocks)} blocks ({len(toc)} headings)")

        self._select(document, '', self.font_size)
        if doc_config.title:
            self._title_block(document, doc_config.title)
        if self.include_toc and toc:
            self._toc(document, toc)
            document.add_page()

        base = Path(base_dir) if base_dir else Path('.')
        for block in blocks:
            if block.kind == 'heading':
                self._heading(document, block)
            elif block.kind == 'paragraph':
                self._flow(document, self.split_runs(block.text))
                document.br(self.line_height * 1.5)
            elif block.kind == 'bullet':
                self._bullet(document, block)
            elif block.kind == 'code':
                self._code(document, block)
            elif block.kind == 'image':
                self._image(document, block, base)
            elif block.kind == 'rule':
                self._rule(document)

        self.logger.info(f"Layout complete: {document.page_count} pages")
        return document

    def generate(self, source: str, output_path: str, **kwargs) -> str:
        """
        Generate a PDF file from Markdown text.

        Args:
            source: Markdown text
            output_path: Path of the PDF to write
            **kwargs: base_dir plus DocumentConfig overrides

        Returns:
            str: Path of the written PDF
        """
        base_dir = kwargs.pop('base_dir', None)
        document = self.build_document(source, base_dir=base_dir, **kwargs)

        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        written = document.output_file(output_path)
        self.logger.info(f"PDF written to {output_path} ({written} bytes)")
        return output_path

    def _select(self, document: Document, style: str, size: float) -> None:
        try:
            document.set_font(self.font_family, style, size)
        except UndefinedFontError:
            if not style:
                raise
            # TrueType families often ship without every style
            self.logger.debug(f"No '{style}' style for {self.font_family}, using regular")
            document.set_font(self.font_family, '', size)

    def _header(self, document: Document) -> None:
        left, top, _, _ = document.get_margins()
        self._select(document, 'I', 8)
        document.set_text_color(*MUTED_COLOR)
        document.set_xy(left, max(top - 16, 4))
        document.cell(0, 10, document.metadata['title'], align='R')
        document.set_xy(left, top)

    def _footer(self, document: Document) -> None:
        _, _, _, bottom = document.get_margins()
        self._select(document, 'I', 8)
        document.set_text_color(*MUTED_COLOR)
        document.set_y(-(bottom / 2 + 5))
        document.cell(0, 10, f"Page {document.page_no()}", align='C')

    def _title_block(self, document: Document, title: str) -> None:
        self._select(document, 'B', 22)
        document.cell(0, 30, title, ln=1, align='C')
        subject = document.metadata.get('subject')
        if subject:
            self._select(document, 'I', 12)
            document.cell(0, 18, subject, ln=1, align='C')
        document.br(self.line_height)
        self._select(document, '', self.font_size)

    def _toc(self, document: Document, toc: List[TocEntry]) -> None:
        self._select(document, 'B', HEADING_SIZES[2])
        document.cell(0, HEADING_SIZES[2] * 1.5, 'Contents', ln=1)
        self._select(document, '', self.font_size)
        left = document.get_margins()[0]
        document.set_text_color(*LINK_COLOR)
        for entry in toc:
            if entry.level > 2:
                continue
            document.set_x(left + (entry.level - 1) * 14)
            document.write_internal_link(self.line_height, entry.title, entry.anchor)
            document.br(self.line_height)
        document.set_text_color(0, 0, 0)

    def _heading(self, document: Document, block: Block) -> None:
        size = HEADING_SIZES.get(block.level, self.font_size)
        trigger = document.get_page_size()[1] - document.get_margins()[3]
        # keep a heading together with at least one line of its section
        if document.get_y() + size * 1.6 + self.line_height > trigger:
            document.add_page()
        document.br(size * 0.4)
        document.add_anchor(block.target)
        self._select(document, 'B', size)
        document.write_text(size * 1.3, block.text)
        document.br(size * 1.6)
        self._select(document, '', self.font_size)

    def _bullet(self, document: Document, block: Block) -> None:
        left = document.get_margins()[0]
        document.set_x(left + 8)
        document.write_text(self.line_height, BULLET)
        self._flow(document, self.split_runs(block.text), indent=20)
        document.br(self.line_height * 1.2)

    def _code(self, document: Document, block: Block) -> None:
        self._select(document, '', self.font_size - 2)
        document.set_fill_color(242, 242, 242)
        height = self.line_height - 2
        width = document.get_page_size()[0] - sum(document.get_margins()[0:3:2])
        for line in block.lines or ['']:
            pieces = document.split_text(line.replace('\t', '    '), width) if line else ['']
            for piece in pieces:
                document.cell(0, height, piece, ln=1, fill=True)
        document.set_fill_color(0, 0, 0)
        document.br(self.line_height * 0.6)
        self._select(document, '', self.font_size)

    def _image(self, document: Document, block: Block, base: Path) -> None:
        path = base / block.target
        suffix = path.suffix.lstrip('.').lower()
        try:
            data = path.read_bytes()
            handle = document.register_image(str(block.target), suffix, data)
        except (OSError, DecodeError, UnsupportedFormatError) as e:
            self.logger.warning(f"Skipping image {path}: {e}")
            self._select(document, 'I', self.font_size)
            document.write_text(self.line_height, f"[image: {block.text or block.target}]")
            document.br(self.line_height * 1.5)
            self._select(document, '', self.font_size)
            return

        page_width = document.get_page_size()[0]
        left, _, right, _ = document.get_margins()
        natural_width = handle.width * 72.0 / 96.0
        width = min(natural_width, page_width - left - right)
        document.set_x(left)
        document.use_image(handle.identifier, x=left, w=width)
        document.br(self.line_height * 0.5)

    def _rule(self, document: Document) -> None:
        page_width = document.get_page_size()[0]
        left, _, right, _ = document.get_margins()
        document.br(self.line_height * 0.5)
        y = document.get_y()
        document.line(left, y, page_width - right, y)
        document.br(self.line_height * 0.5)

    def _flow(self, document: Document, runs: List[Tuple[str, Optional[str]]], indent: float = 0) -> None:
        """Write runs word by word, wrapping at the right margin."""
        page_width = document.get_page_size()[0]
        left, _, right, _ = document.get_margins()
        line_start = left + indent
        right_edge = page_width - right
        space = document.measure_text_width(' ')

        if document.get_x() < line_start:
            document.set_x(line_start)

        spaced = False
        for text, target in runs:
            if target:
                document.set_text_color(*LINK_COLOR)
            for token in re.split(r'(\s+)', text):
                if not token:
                    continue
                if token.isspace():
                    spaced = True
                    continue
                word, spaced = token, spaced and document.get_x() > line_start
                width = document.measure_text_width(word)
                gap = space if spaced else 0.0
                if document.get_x() > line_start and document.get_x() + gap + width > right_edge:
                    document.br(self.line_height)
                    document.set_x(line_start)
                    spaced = False
                if spaced:
                    document.write_text(self.line_height, ' ')
                    spaced = False
                pieces = [word]
                if width > right_edge - line_start:
                    pieces = document.split_text(word, right_edge - line_start)
                for index, piece in enumerate(pieces):
                    if index:
                        document.br(self.line_height)
                        document.set_x(line_start)
                    self._write_piece(document, piece, target)
            if target:
                document.set_text_color(0, 0, 0)

    def _write_piece(self, document: Document, text: str, target: Optional[str]) -> None:
        if not target:
            document.write_text(self.line_height, text)
        elif target.startswith('#'):
            document.write_internal_link(self.line_height, text, target[1:])
        else:
            document.write_external_link(self.line_height, text, target)
