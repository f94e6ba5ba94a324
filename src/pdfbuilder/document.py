"""
Document Model

Document is the public entry point: it owns the pages, the resource tables,
the link resolver and the cursor state of one PDF being assembled, and
exposes the drawing, text, link and image operations on top of them.

Usage:
    from pdfbuilder import Document, DocumentConfig

    doc = Document(DocumentConfig(title="Report"))
    doc.set_font("Helvetica", "B", 16)
    doc.write_text(20, "Hello")
    doc.output_file("report.pdf")
"""

import logging
import os
from datetime import datetime
from io import BytesIO
from typing import BinaryIO, Dict, List, Optional, Tuple, Union

from .config import DocumentConfig
from .content import RGB, ContentStreamBuilder, Page, Rect
from .exceptions import DocumentStateError, OutputError, UndefinedFontError
from .fonts import CORE_FONTS, FontCache, TextMeasurer, normalize_family, normalize_style
from .geometry import GeometryTracker, PaperSize, resolve_page_size
from .links import Anchor, LinkAnnotation, LinkResolver
from .resources import ImageHandle, ResourceManager
from .serializer import PDFSerializer

# Images placed without explicit size are rendered at this resolution
DEFAULT_DPI = 96.0

OPEN = 'open'
CLOSED = 'closed'
FAILED = 'failed'


class Document:
    """
    A PDF document under construction.

    The document starts with one page. Page-local coordinates are in points
    from the top-left corner of the page.
    """

    def __init__(self, config: Optional[DocumentConfig] = None, font_cache: Optional[FontCache] = None):
        self.config = config or DocumentConfig()
        self.logger = logging.getLogger(__name__)

        self.default_page_size = resolve_page_size(self.config.paper_size, self.config.orientation)
        self.geometry = GeometryTracker(self.config.margins)
        self.geometry.auto_page_break = self.config.auto_page_break
        self.pages: List[Page] = []
        self.resources = ResourceManager()
        self.measurer = TextMeasurer(self.resources)
        self.content = ContentStreamBuilder(self.geometry, self.pages, self.measurer)
        self.links = LinkResolver()
        self.font_cache = font_cache or FontCache(self.config.font_paths)

        self.metadata: Dict[str, str] = {
            'title': self.config.title,
            'subject': self.config.subject,
            'author': self.config.author,
            'creator': self.config.creator,
            'keywords': self.config.keywords,
        }
        self.created_at = datetime.now().astimezone()

        self._state = OPEN
        self._in_hook = False
        self._colors: Dict[str, RGB] = {'draw': (0, 0, 0), 'fill': (0, 0, 0), 'text': (0, 0, 0)}
        self._line_width: Optional[float] = None

        if self.config.logo is not None:
            self.register_image('logo', self.config.logo_format, self.config.logo)

        self.add_page()

    # State

    @property
    def state(self) -> str:
        return self._state

    def _check_open(self) -> None:
        if self._state == FAILED:
            raise DocumentStateError("A previous write failed; the document must be discarded")
        if self._state == CLOSED:
            raise DocumentStateError("The document has been written and can no longer be modified")

    def _run_hook(self, hook) -> None:
        """Run a header/footer hook, restoring font and colors afterwards."""
        font = (self.content.font.font_id, self.content.font.size, self.content.font.underline)
        colors = dict(self._colors)
        line_width = self._line_width
        self._in_hook = True
        try:
            hook(self)
        finally:
            self._in_hook = False
            self.content.font.font_id, self.content.font.size, self.content.font.underline = font
            for role, rgb in colors.items():
                if self._colors[role] != rgb:
                    self._set_color(role, rgb)
            if line_width is not None and self._line_width != line_width:
                self.content.set_line_width(line_width)
                self._line_width = line_width

    # Pages

    def add_page(self, size: Optional[PaperSize] = None, orientation: Optional[str] = None) -> Page:
        """
        Append a new page and make it the active page.

        Args:
            size: Paper size for this page only (name or (width, height))
            orientation: Orientation for this page only

        Returns:
            The new page
        """
        self._check_open()
        if self.pages:
            self.geometry.set_active(len(self.pages))
            if self.config.footer is not None and not self._in_hook:
                self._run_hook(self.config.footer)

        if size is None and orientation is None:
            width, height = self.default_page_size
        else:
            width, height = resolve_page_size(size or self.config.paper_size,
                                              orientation or self.config.orientation)

        state = self.geometry.new_page(width, height)
        page = Page(index=len(self.pages) + 1, state=state)
        self.pages.append(page)
        self.logger.debug(f"Added page {page.index} ({width}x{height}pt)")

        # graphics state does not carry over between content streams
        if self._line_width is not None:
            self.content.set_line_width(self._line_width)
        for role, rgb in self._colors.items():
            if rgb != (0, 0, 0):
                self.content.set_color(role, rgb)

        if self.config.header is not None and not self._in_hook:
            self._run_hook(self.config.header)
        return page

    def page_no(self) -> int:
        """Index of the active page."""
        return self.geometry.active_index

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def page(self, index: int) -> Page:
        if not 1 <= index <= len(self.pages):
            raise DocumentStateError(f"Page {index} does not exist (document has {len(self.pages)} pages)")
        return self.pages[index - 1]

    def set_page(self, index: int) -> None:
        """Make an existing page active; its own cursor position is kept."""
        self._check_open()
        self.geometry.set_active(index)

    # Position

    def get_x(self) -> float:
        return self.geometry.get_x()

    def get_y(self) -> float:
        return self.geometry.get_y()

    def set_x(self, x: float) -> None:
        self._check_open()
        self.geometry.set_x(x)

    def set_y(self, y: float) -> None:
        self._check_open()
        self.geometry.set_y(y)

    def set_xy(self, x: float, y: float) -> None:
        self._check_open()
        self.geometry.set_xy(x, y)

    def get_page_size(self) -> Tuple[float, float]:
        return self.geometry.page_size()

    # Margins

    def set_margins(self, left: float, top: float, right: Optional[float] = None) -> None:
        self._check_open()
        self.geometry.set_margins(left, top, right)

    def set_left_margin(self, margin: float) -> None:
        self._check_open()
        self.geometry.set_left_margin(margin)

    def set_top_margin(self, margin: float) -> None:
        self._check_open()
        self.geometry.set_top_margin(margin)

    def set_right_margin(self, margin: float) -> None:
        self._check_open()
        self.geometry.set_right_margin(margin)

    def set_auto_page_break(self, enabled: bool, margin: Optional[float] = None) -> None:
        self._check_open()
        self.geometry.set_auto_page_break(enabled, margin)

    def get_margins(self) -> Tuple[float, float, float, float]:
        return self.geometry.get_margins()

    def _page_break_if_needed(self, height: float) -> None:
        if not self._in_hook and self.geometry.accepts_page_break(height):
            x = self.geometry.get_x()
            self.add_page()
            self.geometry.set_x(x)

    # Fonts

    def add_font(self, family: str, style: str, data: bytes) -> int:
        """Register TrueType font bytes for (family, style) and return the font ID."""
        self._check_open()
        return self.resources.register_font(family, style, data)

    def set_font(self, family: str, style: str = '', size: Optional[float] = None) -> int:
        """
        Select the font used by subsequent text operations.

        Standard fonts are registered on first use; other families are looked
        up in the font cache when they have not been added explicitly.

        Raises:
            UndefinedFontError: if the font is neither registered, standard
                nor found in the font cache
        """
        self._check_open()
        key, underline = normalize_style(style)
        font_id = self.resources.find_font(family, key)
        if font_id is None:
            if (normalize_family(family), key) in CORE_FONTS:
                font_id = self.resources.register_core_font(family, key)
            else:
                data = self.font_cache.get(family, key)
                if data is None:
                    raise UndefinedFontError(f"Undefined font: {family} {key}".strip())
                font_id = self.resources.register_font(family, key, data)

        self.content.font.font_id = font_id
        self.content.font.underline = underline
        if size is not None:
            self.set_font_size(size)
        return font_id

    def set_font_size(self, size: float) -> None:
        self._check_open()
        if size <= 0:
            raise ValueError(f"Font size must be > 0, got {size}")
        self.content.font.size = float(size)

    @property
    def font_size(self) -> float:
        return self.content.font.size

    # Writing

    def write_text(self, height: float, text: str) -> Rect:
        """Write text at the cursor; x advances by the text width."""
        self._check_open()
        self._page_break_if_needed(height)
        return self.content.text(text, height)

    def cell(self, width: float, height: float, text: str = '', border: Union[int, str] = 0,
             ln: int = 0, align: str = 'L', fill: bool = False, link: Optional[str] = None) -> None:
        """
        Print a cell (see ContentStreamBuilder.cell); `link` is either
        '#anchor' for an internal link or a URI.
        """
        self._check_open()
        self._page_break_if_needed(height)
        page = self.page_no()
        text_box = self.content.cell(width, height, text, border, ln, align, fill)
        if link and text_box:
            self._add_link(link, page, text_box)

    def _add_link(self, target: str, page: int, rect: Rect) -> None:
        if target.startswith('#'):
            self.links.record_internal_link(target[1:], page, rect)
        else:
            self.links.record_external_link(target, page, rect)

    def br(self, height: Optional[float] = None) -> None:
        """Line break: x returns to the left margin, y moves down by `height`."""
        self._check_open()
        self.geometry.line_break(height)

    def measure_text_width(self, text: str) -> float:
        return self.content.measure(text)

    def split_text(self, text: str, width: float) -> List[str]:
        """Split text into lines fitting `width` with the current font."""
        font_id = self.content.require_font()
        return self.measurer.split_lines(font_id, self.content.font.size, text, width)

    # Links

    def add_anchor(self, name: str) -> Anchor:
        """Define anchor `name` at the current page and y position."""
        self._check_open()
        return self.links.define_anchor(name, self.page_no(), self.get_y())

    def write_internal_link(self, height: float, text: str, anchor: str) -> Rect:
        """Write text linking to `anchor`, which may be defined later."""
        self._check_open()
        self._page_break_if_needed(height)
        rect = self.content.text(text, height)
        self.links.record_internal_link(anchor, self.page_no(), rect)
        return rect

    def write_external_link(self, height: float, text: str, destination: str) -> Rect:
        self._check_open()
        self._page_break_if_needed(height)
        rect = self.content.text(text, height)
        self.links.record_external_link(destination, self.page_no(), rect)
        return rect

    def link(self, x: float, y: float, width: float, height: float, target: str) -> None:
        """Make a rectangle of the active page clickable ('#anchor' or URI)."""
        self._check_open()
        self._add_link(target, self.page_no(), (x, y, width, height))

    def resolve_links(self) -> List[LinkAnnotation]:
        return self.links.resolve(strict=self.config.strict_links)

    def annotations_for(self, page_index: int) -> List[LinkAnnotation]:
        return [a for a in self.resolve_links() if a.page == page_index]

    # Images

    def register_image(self, image_id: str, image_format: str,
                       source: Union[bytes, BinaryIO]) -> ImageHandle:
        """Register image bytes (or a readable stream) under `image_id`."""
        self._check_open()
        data = source.read() if hasattr(source, 'read') else bytes(source)
        return self.resources.register_image(image_id, image_format, data)

    def use_image(self, image_id: str, x: Optional[float] = None, y: Optional[float] = None,
                  w: float = 0, h: float = 0) -> Rect:
        """
        Place a registered image.

        A zero width or height is derived from the other one and the image's
        aspect ratio; both zero renders the image at 96 dpi. Without `y`, the
        image flows: it is placed at the cursor (breaking the page if needed)
        and the cursor moves below it.

        Returns:
            The (x, y, w, h) rectangle the image occupies
        """
        self._check_open()
        image = self.resources.image(image_id)
        if image is None:
            raise KeyError(f"Image '{image_id}' is not registered")

        if w == 0 and h == 0:
            w = image.width * 72.0 / DEFAULT_DPI
            h = image.height * 72.0 / DEFAULT_DPI
        elif w == 0:
            w = h * image.width / image.height
        elif h == 0:
            h = w * image.height / image.width

        if y is None:
            self._page_break_if_needed(h)
            y = self.get_y()
            self.geometry.state().y = y + h
        if x is None:
            x = self.get_x()

        rect = (x, y, w, h)
        self.content.image(image.id, rect)
        return rect

    # Colors and lines

    def _set_color(self, role: str, rgb: RGB) -> None:
        self.content.set_color(role, rgb)
        self._colors[role] = tuple(int(c) for c in rgb)

    def set_draw_color(self, r: int, g: int, b: int) -> None:
        self._check_open()
        self._set_color('draw', (r, g, b))

    def set_fill_color(self, r: int, g: int, b: int) -> None:
        self._check_open()
        self._set_color('fill', (r, g, b))

    def set_text_color(self, r: int, g: int, b: int) -> None:
        self._check_open()
        self._set_color('text', (r, g, b))

    def set_line_width(self, width: float) -> None:
        self._check_open()
        self.content.set_line_width(width)
        self._line_width = width

    def line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        self._check_open()
        self.content.line(x1, y1, x2, y2)

    def rect(self, x: float, y: float, w: float, h: float, style: str = 'D') -> None:
        self._check_open()
        self.content.rect(x, y, w, h, style)

    # Output

    def close(self) -> None:
        """Finish the last page (footer hook) and freeze the document."""
        if self._state == FAILED:
            raise DocumentStateError("A previous write failed; the document must be discarded")
        if self._state == CLOSED:
            return
        self.geometry.set_active(len(self.pages))
        if self.config.footer is not None:
            self._run_hook(self.config.footer)
        self._state = CLOSED

    def write(self, sink: BinaryIO) -> int:
        """
        Finalize the document and write it to `sink`.

        Returns:
            Number of bytes written

        Raises:
            OutputError: if the sink fails; the document is unusable afterwards
            UnresolvedAnchorError: in strict mode, for links to undefined anchors
        """
        self.close()
        annotations = self.resolve_links()
        serializer = PDFSerializer(self, compress=self.config.compress)
        try:
            written = serializer.serialize(sink, annotations)
        except OutputError:
            self._state = FAILED
            self.logger.error("Writing the document failed; discarding it")
            raise
        self.logger.info(f"Wrote {len(self.pages)} pages ({written} bytes)")
        return written

    def output_bytes(self) -> bytes:
        buffer = BytesIO()
        self.write(buffer)
        return buffer.getvalue()

    def output_file(self, path: str) -> int:
        """
        Write the document to `path`.

        The document is serialized before the file is created, and a partly
        written file is removed, so a failed write leaves nothing at `path`.
        """
        data = self.output_bytes()
        created = False
        try:
            with open(path, 'wb') as sink:
                created = True
                sink.write(data)
        except OSError as e:
            self._state = FAILED
            if created and os.path.exists(path):
                os.remove(path)
            self.logger.error(f"Writing {path} failed; discarding the document")
            raise OutputError(f"Could not write {path}: {e}") from e
        return len(data)
