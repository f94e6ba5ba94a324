"""
PDF Serializer

Walks a finished document and writes it to a byte sink in a single forward
pass. Object numbers are planned up front, so every reference is known
before the referenced object is written; byte offsets for the
cross-reference table come from counting the bytes handed to the sink.

Object layout:

    1                catalog
    2                page tree
    3                document information
    4                shared resources dictionary
    5, 6, 7, 8, ...  page object and content stream for each page
    ...              fonts (1 object per core font, 5 per TrueType font)
    ...              images (plus a soft mask object for alpha)
"""

import logging
from collections import defaultdict
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple

from . import __version__
from .content import DrawPath, LineTo, MoveTo, Page, SetColor, SetLineWidth, Text, UseImage
from .exceptions import OutputError
from .links import LinkAnnotation
from .pdf_objects import (
    PDFObject,
    PDFStream,
    escape_literal,
    fmt,
    fmt_color,
    pdf_array,
    pdf_date,
    pdf_dict,
    pdf_name,
    pdf_string,
    ref,
    trailer,
    xref_table,
)
from .resources import FontResource, ImageResource

HEADER = b'%PDF-1.4\n%\xe2\xe3\xcf\xd3\n'
PRODUCER = f"pdfbuilder {__version__}"

CATALOG_OBJ = 1
PAGES_OBJ = 2
INFO_OBJ = 3
RESOURCES_OBJ = 4
FIRST_PAGE_OBJ = 5

PATH_OPERATORS = {'D': 'S', 'F': 'f', 'DF': 'B', 'FD': 'B'}
BLACK = (0, 0, 0)


class CountingWriter:
    """Forwards bytes to a sink and keeps track of how many were written."""

    def __init__(self, sink: BinaryIO):
        self.sink = sink
        self.offset = 0

    def write(self, data: bytes) -> None:
        """
        Write all of `data`, repeating short writes of raw sinks.

        Sinks returning something other than a byte count are taken to have
        written everything.
        """
        remaining = data
        while remaining:
            try:
                count = self.sink.write(remaining)
            except (OSError, ValueError) as e:
                raise OutputError(f"Output sink failed after {self.offset} bytes: {e}") from e
            if not isinstance(count, int) or isinstance(count, bool) or count >= len(remaining):
                self.offset += len(remaining)
                return
            if count <= 0:
                raise OutputError(f"Output sink accepted no bytes after {self.offset} bytes")
            self.offset += count
            remaining = remaining[count:]


class ObjectPlan:
    """Object numbers for every page, font and image of a document."""

    def __init__(self, pages: List[Page], fonts: List[FontResource], images: List[ImageResource]):
        self.page_objects: Dict[int, int] = {}
        self.content_objects: Dict[int, int] = {}
        number = FIRST_PAGE_OBJ
        for page in pages:
            self.page_objects[page.index] = number
            self.content_objects[page.index] = number + 1
            number += 2

        # TrueType fonts: Type0, CIDFont, descriptor, font file, ToUnicode
        self.font_objects: Dict[int, int] = {}
        for font in fonts:
            self.font_objects[font.id] = number
            number += 1 if font.is_core else 5

        self.image_objects: Dict[int, int] = {}
        for image in images:
            self.image_objects[image.id] = number
            number += 2 if image.decoded.smask is not None else 1

        self.count = number - 1


class PDFSerializer:
    """
    Encodes a Document as PDF.

    Usage:
        serializer = PDFSerializer(document, compress=True)
        written = serializer.serialize(sink)
    """

    def __init__(self, document, compress: bool = True):
        self.document = document
        self.compress = compress
        self.logger = logging.getLogger(__name__)

    def serialize(self, sink: BinaryIO, annotations: Optional[List[LinkAnnotation]] = None) -> int:
        """
        Write the document to `sink`.

        Returns:
            Number of bytes written

        Raises:
            OutputError: if the sink fails to accept bytes
        """
        document = self.document
        pages = document.pages
        resources = document.resources
        if annotations is None:
            annotations = document.resolve_links()

        plan = ObjectPlan(pages, resources.fonts, resources.images)
        annotations_by_page: Dict[int, List[LinkAnnotation]] = defaultdict(list)
        for annotation in annotations:
            annotations_by_page[annotation.page].append(annotation)

        writer = CountingWriter(sink)
        writer.write(HEADER)
        offsets: Dict[int, int] = {}
        for pdf_obj in self._objects(plan, annotations_by_page):
            offsets[pdf_obj.number] = writer.offset
            writer.write(pdf_obj.serialize())

        if len(offsets) != plan.count:
            raise RuntimeError(f"Planned {plan.count} objects but wrote {len(offsets)}")

        xref_offset = writer.offset
        writer.write(xref_table(offsets))
        writer.write(trailer(plan.count + 1, CATALOG_OBJ, INFO_OBJ, xref_offset))
        self.logger.debug(f"Wrote {plan.count} objects, {writer.offset} bytes, xref at {xref_offset}")
        return writer.offset

    # Objects

    def _objects(self, plan: ObjectPlan, annotations: Dict[int, List[LinkAnnotation]]) -> Iterator[PDFObject]:
        document = self.document
        pages = document.pages

        yield PDFObject(CATALOG_OBJ, pdf_dict({'Type': '/Catalog', 'Pages': ref(PAGES_OBJ)}))
        kids = pdf_array(ref(plan.page_objects[page.index]) for page in pages)
        yield PDFObject(PAGES_OBJ, pdf_dict({'Type': '/Pages', 'Kids': kids, 'Count': str(len(pages))}))
        yield PDFObject(INFO_OBJ, self._info())
        yield PDFObject(RESOURCES_OBJ, self._resources(plan))

        used_glyphs: Dict[int, Dict[int, str]] = defaultdict(dict)
        for page in pages:
            yield PDFObject(plan.page_objects[page.index], self._page(page, plan, annotations.get(page.index, [])))
            content = self._content_stream(page, used_glyphs)
            yield PDFStream(plan.content_objects[page.index], {}, content, compress=self.compress)

        for font in document.resources.fonts:
            yield from self._font_objects(font, plan.font_objects[font.id], used_glyphs.get(font.id, {}))

        for image in document.resources.images:
            yield from self._image_objects(image, plan.image_objects[image.id])

    def _info(self) -> str:
        meta = self.document.metadata
        return pdf_dict({
            'Title': pdf_string(meta['title']) if meta.get('title') else None,
            'Subject': pdf_string(meta['subject']) if meta.get('subject') else None,
            'Author': pdf_string(meta['author']) if meta.get('author') else None,
            'Keywords': pdf_string(meta['keywords']) if meta.get('keywords') else None,
            'Creator': pdf_string(meta['creator']) if meta.get('creator') else None,
            'Producer': pdf_string(PRODUCER),
            'CreationDate': pdf_date(self.document.created_at),
        })

    def _resources(self, plan: ObjectPlan) -> str:
        resources = self.document.resources
        fonts = {font.name: ref(plan.font_objects[font.id]) for font in resources.fonts}
        images = {image.name: ref(plan.image_objects[image.id]) for image in resources.images}
        return pdf_dict({
            'ProcSet': '[/PDF /Text /ImageB /ImageC /ImageI]',
            'Font': pdf_dict(fonts) if fonts else None,
            'XObject': pdf_dict(images) if images else None,
        })

    def _page(self, page: Page, plan: ObjectPlan, annotations: List[LinkAnnotation]) -> str:
        annots = [self._annotation(a, page, plan) for a in annotations]
        return pdf_dict({
            'Type': '/Page',
            'Parent': ref(PAGES_OBJ),
            'MediaBox': pdf_array(['0', '0', fmt(page.width), fmt(page.height)]),
            'Resources': ref(RESOURCES_OBJ),
            'Contents': ref(plan.content_objects[page.index]),
            'Annots': pdf_array(annots) if annots else None,
        })

    def _annotation(self, annotation: LinkAnnotation, page: Page, plan: ObjectPlan) -> str:
        x, y, w, h = annotation.rect
        rect = pdf_array(fmt(v) for v in (x, page.height - y - h, x + w, page.height - y))
        entries = {'Type': '/Annot', 'Subtype': '/Link', 'Rect': rect, 'Border': '[0 0 0]'}
        if annotation.is_internal:
            target = self.document.page(annotation.target_page)
            entries['Dest'] = pdf_array([
                ref(plan.page_objects[target.index]), '/XYZ', '0', fmt(target.height - annotation.target_y), 'null'
            ])
        else:
            uri = '(' + escape_literal(annotation.uri.encode('utf-8')).decode('latin-1') + ')'
            entries['A'] = pdf_dict({'S': '/URI', 'URI': uri})
        return pdf_dict(entries)

    # Content streams

    def _content_stream(self, page: Page, used_glyphs: Dict[int, Dict[int, str]]) -> bytes:
        resources = self.document.resources
        height = page.height
        fill_color = BLACK
        text_color = BLACK
        out: List[bytes] = []

        for op in page.operators:
            if isinstance(op, MoveTo):
                out.append(f"{fmt(op.x)} {fmt(height - op.y)} m".encode('ascii'))
            elif isinstance(op, LineTo):
                out.append(f"{fmt(op.x)} {fmt(height - op.y)} l".encode('ascii'))
            elif isinstance(op, DrawPath):
                out.append(PATH_OPERATORS[op.style].encode('ascii'))
            elif isinstance(op, SetLineWidth):
                out.append(f"{fmt(op.width)} w".encode('ascii'))
            elif isinstance(op, SetColor):
                components = ' '.join(fmt_color(c) for c in op.rgb)
                if op.role == 'draw':
                    out.append(f"{components} RG".encode('ascii'))
                elif op.role == 'fill':
                    fill_color = op.rgb
                    out.append(f"{components} rg".encode('ascii'))
                else:
                    text_color = op.rgb
            elif isinstance(op, Text):
                font = resources.font(op.font_id)
                out.append(self._text(op, font, height, text_color, fill_color, used_glyphs))
            elif isinstance(op, UseImage):
                image = resources.image_by_id(op.resource_id)
                x, y, w, h = op.rect
                out.append(
                    f"q {fmt(w)} 0 0 {fmt(h)} {fmt(x)} {fmt(height - y - h)} cm /{image.name} Do Q".encode('ascii')
                )
            else:
                raise TypeError(f"Unknown content operator: {op!r}")

        return b'\n'.join(out) + b'\n' if out else b''

    def _text(self, op: Text, font: FontResource, height: float, text_color: Tuple[int, int, int],
              fill_color: Tuple[int, int, int], used_glyphs: Dict[int, Dict[int, str]]) -> bytes:
        baseline = op.y + 0.5 * op.height + 0.3 * op.size
        metrics = font.metrics
        if font.is_core:
            shown = b'(' + escape_literal(metrics.encode(op.text)) + b')'
        else:
            for glyph_id, char in metrics.glyphs(op.text):
                used_glyphs[font.id].setdefault(glyph_id, char)
            shown = b'<' + metrics.encode(op.text).hex().upper().encode('ascii') + b'>'

        parts = [
            f"BT /{font.name} {fmt(op.size)} Tf {fmt(op.x)} {fmt(height - baseline)} Td ".encode('ascii')
            + shown + b' Tj ET'
        ]
        if op.underline:
            position = metrics.underline_position / 1000 * op.size
            thickness = metrics.underline_thickness / 1000 * op.size
            parts.append(
                f"{fmt(op.x)} {fmt(height - (baseline - position))} {fmt(op.width)} {fmt(-thickness)} re f".encode('ascii')
            )

        stream = b' '.join(parts)
        if text_color != fill_color:
            color = ' '.join(fmt_color(c) for c in text_color)
            stream = f"q {color} rg ".encode('ascii') + stream + b' Q'
        return stream

    # Fonts

    def _font_objects(self, font: FontResource, number: int, used: Dict[int, str]) -> Iterator[PDFObject]:
        metrics = font.metrics
        if font.is_core:
            entries = {'Type': '/Font', 'Subtype': '/Type1', 'BaseFont': pdf_name(metrics.base_name)}
            if metrics.base_name not in ('Symbol', 'ZapfDingbats'):
                entries['Encoding'] = '/WinAnsiEncoding'
            yield PDFObject(number, pdf_dict(entries))
            return

        cid_obj, descriptor_obj, file_obj, to_unicode_obj = number + 1, number + 2, number + 3, number + 4
        base_font = pdf_name(metrics.base_name)
        yield PDFObject(number, pdf_dict({
            'Type': '/Font',
            'Subtype': '/Type0',
            'BaseFont': base_font,
            'Encoding': '/Identity-H',
            'DescendantFonts': pdf_array([ref(cid_obj)]),
            'ToUnicode': ref(to_unicode_obj),
        }))
        yield PDFObject(cid_obj, pdf_dict({
            'Type': '/Font',
            'Subtype': '/CIDFontType2',
            'BaseFont': base_font,
            'CIDSystemInfo': '<< /Registry (Adobe) /Ordering (Identity) /Supplement 0 >>',
            'FontDescriptor': ref(descriptor_obj),
            'DW': str(metrics.glyph_width(0)),
            'W': cid_widths({gid: metrics.glyph_width(gid) for gid in used}),
            'CIDToGIDMap': '/Identity',
        }))
        yield PDFObject(descriptor_obj, pdf_dict({
            'Type': '/FontDescriptor',
            'FontName': base_font,
            'Flags': str(metrics.flags),
            'FontBBox': pdf_array(str(int(v)) for v in metrics.bbox),
            'ItalicAngle': fmt(metrics.italic_angle),
            'Ascent': str(int(metrics.ascent)),
            'Descent': str(int(metrics.descent)),
            'CapHeight': str(int(metrics.cap_height)),
            'StemV': str(metrics.stem_v),
            'MissingWidth': str(metrics.glyph_width(0)),
            'FontFile2': ref(file_obj),
        }))
        yield PDFStream(file_obj, {'Length1': str(len(font.data))}, font.data, compress=self.compress)
        yield PDFStream(to_unicode_obj, {}, to_unicode_cmap(used), compress=self.compress)

    # Images

    def _image_objects(self, image: ImageResource, number: int) -> Iterator[PDFObject]:
        decoded = image.decoded
        smask_obj = number + 1 if decoded.smask is not None else None
        yield PDFStream(number, {
            'Type': '/XObject',
            'Subtype': '/Image',
            'Width': str(decoded.width),
            'Height': str(decoded.height),
            'ColorSpace': '/' + decoded.color_space,
            'BitsPerComponent': str(decoded.bits_per_component),
            'Filter': '/' + decoded.filter,
            'Decode': decoded.decode,
            'SMask': ref(smask_obj) if smask_obj else None,
        }, decoded.data)
        if smask_obj:
            yield PDFStream(smask_obj, {
                'Type': '/XObject',
                'Subtype': '/Image',
                'Width': str(decoded.width),
                'Height': str(decoded.height),
                'ColorSpace': '/DeviceGray',
                'BitsPerComponent': '8',
                'Filter': '/FlateDecode',
            }, decoded.smask)


def cid_widths(widths: Dict[int, int]) -> str:
    """
    Build a /W array, grouping consecutive glyph ids:
    {3: 500, 4: 600, 9: 250} -> '[3 [500 600] 9 [250]]'
    """
    groups: List[Tuple[int, List[int]]] = []
    for gid in sorted(widths):
        if groups and groups[-1][0] + len(groups[-1][1]) == gid:
            groups[-1][1].append(widths[gid])
        else:
            groups.append((gid, [widths[gid]]))
    body = ' '.join(f"{start} [{' '.join(str(w) for w in ws)}]" for start, ws in groups)
    return f"[{body}]"


def to_unicode_cmap(glyphs: Dict[int, str]) -> bytes:
    """CMap mapping glyph ids back to Unicode so text can be extracted."""
    lines = [
        '/CIDInit /ProcSet findresource begin',
        '12 dict begin',
        'begincmap',
        '/CIDSystemInfo << /Registry (Adobe) /Ordering (UCS) /Supplement 0 >> def',
        '/CMapName /Adobe-Identity-UCS def',
        '/CMapType 2 def',
        '1 begincodespacerange',
        '<0000> <FFFF>',
        'endcodespacerange',
    ]
    entries = sorted(glyphs.items())
    for start in range(0, len(entries), 100):
        chunk = entries[start:start + 100]
        lines.append(f"{len(chunk)} beginbfchar")
        for gid, char in chunk:
            lines.append(f"<{gid:04X}> <{char.encode('utf-16-be').hex().upper()}>")
        lines.append('endbfchar')
    lines += ['endcmap', 'CMapName currentdict /CMap defineresource pop', 'end', 'end']
    return '\n'.join(lines).encode('ascii')
