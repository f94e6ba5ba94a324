#!/usr/bin/env python3
"""
pdfbuilder
==========

PDF document assembly: pages, text, links, images and fonts, written to
the PDF file format without an external PDF writer.

Usage:
    from pdfbuilder import Document, DocumentConfig

    doc = Document(DocumentConfig(title="Manual", subject="User guide"))
    doc.set_font("Helvetica", "", 12)
    doc.write_internal_link(14, "Go to chapter 1", "chapter-1")
    doc.add_page()
    doc.add_anchor("chapter-1")
    doc.write_text(14, "Chapter 1")
    doc.output_file("manual.pdf")
"""

__version__ = "1.0.0"

from .config import DocumentConfig
from .document import Document
from .exceptions import (
    DecodeError,
    DocumentStateError,
    InvalidFontDataError,
    InvalidMarginError,
    OutputError,
    PDFBuilderError,
    UndefinedFontError,
    UnresolvedAnchorError,
    UnsupportedFormatError,
)
from .fonts import FontCache
from .geometry import Margins
from .pdf_objects import parse_xref

__all__ = [
    'Document',
    'DocumentConfig',
    'FontCache',
    'Margins',
    'parse_xref',
    'PDFBuilderError',
    'InvalidMarginError',
    'InvalidFontDataError',
    'UndefinedFontError',
    'UnsupportedFormatError',
    'DecodeError',
    'OutputError',
    'UnresolvedAnchorError',
    'DocumentStateError',
]
