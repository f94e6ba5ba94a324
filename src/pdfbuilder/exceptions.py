#!/usr/bin/env python3
"""
PDF Builder Exception Classes
"""


class PDFBuilderError(Exception):
    """Base exception for document assembly errors"""
    pass


class InvalidMarginError(PDFBuilderError, ValueError):
    """Raised when margins are negative or do not fit on the page"""
    pass


class InvalidFontDataError(PDFBuilderError):
    """Raised when font program bytes cannot be parsed"""
    pass


class UndefinedFontError(PDFBuilderError):
    """Raised when a font is selected that was never registered"""
    pass


class UnsupportedFormatError(PDFBuilderError):
    """Raised when an image format tag is not recognized"""
    pass


class DecodeError(PDFBuilderError):
    """Raised when image bytes are not well-formed for their format"""
    pass


class UnresolvedAnchorError(PDFBuilderError):
    """Raised in strict mode when internal links point at undefined anchors"""

    def __init__(self, anchors):
        self.anchors = sorted(set(anchors))
        super().__init__(f"Undefined anchors: {', '.join(self.anchors)}")


class OutputError(PDFBuilderError, OSError):
    """Raised when the output sink fails to accept bytes"""
    pass


class DocumentStateError(PDFBuilderError):
    """Raised when a document is used in a state that does not allow it"""
    pass
