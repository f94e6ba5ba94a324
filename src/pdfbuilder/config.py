"""
Document Configuration

DocumentConfig holds everything fixed at document creation: metadata, page
format, margins, output options and the header/footer hooks.
"""

from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Union

from .geometry import DEFAULT_BOTTOM_MARGIN, DEFAULT_MARGIN, Margins, PaperSize, parse_orientation

PageHook = Callable[[Any], None]


@dataclass
class DocumentConfig:
    title: str = ''
    subject: str = ''
    author: str = ''
    creator: str = ''
    keywords: str = ''

    orientation: str = 'P'
    paper_size: PaperSize = 'A4'
    margins: Margins = field(default_factory=Margins)
    auto_page_break: bool = True

    compress: bool = True
    strict_links: bool = False

    # Called with the document at the start / end of every page
    header: Optional[PageHook] = None
    footer: Optional[PageHook] = None

    # Registered as image "logo" when the document is created
    logo: Optional[Union[bytes, BinaryIO]] = None
    logo_format: str = ''

    font_paths: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.orientation = parse_orientation(self.orientation)

    @classmethod
    def from_config(cls, config: Dict[str, Any], **overrides: Any) -> 'DocumentConfig':
        """
        Build a DocumentConfig from a loaded configuration dictionary.

        Args:
            config: Full configuration (as returned by load_config)
            **overrides: Field values taking precedence over the file

        Returns:
            DocumentConfig
        """
        pdf_config = config.get('pdf', {})
        margins_config = pdf_config.get('margins', {})
        metadata = pdf_config.get('metadata', {})

        left = float(margins_config.get('left', DEFAULT_MARGIN))
        values: Dict[str, Any] = {
            'title': metadata.get('title', ''),
            'subject': metadata.get('subject', ''),
            'author': metadata.get('author', ''),
            'creator': metadata.get('creator', ''),
            'keywords': metadata.get('keywords', ''),
            'orientation': pdf_config.get('orientation', 'P'),
            'paper_size': _paper_size(pdf_config.get('paper_size', 'A4')),
            'margins': Margins(
                left=left,
                top=float(margins_config.get('top', DEFAULT_MARGIN)),
                right=float(margins_config.get('right', left)),
                bottom=float(margins_config.get('bottom', DEFAULT_BOTTOM_MARGIN)),
            ),
            'auto_page_break': bool(pdf_config.get('auto_page_break', True)),
            'compress': bool(pdf_config.get('compress', True)),
            'strict_links': bool(pdf_config.get('strict_links', False)),
            'font_paths': list(config.get('fonts', {}).get('search_paths', []) or []),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


def _paper_size(value: Any) -> PaperSize:
    # YAML lists become (width, height) tuples
    if isinstance(value, (list, tuple)):
        return float(value[0]), float(value[1])
    return str(value)
