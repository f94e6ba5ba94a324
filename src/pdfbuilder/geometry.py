"""
Geometry Tracker

Keeps the cursor, margins and page dimensions of every page in a document.
Coordinates are page-local points with the origin at the top-left corner and
y growing downwards.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple, Union

from .exceptions import DocumentStateError, InvalidMarginError


# Paper sizes in points, portrait
PAGE_SIZES: Dict[str, Tuple[float, float]] = {
    'a3': (841.89, 1190.55),
    'a4': (595.28, 841.89),
    'a5': (420.94, 595.28),
    'letter': (612.0, 792.0),
    'legal': (612.0, 1008.0),
    'tabloid': (792.0, 1224.0),
}

# 1cm and 2cm
DEFAULT_MARGIN = 28.35
DEFAULT_BOTTOM_MARGIN = 56.7

PaperSize = Union[str, Tuple[float, float]]


def parse_orientation(orientation: Optional[str]) -> str:
    """Normalize an orientation name to 'P' or 'L'."""
    if not orientation:
        return 'P'
    value = orientation.strip().lower()
    if value in ('p', 'portrait'):
        return 'P'
    if value in ('l', 'landscape'):
        return 'L'
    raise ValueError(f"Invalid orientation: {orientation}")


def resolve_page_size(size: PaperSize, orientation: Optional[str] = None) -> Tuple[float, float]:
    """
    Resolve a paper size name or explicit (width, height) into points.

    Args:
        size: Paper size name (e.g. 'A4', 'Letter') or a (width, height) tuple
        orientation: 'P'/'portrait' or 'L'/'landscape'

    Returns:
        (width, height) in points, swapped for landscape
    """
    if isinstance(size, str):
        try:
            width, height = PAGE_SIZES[size.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown paper size: {size}") from None
    else:
        width, height = float(size[0]), float(size[1])
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid page dimensions: {size}")

    if parse_orientation(orientation) == 'L':
        return max(width, height), min(width, height)
    return min(width, height), max(width, height)


@dataclass(frozen=True)
class Margins:
    left: float = DEFAULT_MARGIN
    top: float = DEFAULT_MARGIN
    right: float = DEFAULT_MARGIN
    bottom: float = DEFAULT_BOTTOM_MARGIN

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return self.left, self.top, self.right, self.bottom

    def validate(self, width: float, height: float) -> None:
        """Raise InvalidMarginError unless the margins fit on a width x height page."""
        for name, value in (('left', self.left), ('top', self.top),
                            ('right', self.right), ('bottom', self.bottom)):
            if value < 0:
                raise InvalidMarginError(f"{name} margin must be >= 0, got {value}")
        if self.left + self.right >= width:
            raise InvalidMarginError(
                f"left + right margins ({self.left + self.right}) must be less than page width ({width})"
            )
        if self.top + self.bottom >= height:
            raise InvalidMarginError(
                f"top + bottom margins ({self.top + self.bottom}) must be less than page height ({height})"
            )


@dataclass
class PageState:
    """Cursor and layout state of a single page."""
    width: float
    height: float
    margins: Margins
    x: float = 0.0
    y: float = 0.0
    last_height: float = 0.0

    def __post_init__(self):
        self.x = self.margins.left
        self.y = self.margins.top

    @property
    def page_break_trigger(self) -> float:
        return self.height - self.margins.bottom

    @property
    def content_width(self) -> float:
        return self.width - self.margins.left - self.margins.right


class GeometryTracker:
    """
    Tracks cursor position and margins for each page of a document.

    Every page gets its own PageState, so switching the active page to patch
    an earlier one never disturbs the cursor of the others.
    """

    def __init__(self, margins: Optional[Margins] = None):
        self.logger = logging.getLogger(__name__)
        self.default_margins = margins or Margins()
        self.auto_page_break = True
        self._states: List[PageState] = []
        self._active: int = 0

    # Pages

    def new_page(self, width: float, height: float) -> PageState:
        """Create state for a new page and make it active."""
        self.default_margins.validate(width, height)
        state = PageState(width=width, height=height, margins=self.default_margins)
        self._states.append(state)
        self._active = len(self._states)
        return state

    @property
    def page_count(self) -> int:
        return len(self._states)

    @property
    def active_index(self) -> int:
        return self._active

    def set_active(self, index: int) -> None:
        if not 1 <= index <= len(self._states):
            raise DocumentStateError(f"Page {index} does not exist (document has {len(self._states)} pages)")
        self._active = index

    def state(self, index: Optional[int] = None) -> PageState:
        if not self._states:
            raise DocumentStateError("Document has no pages")
        return self._states[(index or self._active) - 1]

    def page_size(self) -> Tuple[float, float]:
        state = self.state()
        return state.width, state.height

    # Cursor

    def get_x(self) -> float:
        return self.state().x

    def get_y(self) -> float:
        return self.state().y

    def set_x(self, x: float) -> None:
        state = self.state()
        state.x = x if x >= 0 else state.width + x

    def set_y(self, y: float, reset_x: bool = True) -> None:
        state = self.state()
        if reset_x:
            state.x = state.margins.left
        state.y = y if y >= 0 else state.height + y

    def set_xy(self, x: float, y: float) -> None:
        self.set_y(y, reset_x=False)
        self.set_x(x)

    def advance_x(self, width: float) -> None:
        self.state().x += width

    def line_break(self, height: Optional[float] = None) -> None:
        """Move to the start of the next line, `height` points below."""
        state = self.state()
        state.x = state.margins.left
        state.y += state.last_height if height is None else height

    def record_height(self, height: float) -> None:
        self.state().last_height = height

    def accepts_page_break(self, height: float) -> bool:
        """True when a cell of `height` at the cursor would cross the page-break trigger."""
        state = self.state()
        return self.auto_page_break and state.y + height > state.page_break_trigger

    # Margins

    def get_margins(self) -> Tuple[float, float, float, float]:
        return self.state().margins.as_tuple()

    def _apply_margins(self, **changes: float) -> None:
        state = self.state()
        margins = replace(state.margins, **changes)
        # validation happens before anything is stored
        margins.validate(state.width, state.height)
        state.margins = margins
        self.default_margins = replace(self.default_margins, **changes)
        self.logger.debug(f"Margins set to {margins.as_tuple()} on page {self._active}")

    def set_margins(self, left: float, top: float, right: Optional[float] = None) -> None:
        self._apply_margins(left=left, top=top, right=left if right is None else right)

    def set_left_margin(self, margin: float) -> None:
        self._apply_margins(left=margin)
        state = self.state()
        if state.x < margin:
            state.x = margin

    def set_top_margin(self, margin: float) -> None:
        self._apply_margins(top=margin)

    def set_right_margin(self, margin: float) -> None:
        self._apply_margins(right=margin)

    def set_auto_page_break(self, enabled: bool, margin: Optional[float] = None) -> None:
        if margin is not None:
            self._apply_margins(bottom=margin)
        self.auto_page_break = enabled
