"""
Equal-width column layout for the sessions of a window.

Every session gets one column. Columns share the available width equally,
separated by a fixed spacing and inset by a fixed side margin. Each
column's width is clamped to [MIN_COLUMN_WIDTH, MAX_COLUMN_WIDTH]: when the
maximum applies, the block of columns is centered; when the minimum
applies, the columns overflow the window and the host scrolls them.

ColumnLayoutManager subscribes to Orchestrator.on_session_set_changed and
asks the window host to apply the new layout with a reflow animation.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from hyperchat.config.constants import (
    COLUMN_SIDE_MARGIN,
    COLUMN_SPACING,
    MAX_COLUMN_WIDTH,
    MIN_COLUMN_WIDTH,
)

if TYPE_CHECKING:
    from hyperchat.session import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Column:
    """One session column: horizontal offset and width in points."""

    service_id: str
    x: float
    width: float


@dataclass(frozen=True)
class ColumnLayout:
    """
    Result of a layout pass.

    Attributes:
        columns: Columns left to right
        container_width: Width the layout was computed for
        overflow: Columns hit the minimum width and exceed the container
    """

    columns: tuple[Column, ...]
    container_width: float
    overflow: bool = False

    @property
    def content_width(self) -> float:
        """Width from the first column's left edge to the last's right edge."""
        if not self.columns:
            return 0.0
        return self.columns[-1].x + self.columns[-1].width - self.columns[0].x


def compute_columns(
    service_ids: Sequence[str],
    container_width: float,
    *,
    spacing: float = COLUMN_SPACING,
    margin: float = COLUMN_SIDE_MARGIN,
    min_width: float = MIN_COLUMN_WIDTH,
    max_width: float = MAX_COLUMN_WIDTH,
) -> ColumnLayout:
    """
    Compute an equal-width column layout.

    Args:
        service_ids: Session ids in column order
        container_width: Width of the window's content area
        spacing: Gap between adjacent columns
        margin: Inset on the left and right edges
        min_width: Smallest allowed column width
        max_width: Largest allowed column width

    Returns:
        ColumnLayout with one column per id

    Example:
        >>> layout = compute_columns(["a", "b"], 1200)
        >>> [c.width for c in layout.columns]
        [570.0, 570.0]
    """
    count = len(service_ids)
    if count == 0:
        return ColumnLayout(columns=(), container_width=container_width)

    inner_width = max(0.0, container_width - 2 * margin)
    natural = (inner_width - spacing * (count - 1)) / count
    width = min(max(natural, min_width), max_width)

    content_width = width * count + spacing * (count - 1)
    overflow = content_width > inner_width
    # Center the block when columns are capped, pin it left when overflowing
    start = margin if overflow else margin + (inner_width - content_width) / 2

    columns = tuple(
        Column(service_id=service_id, x=start + index * (width + spacing), width=width)
        for index, service_id in enumerate(service_ids)
    )
    return ColumnLayout(columns=columns, container_width=container_width, overflow=overflow)


class LayoutHost(Protocol):
    """Host side of the layout: knows window sizes and applies layouts."""

    def content_width(self, window_id: str) -> float: ...

    def apply_layout(self, window_id: str, layout: ColumnLayout, animate: bool) -> None: ...


class ColumnLayoutManager:
    """
    Keeps one window's column layout in sync with its session set.

    Attributes:
        window_id: Window whose columns are managed
        last_layout: Most recently applied layout, None before the first
    """

    def __init__(self, host: LayoutHost, window_id: str):
        self._host = host
        self.window_id = window_id
        self.last_layout: ColumnLayout | None = None
        self._service_ids: list[str] = []

    def on_session_set_changed(self, sessions: Sequence["Session"]) -> ColumnLayout:
        """Recompute and apply the layout; animate every reflow after the first."""
        self._service_ids = [session.service_id for session in sessions]
        return self._apply(animate=self.last_layout is not None)

    def on_window_resized(self) -> ColumnLayout:
        """Recompute for a new window width without animation."""
        return self._apply(animate=False)

    def _apply(self, animate: bool) -> ColumnLayout:
        layout = compute_columns(self._service_ids, self._host.content_width(self.window_id))
        self._host.apply_layout(self.window_id, layout, animate)
        self.last_layout = layout
        logger.debug(
            f"Layout for {self.window_id}: {len(layout.columns)} column(s), "
            f"width {layout.columns[0].width if layout.columns else 0:.0f}"
            f"{' (overflow)' if layout.overflow else ''}"
        )
        return layout
