"""Masonry layout engine.

Places image cards into columns greedily: each card goes to the column
(or pair of adjacent columns, for landscape cards on wide screens) whose
current height is lowest, ties going to the leftmost column. A layout pass
is a pure function of the items and the container; :class:`MasonryLayout`
adds the event-driven part, where image dimensions arrive one by one and
the container is resized, and coalesces all of it into single passes.
"""

import math
import time
from dataclasses import dataclass, field
from logging import Logger
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .document import Photo
from .log import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class LayoutConfig:
    """Geometry of the grid, in pixels."""

    column_width: float = 300
    gutter: float = 16
    # Per side; narrows the columns, placements carry no padding offset
    padding: float = 0
    wide_breakpoint: float = 769
    min_height: float = 150
    max_height: float = 600
    default_height: float = 250


@dataclass
class LayoutItem:
    """One card. Natural dimensions stay None until its image is measured."""

    id: str
    natural_width: Optional[float] = None
    natural_height: Optional[float] = None
    failed: bool = False

    @property
    def measured(self) -> bool:
        return bool(
            not self.failed
            and self.natural_width
            and self.natural_height
            and self.natural_width > 0
            and self.natural_height > 0
        )

    @property
    def landscape(self) -> bool:
        return self.measured and self.natural_width > self.natural_height


@dataclass(frozen=True)
class Placement:
    id: str
    x: float
    y: float
    width: float
    height: float
    span: int
    column: int


@dataclass(frozen=True)
class LayoutResult:
    placements: List[Placement]
    height: float
    column_count: int
    column_width: float

    def by_id(self) -> Dict[str, Placement]:
        return {placement.id: placement for placement in self.placements}


def compute_columns(container_width: float, config: LayoutConfig = LayoutConfig()) -> Tuple[int, float]:
    """Number of columns and the stretched column width for a container.

    Examples:
        >>> count, width = compute_columns(1000)
        >>> count, round(width, 2)
        (3, 322.67)
    """
    available = max(0.0, container_width - 2 * config.padding)
    count = max(1, math.floor(available / (config.column_width + config.gutter)))
    width = max(0.0, (available - (count - 1) * config.gutter) / count)
    return count, width


def wide_eligible(column_count: int, viewport_width: float, config: LayoutConfig = LayoutConfig()) -> bool:
    return column_count >= 2 and viewport_width >= config.wide_breakpoint


def item_height(item: LayoutItem, width: float, config: LayoutConfig = LayoutConfig()) -> float:
    """Card height at ``width``: proportional and clamped, or the default if unmeasured."""
    if not item.measured:
        return config.default_height
    raw = width * (item.natural_height / item.natural_width)
    return min(config.max_height, max(config.min_height, raw))


def _best_start(heights: Sequence[float], span: int) -> Tuple[int, float]:
    best_index, best_y = 0, max(heights[0:span])
    for index in range(1, len(heights) - span + 1):
        y = max(heights[index : index + span])
        if y < best_y:
            best_index, best_y = index, y
    return best_index, best_y


def layout(
    items: Iterable[LayoutItem],
    container_width: float,
    viewport_width: float,
    config: LayoutConfig = LayoutConfig(),
) -> LayoutResult:
    """Run one full layout pass over ``items`` in order.

    Args:
        items: Cards in display order
        container_width: Width of the grid container
        viewport_width: Width of the viewport, which decides whether
            landscape cards may span two columns
        config: Grid geometry

    Returns:
        Placements in item order, the total height and the column geometry
    """
    count, column_width = compute_columns(container_width, config)
    wide = wide_eligible(count, viewport_width, config)
    heights = [0.0] * count
    placements = []

    for item in items:
        span = min(2, count) if wide and item.landscape else 1
        column, y = _best_start(heights, span)
        width = span * column_width + (span - 1) * config.gutter
        height = item_height(item, width, config)
        placements.append(
            Placement(
                id=item.id,
                x=column * (column_width + config.gutter),
                y=y,
                width=width,
                height=height,
                span=span,
                column=column,
            )
        )
        for index in range(column, column + span):
            heights[index] = y + height + config.gutter

    return LayoutResult(placements, max(heights), count, column_width)


def items_from_photos(photos: Iterable[Photo]) -> List[LayoutItem]:
    """Layout items for document photos, measured from ``technical.dimensions``."""
    items = []
    for photo in photos:
        dimensions = (photo.get("technical") or {}).get("dimensions") or {}
        items.append(
            LayoutItem(
                id=str(photo.get("id")),
                natural_width=dimensions.get("width"),
                natural_height=dimensions.get("height"),
            )
        )
    return items


class LayoutScheduler:
    """Coalesces relayout requests into one pass per frame.

    Any number of :meth:`request` calls between two :meth:`flush` calls
    produce a single run of the callback.
    """

    def __init__(self, callback: Callable[[], Any]):
        self.callback = callback
        self.pending = False
        self.passes = 0

    def request(self) -> None:
        self.pending = True

    def flush(self) -> bool:
        """Run the pending pass, if any. Returns True when a pass ran."""
        if not self.pending:
            return False
        self.pending = False
        self.passes += 1
        self.callback()
        return True


class ResizeDebouncer:
    """Fires the callback with the latest size once resizing has been quiet for ``delay`` seconds."""

    def __init__(
        self,
        callback: Callable[[float, float], Any],
        delay: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.callback = callback
        self.delay = delay
        self.clock = clock
        self._latest: Optional[Tuple[float, float]] = None
        self._deadline: Optional[float] = None

    def notify(self, container_width: float, viewport_width: float) -> None:
        self._latest = (container_width, viewport_width)
        self._deadline = self.clock() + self.delay

    def poll(self) -> bool:
        """Fire if the quiet period is over. Returns True when the callback ran."""
        if self._deadline is None or self.clock() < self._deadline:
            return False
        latest, self._latest, self._deadline = self._latest, None, None
        self.callback(*latest)
        return True


@dataclass
class MasonryLayout:
    """A grid whose items are measured asynchronously.

    Dimension arrivals, load failures and resizes only schedule work;
    :meth:`tick`, called once per frame, applies a debounced resize and
    runs at most one layout pass.
    """

    container_width: float
    viewport_width: float
    config: LayoutConfig = LayoutConfig()
    clock: Callable[[], float] = time.monotonic
    logger: Logger = LOGGER
    items: List[LayoutItem] = field(default_factory=list)
    result: Optional[LayoutResult] = None

    def __post_init__(self):
        self._index: Dict[str, int] = {}
        self.scheduler = LayoutScheduler(self.relayout)
        self.debouncer = ResizeDebouncer(self._apply_resize, clock=self.clock)
        for position, item in enumerate(self.items):
            self._index[item.id] = position
        if self.items:
            self.scheduler.request()

    def add_items(self, items: Iterable[LayoutItem]) -> None:
        for item in items:
            if item.id in self._index:
                self.items[self._index[item.id]] = item
            else:
                self._index[item.id] = len(self.items)
                self.items.append(item)
        self.scheduler.request()

    def _item(self, item_id: str) -> LayoutItem:
        try:
            return self.items[self._index[item_id]]
        except KeyError:
            raise KeyError(f"Unknown layout item: {item_id}") from None

    def resolve(self, item_id: str, natural_width: float, natural_height: float) -> None:
        """Record the measured dimensions of an item's image."""
        item = self._item(item_id)
        item.natural_width = natural_width
        item.natural_height = natural_height
        item.failed = False
        self.scheduler.request()

    def fail(self, item_id: str) -> None:
        """The item's image failed to load; it keeps the default height."""
        item = self._item(item_id)
        if not item.failed:
            item.failed = True
            self.logger.debug("Image for %s failed to load", item_id)
            self.scheduler.request()

    def resize(self, container_width: float, viewport_width: float) -> None:
        self.debouncer.notify(container_width, viewport_width)

    def _apply_resize(self, container_width: float, viewport_width: float) -> None:
        if (container_width, viewport_width) != (self.container_width, self.viewport_width):
            self.container_width = container_width
            self.viewport_width = viewport_width
            self.scheduler.request()

    def relayout(self) -> LayoutResult:
        self.result = layout(self.items, self.container_width, self.viewport_width, self.config)
        self.logger.debug(
            "Laid out %d item(s) in %d column(s), height %.1f",
            len(self.items),
            self.result.column_count,
            self.result.height,
        )
        return self.result

    def tick(self) -> Optional[LayoutResult]:
        """Process one frame. Returns the new layout if a pass ran."""
        self.debouncer.poll()
        if self.scheduler.flush():
            return self.result
        return None
