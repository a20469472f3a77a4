"""Breakpoint ladders for responsive images.

The ladder grows linearly: the distance between the minimum and the maximum
width is divided by the number of steps, and one breakpoint is placed on every
step including both ends. The last breakpoint is the one served to viewports
wider than every other breakpoint, so it carries no ``media`` condition.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Tuple

from .exceptions import BreakpointError

logger = logging.getLogger(__name__)

DEFAULT_MIN_WIDTH = 200
DEFAULT_NUM_STEPS = 7
ENDPOINT_TOLERANCE = 0.0001


@dataclass(frozen=True)
class Breakpoint:
    width: int
    # (width, density) pairs; density 1 always comes first
    candidates: Tuple[Tuple[int, int], ...]
    is_last: bool = False


@dataclass(frozen=True)
class DerivativePlan:
    breakpoints: Tuple[Breakpoint, ...]
    aspect: float

    @property
    def fallback(self) -> Breakpoint:
        return self.breakpoints[-1]

    def derivative_widths(self) -> List[int]:
        """Every width a derivative is needed for, 2x variants included."""
        widths = []
        for breakpoint in self.breakpoints:
            for width, _ in breakpoint.candidates:
                if width not in widths:
                    widths.append(width)
        return widths


def _option(attributes, name, default):
    value = attributes.get(name)
    return default if value is None else value


def plan_widths(source_width: int, source_height: int, attributes) -> Tuple[List[int], float]:
    """Return the ascending breakpoint widths and the aspect ratio of an image."""
    if source_width <= 0 or source_height <= 0:
        raise BreakpointError(f"invalid image dimensions {source_width}x{source_height}")

    aspect = source_width / source_height
    minimum = _option(attributes, 'min-width', DEFAULT_MIN_WIDTH)
    maximum = _option(attributes, 'max-width', source_width)
    steps = _option(attributes, 'num-steps', DEFAULT_NUM_STEPS)

    if steps <= 0 or maximum <= minimum:
        values = [maximum]
    else:
        step = (maximum - minimum) / steps
        values = []
        index = 0
        value = float(minimum)
        while value < maximum or abs(value - maximum) < ENDPOINT_TOLERANCE:
            values.append(value)
            index += 1
            value = minimum + index * step

    widths: List[int] = []
    for value in values:
        width = int(round(value))
        if width <= 0:
            logger.warning(f"responsive_images: skipping non-positive breakpoint width {width}")
            continue
        if width not in widths:
            widths.append(width)

    if not widths:
        raise BreakpointError(
            f"no usable breakpoints between min-width {minimum} and max-width {maximum}"
        )
    return widths, aspect


def plan(source_width: int, source_height: int, attributes) -> DerivativePlan:
    """Plan the breakpoints of an image, with 2x variants where the source allows."""
    widths, aspect = plan_widths(source_width, source_height, attributes)
    hidpi = bool(_option(attributes, 'hidpi', False))

    breakpoints = []
    for index, width in enumerate(widths):
        candidates = [(width, 1)]
        # never upscale past the native resolution
        if hidpi and width * 2 < source_width:
            candidates.append((width * 2, 2))
        breakpoints.append(Breakpoint(
            width=width,
            candidates=tuple(candidates),
            is_last=index == len(widths) - 1,
        ))
    return DerivativePlan(breakpoints=tuple(breakpoints), aspect=aspect)
