# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""TIA-598 fiber and buffer-tube color coding.

Fiber structure is never stored: tube, position and both colors are derived
from a fiber's global number and the cable size. Every lookup is pure and
returns ``None`` (or an empty list) for indices outside the cable, so callers
can render a placeholder instead of handling an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import ceil

FIBERS_PER_TUBE = 12


@dataclass(frozen=True)
class FiberColor:
    name: str
    hex: str
    text_color: str


FIBER_COLORS: tuple[FiberColor, ...] = (
    FiberColor("Blue", "#0066CC", "#FFFFFF"),
    FiberColor("Orange", "#FF6600", "#FFFFFF"),
    FiberColor("Green", "#00AA00", "#FFFFFF"),
    FiberColor("Brown", "#8B4513", "#FFFFFF"),
    FiberColor("Slate", "#708090", "#FFFFFF"),
    FiberColor("White", "#FFFFFF", "#000000"),
    FiberColor("Red", "#CC0000", "#FFFFFF"),
    FiberColor("Black", "#1A1A1A", "#FFFFFF"),
    FiberColor("Yellow", "#FFCC00", "#000000"),
    FiberColor("Violet", "#8800AA", "#FFFFFF"),
    FiberColor("Rose", "#FF69B4", "#000000"),
    FiberColor("Aqua", "#00CCCC", "#000000"),
)

# Buffer tubes follow the same sequence as the fibers inside them.
TUBE_COLORS = FIBER_COLORS

_COLORS_BY_NAME = {color.name.lower(): color for color in FIBER_COLORS}


@dataclass(frozen=True)
class FiberInfo:
    fiber_number: int
    tube_number: int
    position_in_tube: int
    tube_color: FiberColor
    fiber_color: FiberColor
    tube_group: int


@dataclass(frozen=True)
class TubeInfo:
    tube_number: int
    tube_color: FiberColor
    tube_group: int
    start_fiber: int
    end_fiber: int


def _is_count(value: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def tube_count(fiber_count: int) -> int:
    if not _is_count(fiber_count):
        return 0
    return ceil(fiber_count / FIBERS_PER_TUBE)


def fiber_info(fiber_number: int, fiber_count: int) -> FiberInfo | None:
    """Resolve a global fiber number to its tube, position and colors."""
    if not _is_count(fiber_count) or not _is_count(fiber_number):
        return None
    if fiber_number > fiber_count:
        return None
    tube_number = ceil(fiber_number / FIBERS_PER_TUBE)
    position = (fiber_number - 1) % FIBERS_PER_TUBE + 1
    return FiberInfo(
        fiber_number=fiber_number,
        tube_number=tube_number,
        position_in_tube=position,
        tube_color=TUBE_COLORS[(tube_number - 1) % len(TUBE_COLORS)],
        fiber_color=FIBER_COLORS[position - 1],
        tube_group=ceil(tube_number / len(TUBE_COLORS)),
    )


def fiber_number(tube_number: int, position_in_tube: int, fiber_count: int) -> int | None:
    """Inverse of :func:`fiber_info`."""
    if not _is_count(tube_number) or not _is_count(position_in_tube):
        return None
    if tube_number > tube_count(fiber_count) or position_in_tube > FIBERS_PER_TUBE:
        return None
    number = (tube_number - 1) * FIBERS_PER_TUBE + position_in_tube
    if number > fiber_count:
        return None
    return number


def tubes_for(fiber_count: int) -> list[TubeInfo]:
    tubes: list[TubeInfo] = []
    for tube in range(1, tube_count(fiber_count) + 1):
        tubes.append(
            TubeInfo(
                tube_number=tube,
                tube_color=TUBE_COLORS[(tube - 1) % len(TUBE_COLORS)],
                tube_group=ceil(tube / len(TUBE_COLORS)),
                start_fiber=(tube - 1) * FIBERS_PER_TUBE + 1,
                end_fiber=min(tube * FIBERS_PER_TUBE, fiber_count),
            )
        )
    return tubes


def fibers_in_tube(tube_number: int, fiber_count: int) -> list[FiberInfo]:
    fibers: list[FiberInfo] = []
    for position in range(1, FIBERS_PER_TUBE + 1):
        number = fiber_number(tube_number, position, fiber_count)
        if number is None:
            break
        info = fiber_info(number, fiber_count)
        if info is not None:
            fibers.append(info)
    return fibers


def format_fiber_color(info: FiberInfo) -> str:
    return f"{info.tube_color.name}/{info.fiber_color.name}"


def color_by_name(name: str) -> FiberColor | None:
    return _COLORS_BY_NAME.get(name.strip().lower())


def reverse_lookup(tube_color: str, fiber_color: str, fiber_count: int) -> list[int]:
    """Fiber numbers carrying a tube/fiber color pair.

    Large cables repeat the tube sequence every 12 tubes, so a pair can match
    one fiber per tube group.
    """
    tube = color_by_name(tube_color)
    fiber = color_by_name(fiber_color)
    if tube is None or fiber is None:
        return []
    tube_index = TUBE_COLORS.index(tube) + 1
    position = FIBER_COLORS.index(fiber) + 1
    matches: list[int] = []
    for tube_number in range(tube_index, tube_count(fiber_count) + 1, len(TUBE_COLORS)):
        number = fiber_number(tube_number, position, fiber_count)
        if number is not None:
            matches.append(number)
    return matches
