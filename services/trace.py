# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Follow one fiber from an element back toward its OLT through recorded splices."""

from __future__ import annotations

from dataclasses import dataclass, field

from db import Database
from errors import NotFoundError
from services.topology import can_hold_trays

UNMEASURED_SPLICE_LOSS = 0.05


@dataclass
class PathSegment:
    order: int
    element_id: int
    role: str
    name: str
    fiber_in: int | None = None
    fiber_out: int | None = None
    splice_id: int | None = None
    tray_number: int | None = None
    loss: float | None = None


@dataclass
class FiberPath:
    start_element_id: int
    start_fiber: int
    segments: list[PathSegment] = field(default_factory=list)
    total_loss: float = 0.0
    splice_count: int = 0
    missing_links: list[str] = field(default_factory=list)
    reached_root: bool = False


def trace_upstream(db: Database, element_id: int, fiber: int) -> FiberPath:
    """Walk parent pointers from ``element_id`` and return segments root first.

    In each tray-holding element the splice whose B side carries the current
    fiber is followed to its A side. Unmeasured splices count 0.05 dB.
    """
    if db.get_element(element_id) is None:
        raise NotFoundError(f"element {element_id} not found")

    path = FiberPath(start_element_id=element_id, start_fiber=fiber)
    visited: set[int] = set()
    reversed_segments: list[PathSegment] = []
    current_id: int | None = element_id
    current_fiber = fiber

    while current_id is not None:
        if current_id in visited:
            path.missing_links.append(f"loop detected at element {current_id}")
            break
        visited.add(current_id)
        element = db.get_element(current_id)
        if element is None:
            path.missing_links.append(f"element {current_id} not found")
            break

        segment = PathSegment(
            order=0,
            element_id=current_id,
            role=element["role"],
            name=element["name"],
            fiber_in=current_fiber,
            fiber_out=current_fiber,
        )
        if can_hold_trays(element["role"]):
            for tray in db.list_trays(current_id):
                match = next(
                    (s for s in db.list_splices(tray["tray_id"]) if s["fiber_b"] == current_fiber),
                    None,
                )
                if match is None:
                    continue
                loss = match["loss"] if match["loss"] is not None else UNMEASURED_SPLICE_LOSS
                segment.fiber_out = match["fiber_a"]
                segment.splice_id = match["splice_id"]
                segment.tray_number = tray["number"]
                segment.loss = loss
                path.total_loss += loss
                path.splice_count += 1
                current_fiber = match["fiber_a"]
                break
        reversed_segments.append(segment)

        if element["role"] == "olt":
            path.reached_root = True
            break
        if element["parent_id"] is None:
            path.missing_links.append(f"{element['name']} has no upstream connection")
            break
        current_id = element["parent_id"]

    for order, segment in enumerate(reversed(reversed_segments), start=1):
        segment.order = order
        path.segments.append(segment)
    path.total_loss = round(path.total_loss, 2)
    return path
