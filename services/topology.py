# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Typed network hierarchy: OLT -> ODF -> closures -> LCP -> NAP.

Every element stores a single parent pointer; edges are derived from it. The
allowed parent roles per child role are fixed data (``ALLOWED_PARENTS``) and
every mutation is checked against that table. Closures may chain into further
closures, so traversals run over an id-indexed arena with an explicit queue.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import Counter, defaultdict, deque
from dataclasses import dataclass
from enum import Enum
from typing import Hashable, Iterable, Mapping, Sequence

from db import Database
from errors import NotFoundError, ValidationError
from models import (
    DEFAULT_SUBTYPES,
    ENCLOSURE_SUBTYPES,
    SUPPORTED_CONNECTOR_TYPES,
    SUPPORTED_PORT_STATUSES,
    SUPPORTED_SPLITTER_RATIOS,
    NetworkElement,
    Port,
    Splitter,
)

logger = logging.getLogger(__name__)

ALLOWED_PARENTS: dict[str, frozenset[str]] = {
    "olt": frozenset(),
    "odf": frozenset({"olt"}),
    "closure": frozenset({"olt", "odf", "closure"}),
    "lcp": frozenset({"olt", "closure"}),
    "nap": frozenset({"lcp"}),
}

# Only enclosures hold splice trays; OLTs and ODFs terminate on ports.
TRAY_HOLDING_ROLES = frozenset({"closure", "lcp", "nap"})
SPLITTER_ROLES = frozenset({"lcp", "nap"})

EDGE_KINDS = {"lcp": "distribution", "nap": "drop"}


def allowed_child_types(role: str) -> frozenset[str]:
    return frozenset(child for child, parents in ALLOWED_PARENTS.items() if role in parents)


def can_hold_trays(role: str) -> bool:
    return role in TRAY_HOLDING_ROLES


class ConnectStatus(str, Enum):
    CONNECTED = "connected"
    ALREADY_CONNECTED = "already_connected"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ConnectResult:
    status: ConnectStatus
    source_id: int
    target_id: int
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not ConnectStatus.REJECTED


@dataclass(frozen=True)
class Edge:
    edge_id: str
    source: int
    target: int
    kind: str
    cable_id: int | None = None
    cable_name: str | None = None
    fiber_count: int | None = None


@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass(frozen=True)
class LayoutOptions:
    column_spacing: float = 260.0
    row_spacing: float = 110.0


@dataclass(frozen=True)
class HierarchyStats:
    closure_count: int
    lcp_count: int
    nap_count: int
    tray_count: int
    splitter_count: int
    port_count: int
    connected_ports: int

    @property
    def utilization(self) -> int:
        if not self.port_count:
            return 0
        return round(self.connected_ports / self.port_count * 100)


def collect_descendants(children: Mapping[int, Sequence[int]], root: int) -> list[int]:
    """Breadth-first descendants of ``root`` (excluded), each visited once."""
    seen = {root}
    order: list[int] = []
    queue = deque(children.get(root, ()))
    while queue:
        node = queue.popleft()
        if node in seen:
            continue
        seen.add(node)
        order.append(node)
        queue.extend(children.get(node, ()))
    return order


def auto_layout(
    nodes: Sequence[Hashable],
    edges: Iterable[tuple[Hashable, Hashable]],
    options: LayoutOptions | None = None,
) -> dict[Hashable, Position]:
    """Place nodes in columns by depth and rows by sibling order.

    Depth is the longest path from any root. Within a column, nodes follow the
    row of their earliest-placed parent, then input order. Edges naming unknown
    nodes are ignored; nodes caught in a cycle stay at the depth reached so far.
    """
    options = options or LayoutOptions()
    index: dict[Hashable, int] = {}
    for i, node in enumerate(nodes):
        index.setdefault(node, i)

    children: dict[Hashable, list[Hashable]] = defaultdict(list)
    parents: dict[Hashable, list[Hashable]] = defaultdict(list)
    remaining = dict.fromkeys(index, 0)
    for source, target in edges:
        if source not in index or target not in index or source == target:
            continue
        children[source].append(target)
        parents[target].append(source)
        remaining[target] += 1

    depth = dict.fromkeys(index, 0)
    queue = deque(node for node in index if remaining[node] == 0)
    while queue:
        node = queue.popleft()
        for child in children[node]:
            depth[child] = max(depth[child], depth[node] + 1)
            remaining[child] -= 1
            if remaining[child] == 0:
                queue.append(child)

    columns: dict[int, list[Hashable]] = defaultdict(list)
    for node in index:
        columns[depth[node]].append(node)

    rows: dict[Hashable, int] = {}
    positions: dict[Hashable, Position] = {}
    for level in sorted(columns):
        keyed = []
        for node in columns[level]:
            placed = [rows[p] for p in parents[node] if p in rows]
            keyed.append(((min(placed) if placed else -1, index[node]), node))
        for row, (_, node) in enumerate(sorted(keyed, key=lambda item: item[0])):
            rows[node] = row
            positions[node] = Position(
                x=level * options.column_spacing, y=row * options.row_spacing
            )
    return positions


class NetworkGraph:
    """Hierarchy of one project's network elements backed by :class:`Database`."""

    def __init__(self, db: Database, project_id: str):
        self.db = db
        self.project_id = project_id

    # -- reads --------------------------------------------------------------

    def elements(self) -> list[NetworkElement]:
        return [
            NetworkElement.model_validate(dict(row))
            for row in self.db.list_elements(self.project_id)
        ]

    def get(self, element_id: int) -> NetworkElement:
        row = self.db.get_element(element_id)
        if row is None or row["project_id"] != self.project_id:
            raise NotFoundError(f"element {element_id} not found")
        return NetworkElement.model_validate(dict(row))

    def _children_map(self, elements: list[NetworkElement]) -> dict[int, list[int]]:
        ids = {element.element_id for element in elements}
        children: dict[int, list[int]] = defaultdict(list)
        for element in elements:
            if element.parent_id in ids:
                children[element.parent_id].append(element.element_id)
        return children

    def edges(self) -> list[Edge]:
        elements = self.elements()
        by_id = {element.element_id: element for element in elements}
        edges: list[Edge] = []
        for element in elements:
            parent = by_id.get(element.parent_id) if element.parent_id is not None else None
            if parent is None:
                continue
            cable = self.db.get_cable(element.cable_id) if element.cable_id is not None else None
            edges.append(
                Edge(
                    edge_id=f"e-{parent.element_id}-{element.element_id}",
                    source=parent.element_id,
                    target=element.element_id,
                    kind=EDGE_KINDS.get(element.role, "feeder"),
                    cable_id=element.cable_id,
                    cable_name=cable["name"] if cable else None,
                    fiber_count=cable["fiber_count"] if cable else None,
                )
            )
        return edges

    def descendants(self, element_id: int) -> list[int]:
        self.get(element_id)
        return collect_descendants(self._children_map(self.elements()), element_id)

    def count_descendants(self, element_id: int) -> int:
        return len(self.descendants(element_id))

    def orphans(self) -> list[NetworkElement]:
        """Non-root elements whose parent is missing."""
        elements = self.elements()
        ids = {element.element_id for element in elements}
        return [
            element
            for element in elements
            if element.role != "olt" and (element.parent_id is None or element.parent_id not in ids)
        ]

    # -- creation -----------------------------------------------------------

    def next_name(self, role: str) -> str:
        return f"{role.upper()}-{self.db.count_elements(self.project_id, role) + 1}"

    def _resolve_subtype(self, role: str, subtype: str | None) -> str | None:
        if role not in ENCLOSURE_SUBTYPES:
            if subtype is not None:
                raise ValidationError(f"{role.upper()} does not take a subtype")
            return None
        if subtype is None:
            return DEFAULT_SUBTYPES[role]
        if subtype not in ENCLOSURE_SUBTYPES[role]:
            raise ValidationError(
                f"unsupported {role} subtype {subtype!r}; "
                f"allowed: {list(ENCLOSURE_SUBTYPES[role])}"
            )
        return subtype

    def _first_parent_for(self, child_type: str) -> NetworkElement | None:
        allowed = ALLOWED_PARENTS[child_type]
        for element in self.elements():
            if element.role in allowed:
                return element
        return None

    def _insert(
        self,
        role: str,
        name: str | None,
        parent: NetworkElement | None,
        subtype: str | None,
        position: tuple[float, float] | None,
        gps: tuple[float, float] | None,
        cable_id: int | None,
        notes: str | None,
        trays: list[tuple[int, int]] | None = None,
    ) -> NetworkElement:
        element_id = self.db.insert_element(
            {
                "project_id": self.project_id,
                "name": (name or "").strip() or self.next_name(role),
                "role": role,
                "subtype": subtype,
                "parent_type": parent.role if parent else None,
                "parent_id": parent.element_id if parent else None,
                "cable_id": cable_id,
                "canvas_x": position[0] if position else None,
                "canvas_y": position[1] if position else None,
                "gps_lat": gps[0] if gps else None,
                "gps_lng": gps[1] if gps else None,
                "notes": notes,
            },
            trays or (),
        )
        return self.get(element_id)

    def create_olt(
        self,
        name: str | None = None,
        position: tuple[float, float] | None = None,
        gps: tuple[float, float] | None = None,
        notes: str | None = None,
    ) -> NetworkElement:
        element = self._insert("olt", name, None, None, position, gps, None, notes)
        logger.info("created %s (%s) in %s", element.name, element.element_id, self.project_id)
        return element

    def create_child(
        self,
        parent_id: int | None,
        parent_type: str | None,
        child_type: str,
        name: str | None = None,
        subtype: str | None = None,
        position: tuple[float, float] | None = None,
        gps: tuple[float, float] | None = None,
        cable_id: int | None = None,
        tray_count: int = 0,
        tray_capacity: int = 12,
        notes: str | None = None,
    ) -> NetworkElement:
        """Create an element under ``parent_id``.

        With ``parent_id=None`` the first element of an allowed parent role is
        used; a project without one is a :class:`ValidationError` raised before
        anything is written.
        """
        if child_type not in ALLOWED_PARENTS:
            raise ValidationError(f"unknown element type {child_type!r}")
        if child_type == "olt":
            raise ValidationError("an OLT is always a root element")
        subtype = self._resolve_subtype(child_type, subtype)
        if tray_count and not can_hold_trays(child_type):
            raise ValidationError(f"{child_type.upper()} cannot hold splice trays")
        if tray_count < 0 or tray_capacity < 1:
            raise ValidationError("tray_count must be >= 0 and tray_capacity >= 1")

        if parent_id is None:
            parent = self._first_parent_for(child_type)
            if parent is None:
                wanted = "/".join(sorted(role.upper() for role in ALLOWED_PARENTS[child_type]))
                raise ValidationError(
                    f"cannot create {child_type.upper()}: project has no {wanted} to attach it to"
                )
        else:
            parent = self.get(parent_id)
            if parent_type is not None and parent_type != parent.role:
                raise ValidationError(
                    f"element {parent_id} is a {parent.role.upper()}, not a {parent_type.upper()}"
                )
        if parent.role not in ALLOWED_PARENTS[child_type]:
            raise ValidationError(
                f"{child_type.upper()} cannot be a child of {parent.role.upper()}"
            )
        if cable_id is not None and self.db.get_cable(cable_id) is None:
            raise NotFoundError(f"cable {cable_id} not found")

        element = self._insert(
            child_type,
            name,
            parent,
            subtype,
            position,
            gps,
            cable_id,
            notes,
            trays=[(number, tray_capacity) for number in range(1, tray_count + 1)],
        )
        logger.info(
            "created %s (%s) under %s (%s)",
            element.name,
            element.element_id,
            parent.name,
            parent.element_id,
        )
        return element

    # -- mutation -----------------------------------------------------------

    def connect(self, source_id: int, target_id: int) -> ConnectResult:
        """Re-parent ``target`` under ``source`` if the hierarchy allows it.

        Rejections change nothing and come back as a ``REJECTED`` result.
        """
        source = self.get(source_id)
        target = self.get(target_id)
        if target.parent_id == source.element_id and target.parent_type == source.role:
            return ConnectResult(ConnectStatus.ALREADY_CONNECTED, source_id, target_id)

        reason: str | None = None
        if source_id == target_id:
            reason = "an element cannot be connected to itself"
        elif target.role not in allowed_child_types(source.role):
            reason = f"{target.role.upper()} cannot be a child of {source.role.upper()}"
        elif source_id in self.descendants(target_id):
            reason = f"{source.name} is downstream of {target.name}"
        if reason is not None:
            logger.warning("rejected connection %s -> %s: %s", source_id, target_id, reason)
            return ConnectResult(ConnectStatus.REJECTED, source_id, target_id, reason)

        self.db.update_element_parent(target_id, source.role, source_id)
        logger.info("connected %s -> %s", source.name, target.name)
        return ConnectResult(ConnectStatus.CONNECTED, source_id, target_id)

    def attach_cable(self, element_id: int, cable_id: int | None) -> NetworkElement:
        """Set the cable on the edge feeding ``element_id``."""
        element = self.get(element_id)
        if element.role == "olt":
            raise ValidationError("an OLT has no upstream edge")
        if cable_id is not None and self.db.get_cable(cable_id) is None:
            raise NotFoundError(f"cable {cable_id} not found")
        self.db.update_element_cable(element_id, cable_id)
        return self.get(element_id)

    def delete_cascade(self, element_id: int) -> int:
        """Delete an element, its descendants and everything they own.

        Runs as one transaction and returns the number of descendants removed.
        """
        self.get(element_id)
        descendants = collect_descendants(self._children_map(self.elements()), element_id)
        counts = self.db.delete_elements([element_id, *descendants])
        logger.info(
            "deleted element %s with %d descendants (%d trays, %d splices, %d ports, %d splitters)",
            element_id,
            len(descendants),
            counts["trays"],
            counts["splices"],
            counts["ports"],
            counts["splitters"],
        )
        return len(descendants)

    def set_position(self, element_id: int, x: float, y: float) -> bool:
        """Persist a dragged canvas position; failures are logged, never raised."""
        try:
            row = self.db.get_element(element_id)
            if row is None or row["project_id"] != self.project_id:
                logger.warning(
                    "position update ignored: element %s not in %s", element_id, self.project_id
                )
                return False
            updated = self.db.update_positions({element_id: (x, y)})
        except sqlite3.Error:
            logger.warning("could not persist position of element %s", element_id, exc_info=True)
            return False
        if not updated:
            logger.warning("position update ignored: element %s not found", element_id)
        return updated > 0

    # -- layout -------------------------------------------------------------

    def layout(self, options: LayoutOptions | None = None) -> dict[int, Position]:
        elements = self.elements()
        ids = [element.element_id for element in elements]
        edges = [
            (element.parent_id, element.element_id)
            for element in elements
            if element.parent_id is not None
        ]
        return auto_layout(ids, edges, options)  # type: ignore[return-value]

    def apply_auto_layout(self, options: LayoutOptions | None = None) -> dict[int, Position]:
        """Compute the layout and overwrite every stored canvas position with it."""
        positions = self.layout(options)
        self.db.update_positions({node: (pos.x, pos.y) for node, pos in positions.items()})
        return positions

    # -- ports and stats ----------------------------------------------------

    def ports(self, element_id: int) -> list[Port]:
        return [Port.model_validate(dict(row)) for row in self.db.list_ports(element_id)]

    def add_ports(
        self, element_id: int, count: int, connector_type: str = "SC", label_prefix: str = "P"
    ) -> list[Port]:
        self.get(element_id)
        if count < 1:
            raise ValidationError("port count must be at least 1")
        if connector_type not in SUPPORTED_CONNECTOR_TYPES:
            raise ValidationError(f"unsupported connector_type {connector_type!r}")
        existing = [port.port_number for port in self.ports(element_id)]
        start = max(existing, default=0) + 1
        self.db.insert_ports(
            element_id,
            [(n, f"{label_prefix}{n}", connector_type) for n in range(start, start + count)],
        )
        return self.ports(element_id)

    def set_port_status(self, port_id: int, status: str) -> None:
        if status not in SUPPORTED_PORT_STATUSES:
            raise ValidationError(f"unsupported port status {status!r}")
        if not self.db.update_port_status(port_id, status):
            raise NotFoundError(f"port {port_id} not found")

    def splitters(self, element_id: int) -> list[Splitter]:
        return [Splitter.model_validate(dict(row)) for row in self.db.list_splitters(element_id)]

    def add_splitter(
        self,
        element_id: int,
        ratio: str,
        name: str | None = None,
        input_cable_id: int | None = None,
        input_fiber: int | None = None,
        connector_type: str = "SC",
        notes: str | None = None,
    ) -> Splitter:
        """Add a splitter to an LCP or NAP with one output port per leg.

        Output ports continue the element's port numbering and carry the
        splitter's id.
        """
        element = self.get(element_id)
        if element.role not in SPLITTER_ROLES:
            raise ValidationError(f"{element.role.upper()} cannot hold splitters")
        if ratio not in SUPPORTED_SPLITTER_RATIOS:
            raise ValidationError(
                f"unsupported splitter ratio {ratio!r}; allowed: {list(SUPPORTED_SPLITTER_RATIOS)}"
            )
        if connector_type not in SUPPORTED_CONNECTOR_TYPES:
            raise ValidationError(f"unsupported connector_type {connector_type!r}")
        if input_cable_id is not None:
            cable = self.db.get_cable(input_cable_id)
            if cable is None:
                raise NotFoundError(f"cable {input_cable_id} not found")
            if input_fiber is not None and not 1 <= input_fiber <= cable["fiber_count"]:
                raise ValidationError(
                    f"input fiber {input_fiber} is outside cable {cable['name']} "
                    f"(1..{cable['fiber_count']})"
                )
        elif input_fiber is not None and input_fiber < 1:
            raise ValidationError("input fiber must be at least 1")

        label = (name or "").strip() or f"SPL-{self.db.count_splitters(element_id) + 1}"
        outputs = int(ratio.split(":")[1])
        start = max((port.port_number for port in self.ports(element_id)), default=0) + 1
        splitter_id = self.db.insert_splitter(
            element_id,
            label,
            ratio,
            input_cable_id,
            input_fiber,
            notes,
            [(start + leg, f"{label}-{leg + 1}", connector_type) for leg in range(outputs)],
        )
        logger.info("added %s splitter %s to %s", ratio, label, element.name)
        return Splitter.model_validate(dict(self.db.get_splitter(splitter_id)))

    def delete_splitter(self, splitter_id: int) -> int:
        """Delete a splitter and its output ports; returns the ports removed."""
        row = self.db.get_splitter(splitter_id)
        if row is None:
            raise NotFoundError(f"splitter {splitter_id} not found")
        self.get(row["element_id"])
        removed = self.db.delete_splitter(splitter_id)
        logger.info("deleted splitter %s with %d ports", splitter_id, removed)
        return removed

    def hierarchy_stats(self, element_id: int) -> HierarchyStats:
        """Counts below ``element_id`` and customer port utilization of its NAPs."""
        self.get(element_id)
        elements = self.elements()
        by_id = {element.element_id: element for element in elements}
        descendants = collect_descendants(self._children_map(elements), element_id)
        roles = Counter(by_id[node].role for node in descendants)
        subtree = [element_id, *descendants]
        tray_count = sum(len(self.db.list_trays(node)) for node in subtree)
        splitter_count = sum(self.db.count_splitters(node) for node in subtree)
        nap_ports = [
            port
            for node in subtree
            if by_id[node].role == "nap"
            for port in self.db.list_ports(node)
        ]
        return HierarchyStats(
            closure_count=roles["closure"],
            lcp_count=roles["lcp"],
            nap_count=roles["nap"],
            tray_count=tray_count,
            splitter_count=splitter_count,
            port_count=len(nap_ports),
            connected_ports=sum(1 for port in nap_ports if port["status"] == "connected"),
        )
