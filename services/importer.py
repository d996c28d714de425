# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Create a whole project from a project.yaml plan."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import yaml

from db import Database
from errors import ValidationError
from models import ElementSpec, ProjectInput
from services.topology import ALLOWED_PARENTS, NetworkGraph, can_hold_trays

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    project_id: str
    elements: dict[str, int] = field(default_factory=dict)
    cables: dict[str, int] = field(default_factory=dict)


def load_project_yaml(text: str) -> ProjectInput:
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValidationError("project.yaml must contain a mapping")
    return ProjectInput.model_validate(data)


def plan_order(project: ProjectInput) -> list[ElementSpec]:
    """Elements ordered parent first, with every link checked against the hierarchy.

    Raises :class:`ValidationError` before anything is written.
    """
    by_key = {element.key: element for element in project.elements}
    for element in project.elements:
        if element.parent is not None:
            parent = by_key[element.parent]
            if parent.type not in ALLOWED_PARENTS[element.type]:
                raise ValidationError(
                    f"element {element.key}: {element.type.upper()} cannot be a child of "
                    f"{parent.type.upper()} ({parent.key})"
                )
        if element.trays is not None and element.trays.count and not can_hold_trays(element.type):
            raise ValidationError(f"element {element.key}: {element.type.upper()} cannot hold trays")

    ordered: list[ElementSpec] = []
    placed: set[str] = set()
    pending = list(project.elements)
    while pending:
        ready = [e for e in pending if e.parent is None or e.parent in placed]
        if not ready:
            keys = ", ".join(sorted(e.key for e in pending))
            raise ValidationError(f"elements form a parent cycle: {keys}")
        for element in ready:
            ordered.append(element)
            placed.add(element.key)
        pending = [e for e in pending if e.key not in placed]
    return ordered


def import_project(db: Database, project: ProjectInput) -> ImportResult:
    ordered = plan_order(project)
    project_id = db.create_project(project.project.name, project.project.location)
    result = ImportResult(project_id=project_id)

    for cable in project.cables:
        result.cables[cable.key] = db.insert_cable(
            cable.name or cable.key,
            cable.fiber_count,
            cable.fiber_type,
            project_id=project_id,
            length_m=cable.length_m,
        )

    graph = NetworkGraph(db, project_id)
    for spec in ordered:
        position = (spec.position.x, spec.position.y) if spec.position else None
        gps = (spec.gps.x, spec.gps.y) if spec.gps else None
        if spec.type == "olt":
            element = graph.create_olt(spec.name, position=position, gps=gps, notes=spec.notes)
        else:
            tray_count = spec.trays.count if spec.trays else 0
            tray_capacity = spec.trays.capacity if spec.trays else 12
            element = graph.create_child(
                result.elements[spec.parent],
                None,
                spec.type,
                name=spec.name,
                subtype=spec.subtype,
                position=position,
                gps=gps,
                cable_id=result.cables.get(spec.cable) if spec.cable else None,
                tray_count=tray_count,
                tray_capacity=tray_capacity,
                notes=spec.notes,
            )
        if spec.ports is not None and spec.ports.count:
            graph.add_ports(element.element_id, spec.ports.count, spec.ports.connector_type)
        result.elements[spec.key] = element.element_id

    logger.info(
        "imported %s: %d cables, %d elements",
        project.project.name,
        len(result.cables),
        len(result.elements),
    )
    return result
