# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Export helpers for splice CSV, loss budget CSV, and network JSON."""

from __future__ import annotations

import csv
import io
import json
from dataclasses import asdict
from typing import Any, Iterable, Mapping

from models import Splice
from services.topology import NetworkGraph

SPLICE_COLUMNS = [
    "splice_id",
    "tray_id",
    "cable_a_name",
    "fiber_a",
    "tube_a_color",
    "fiber_a_color",
    "cable_b_name",
    "fiber_b",
    "tube_b_color",
    "fiber_b_color",
    "splice_type",
    "loss",
    "technician",
    "timestamp",
    "status",
    "notes",
]

LOSS_BUDGET_COLUMNS = [
    "budget_id",
    "name",
    "fiber_type",
    "wavelength",
    "distance_km",
    "fusion_splices",
    "mechanical_splices",
    "connector_pairs",
    "connector_type",
    "margin_db",
    "fiber_loss",
    "fusion_splice_loss",
    "mechanical_splice_loss",
    "connector_loss",
    "total_loss",
    "created_at",
]


def _cell(value: Any) -> Any:
    return "" if value is None else value


def splices_csv(splices: Iterable[Splice]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=SPLICE_COLUMNS)
    writer.writeheader()
    for splice in splices:
        row = splice.model_dump()
        writer.writerow({k: _cell(row.get(k)) for k in SPLICE_COLUMNS})
    return buf.getvalue()


def loss_budgets_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    """Flatten saved budgets (input and breakdown JSON) into one CSV row each."""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=LOSS_BUDGET_COLUMNS)
    writer.writeheader()
    for saved in rows:
        row = {
            **json.loads(saved["input_json"]),
            **json.loads(saved["result_json"]),
            "budget_id": saved["budget_id"],
            "name": saved["name"],
            "created_at": saved["created_at"],
        }
        writer.writerow({k: _cell(row.get(k)) for k in LOSS_BUDGET_COLUMNS})
    return buf.getvalue()


def network_json(graph: NetworkGraph) -> str:
    layout = graph.layout()
    payload = {
        "project_id": graph.project_id,
        "elements": [element.model_dump() for element in graph.elements()],
        "edges": [asdict(edge) for edge in graph.edges()],
        "layout": {str(node): asdict(pos) for node, pos in layout.items()},
    }
    return json.dumps(payload, ensure_ascii=False, indent=2, default=str)
