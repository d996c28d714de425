# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""End-to-end optical loss budget for a fiber link."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from db import Database
from errors import ValidationError
from models import LossBudgetInput

# dB/km, maximum values from the cable datasheets.
FIBER_ATTENUATION: dict[str, dict[int, float]] = {
    "singlemode": {1310: 0.5, 1550: 0.4},
    "multimode": {850: 3.5, 1300: 1.5},
}

SPLICE_LOSS: dict[str, dict[str, float]] = {
    "fusion": {"typical": 0.1, "max": 0.3},
    "mechanical": {"typical": 0.3, "max": 0.5},
}

CONNECTOR_LOSS: dict[str, dict[str, float]] = {
    "LC": {"typical": 0.2, "max": 0.5},
    "SC": {"typical": 0.25, "max": 0.5},
    "FC": {"typical": 0.25, "max": 0.5},
    "ST": {"typical": 0.3, "max": 0.5},
    "MPO": {"typical": 0.35, "max": 0.75},
    "MTP": {"typical": 0.35, "max": 0.75},
}

POWER_BUDGETS: dict[str, float] = {
    "gpon_classB": 28.0,
    "gpon_classBplus": 28.0,
    "gpon_classC": 30.0,
    "gpon_classCplus": 32.0,
    "xgspon_n1": 29.0,
    "xgspon_n2": 31.0,
    "gigabit_sx": 7.5,
    "gigabit_lx": 11.0,
    "gigabit_zx": 23.0,
    "ten_gig_sr": 6.5,
    "ten_gig_lr": 9.4,
    "ten_gig_er": 15.6,
}


@dataclass(frozen=True)
class LossBreakdown:
    fiber_loss: float
    fusion_splice_loss: float
    mechanical_splice_loss: float
    connector_loss: float
    margin_loss: float
    total_loss: float
    attenuation_per_km: float
    fusion_loss_each: float
    mechanical_loss_each: float
    connector_loss_each: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class PowerBudgetCheck:
    passed: bool
    budget_db: float
    margin: float


def _round(value: float) -> float:
    return round(value, 2)


def calculate(budget: LossBudgetInput) -> LossBreakdown:
    """Sum fiber, splice, connector and safety margin losses for one link.

    Each component is rounded to 0.01 dB and the total is the sum of the
    rounded components.
    """
    value = "max" if budget.use_max_values else "typical"
    attenuation = FIBER_ATTENUATION.get(budget.fiber_type, {}).get(budget.wavelength, 0.0)
    fusion_each = SPLICE_LOSS["fusion"][value]
    mechanical_each = SPLICE_LOSS["mechanical"][value]
    connector_each = CONNECTOR_LOSS[budget.connector_type][value]

    fiber_loss = _round(budget.distance_km * attenuation)
    fusion_loss = _round(budget.fusion_splices * fusion_each)
    mechanical_loss = _round(budget.mechanical_splices * mechanical_each)
    connector_loss = _round(budget.connector_pairs * connector_each)
    margin = _round(budget.margin_db)

    return LossBreakdown(
        fiber_loss=fiber_loss,
        fusion_splice_loss=fusion_loss,
        mechanical_splice_loss=mechanical_loss,
        connector_loss=connector_loss,
        margin_loss=margin,
        total_loss=_round(fiber_loss + fusion_loss + mechanical_loss + connector_loss + margin),
        attenuation_per_km=attenuation,
        fusion_loss_each=fusion_each,
        mechanical_loss_each=mechanical_each,
        connector_loss_each=connector_each,
    )


def check_power_budget(total_loss: float, equipment_class: str) -> PowerBudgetCheck:
    if equipment_class not in POWER_BUDGETS:
        raise ValidationError(
            f"unknown equipment class {equipment_class!r}; allowed: {sorted(POWER_BUDGETS)}"
        )
    budget = POWER_BUDGETS[equipment_class]
    remaining = budget - total_loss
    return PowerBudgetCheck(passed=remaining >= 0, budget_db=budget, margin=_round(remaining))


def save_budget(db: Database, budget: LossBudgetInput, name: str | None = None) -> int:
    """Persist a named calculation; returns the saved budget id."""
    label = (name or budget.name).strip()
    if not label:
        raise ValidationError("a saved loss budget needs a name")
    result: dict[str, Any] = calculate(budget).to_dict()
    return db.save_loss_budget(label, budget.model_dump(), result)
