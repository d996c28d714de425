# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Splice continuity: trays, fiber-to-fiber splices, batches and loss grading."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Literal

from db import Database, utc_now
from errors import ConflictError, NotFoundError, ValidationError
from models import CableRef, SessionPreferences, Splice, SpliceDraft, SpliceInput, Tray
from services.colors import FiberInfo, fiber_info
from services.topology import can_hold_trays

logger = logging.getLogger(__name__)

LossGrade = Literal["good", "acceptable", "high", "failed"]

SPLICE_LOSS_THRESHOLDS: dict[str, dict[str, float]] = {
    "fusion": {"good": 0.1, "acceptable": 0.15, "max": 0.3},
    "mechanical": {"good": 0.2, "acceptable": 0.3, "max": 0.5},
}

PASSING_GRADES = frozenset({"good", "acceptable"})


def classify_loss(loss: float | None, splice_type: str = "fusion") -> LossGrade | None:
    """Grade a measured loss; ``None`` when nothing was measured."""
    if loss is None:
        return None
    if splice_type not in SPLICE_LOSS_THRESHOLDS:
        raise ValidationError(
            f"unknown splice_type {splice_type!r}; allowed: {sorted(SPLICE_LOSS_THRESHOLDS)}"
        )
    thresholds = SPLICE_LOSS_THRESHOLDS[splice_type]
    if loss <= thresholds["good"]:
        return "good"
    if loss <= thresholds["acceptable"]:
        return "acceptable"
    if loss <= thresholds["max"]:
        return "high"
    return "failed"


def _resolve(cable: CableRef, fiber: int) -> FiberInfo:
    info = fiber_info(fiber, cable.fiber_count)
    if info is None:
        raise ValidationError(
            f"fiber {fiber} is outside cable {cable.name} (1..{cable.fiber_count})"
        )
    return info


def build_draft(
    tray_id: int,
    cable_a: CableRef,
    fiber_a: int,
    cable_b: CableRef,
    fiber_b: int,
    splice_type: str = "fusion",
    loss: float | None = None,
    technician: str = "",
    notes: str | None = None,
) -> SpliceDraft:
    info_a = _resolve(cable_a, fiber_a)
    info_b = _resolve(cable_b, fiber_b)
    return SpliceDraft(
        tray_id=tray_id,
        cable_a_id=cable_a.cable_id,
        cable_a_name=cable_a.name,
        fiber_a=fiber_a,
        tube_a_color=info_a.tube_color.name,
        fiber_a_color=info_a.fiber_color.name,
        cable_b_id=cable_b.cable_id,
        cable_b_name=cable_b.name,
        fiber_b=fiber_b,
        tube_b_color=info_b.tube_color.name,
        fiber_b_color=info_b.fiber_color.name,
        splice_type=splice_type,
        loss=loss,
        status="completed" if loss is not None else "pending",
        technician=technician,
        notes=notes,
    )


def generate_batch(
    tray_id: int,
    cable_a: CableRef,
    cable_b: CableRef,
    start_fiber_a: int,
    start_fiber_b: int,
    count: int,
    splice_type: str = "fusion",
    technician: str = "",
) -> list[SpliceDraft]:
    """Propose ``count`` straight-through splices, stopping at the shorter cable.

    Proposal ``i`` joins ``start_fiber_a + i`` to ``start_fiber_b + i``; every
    draft is pending and already carries both sides' colors.
    """
    if start_fiber_a < 1 or start_fiber_b < 1:
        raise ValidationError("batch start fibers must be >= 1")
    if count < 0:
        raise ValidationError("batch count must be >= 0")
    room = min(
        count,
        cable_a.fiber_count - start_fiber_a + 1,
        cable_b.fiber_count - start_fiber_b + 1,
    )
    return [
        build_draft(
            tray_id,
            cable_a,
            start_fiber_a + i,
            cable_b,
            start_fiber_b + i,
            splice_type=splice_type,
            technician=technician,
        )
        for i in range(max(room, 0))
    ]


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SpliceStats:
    total: int
    completed: int
    pending: int
    with_loss: int
    avg_loss: float
    min_loss: float
    max_loss: float
    pass_rate: float


def splice_stats(splices: Iterable[SpliceDraft]) -> SpliceStats:
    rows = list(splices)
    losses = [s.loss for s in rows if s.loss is not None]
    passing = sum(1 for s in rows if classify_loss(s.loss, s.splice_type) in PASSING_GRADES)
    return SpliceStats(
        total=len(rows),
        completed=sum(1 for s in rows if s.status == "completed"),
        pending=sum(1 for s in rows if s.status == "pending"),
        with_loss=len(losses),
        avg_loss=round(sum(losses) / len(losses), 3) if losses else 0.0,
        min_loss=min(losses, default=0.0),
        max_loss=max(losses, default=0.0),
        pass_rate=round(passing / len(rows) * 100, 1) if rows else 0.0,
    )


@dataclass(frozen=True)
class Compliance:
    status: Literal["pass", "warn", "fail"]
    issues: list[str]
    loss_grade: LossGrade | None


def splice_compliance(splice: SpliceDraft) -> Compliance:
    issues: list[str] = []
    failed = False
    grade = classify_loss(splice.loss, splice.splice_type)
    if grade == "failed":
        issues.append(f"Loss exceeds maximum: {splice.loss:.2f} dB")
        failed = True
    elif grade == "high":
        issues.append(f"Loss is high: {splice.loss:.2f} dB")
    elif grade is None:
        issues.append("No loss measurement recorded")
    if not splice.technician.strip():
        issues.append("No technician sign-off")
    if failed:
        status = "fail"
    elif issues:
        status = "warn"
    else:
        status = "pass"
    return Compliance(status=status, issues=issues, loss_grade=grade)


@dataclass(frozen=True)
class MatrixCell:
    fiber_a: int
    fiber_b: int
    info_a: FiberInfo
    info_b: FiberInfo
    splice: SpliceDraft | None = None


def splice_matrix(
    count_a: int, count_b: int, splices: Iterable[SpliceDraft]
) -> list[list[MatrixCell]]:
    """Full A x B grid; each cell holds the splice joining that pair, if any."""
    by_pair = {(s.fiber_a, s.fiber_b): s for s in splices}
    infos_b = [fiber_info(n, count_b) for n in range(1, count_b + 1)]
    matrix: list[list[MatrixCell]] = []
    for fiber_a in range(1, count_a + 1):
        info_a = fiber_info(fiber_a, count_a)
        if info_a is None:
            continue
        matrix.append(
            [
                MatrixCell(
                    fiber_a=fiber_a,
                    fiber_b=info_b.fiber_number,
                    info_a=info_a,
                    info_b=info_b,
                    splice=by_pair.get((fiber_a, info_b.fiber_number)),
                )
                for info_b in infos_b
                if info_b is not None
            ]
        )
    return matrix


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UpsertResult:
    splice: Splice
    created: bool

    @property
    def action(self) -> str:
        return "created" if self.created else "updated"


@dataclass
class BatchResult:
    created: list[Splice] = field(default_factory=list)
    skipped: list[SpliceDraft] = field(default_factory=list)
    rejected: list[SpliceDraft] = field(default_factory=list)


class SpliceStore:
    def __init__(self, db: Database):
        self.db = db

    # -- trays --------------------------------------------------------------

    def create_tray(
        self,
        element_id: int,
        number: int | None = None,
        capacity: int = 12,
        notes: str | None = None,
    ) -> Tray:
        element = self.db.get_element(element_id)
        if element is None:
            raise NotFoundError(f"element {element_id} not found")
        if not can_hold_trays(element["role"]):
            raise ValidationError(f"{element['role'].upper()} cannot hold splice trays")
        if capacity < 1:
            raise ValidationError("tray capacity must be at least 1")
        existing = [tray.number for tray in self.trays(element_id)]
        if number is None:
            number = max(existing, default=0) + 1
        elif number < 1:
            raise ValidationError("tray number must be at least 1")
        elif number in existing:
            raise ConflictError(f"tray {number} already exists in {element['name']}")
        tray_id = self.db.insert_tray(element_id, number, capacity, notes)
        logger.info("created tray %s in %s", number, element["name"])
        return self.tray(tray_id)

    def tray(self, tray_id: int) -> Tray:
        row = self.db.get_tray(tray_id)
        if row is None:
            raise NotFoundError(f"tray {tray_id} not found")
        return Tray.model_validate(dict(row))

    def trays(self, element_id: int) -> list[Tray]:
        return [Tray.model_validate(dict(row)) for row in self.db.list_trays(element_id)]

    def delete_tray(self, tray_id: int) -> int:
        """Delete a tray and its splices; returns the number of splices removed."""
        self.tray(tray_id)
        removed = self.db.delete_tray(tray_id)
        logger.info("deleted tray %s with %d splices", tray_id, removed)
        return removed

    # -- splices ------------------------------------------------------------

    def splices(self, tray_id: int) -> list[Splice]:
        return [Splice.model_validate(dict(row)) for row in self.db.list_splices(tray_id)]

    def splices_for_cable(self, cable_name: str) -> list[Splice]:
        return [
            Splice.model_validate(dict(row)) for row in self.db.list_splices_for_cable(cable_name)
        ]

    def get_splice(self, splice_id: int) -> Splice:
        row = self.db.get_splice(splice_id)
        if row is None:
            raise NotFoundError(f"splice {splice_id} not found")
        return Splice.model_validate(dict(row))

    def delete_splice(self, splice_id: int) -> bool:
        deleted = self.db.delete_splice(splice_id)
        if deleted:
            logger.info("deleted splice %s", splice_id)
        return deleted

    def create_or_update_splice(
        self, data: SpliceInput, prefs: SessionPreferences | None = None
    ) -> UpsertResult:
        """Record a splice, updating the existing one for the same fiber pair.

        Status is ``completed`` exactly when a loss was measured. A missing
        splice type or technician falls back to ``prefs``.
        """
        prefs = prefs or SessionPreferences()
        tray = self.tray(data.tray_id)
        draft = build_draft(
            tray.tray_id,
            data.cable_a,
            data.fiber_a,
            data.cable_b,
            data.fiber_b,
            splice_type=data.splice_type or prefs.default_splice_type,
            loss=data.loss,
            technician=data.technician if data.technician is not None else prefs.technician_name,
            notes=data.notes,
        )
        exists = self.db.find_splice(tray.tray_id, draft.fiber_a, draft.fiber_b) is not None
        if not exists and self.db.count_splices(tray.tray_id) >= tray.capacity:
            raise ValidationError(f"tray {tray.number} is full ({tray.capacity} splices)")
        splice_id, created = self.db.upsert_splice({**draft.model_dump(), "timestamp": utc_now()})
        result = UpsertResult(splice=self.get_splice(splice_id), created=created)
        logger.info(
            "%s splice %s:%s -> %s:%s in tray %s",
            result.action,
            draft.cable_a_name,
            draft.fiber_a,
            draft.cable_b_name,
            draft.fiber_b,
            tray.tray_id,
        )
        return result

    def commit_batch(self, drafts: Iterable[SpliceDraft]) -> BatchResult:
        """Insert drafts whose fiber pair is still free; existing pairs are kept."""
        result = BatchResult()
        trays: dict[int, Tray] = {}
        for draft in drafts:
            tray = trays.get(draft.tray_id) or self.tray(draft.tray_id)
            trays[tray.tray_id] = tray
            if self.db.find_splice(tray.tray_id, draft.fiber_a, draft.fiber_b) is not None:
                result.skipped.append(draft)
                continue
            if self.db.count_splices(tray.tray_id) >= tray.capacity:
                result.rejected.append(draft)
                continue
            splice_id, _ = self.db.upsert_splice({**draft.model_dump(), "timestamp": utc_now()})
            result.created.append(self.get_splice(splice_id))
        logger.info(
            "batch commit: %d created, %d skipped, %d rejected",
            len(result.created),
            len(result.skipped),
            len(result.rejected),
        )
        return result
