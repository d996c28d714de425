# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
from __future__ import annotations

import pytest

from models import (
    Cable,
    CableRef,
    ElementSpec,
    ProjectInput,
    SessionPreferences,
    SpliceInput,
    Splitter,
    role_for_subtype,
)


def _plan() -> dict[str, object]:
    return {
        "version": 1,
        "project": {"name": "p1"},
        "cables": [{"key": "fdr", "fiber_count": 144}],
        "elements": [
            {"key": "olt", "type": "olt"},
            {"key": "c1", "type": "closure", "parent": "olt", "cable": "fdr"},
        ],
    }


def test_plan_is_valid() -> None:
    project = ProjectInput.model_validate(_plan())
    assert [e.key for e in project.elements] == ["olt", "c1"]


def test_rejects_unsupported_fiber_count() -> None:
    with pytest.raises(ValueError, match="unsupported fiber_count"):
        CableRef(name="X", fiber_count=36)
    with pytest.raises(ValueError):
        Cable(name="X", fiber_count=100)


def test_rejects_duplicate_element_keys() -> None:
    payload = _plan()
    payload["elements"].append({"key": "c1", "type": "closure", "parent": "olt"})
    with pytest.raises(ValueError, match="element keys must be unique"):
        ProjectInput.model_validate(payload)


def test_rejects_unknown_parent_and_cable() -> None:
    payload = _plan()
    payload["elements"][1]["parent"] = "ghost"
    with pytest.raises(ValueError, match="unknown parent"):
        ProjectInput.model_validate(payload)

    payload = _plan()
    payload["elements"][1]["cable"] = "ghost"
    with pytest.raises(ValueError, match="unknown cable"):
        ProjectInput.model_validate(payload)


def test_root_rules() -> None:
    payload = _plan()
    payload["elements"][0]["parent"] = "c1"
    with pytest.raises(ValueError, match="cannot have a parent"):
        ProjectInput.model_validate(payload)

    payload = _plan()
    del payload["elements"][1]["parent"]
    with pytest.raises(ValueError, match="requires a parent"):
        ProjectInput.model_validate(payload)


def test_subtype_must_belong_to_role() -> None:
    assert ElementSpec(key="n", type="nap", subtype="fat").subtype == "fat"
    with pytest.raises(ValueError):
        ElementSpec(key="n", type="nap", subtype="handhole")
    with pytest.raises(ValueError):
        ElementSpec(key="o", type="odf", subtype="lcp")
    assert role_for_subtype("handhole") == "closure"
    assert role_for_subtype("rack") is None


def test_extra_fields_forbidden() -> None:
    with pytest.raises(ValueError):
        SpliceInput(
            tray_id=1,
            cable_a=CableRef(name="A"),
            fiber_a=1,
            cable_b=CableRef(name="B"),
            fiber_b=1,
            otdr_trace="x",
        )


def test_negative_loss_rejected() -> None:
    with pytest.raises(ValueError):
        SpliceInput(
            tray_id=1,
            cable_a=CableRef(name="A"),
            fiber_a=1,
            cable_b=CableRef(name="B"),
            fiber_b=1,
            loss=-0.1,
        )


def test_session_preferences_defaults() -> None:
    prefs = SessionPreferences()
    assert prefs.default_splice_type == "fusion"
    assert prefs.default_cable_count == 144
    with pytest.raises(ValueError):
        SessionPreferences(default_cable_count=7)


def test_splitter_ratio_and_outputs() -> None:
    splitter = Splitter(splitter_id=1, element_id=2, name="SPL-1", ratio="1:16")
    assert splitter.output_count == 16
    with pytest.raises(ValueError):
        Splitter(splitter_id=1, element_id=2, name="SPL-1", ratio="1:3")
