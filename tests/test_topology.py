# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
from __future__ import annotations

import sqlite3

import pytest

from db import Database
from errors import NotFoundError, ValidationError
from models import CableRef
from services.splices import SpliceStore, generate_batch
from services.topology import (
    ALLOWED_PARENTS,
    ConnectStatus,
    NetworkGraph,
    allowed_child_types,
)

# ---------------------------------------------------------------------------
# Hierarchy table
# ---------------------------------------------------------------------------


def test_allowed_child_types_inverts_parent_table() -> None:
    assert allowed_child_types("olt") == {"odf", "closure", "lcp"}
    assert allowed_child_types("odf") == {"closure"}
    assert allowed_child_types("closure") == {"closure", "lcp"}
    assert allowed_child_types("lcp") == {"nap"}
    assert allowed_child_types("nap") == frozenset()
    assert ALLOWED_PARENTS["olt"] == frozenset()


def test_every_persisted_link_follows_the_table(network) -> None:
    by_id = {e.element_id: e for e in network.graph.elements()}
    for element in by_id.values():
        if element.parent_id is None:
            assert element.role == "olt"
            continue
        parent = by_id[element.parent_id]
        assert element.parent_type == parent.role
        assert parent.role in ALLOWED_PARENTS[element.role]


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def test_auto_names_count_per_role(graph: NetworkGraph) -> None:
    olt = graph.create_olt()
    assert olt.name == "OLT-1"
    first = graph.create_child(olt.element_id, "olt", "closure")
    second = graph.create_child(olt.element_id, "olt", "closure", name="  ")
    named = graph.create_child(olt.element_id, "olt", "closure", name="Main St")
    assert [first.name, second.name, named.name] == ["CLOSURE-1", "CLOSURE-2", "Main St"]
    assert first.subtype == "splice-closure"


def test_instant_create_uses_first_allowed_parent(network) -> None:
    nap = network.graph.create_child(None, None, "nap")
    assert nap.parent_id == network.lcp.element_id
    assert nap.parent_type == "lcp"


def test_instant_create_without_parent_writes_nothing(graph: NetworkGraph) -> None:
    graph.create_olt()
    before = len(graph.elements())
    with pytest.raises(ValidationError, match="LCP"):
        graph.create_child(None, None, "nap")
    assert len(graph.elements()) == before


def test_create_child_rejects_disallowed_parent(network) -> None:
    with pytest.raises(ValidationError):
        network.graph.create_child(network.olt.element_id, "olt", "nap")
    with pytest.raises(ValidationError):
        network.graph.create_child(network.nap.element_id, "nap", "closure")


def test_create_child_checks_declared_parent_type(network) -> None:
    with pytest.raises(ValidationError):
        network.graph.create_child(network.odf.element_id, "olt", "closure")


def test_create_child_validates_subtype_and_trays(network) -> None:
    graph = network.graph
    fdt = graph.create_child(network.closure.element_id, "closure", "lcp", subtype="fdt")
    assert fdt.subtype == "fdt"
    with pytest.raises(ValidationError):
        graph.create_child(network.closure.element_id, "closure", "lcp", subtype="pedestal")
    with pytest.raises(ValidationError):
        graph.create_child(network.olt.element_id, "olt", "odf", tray_count=1)
    with pytest.raises(ValidationError):
        graph.create_child(network.olt.element_id, "olt", "olt")


def test_create_child_with_trays_and_cable(db, graph: NetworkGraph) -> None:
    olt = graph.create_olt()
    cable_id = db.insert_cable("FDR-01", 144, project_id=graph.project_id)
    closure = graph.create_child(
        olt.element_id, "olt", "closure", cable_id=cable_id, tray_count=3, tray_capacity=24
    )
    trays = SpliceStore(db).trays(closure.element_id)
    assert [(t.number, t.capacity) for t in trays] == [(1, 24), (2, 24), (3, 24)]
    edge = graph.edges()[0]
    assert (edge.source, edge.target) == (olt.element_id, closure.element_id)
    assert edge.cable_name == "FDR-01"
    assert edge.fiber_count == 144
    assert edge.kind == "feeder"
    with pytest.raises(NotFoundError):
        graph.create_child(olt.element_id, "olt", "closure", cable_id=999)


def test_edge_kinds(network) -> None:
    kinds = {e.target: e.kind for e in network.graph.edges()}
    assert kinds[network.closure.element_id] == "feeder"
    assert kinds[network.lcp.element_id] == "distribution"
    assert kinds[network.nap.element_id] == "drop"


def test_get_rejects_elements_of_other_projects(db, network) -> None:
    other = NetworkGraph(db, db.create_project("Elsewhere"))
    with pytest.raises(NotFoundError):
        other.get(network.olt.element_id)


def test_set_position_ignores_elements_of_other_projects(db, network) -> None:
    other = NetworkGraph(db, db.create_project("Elsewhere"))
    assert other.set_position(network.lcp.element_id, 5.0, 5.0) is False
    untouched = network.graph.get(network.lcp.element_id)
    assert (untouched.canvas_x, untouched.canvas_y) == (
        network.lcp.canvas_x,
        network.lcp.canvas_y,
    )


def test_create_child_rolls_back_element_when_trays_fail(db, network) -> None:
    graph = network.graph
    before = len(graph.elements())
    with db.connect() as conn:
        conn.execute(
            "CREATE TRIGGER block_tray_insert BEFORE INSERT ON tray "
            "BEGIN SELECT RAISE(ABORT, 'tray insert blocked'); END;"
        )

    with pytest.raises(sqlite3.DatabaseError):
        graph.create_child(network.odf.element_id, "odf", "closure", tray_count=2)

    assert len(graph.elements()) == before
    assert graph.count_descendants(network.odf.element_id) == 3


# ---------------------------------------------------------------------------
# connect
# ---------------------------------------------------------------------------


def test_connect_reparents_when_allowed(network) -> None:
    graph = network.graph
    spare = graph.create_child(network.olt.element_id, "olt", "closure")
    result = graph.connect(spare.element_id, network.lcp.element_id)
    assert result.status is ConnectStatus.CONNECTED
    assert result.ok
    assert graph.get(network.lcp.element_id).parent_id == spare.element_id


def test_connect_existing_link_is_noop(network) -> None:
    result = network.graph.connect(network.lcp.element_id, network.nap.element_id)
    assert result.status is ConnectStatus.ALREADY_CONNECTED


def test_connect_rejects_disallowed_pair_without_change(network) -> None:
    graph = network.graph
    result = graph.connect(network.olt.element_id, network.nap.element_id)
    assert result.status is ConnectStatus.REJECTED
    assert not result.ok
    assert "NAP cannot be a child of OLT" in result.reason
    assert graph.get(network.nap.element_id).parent_id == network.lcp.element_id


def test_connect_rejects_lcp_over_odf_and_leaves_graph_unchanged(network) -> None:
    graph = network.graph
    before = [(e.element_id, e.parent_type, e.parent_id) for e in graph.elements()]
    result = graph.connect(network.lcp.element_id, network.odf.element_id)
    assert result.status is ConnectStatus.REJECTED
    assert "ODF cannot be a child of LCP" in result.reason
    assert [(e.element_id, e.parent_type, e.parent_id) for e in graph.elements()] == before


def test_connect_rejects_cycles(network) -> None:
    graph = network.graph
    nested = graph.create_child(network.closure.element_id, "closure", "closure")
    result = graph.connect(nested.element_id, network.closure.element_id)
    assert result.status is ConnectStatus.REJECTED
    assert graph.get(network.closure.element_id).parent_id == network.odf.element_id


def test_connect_unknown_element_raises(network) -> None:
    with pytest.raises(NotFoundError):
        network.graph.connect(network.olt.element_id, 9999)


# ---------------------------------------------------------------------------
# Cascading delete
# ---------------------------------------------------------------------------


def test_delete_cascade_removes_subtree_and_owned_records(db, network) -> None:
    graph = network.graph
    store = SpliceStore(db)
    a = CableRef(name="FDR", fiber_count=24)
    b = CableRef(name="DST", fiber_count=24)
    closure_tray = store.trays(network.closure.element_id)[0].tray_id
    nap_tray = store.trays(network.nap.element_id)[0].tray_id
    store.commit_batch(generate_batch(closure_tray, a, b, 1, 1, 4))
    store.commit_batch(generate_batch(nap_tray, a, b, 1, 1, 2))

    assert graph.count_descendants(network.closure.element_id) == 2
    assert graph.delete_cascade(network.closure.element_id) == 2

    remaining = {e.element_id for e in graph.elements()}
    assert remaining == {network.olt.element_id, network.odf.element_id}
    assert db.list_trays(network.closure.element_id) == []
    assert db.list_splices(closure_tray) == []
    assert db.list_splices(nap_tray) == []
    assert db.list_ports(network.nap.element_id) == []


def test_delete_cascade_from_root_removes_whole_chain(db, network) -> None:
    graph = network.graph
    assert graph.delete_cascade(network.olt.element_id) == 4
    assert graph.elements() == []
    assert db.list_trays(network.closure.element_id) == []
    assert db.list_ports(network.nap.element_id) == []


def test_delete_cascade_of_leaf_returns_zero(network) -> None:
    assert network.graph.delete_cascade(network.nap.element_id) == 0


def test_delete_cascade_follows_nested_closures(network) -> None:
    graph = network.graph
    parent = network.closure
    for _ in range(5):
        parent = graph.create_child(parent.element_id, "closure", "closure")
    assert graph.count_descendants(network.closure.element_id) == 7
    assert graph.delete_cascade(network.odf.element_id) == 8


def test_failed_cascade_rolls_back_everything(db, network) -> None:
    store = SpliceStore(db)
    tray = store.trays(network.closure.element_id)[0].tray_id
    a = CableRef(name="A", fiber_count=12)
    b = CableRef(name="B", fiber_count=12)
    store.commit_batch(generate_batch(tray, a, b, 1, 1, 3))
    with db.connect() as conn:
        conn.execute(
            "CREATE TRIGGER block_port_delete BEFORE DELETE ON port "
            "BEGIN SELECT RAISE(ABORT, 'port delete blocked'); END;"
        )

    with pytest.raises(sqlite3.DatabaseError):
        network.graph.delete_cascade(network.closure.element_id)

    assert len(network.graph.elements()) == 5
    assert len(db.list_splices(tray)) == 3
    assert len(db.list_trays(network.closure.element_id)) == 2


# ---------------------------------------------------------------------------
# Positions, cables, orphans, ports
# ---------------------------------------------------------------------------


def test_set_position_is_best_effort(network) -> None:
    graph = network.graph
    assert graph.set_position(network.lcp.element_id, 40.0, 80.0) is True
    moved = graph.get(network.lcp.element_id)
    assert (moved.canvas_x, moved.canvas_y) == (40.0, 80.0)
    assert graph.set_position(9999, 1.0, 1.0) is False


def test_set_position_swallows_storage_errors(tmp_path) -> None:
    broken = NetworkGraph(Database(str(tmp_path / "missing-schema.db")), "prj_x")
    assert broken.set_position(1, 0.0, 0.0) is False


def test_attach_cable(db, network) -> None:
    cable_id = db.insert_cable("DROP-1", 12, project_id=network.graph.project_id)
    updated = network.graph.attach_cable(network.nap.element_id, cable_id)
    assert updated.cable_id == cable_id
    with pytest.raises(ValidationError):
        network.graph.attach_cable(network.olt.element_id, cable_id)


def test_orphans_lists_non_roots_without_parent(db, network) -> None:
    db.update_element_parent(network.lcp.element_id, None, None)
    assert [e.element_id for e in network.graph.orphans()] == [network.lcp.element_id]


def test_ports_and_hierarchy_stats(network) -> None:
    graph = network.graph
    ports = graph.ports(network.nap.element_id)
    assert [p.label for p in ports[:2]] == ["P1", "P2"]
    graph.set_port_status(ports[0].port_id, "connected")
    graph.set_port_status(ports[1].port_id, "connected")
    more = graph.add_ports(network.nap.element_id, 2, "LC")
    assert [p.port_number for p in more][-2:] == [9, 10]

    stats = graph.hierarchy_stats(network.olt.element_id)
    assert (stats.closure_count, stats.lcp_count, stats.nap_count) == (1, 1, 1)
    assert stats.tray_count == 4
    assert stats.splitter_count == 0
    assert stats.port_count == 10
    assert stats.connected_ports == 2
    assert stats.utilization == 20

    with pytest.raises(ValidationError):
        graph.set_port_status(ports[0].port_id, "melted")
    with pytest.raises(NotFoundError):
        graph.set_port_status(9999, "reserved")


# ---------------------------------------------------------------------------
# Splitters
# ---------------------------------------------------------------------------


def test_add_splitter_creates_one_port_per_leg(db, network) -> None:
    graph = network.graph
    cable_id = db.insert_cable("DST-01", 48, project_id=graph.project_id)
    splitter = graph.add_splitter(
        network.lcp.element_id, "1:8", input_cable_id=cable_id, input_fiber=3
    )
    assert splitter.name == "SPL-1"
    assert splitter.output_count == 8
    assert (splitter.input_cable_id, splitter.input_fiber) == (cable_id, 3)
    ports = graph.ports(network.lcp.element_id)
    assert [p.port_number for p in ports] == list(range(1, 9))
    assert ports[0].label == "SPL-1-1"
    assert {p.splitter_id for p in ports} == {splitter.splitter_id}
    assert [s.splitter_id for s in graph.splitters(network.lcp.element_id)] == [
        splitter.splitter_id
    ]


def test_splitter_ports_follow_existing_ports(network) -> None:
    graph = network.graph
    splitter = graph.add_splitter(network.nap.element_id, "1:4", name="Drop splitter")
    added = [p for p in graph.ports(network.nap.element_id) if p.splitter_id is not None]
    assert [p.port_number for p in added] == [9, 10, 11, 12]
    assert added[-1].label == "Drop splitter-4"
    assert graph.add_splitter(network.nap.element_id, "1:2").name == "SPL-2"
    assert splitter.ratio == "1:4"


def test_add_splitter_validation(db, network) -> None:
    graph = network.graph
    cable_id = db.insert_cable("DST-02", 48, project_id=graph.project_id)
    with pytest.raises(ValidationError, match="CLOSURE"):
        graph.add_splitter(network.closure.element_id, "1:8")
    with pytest.raises(ValidationError):
        graph.add_splitter(network.olt.element_id, "1:8")
    with pytest.raises(ValidationError, match="1:32"):
        graph.add_splitter(network.lcp.element_id, "1:3")
    with pytest.raises(ValidationError):
        graph.add_splitter(network.lcp.element_id, "1:8", input_cable_id=cable_id, input_fiber=49)
    with pytest.raises(NotFoundError):
        graph.add_splitter(network.lcp.element_id, "1:8", input_cable_id=999)
    assert graph.splitters(network.lcp.element_id) == []
    assert graph.ports(network.lcp.element_id) == []


def test_delete_splitter_removes_only_its_ports(network) -> None:
    graph = network.graph
    splitter = graph.add_splitter(network.nap.element_id, "1:4")
    assert graph.delete_splitter(splitter.splitter_id) == 4
    assert graph.splitters(network.nap.element_id) == []
    assert len(graph.ports(network.nap.element_id)) == 8
    with pytest.raises(NotFoundError):
        graph.delete_splitter(splitter.splitter_id)


def test_splitters_counted_and_cascaded(db, network) -> None:
    graph = network.graph
    graph.add_splitter(network.lcp.element_id, "1:8")
    graph.add_splitter(network.nap.element_id, "1:2")
    assert graph.hierarchy_stats(network.olt.element_id).splitter_count == 2
    assert graph.hierarchy_stats(network.nap.element_id).splitter_count == 1

    graph.delete_cascade(network.closure.element_id)
    assert db.list_splitters(network.lcp.element_id) == []
    assert db.list_splitters(network.nap.element_id) == []
