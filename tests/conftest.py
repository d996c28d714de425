# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).

from __future__ import annotations

from dataclasses import dataclass

import pytest

from db import Database
from models import NetworkElement
from services.topology import NetworkGraph


@dataclass
class SeededNetwork:
    graph: NetworkGraph
    olt: NetworkElement
    odf: NetworkElement
    closure: NetworkElement
    lcp: NetworkElement
    nap: NetworkElement


@pytest.fixture()
def db(tmp_path) -> Database:
    database = Database(str(tmp_path / "splicebook.db"))
    database.init_db()
    return database


@pytest.fixture()
def project_id(db: Database) -> str:
    return db.create_project("Riverside FTTH", "Riverside")


@pytest.fixture()
def graph(db: Database, project_id: str) -> NetworkGraph:
    return NetworkGraph(db, project_id)


@pytest.fixture()
def network(graph: NetworkGraph) -> SeededNetwork:
    """OLT -> ODF -> closure -> LCP -> NAP, one of each, with trays and ports."""
    olt = graph.create_olt("OLT-A")
    odf = graph.create_child(olt.element_id, "olt", "odf")
    closure = graph.create_child(odf.element_id, "odf", "closure", tray_count=2)
    lcp = graph.create_child(closure.element_id, "closure", "lcp", tray_count=1)
    nap = graph.create_child(lcp.element_id, "lcp", "nap", tray_count=1)
    graph.add_ports(nap.element_id, 8)
    return SeededNetwork(graph, olt, odf, closure, lcp, nap)
