# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""SQLite persistence layer for projects, network elements, trays, splices and budgets."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from hashlib import sha256
from pathlib import Path
from typing import Any, Iterable, Iterator

SCHEMA = """
CREATE TABLE IF NOT EXISTS project (
  project_id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  location TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS cable (
  cable_id INTEGER PRIMARY KEY AUTOINCREMENT,
  project_id TEXT,
  name TEXT NOT NULL,
  fiber_count INTEGER NOT NULL,
  fiber_type TEXT NOT NULL DEFAULT 'singlemode',
  length_m REAL,
  notes TEXT,
  FOREIGN KEY(project_id) REFERENCES project(project_id)
);
CREATE TABLE IF NOT EXISTS element (
  element_id INTEGER PRIMARY KEY AUTOINCREMENT,
  project_id TEXT NOT NULL,
  name TEXT NOT NULL,
  role TEXT NOT NULL,
  subtype TEXT,
  parent_type TEXT,
  parent_id INTEGER,
  cable_id INTEGER,
  canvas_x REAL,
  canvas_y REAL,
  gps_lat REAL,
  gps_lng REAL,
  notes TEXT,
  created_at TEXT NOT NULL,
  FOREIGN KEY(project_id) REFERENCES project(project_id),
  FOREIGN KEY(cable_id) REFERENCES cable(cable_id)
);
CREATE TABLE IF NOT EXISTS tray (
  tray_id INTEGER PRIMARY KEY AUTOINCREMENT,
  element_id INTEGER NOT NULL,
  number INTEGER NOT NULL,
  capacity INTEGER NOT NULL DEFAULT 12,
  notes TEXT,
  UNIQUE(element_id, number),
  FOREIGN KEY(element_id) REFERENCES element(element_id)
);
CREATE TABLE IF NOT EXISTS splice (
  splice_id INTEGER PRIMARY KEY AUTOINCREMENT,
  tray_id INTEGER NOT NULL,
  cable_a_id INTEGER,
  cable_a_name TEXT NOT NULL,
  fiber_a INTEGER NOT NULL,
  tube_a_color TEXT NOT NULL,
  fiber_a_color TEXT NOT NULL,
  cable_b_id INTEGER,
  cable_b_name TEXT NOT NULL,
  fiber_b INTEGER NOT NULL,
  tube_b_color TEXT NOT NULL,
  fiber_b_color TEXT NOT NULL,
  splice_type TEXT NOT NULL,
  loss REAL,
  status TEXT NOT NULL,
  technician TEXT NOT NULL DEFAULT '',
  timestamp TEXT NOT NULL,
  notes TEXT,
  UNIQUE(tray_id, fiber_a, fiber_b),
  FOREIGN KEY(tray_id) REFERENCES tray(tray_id)
);
CREATE TABLE IF NOT EXISTS splitter (
  splitter_id INTEGER PRIMARY KEY AUTOINCREMENT,
  element_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  ratio TEXT NOT NULL,
  input_cable_id INTEGER,
  input_fiber INTEGER,
  notes TEXT,
  created_at TEXT NOT NULL,
  FOREIGN KEY(element_id) REFERENCES element(element_id),
  FOREIGN KEY(input_cable_id) REFERENCES cable(cable_id)
);
CREATE TABLE IF NOT EXISTS port (
  port_id INTEGER PRIMARY KEY AUTOINCREMENT,
  element_id INTEGER NOT NULL,
  splitter_id INTEGER,
  port_number INTEGER NOT NULL,
  label TEXT,
  connector_type TEXT NOT NULL DEFAULT 'SC',
  status TEXT NOT NULL DEFAULT 'available',
  UNIQUE(element_id, port_number),
  FOREIGN KEY(element_id) REFERENCES element(element_id),
  FOREIGN KEY(splitter_id) REFERENCES splitter(splitter_id)
);
CREATE TABLE IF NOT EXISTS loss_budget (
  budget_id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  input_json TEXT NOT NULL,
  result_json TEXT NOT NULL,
  created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_element_project ON element(project_id);
CREATE INDEX IF NOT EXISTS idx_element_parent ON element(parent_id);
CREATE INDEX IF NOT EXISTS idx_tray_element ON tray(element_id);
CREATE INDEX IF NOT EXISTS idx_splice_tray ON splice(tray_id);
CREATE INDEX IF NOT EXISTS idx_port_element ON port(element_id);
CREATE INDEX IF NOT EXISTS idx_splitter_element ON splitter(element_id);
"""

ELEMENT_COLUMNS = (
    "project_id",
    "name",
    "role",
    "subtype",
    "parent_type",
    "parent_id",
    "cable_id",
    "canvas_x",
    "canvas_y",
    "gps_lat",
    "gps_lng",
    "notes",
)

SPLICE_COLUMNS = (
    "tray_id",
    "cable_a_id",
    "cable_a_name",
    "fiber_a",
    "tube_a_color",
    "fiber_a_color",
    "cable_b_id",
    "cable_b_name",
    "fiber_b",
    "tube_b_color",
    "fiber_b_color",
    "splice_type",
    "loss",
    "status",
    "technician",
    "timestamp",
    "notes",
)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _placeholders(values: list[Any]) -> str:
    return ",".join("?" for _ in values)


class Database:
    def __init__(self, path: str = "splicebook.db"):
        self.path = path

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        with self.connect() as conn:
            conn.executescript(SCHEMA)

    # -- projects -----------------------------------------------------------

    def create_project(self, name: str, location: str | None = None) -> str:
        now = utc_now()
        project_id = f"prj_{sha256(name.encode('utf-8')).hexdigest()[:16]}"
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO project(project_id,name,location,created_at,updated_at) VALUES(?,?,?,?,?) ON CONFLICT(project_id) DO UPDATE SET updated_at=excluded.updated_at,name=excluded.name,location=excluded.location",
                (project_id, name, location, now, now),
            )
        return project_id

    def get_project(self, project_id: str) -> sqlite3.Row | None:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM project WHERE project_id=?", (project_id,)
            ).fetchone()

    def list_projects(self) -> list[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute("SELECT * FROM project ORDER BY updated_at DESC").fetchall()

    # -- cables -------------------------------------------------------------

    def insert_cable(
        self,
        name: str,
        fiber_count: int,
        fiber_type: str = "singlemode",
        project_id: str | None = None,
        length_m: float | None = None,
        notes: str | None = None,
    ) -> int:
        with self.connect() as conn:
            cur = conn.execute(
                "INSERT INTO cable(project_id,name,fiber_count,fiber_type,length_m,notes) VALUES(?,?,?,?,?,?)",
                (project_id, name, fiber_count, fiber_type, length_m, notes),
            )
            return int(cur.lastrowid)

    def get_cable(self, cable_id: int) -> sqlite3.Row | None:
        with self.connect() as conn:
            return conn.execute("SELECT * FROM cable WHERE cable_id=?", (cable_id,)).fetchone()

    def list_cables(self, project_id: str) -> list[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM cable WHERE project_id=? ORDER BY cable_id", (project_id,)
            ).fetchall()

    # -- elements -----------------------------------------------------------

    def insert_element(
        self, values: dict[str, Any], trays: Iterable[tuple[int, int]] = ()
    ) -> int:
        """Insert an element and its (number, capacity) trays in one transaction."""
        row = [values.get(column) for column in ELEMENT_COLUMNS]
        with self.connect() as conn:
            cur = conn.execute(
                f"INSERT INTO element({','.join(ELEMENT_COLUMNS)},created_at) VALUES({_placeholders(row)},?)",
                (*row, utc_now()),
            )
            element_id = int(cur.lastrowid)
            conn.executemany(
                "INSERT INTO tray(element_id,number,capacity) VALUES(?,?,?)",
                [(element_id, number, capacity) for number, capacity in trays],
            )
            return element_id

    def get_element(self, element_id: int) -> sqlite3.Row | None:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM element WHERE element_id=?", (element_id,)
            ).fetchone()

    def list_elements(self, project_id: str) -> list[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM element WHERE project_id=? ORDER BY element_id", (project_id,)
            ).fetchall()

    def count_elements(self, project_id: str, role: str) -> int:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM element WHERE project_id=? AND role=?",
                (project_id, role),
            ).fetchone()
            return int(row["n"])

    def update_element_parent(
        self, element_id: int, parent_type: str | None, parent_id: int | None
    ) -> None:
        with self.connect() as conn:
            conn.execute(
                "UPDATE element SET parent_type=?, parent_id=? WHERE element_id=?",
                (parent_type, parent_id, element_id),
            )

    def update_element_cable(self, element_id: int, cable_id: int | None) -> None:
        with self.connect() as conn:
            conn.execute(
                "UPDATE element SET cable_id=? WHERE element_id=?", (cable_id, element_id)
            )

    def update_positions(self, positions: dict[int, tuple[float, float]]) -> int:
        with self.connect() as conn:
            return conn.executemany(
                "UPDATE element SET canvas_x=?, canvas_y=? WHERE element_id=?",
                [(x, y, element_id) for element_id, (x, y) in positions.items()],
            ).rowcount

    def delete_elements(self, element_ids: Iterable[int]) -> dict[str, int]:
        """Delete elements with every tray, splice, port and splitter they own in one transaction."""
        ids = list(element_ids)
        counts = {"elements": 0, "trays": 0, "splices": 0, "ports": 0, "splitters": 0}
        if not ids:
            return counts
        marks = _placeholders(ids)
        with self.connect() as conn:
            tray_ids = [
                row["tray_id"]
                for row in conn.execute(
                    f"SELECT tray_id FROM tray WHERE element_id IN ({marks})", ids
                ).fetchall()
            ]
            if tray_ids:
                counts["splices"] = conn.execute(
                    f"DELETE FROM splice WHERE tray_id IN ({_placeholders(tray_ids)})", tray_ids
                ).rowcount
            counts["trays"] = conn.execute(
                f"DELETE FROM tray WHERE element_id IN ({marks})", ids
            ).rowcount
            counts["ports"] = conn.execute(
                f"DELETE FROM port WHERE element_id IN ({marks})", ids
            ).rowcount
            counts["splitters"] = conn.execute(
                f"DELETE FROM splitter WHERE element_id IN ({marks})", ids
            ).rowcount
            counts["elements"] = conn.execute(
                f"DELETE FROM element WHERE element_id IN ({marks})", ids
            ).rowcount
        return counts

    # -- trays --------------------------------------------------------------

    def insert_tray(
        self, element_id: int, number: int, capacity: int, notes: str | None = None
    ) -> int:
        with self.connect() as conn:
            cur = conn.execute(
                "INSERT INTO tray(element_id,number,capacity,notes) VALUES(?,?,?,?)",
                (element_id, number, capacity, notes),
            )
            return int(cur.lastrowid)

    def get_tray(self, tray_id: int) -> sqlite3.Row | None:
        with self.connect() as conn:
            return conn.execute("SELECT * FROM tray WHERE tray_id=?", (tray_id,)).fetchone()

    def list_trays(self, element_id: int) -> list[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM tray WHERE element_id=? ORDER BY number", (element_id,)
            ).fetchall()

    def delete_tray(self, tray_id: int) -> int:
        with self.connect() as conn:
            removed = conn.execute("DELETE FROM splice WHERE tray_id=?", (tray_id,)).rowcount
            conn.execute("DELETE FROM tray WHERE tray_id=?", (tray_id,))
            return removed

    # -- splices ------------------------------------------------------------

    def find_splice(self, tray_id: int, fiber_a: int, fiber_b: int) -> sqlite3.Row | None:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM splice WHERE tray_id=? AND fiber_a=? AND fiber_b=?",
                (tray_id, fiber_a, fiber_b),
            ).fetchone()

    def count_splices(self, tray_id: int) -> int:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM splice WHERE tray_id=?", (tray_id,)
            ).fetchone()
            return int(row["n"])

    def upsert_splice(self, values: dict[str, Any]) -> tuple[int, bool]:
        """Insert a splice or update the one with the same (tray, fiber_a, fiber_b).

        Returns the splice id and whether a new row was created.
        """
        row = [values.get(column) for column in SPLICE_COLUMNS]
        updatable = [c for c in SPLICE_COLUMNS if c not in {"tray_id", "fiber_a", "fiber_b"}]
        with self.connect() as conn:
            existing = conn.execute(
                "SELECT splice_id FROM splice WHERE tray_id=? AND fiber_a=? AND fiber_b=?",
                (values["tray_id"], values["fiber_a"], values["fiber_b"]),
            ).fetchone()
            if existing is not None:
                conn.execute(
                    f"UPDATE splice SET {','.join(f'{c}=?' for c in updatable)} WHERE splice_id=?",
                    (*[values.get(c) for c in updatable], existing["splice_id"]),
                )
                return int(existing["splice_id"]), False
            cur = conn.execute(
                f"INSERT INTO splice({','.join(SPLICE_COLUMNS)}) VALUES({_placeholders(row)})",
                row,
            )
            return int(cur.lastrowid), True

    def get_splice(self, splice_id: int) -> sqlite3.Row | None:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM splice WHERE splice_id=?", (splice_id,)
            ).fetchone()

    def list_splices(self, tray_id: int) -> list[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM splice WHERE tray_id=? ORDER BY fiber_a, fiber_b", (tray_id,)
            ).fetchall()

    def list_splices_for_cable(self, cable_name: str) -> list[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM splice WHERE cable_a_name=? OR cable_b_name=? ORDER BY tray_id, fiber_a, fiber_b",
                (cable_name, cable_name),
            ).fetchall()

    def delete_splice(self, splice_id: int) -> bool:
        with self.connect() as conn:
            return conn.execute("DELETE FROM splice WHERE splice_id=?", (splice_id,)).rowcount > 0

    # -- ports --------------------------------------------------------------

    def insert_ports(self, element_id: int, rows: list[tuple[int, str | None, str]]) -> None:
        with self.connect() as conn:
            conn.executemany(
                "INSERT INTO port(element_id,port_number,label,connector_type) VALUES(?,?,?,?)",
                [(element_id, number, label, connector) for number, label, connector in rows],
            )

    def list_ports(self, element_id: int) -> list[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM port WHERE element_id=? ORDER BY port_number", (element_id,)
            ).fetchall()

    def update_port_status(self, port_id: int, status: str) -> bool:
        with self.connect() as conn:
            return (
                conn.execute(
                    "UPDATE port SET status=? WHERE port_id=?", (status, port_id)
                ).rowcount
                > 0
            )

    # -- splitters ----------------------------------------------------------

    def insert_splitter(
        self,
        element_id: int,
        name: str,
        ratio: str,
        input_cable_id: int | None,
        input_fiber: int | None,
        notes: str | None,
        ports: list[tuple[int, str | None, str]],
    ) -> int:
        """Insert a splitter and its output ports in one transaction."""
        with self.connect() as conn:
            cur = conn.execute(
                "INSERT INTO splitter(element_id,name,ratio,input_cable_id,input_fiber,notes,created_at) VALUES(?,?,?,?,?,?,?)",
                (element_id, name, ratio, input_cable_id, input_fiber, notes, utc_now()),
            )
            splitter_id = int(cur.lastrowid)
            conn.executemany(
                "INSERT INTO port(element_id,splitter_id,port_number,label,connector_type) VALUES(?,?,?,?,?)",
                [
                    (element_id, splitter_id, number, label, connector)
                    for number, label, connector in ports
                ],
            )
            return splitter_id

    def get_splitter(self, splitter_id: int) -> sqlite3.Row | None:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM splitter WHERE splitter_id=?", (splitter_id,)
            ).fetchone()

    def list_splitters(self, element_id: int) -> list[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM splitter WHERE element_id=? ORDER BY splitter_id", (element_id,)
            ).fetchall()

    def count_splitters(self, element_id: int) -> int:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM splitter WHERE element_id=?", (element_id,)
            ).fetchone()
            return int(row["n"])

    def delete_splitter(self, splitter_id: int) -> int:
        """Delete a splitter with its ports; returns the number of ports removed."""
        with self.connect() as conn:
            removed = conn.execute(
                "DELETE FROM port WHERE splitter_id=?", (splitter_id,)
            ).rowcount
            conn.execute("DELETE FROM splitter WHERE splitter_id=?", (splitter_id,))
            return removed

    # -- loss budgets -------------------------------------------------------

    def save_loss_budget(self, name: str, input_data: dict[str, Any], result: dict[str, Any]) -> int:
        with self.connect() as conn:
            cur = conn.execute(
                "INSERT INTO loss_budget(name,input_json,result_json,created_at) VALUES(?,?,?,?)",
                (name, json.dumps(input_data, sort_keys=True), json.dumps(result, default=str), utc_now()),
            )
            return int(cur.lastrowid)

    def list_loss_budgets(self) -> list[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute(
                "SELECT * FROM loss_budget ORDER BY created_at DESC, budget_id DESC"
            ).fetchall()
