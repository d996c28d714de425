# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Records, inputs and validation for splicebook projects and project.yaml plans."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

SUPPORTED_FIBER_COUNTS = (12, 24, 48, 96, 144, 216, 288)
SUPPORTED_FIBER_TYPES = {"singlemode", "multimode"}
SUPPORTED_SPLICE_TYPES = {"fusion", "mechanical"}
SUPPORTED_CONNECTOR_TYPES = {"LC", "SC", "FC", "ST", "MPO", "MTP"}
SUPPORTED_PORT_STATUSES = {"available", "connected", "reserved", "faulty"}
SUPPORTED_SPLITTER_RATIOS = ("1:2", "1:4", "1:8", "1:16", "1:32")
SUPPORTED_WAVELENGTHS = {
    "singlemode": (1310, 1550),
    "multimode": (850, 1300),
}

ELEMENT_ROLES = ("olt", "odf", "closure", "lcp", "nap")
ENCLOSURE_SUBTYPES = {
    "closure": ("splice-closure", "handhole", "pedestal", "building", "pole", "cabinet"),
    "lcp": ("lcp", "fdt"),
    "nap": ("nap", "fat"),
}
DEFAULT_SUBTYPES = {"closure": "splice-closure", "lcp": "lcp", "nap": "nap"}

ElementRole = Literal["olt", "odf", "closure", "lcp", "nap"]
SpliceType = Literal["fusion", "mechanical"]
FiberType = Literal["singlemode", "multimode"]
ConnectorType = Literal["LC", "SC", "FC", "ST", "MPO", "MTP"]
SplitterRatio = Literal["1:2", "1:4", "1:8", "1:16", "1:32"]


def role_for_subtype(subtype: str) -> str | None:
    for role, subtypes in ENCLOSURE_SUBTYPES.items():
        if subtype in subtypes:
            return role
    return None


# ---------------------------------------------------------------------------
# Cables and splices
# ---------------------------------------------------------------------------


class CableRef(BaseModel):
    """A cable as seen at splice time: a name and a size, optionally persisted."""

    model_config = ConfigDict(extra="forbid")

    name: str
    fiber_count: int = 144
    cable_id: int | None = None

    @model_validator(mode="after")
    def validate_fiber_count(self) -> "CableRef":
        if self.fiber_count not in SUPPORTED_FIBER_COUNTS:
            raise ValueError(
                f"unsupported fiber_count: {self.fiber_count}; "
                f"allowed: {list(SUPPORTED_FIBER_COUNTS)}"
            )
        return self


class Cable(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cable_id: int | None = None
    project_id: str | None = None
    name: str
    fiber_count: int
    fiber_type: FiberType = "singlemode"
    length_m: float | None = Field(default=None, ge=0)
    notes: str | None = None

    @model_validator(mode="after")
    def validate_fiber_count(self) -> "Cable":
        if self.fiber_count not in SUPPORTED_FIBER_COUNTS:
            raise ValueError(
                f"unsupported fiber_count: {self.fiber_count}; "
                f"allowed: {list(SUPPORTED_FIBER_COUNTS)}"
            )
        return self

    def ref(self) -> CableRef:
        return CableRef(name=self.name, fiber_count=self.fiber_count, cable_id=self.cable_id)


class Tray(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tray_id: int
    element_id: int
    number: int = Field(gt=0)
    capacity: int = Field(default=12, gt=0)
    notes: str | None = None


class SpliceInput(BaseModel):
    """A single fiber-to-fiber connection as entered by a technician."""

    model_config = ConfigDict(extra="forbid")

    tray_id: int
    cable_a: CableRef
    fiber_a: int
    cable_b: CableRef
    fiber_b: int
    splice_type: SpliceType | None = None
    loss: float | None = Field(default=None, ge=0)
    technician: str | None = None
    notes: str | None = None


class SpliceDraft(BaseModel):
    """A splice with both sides resolved to colors, not yet persisted."""

    model_config = ConfigDict(extra="ignore")

    tray_id: int
    cable_a_id: int | None = None
    cable_a_name: str
    fiber_a: int
    tube_a_color: str
    fiber_a_color: str
    cable_b_id: int | None = None
    cable_b_name: str
    fiber_b: int
    tube_b_color: str
    fiber_b_color: str
    splice_type: SpliceType = "fusion"
    loss: float | None = None
    status: Literal["pending", "completed"] = "pending"
    technician: str = ""
    notes: str | None = None


class Splice(SpliceDraft):
    splice_id: int
    timestamp: str


# ---------------------------------------------------------------------------
# Network elements
# ---------------------------------------------------------------------------


class NetworkElement(BaseModel):
    model_config = ConfigDict(extra="ignore")

    element_id: int
    project_id: str
    name: str
    role: ElementRole
    subtype: str | None = None
    parent_type: ElementRole | None = None
    parent_id: int | None = None
    cable_id: int | None = None
    canvas_x: float | None = None
    canvas_y: float | None = None
    gps_lat: float | None = None
    gps_lng: float | None = None
    notes: str | None = None
    created_at: str | None = None


class Splitter(BaseModel):
    model_config = ConfigDict(extra="ignore")

    splitter_id: int
    element_id: int
    name: str
    ratio: SplitterRatio
    input_cable_id: int | None = None
    input_fiber: int | None = None
    notes: str | None = None
    created_at: str | None = None

    @property
    def output_count(self) -> int:
        return int(self.ratio.split(":")[1])


class Port(BaseModel):
    model_config = ConfigDict(extra="ignore")

    port_id: int
    element_id: int
    splitter_id: int | None = None
    port_number: int
    label: str | None = None
    connector_type: ConnectorType = "SC"
    status: Literal["available", "connected", "reserved", "faulty"] = "available"


# ---------------------------------------------------------------------------
# Loss budget
# ---------------------------------------------------------------------------


class LossBudgetInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    fiber_type: FiberType = "singlemode"
    wavelength: Literal[850, 1300, 1310, 1550] = 1310
    distance_km: float = Field(default=0.0, ge=0)
    fusion_splices: int = Field(default=0, ge=0)
    mechanical_splices: int = Field(default=0, ge=0)
    connector_pairs: int = Field(default=0, ge=0)
    connector_type: ConnectorType = "LC"
    margin_db: float = Field(default=0.0, ge=0)
    use_max_values: bool = False

    @model_validator(mode="after")
    def validate_wavelength(self) -> "LossBudgetInput":
        allowed = SUPPORTED_WAVELENGTHS[self.fiber_type]
        if self.wavelength not in allowed:
            raise ValueError(
                f"wavelength {self.wavelength} nm is not used with {self.fiber_type} fiber; "
                f"allowed: {list(allowed)}"
            )
        return self


# ---------------------------------------------------------------------------
# Session preferences
# ---------------------------------------------------------------------------


class SessionPreferences(BaseModel):
    """Technician defaults carried explicitly into splice operations."""

    model_config = ConfigDict(extra="ignore")

    technician_name: str = ""
    default_splice_type: SpliceType = "fusion"
    default_cable_count: int = 144
    show_help_tooltips: bool = True
    last_project_id: str | None = None

    @model_validator(mode="after")
    def validate_default_cable_count(self) -> "SessionPreferences":
        if self.default_cable_count not in SUPPORTED_FIBER_COUNTS:
            raise ValueError(
                f"unsupported default_cable_count: {self.default_cable_count}; "
                f"allowed: {list(SUPPORTED_FIBER_COUNTS)}"
            )
        return self


# ---------------------------------------------------------------------------
# project.yaml plan
# ---------------------------------------------------------------------------


class ProjectMeta(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    location: str | None = None
    note: str | None = None


class CableSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str
    name: str | None = None
    fiber_count: int = 144
    fiber_type: FiberType = "singlemode"
    length_m: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_fiber_count(self) -> "CableSpec":
        if self.fiber_count not in SUPPORTED_FIBER_COUNTS:
            raise ValueError(f"cable {self.key}: unsupported fiber_count {self.fiber_count}")
        return self


class PositionSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: float
    y: float


class TraySpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    count: int = Field(default=1, ge=0)
    capacity: int = Field(default=12, gt=0)


class PortSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    count: int = Field(default=0, ge=0)
    connector_type: ConnectorType = "SC"


class ElementSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str
    type: ElementRole
    subtype: str | None = None
    name: str | None = None
    parent: str | None = None
    cable: str | None = None
    position: PositionSpec | None = None
    gps: PositionSpec | None = None
    trays: TraySpec | None = None
    ports: PortSpec | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def validate_subtype(self) -> "ElementSpec":
        if self.subtype is None:
            return self
        if self.type not in ENCLOSURE_SUBTYPES:
            raise ValueError(f"element {self.key}: {self.type} does not take a subtype")
        if self.subtype not in ENCLOSURE_SUBTYPES[self.type]:
            raise ValueError(
                f"element {self.key}: unsupported {self.type} subtype {self.subtype!r}; "
                f"allowed: {list(ENCLOSURE_SUBTYPES[self.type])}"
            )
        return self


class ProjectInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: int = 1
    project: ProjectMeta
    cables: list[CableSpec] = Field(default_factory=list)
    elements: list[ElementSpec]

    @model_validator(mode="after")
    def validate_references(self) -> "ProjectInput":
        cable_keys = [cable.key for cable in self.cables]
        if len(set(cable_keys)) != len(cable_keys):
            raise ValueError("cable keys must be unique")
        element_keys = [element.key for element in self.elements]
        if len(set(element_keys)) != len(element_keys):
            raise ValueError("element keys must be unique")
        cable_set = set(cable_keys)
        element_set = set(element_keys)
        for element in self.elements:
            if element.type == "olt" and element.parent is not None:
                raise ValueError(f"element {element.key}: an OLT cannot have a parent")
            if element.type != "olt" and element.parent is None:
                raise ValueError(f"element {element.key}: {element.type} requires a parent")
            if element.parent is not None and element.parent not in element_set:
                raise ValueError(f"element {element.key} references unknown parent")
            if element.cable is not None and element.cable not in cable_set:
                raise ValueError(f"element {element.key} references unknown cable")
        return self
