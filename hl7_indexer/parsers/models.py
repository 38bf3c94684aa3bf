# ===============================
# File: hl7_indexer/parsers/models.py
# ===============================
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Optional


@dataclass
class Party:
    application: Optional[str] = None
    facility: Optional[str] = None


@dataclass
class Patient:
    id: Optional[str] = None
    name: Optional[str] = None  # last^first as received
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dob: Optional[date] = None
    gender: Optional[str] = None
    mrn: Optional[str] = None


@dataclass
class Header:
    message_type: Optional[str] = None
    event_type: Optional[str] = None
    control_id: Optional[str] = None
    sending: Party = field(default_factory=Party)
    receiving: Party = field(default_factory=Party)
    timestamp: Optional[datetime] = None


@dataclass
class ServiceDescriptor:
    code: Optional[str] = None
    text: Optional[str] = None
    coding_system: Optional[str] = None


@dataclass
class Order:
    order_number: Optional[str] = None
    placer_order: Optional[str] = None
    set_id: Optional[str] = None
    filler_order: Optional[str] = None
    service: Optional[ServiceDescriptor] = None
    raw_fields: Optional[List[str]] = None  # OBR fields as received


@dataclass
class Observation:
    code: Optional[str]
    value: Any
    units: Optional[str]


@dataclass
class ObservationGroup:
    code: Optional[str]
    values: List[Any] = field(default_factory=list)
    units: Optional[str] = None


@dataclass
class Schedule:
    id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


@dataclass
class Provider:
    id: Optional[str]
    last_name: str
    first_name: str


@dataclass
class TumorRegistry:
    flagged: bool = False
    matched_terms: List[str] = field(default_factory=list)


@dataclass
class NormalizedDocument:
    header: Header
    patient: Patient
    raw: str
    processed_at: datetime
    orders: List[Order] = field(default_factory=list)
    observations: List[ObservationGroup] = field(default_factory=list)
    schedule: Optional[Schedule] = None
    impressions: List[Optional[str]] = field(default_factory=list)
    provider: Optional[Provider] = None
    tumor_registry: Optional[TumorRegistry] = None
