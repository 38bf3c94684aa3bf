from dataclasses import asdict
from enum import Enum
from typing import Callable, Dict, Optional

from hl7_indexer.parsers.base import COMP_SEP, HEADER, ParsedMessage, component, field, first
from hl7_indexer.parsers.demographics import map_adt_a01, map_default
from hl7_indexer.parsers.models import NormalizedDocument
from hl7_indexer.parsers.orm import map_orm_o01
from hl7_indexer.parsers.oru import map_oru_r01

Mapper = Callable[[ParsedMessage, str, str], NormalizedDocument]


class MessageKind(str, Enum):
    ADT_A01 = "ADT_A01"
    ORM_O01 = "ORM_O01"
    ORU_R01 = "ORU_R01"
    DEFAULT = "DEFAULT"

    @classmethod
    def resolve(cls, message_type: Optional[str], event_type: Optional[str]) -> "MessageKind":
        key = f"{message_type or ''}_{event_type or ''}"
        try:
            return cls(key)
        except ValueError:
            return cls.DEFAULT


MAPPERS: Dict[MessageKind, Mapper] = {
    MessageKind.ADT_A01: map_adt_a01,
    MessageKind.ORM_O01: map_orm_o01,
    MessageKind.ORU_R01: map_oru_r01,
    MessageKind.DEFAULT: map_default,
}


class DocumentExtractor:
    def __init__(self, comp_sep: str = COMP_SEP):
        self.comp_sep = comp_sep

    def message_kind(self, parsed: ParsedMessage) -> MessageKind:
        """Kind from MSH-9 (TYPE^EVENT) of the first header; no header -> DEFAULT."""
        msh_9 = field(first(parsed, HEADER), 9, HEADER)
        return MessageKind.resolve(
            component(msh_9, 1, self.comp_sep), component(msh_9, 2, self.comp_sep)
        )

    def extract(self, parsed: ParsedMessage, raw_text: str) -> NormalizedDocument:
        mapper = MAPPERS[self.message_kind(parsed)]
        return mapper(parsed, raw_text, self.comp_sep)


def to_record(doc: NormalizedDocument) -> Dict:
    """Flatten a normalized document into the dict stored by the sinks.

    Dates stay as date/datetime objects; serializing them is up to the sink.
    """
    header = asdict(doc.header)
    return {
        "message_type": header["message_type"],
        "event_type": header["event_type"],
        "control_id": header["control_id"],
        "sending": header["sending"],
        "receiving": header["receiving"],
        "timestamp": header["timestamp"],
        "patient": asdict(doc.patient),
        "orders": [asdict(o) for o in doc.orders],
        "observations": [asdict(o) for o in doc.observations],
        "schedule": asdict(doc.schedule) if doc.schedule else None,
        "impressions": list(doc.impressions),
        "provider": asdict(doc.provider) if doc.provider else None,
        "tumor_registry": asdict(doc.tumor_registry) if doc.tumor_registry else None,
        "processed_at": doc.processed_at,
        "raw": doc.raw,
    }
