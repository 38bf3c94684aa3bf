from typing import Dict, List, Optional, Tuple

from .base import (
    COMP_SEP,
    ParsedMessage,
    coerce_numeric,
    component,
    field,
    first,
    parse_datetime,
)
from .demographics import base_document
from .models import (
    NormalizedDocument,
    Observation,
    ObservationGroup,
    Order,
    Provider,
    Schedule,
    ServiceDescriptor,
    TumorRegistry,
)

NUMERIC_TYPE = "NM"
IMPRESSION = "impression"

# Hedging language that puts a report on the tumor registry worklist.
TUMOR_REGISTRY_TERMS = (
    "suspicious for",
    "consistent with",
    "compatible with",
    "suggestive of",
    "worrisome for",
    "concerning for",
    "probable",
    "presumed",
    "most likely",
)


def parse_orders(parsed: ParsedMessage, comp_sep: str = COMP_SEP) -> List[Order]:
    orders = []
    for obr in parsed.get("OBR") or []:
        service = field(obr, 4)
        orders.append(
            Order(
                set_id=field(obr, 1),
                placer_order=field(obr, 2),
                filler_order=field(obr, 3),
                service=ServiceDescriptor(
                    code=component(service, 1, comp_sep),
                    text=component(service, 2, comp_sep),
                    coding_system=component(service, 3, comp_sep),
                ),
                raw_fields=list(obr),
            )
        )
    return orders


def parse_observations(
    parsed: ParsedMessage, comp_sep: str = COMP_SEP
) -> Tuple[List[Observation], List[Optional[str]]]:
    """OBX -> (observations, impressions). Impression rows go only to the second list."""
    observations: List[Observation] = []
    impressions: List[Optional[str]] = []
    for obx in parsed.get("OBX") or []:
        ident = field(obx, 3)
        value = field(obx, 5)
        if (component(ident, 2, comp_sep) or "").lower() == IMPRESSION:
            impressions.append(value)
            continue
        if field(obx, 2) == NUMERIC_TYPE:
            value = coerce_numeric(value)
        observations.append(
            Observation(code=component(ident, 1, comp_sep), value=value, units=field(obx, 6))
        )
    return observations, impressions


def group_observations(observations: List[Observation]) -> List[ObservationGroup]:
    groups: Dict[Optional[str], ObservationGroup] = {}
    for obs in observations:
        group = groups.setdefault(obs.code, ObservationGroup(code=obs.code))
        group.values.append(obs.value)
        if obs.units is not None:
            group.units = obs.units
    return list(groups.values())


def screen_tumor_registry(impressions: List[Optional[str]]) -> TumorRegistry:
    text = " ".join(i for i in impressions if i is not None).lower()
    matched = [term for term in TUMOR_REGISTRY_TERMS if term in text]
    return TumorRegistry(flagged=bool(matched), matched_terms=matched)


def parse_schedule(parsed: ParsedMessage) -> Optional[Schedule]:
    sch = first(parsed, "SCH")
    if not sch:
        return None
    return Schedule(
        id=field(sch, 2),
        start_time=parse_datetime(field(sch, 8), field(sch, 9)),
        end_time=parse_datetime(field(sch, 10), field(sch, 11)),
    )


def parse_provider(parsed: ParsedMessage, comp_sep: str = COMP_SEP) -> Optional[Provider]:
    # ORC-12 ordering provider: id^last^first
    ordering = field(first(parsed, "ORC"), 12)
    last_name = component(ordering, 2, comp_sep)
    first_name = component(ordering, 3, comp_sep)
    if not (last_name and first_name):
        return None
    return Provider(id=component(ordering, 1, comp_sep), last_name=last_name, first_name=first_name)


def map_oru_r01(parsed: ParsedMessage, raw: str, comp_sep: str = COMP_SEP) -> NormalizedDocument:
    doc = base_document(parsed, raw, comp_sep)
    pid = first(parsed, "PID")
    doc.patient.gender = field(pid, 8)
    doc.patient.mrn = field(pid, 2)

    observations, impressions = parse_observations(parsed, comp_sep)
    doc.orders = parse_orders(parsed, comp_sep)
    doc.observations = group_observations(observations)
    doc.impressions = impressions
    doc.tumor_registry = screen_tumor_registry(impressions)
    doc.schedule = parse_schedule(parsed)
    doc.provider = parse_provider(parsed, comp_sep)
    return doc
