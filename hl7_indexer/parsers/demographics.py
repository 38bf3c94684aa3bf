from datetime import datetime, timezone

from .base import COMP_SEP, HEADER, ParsedMessage, component, field, first, parse_date, parse_timestamp
from .models import Header, NormalizedDocument, Party, Patient


def project_header(parsed: ParsedMessage, comp_sep: str = COMP_SEP) -> Header:
    msh = first(parsed, HEADER)
    msh_9 = field(msh, 9, HEADER)
    return Header(
        message_type=component(msh_9, 1, comp_sep),
        event_type=component(msh_9, 2, comp_sep),
        control_id=field(msh, 10, HEADER),
        sending=Party(field(msh, 3, HEADER), field(msh, 4, HEADER)),
        receiving=Party(field(msh, 5, HEADER), field(msh, 6, HEADER)),
        timestamp=parse_timestamp(field(msh, 7, HEADER)),
    )


def project_patient(parsed: ParsedMessage, comp_sep: str = COMP_SEP) -> Patient:
    pid = first(parsed, "PID")
    name = field(pid, 5)
    return Patient(
        id=field(pid, 3),
        name=name,
        last_name=component(name, 1, comp_sep),
        first_name=component(name, 2, comp_sep),
        dob=parse_date(field(pid, 7)),
    )


def base_document(parsed: ParsedMessage, raw: str, comp_sep: str = COMP_SEP) -> NormalizedDocument:
    return NormalizedDocument(
        header=project_header(parsed, comp_sep),
        patient=project_patient(parsed, comp_sep),
        raw=raw,
        processed_at=datetime.now(timezone.utc),
    )


def map_adt_a01(parsed: ParsedMessage, raw: str, comp_sep: str = COMP_SEP) -> NormalizedDocument:
    # Admit notifications carry nothing beyond the header and demographics.
    return base_document(parsed, raw, comp_sep)


def map_default(parsed: ParsedMessage, raw: str, comp_sep: str = COMP_SEP) -> NormalizedDocument:
    return base_document(parsed, raw, comp_sep)
