# flake8: noqa
from datetime import date, datetime, timezone

from hl7_indexer.commons.extractor import DocumentExtractor, to_record
from hl7_indexer.parsers.models import Observation
from hl7_indexer.parsers.oru import (
    TUMOR_REGISTRY_TERMS,
    group_observations,
    screen_tumor_registry,
)
from hl7_indexer.parsers.segments import parse

ORC = "|".join(["ORC", "RE", "ORD1", "FIL1"] + [""] * 8 + ["1234^SMITH^ANNA"])
SCH = "|".join(["SCH", "", "APT42", "", "", "", "", "", "20230120", "0930", "20230120", "10:15"])

ORU = "\r".join(
    [
        "MSH|^~\\&|LAB|HOSP|EHR|HOSP|20230115083000||ORU^R01|MSG00001|P|2.5",
        "PID|1|MRN123|PAT001||DOE^JOHN||19800214|M",
        ORC,
        "OBR|1|ORD1|FIL1|24331-1^Lipid Panel^LN",
        "OBX|1|NM|2093-3^Cholesterol||198|mg/dL",
        "OBX|2|NM|2093-3^Cholesterol||N/A|mg/dL",
        "OBX|3|NM|2571-8^Triglycerides||98.6|mg/dL",
        "OBX|4|TX|IMP^IMPRESSION||Findings consistent with malignancy.",
        SCH,
    ]
)

# header / patient / observations only
SMALL_ORU = """MSH|^~\\&|RAD|HOSP|EHR|HOSP|20230301||ORU^R01|RAD77|P|2.5
PID|1||PAT9||ROE^RICHARD||19700101|M
OBX|1|NM|TEMP^Body temperature||98.6|degF
OBX|2|TX|RAD^Impression||Small nodule, probable granuloma.
"""


def extract(text):
    return DocumentExtractor().extract(parse(text), text)


def test_results_orders_keep_service_and_raw_fields():
    doc = extract(ORU)
    assert len(doc.orders) == 1
    o = doc.orders[0]
    assert (o.set_id, o.placer_order, o.filler_order) == ("1", "ORD1", "FIL1")
    assert (o.service.code, o.service.text, o.service.coding_system) == (
        "24331-1",
        "Lipid Panel",
        "LN",
    )
    assert o.raw_fields == ["1", "ORD1", "FIL1", "24331-1^Lipid Panel^LN"]


def test_results_observations_are_grouped_by_code():
    doc = extract(ORU)
    assert [(g.code, g.values, g.units) for g in doc.observations] == [
        ("2093-3", [198, "N/A"], "mg/dL"),
        ("2571-8", [98.6], "mg/dL"),
    ]


def test_numeric_coercion_only_for_numeric_type():
    text = "MSH|^~\\&|L|H|E|H|20230101||ORU^R01|1|P|2.5\rOBX|1|ST|CODE^Text||98.6|x"
    doc = extract(text)
    assert doc.observations[0].values == ["98.6"]


def test_impressions_and_tumor_registry():
    doc = extract(ORU)
    assert doc.impressions == ["Findings consistent with malignancy."]
    assert doc.tumor_registry.flagged is True
    assert doc.tumor_registry.matched_terms == ["consistent with"]


def test_no_hedging_terms_means_no_flag():
    reg = screen_tumor_registry(["Normal study.", None])
    assert reg.flagged is False
    assert reg.matched_terms == []


def test_matched_terms_follow_vocabulary_order():
    reg = screen_tumor_registry(["Probable mass,", "SUSPICIOUS FOR carcinoma"])
    expected = [t for t in TUMOR_REGISTRY_TERMS if t in ("probable", "suspicious for")]
    assert reg.matched_terms == expected
    assert reg.flagged is True


def test_impressions_are_joined_with_spaces():
    # the term only appears across the boundary of two impressions
    reg = screen_tumor_registry(["suspicious", "for lesion"])
    assert reg.matched_terms == ["suspicious for"]


def test_impression_without_value_is_kept_as_none():
    text = "MSH|^~\\&|L|H|E|H|20230101||ORU^R01|1|P|2.5\rOBX|1|TX|I^impression||"
    doc = extract(text)
    assert doc.impressions == [None]
    assert doc.tumor_registry.flagged is False
    assert doc.observations == []


def test_schedule_from_first_sch():
    doc = extract(ORU)
    s = doc.schedule
    assert s.id == "APT42"
    assert s.start_time == datetime(2023, 1, 20, 9, 30, tzinfo=timezone.utc)
    assert s.end_time == datetime(2023, 1, 20, 10, 15, tzinfo=timezone.utc)


def test_schedule_absent_is_none():
    assert extract(SMALL_ORU).schedule is None


def test_results_patient_extras_and_provider():
    doc = extract(ORU)
    assert doc.patient.gender == "M"
    assert doc.patient.mrn == "MRN123"
    assert doc.patient.dob == date(1980, 2, 14)
    p = doc.provider
    assert (p.id, p.last_name, p.first_name) == ("1234", "SMITH", "ANNA")


def test_provider_requires_both_names():
    text = ORU.replace("1234^SMITH^ANNA", "1234^SMITH")
    assert extract(text).provider is None
    text = ORU.replace("1234^SMITH^ANNA", "1234^^ANNA")
    assert extract(text).provider is None


def test_group_units_keep_last_seen():
    groups = group_observations(
        [
            Observation("A", 1, "mg"),
            Observation("B", 2, None),
            Observation("A", 3, None),
            Observation("A", 4, "g"),
        ]
    )
    assert [(g.code, g.values, g.units) for g in groups] == [("A", [1, 3, 4], "g"), ("B", [2], None)]


def test_small_results_message_end_to_end():
    doc = extract(SMALL_ORU)
    assert len(doc.observations) == 1
    obs = doc.observations[0]
    assert (obs.code, obs.values, obs.units) == ("TEMP", [98.6], "degF")
    assert doc.impressions == ["Small nodule, probable granuloma."]
    assert doc.tumor_registry.flagged is True
    assert doc.tumor_registry.matched_terms == ["probable"]
    assert doc.orders == []
    assert doc.provider is None
    assert doc.raw == SMALL_ORU


def test_results_record_is_plain_dicts():
    rec = to_record(extract(ORU))
    assert rec["observations"][0] == {"code": "2093-3", "values": [198, "N/A"], "units": "mg/dL"}
    assert rec["tumor_registry"] == {"flagged": True, "matched_terms": ["consistent with"]}
    assert rec["provider"] == {"id": "1234", "last_name": "SMITH", "first_name": "ANNA"}
    assert rec["orders"][0]["service"]["text"] == "Lipid Panel"
