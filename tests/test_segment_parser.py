# flake8: noqa

import pytest

from hl7_indexer.parsers.segments import SegmentParser, parse

SEGMENTS = [
    "MSH|^~\\&|LAB|HOSP|EHR|HOSP|20230115083000||ORU^R01|MSG00001|P|2.5",
    "PID|1||PAT001||DOE^JOHN||19800214|M",
    "OBX|1|NM|2093-3^Cholesterol||198|mg/dL",
    "OBX|2|NM|2571-8^Triglycerides||98.6|mg/dL",
]


@pytest.mark.parametrize("text", ["", "   ", "\n\n", "\r\n \t\r\n", "\r\r\r"])
def test_blank_input_gives_empty_message(text):
    assert parse(text) == {}


def test_line_endings_do_not_matter():
    lf = parse("\n".join(SEGMENTS))
    crlf = parse("\r\n".join(SEGMENTS))
    cr = parse("\r".join(SEGMENTS) + "\r")
    assert lf == crlf == cr
    assert list(lf) == ["MSH", "PID", "OBX"]


def test_bom_is_stripped():
    msg = parse("\ufeff" + "\r".join(SEGMENTS))
    assert "MSH" in msg
    assert not any("\ufeff" in k for k in msg)
    assert msg["MSH"][0][0] == "^~\\&"


def test_identifier_is_not_part_of_the_fields():
    msg = parse("\n".join(SEGMENTS))
    assert msg["PID"] == [["1", "", "PAT001", "", "DOE^JOHN", "", "19800214", "M"]]


def test_repeated_segments_keep_source_order():
    msg = parse("\n".join(SEGMENTS))
    assert [obx[0] for obx in msg["OBX"]] == ["1", "2"]


def test_blank_lines_between_segments_are_skipped():
    msg = parse(SEGMENTS[0] + "\n\n   \n" + SEGMENTS[1] + "\n")
    assert list(msg) == ["MSH", "PID"]


def test_unknown_and_malformed_lines_are_kept_as_is():
    msg = parse("ZZ1|a|b\nnot a segment\nMSH")
    assert msg["ZZ1"] == [["a", "b"]]
    assert msg["not a segment"] == [[]]
    assert msg["MSH"] == [[]]


def test_absent_segments_are_not_synthesized():
    msg = parse(SEGMENTS[0])
    assert "PID" not in msg
    assert msg.get("OBX") is None


def test_custom_field_separator():
    p = SegmentParser(field_sep="~")
    msg = p.parse("OBX~1~NM~PLT*PLATELETS~~210")
    assert msg["OBX"] == [["1", "NM", "PLT*PLATELETS", "", "210"]]


def test_split_segments_cr_only():
    p = SegmentParser()
    assert len(p.split_segments("\r".join(SEGMENTS) + "\r")) == 4
