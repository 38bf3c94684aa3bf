import re

from .base import FIELD_SEP, ParsedMessage

BOM = "\ufeff"
_LINE_RE = re.compile(r"\r\n|\r|\n")


class SegmentParser:
    """Splits raw HL7 text into {segment id: [field list, ...]}.

    No validation is done: whatever token leads a line is taken as the
    segment id, and missing segments are simply absent from the result.
    """

    def __init__(self, field_sep: str = FIELD_SEP):
        self.field_sep = field_sep

    def split_segments(self, hl7_text: str):
        """Segment lines (CR, LF or CRLF), skipping blank ones."""
        if hl7_text.startswith(BOM):
            hl7_text = hl7_text[1:]
        return [s for s in _LINE_RE.split(hl7_text) if s.strip()]

    def parse(self, hl7_text: str) -> ParsedMessage:
        message: ParsedMessage = {}
        for line in self.split_segments(hl7_text):
            seg, *fields = line.split(self.field_sep)
            message.setdefault(seg, []).append(fields)
        return message


_default = SegmentParser()


def parse(hl7_text: str) -> ParsedMessage:
    return _default.parse(hl7_text)
