from typing import Any, Dict

import yaml

from hl7_indexer.commons.extractor import DocumentExtractor, to_record
from hl7_indexer.commons.types import Settings
from hl7_indexer.parsers.base import ParsedMessage
from hl7_indexer.parsers.models import NormalizedDocument
from hl7_indexer.parsers.segments import SegmentParser


def load_settings(config_path_or_obj: Any) -> Settings:
    """Settings from a YAML path, a plain dict, or an existing Settings."""
    if isinstance(config_path_or_obj, Settings):
        return config_path_or_obj
    if isinstance(config_path_or_obj, str):
        with open(config_path_or_obj, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    elif isinstance(config_path_or_obj, dict):
        data = config_path_or_obj
    else:
        data = {}
    return Settings.model_validate(data)


class HL7Engine:
    """Facade bundling a segment parser and a document extractor that share separators."""

    def __init__(self, config_path_or_obj: Any = None):
        self.settings = load_settings(config_path_or_obj)
        seps = self.settings.separators
        self.parser = SegmentParser(field_sep=seps.field)
        self.extractor = DocumentExtractor(comp_sep=seps.component)

    def parse(self, hl7_text: str) -> ParsedMessage:
        return self.parser.parse(hl7_text)

    def extract(self, parsed: ParsedMessage, hl7_text: str) -> NormalizedDocument:
        return self.extractor.extract(parsed, hl7_text)

    def parse_and_extract(self, hl7_text: str) -> Dict:
        return to_record(self.extract(self.parse(hl7_text), hl7_text))
