from typing import List

from .base import COMP_SEP, ParsedMessage, field
from .demographics import base_document
from .models import NormalizedDocument, Order


def parse_orders(parsed: ParsedMessage) -> List[Order]:
    # ORC when present, otherwise OBR
    instances = parsed.get("ORC") or parsed.get("OBR") or []
    return [Order(order_number=field(f, 2), placer_order=field(f, 3)) for f in instances]


def map_orm_o01(parsed: ParsedMessage, raw: str, comp_sep: str = COMP_SEP) -> NormalizedDocument:
    doc = base_document(parsed, raw, comp_sep)
    doc.orders = parse_orders(parsed)
    return doc
