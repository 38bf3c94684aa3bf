import json
import os
import re
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, List, Protocol

from hl7_indexer.commons.logger import logger

# index declarations every sink is asked to establish once, before inserting
INDEXES = (
    {"name": "patient_id_timestamp", "keys": [["patient.id", 1], ["timestamp", -1]]},
    {"name": "raw_text", "keys": [["raw", "text"]]},
    {"name": "processed_at_ttl", "keys": [["processed_at", 1]], "expire_after_seconds": None},
)


def index_specs(retention_days: int) -> List[Dict]:
    specs = [dict(ix) for ix in INDEXES]
    specs[-1]["expire_after_seconds"] = retention_days * 24 * 60 * 60
    return specs


class DocumentSink(Protocol):
    def insert(self, collection: str, document: Dict) -> str: ...

    def ensure_indexes(self) -> None: ...


def _json_default(obj):
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def generate_document_filename(document: Dict, extension: str = "json") -> str:
    """
    <processed_at>_<message type>_<control id>_<short uuid>.json, e.g.
    20250821-170605-123456_ORU_R01_MSG00001_1a2b3c4d.json
    """
    processed = document.get("processed_at")
    ts = (processed or datetime.now(timezone.utc)).strftime("%Y%m%d-%H%M%S-%f")
    kind = f"{document.get('message_type') or 'UNK'}_{document.get('event_type') or 'UNK'}"
    control = document.get("control_id") or "nocontrol"
    safe = re.sub(r"[^a-zA-Z0-9_\-]", "_", f"{kind}_{control}")
    return f"{ts}_{safe}_{uuid.uuid4().hex[:8]}.{extension}"


class JsonArchiveSink:
    """One JSON file per document under <root>/<collection>/."""

    def __init__(self, root: str, collection: str = "messages", retention_days: int = 30):
        self.root = Path(root)
        self.collection = collection
        self.retention_days = retention_days

    def ensure_indexes(self) -> None:
        base = self.root / self.collection
        base.mkdir(parents=True, exist_ok=True)
        manifest = base / "_indexes.json"
        manifest.write_text(
            json.dumps(index_specs(self.retention_days), indent=2), encoding="utf-8"
        )
        logger.info(f"Index manifest written to {manifest}")

    def insert(self, collection: str, document: Dict) -> str:
        base = self.root / collection
        base.mkdir(parents=True, exist_ok=True)
        name = generate_document_filename(document)
        path = base / name
        tmp = path.with_suffix(".tmp")
        tmp.write_text(
            json.dumps(document, ensure_ascii=False, indent=2, default=_json_default),
            encoding="utf-8",
        )
        os.replace(tmp, path)
        return path.stem


class MemorySink:
    def __init__(self, retention_days: int = 30):
        self.collections: Dict[str, List[Dict]] = {}
        self.indexes: List[Dict] = []
        self.retention_days = retention_days

    def ensure_indexes(self) -> None:
        self.indexes = index_specs(self.retention_days)

    def insert(self, collection: str, document: Dict) -> str:
        self.collections.setdefault(collection, []).append(document)
        return f"{collection}:{len(self.collections[collection])}"


def make_sink(storage_cfg, paths_cfg) -> DocumentSink:
    if storage_cfg.type == "memory":
        return MemorySink(storage_cfg.retention_days)
    return JsonArchiveSink(paths_cfg.archive, storage_cfg.collection, storage_cfg.retention_days)
