from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class Separators(BaseModel):
    field: str = "|"
    component: str = "^"

    @field_validator("field", "component")
    @classmethod
    def _single_char(cls, v: str):
        if len(v) != 1:
            raise ValueError(f"separator must be a single character, got {v!r}")
        return v


class PathsCfg(BaseModel):
    logs_root: str = "logs"
    inbox: str = "inbox"
    archive: str = "archive"
    error: str = "error"


class IngestCfg(BaseModel):
    workers: Optional[int] = Field(default=None, ge=1)  # None -> os.cpu_count()
    insert_timeout_sec: float = Field(default=10.0, gt=0)
    file_globs: List[str] = ["*.hl7", "*.txt"]


class StorageCfg(BaseModel):
    type: Literal["json", "memory"] = "json"
    collection: str = "messages"
    retention_days: int = Field(default=30, ge=1)


class Settings(BaseModel):
    app: Dict[str, Any] = {}
    paths: PathsCfg = PathsCfg()
    separators: Separators = Separators()
    ingest: IngestCfg = IngestCfg()
    storage: StorageCfg = StorageCfg()
