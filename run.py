import asyncio
import os
import sys
from typing import Optional

import typer

from hl7_indexer.commons.hl7_engine import HL7Engine, load_settings
from hl7_indexer.commons.logger import setup_logging
from hl7_indexer.commons.types import Settings
from hl7_indexer.helpers.sinks import make_sink
from hl7_indexer.services.indexer_service import IndexerService

app = typer.Typer(add_completion=False, help="HL7 message indexer")


def resource_path(relative_path: str) -> str:
    """Absolute path to a bundled resource, whether frozen (PyInstaller) or in development."""
    if hasattr(sys, "_MEIPASS"):
        base_path = sys._MEIPASS
    else:
        base_path = os.path.abspath(".")
    return os.path.join(base_path, relative_path)


def load_cfg(path: str = "configs/settings.yaml") -> Settings:
    return load_settings(resource_path(path))


def _build_service(cfg: Settings, workers: Optional[int]) -> IndexerService:
    engine = HL7Engine(cfg)
    sink = make_sink(cfg.storage, cfg.paths)
    return IndexerService(
        engine,
        sink,
        cfg.paths,
        collection=cfg.storage.collection,
        workers=workers or cfg.ingest.workers,
        insert_timeout_sec=cfg.ingest.insert_timeout_sec,
    )


@app.command()
def index(
    folder: Optional[str] = typer.Argument(None, help="Folder with .hl7/.txt files (default: paths.inbox)"),
    workers: Optional[int] = typer.Option(None, min=1, help="Parser/extractor workers"),
    config: str = typer.Option("configs/settings.yaml", help="Settings YAML"),
):
    """Index every message file in a folder once and exit."""
    cfg = load_cfg(config)
    logger = setup_logging(cfg.paths.logs_root, os.getenv("LOG_LEVEL", "INFO"))
    folder = folder or cfg.paths.inbox
    if not os.path.isdir(folder):
        logger.error(f"Not a folder: {folder}")
        raise typer.Exit(code=2)

    svc = _build_service(cfg, workers)
    try:
        report = asyncio.run(svc.index_folder(folder, cfg.ingest.file_globs))
    finally:
        svc.close()
    typer.echo(f"{report.indexed}/{report.total} indexed, {report.failed} failed")
    if report.failed:
        raise typer.Exit(code=1)


@app.command()
def watch(
    folder: Optional[str] = typer.Argument(None, help="Inbox folder (default: paths.inbox)"),
    workers: Optional[int] = typer.Option(None, min=1, help="Parser/extractor workers"),
    config: str = typer.Option("configs/settings.yaml", help="Settings YAML"),
):
    """Index the backlog, then keep indexing files dropped into the inbox."""
    cfg = load_cfg(config)
    logger = setup_logging(cfg.paths.logs_root, os.getenv("LOG_LEVEL", "INFO"))
    folder = folder or cfg.paths.inbox
    logger.info(f"Starting indexer on {folder}")

    svc = _build_service(cfg, workers)
    try:
        asyncio.run(svc.run_watch_mode(folder, cfg.ingest.file_globs))
    except KeyboardInterrupt:
        logger.info("Stopped")
    finally:
        svc.close()


if __name__ == "__main__":
    app()
