# hl7_indexer/services/indexer_service.py
import asyncio
import os
import shutil
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

from hl7_indexer.commons.hl7_engine import HL7Engine
from hl7_indexer.commons.logger import logger
from hl7_indexer.helpers.file_transport import FileWatcher, list_message_files, read_message
from hl7_indexer.helpers.sinks import DocumentSink

_DONE = object()


@dataclass
class IndexReport:
    total: int = 0
    indexed: int = 0
    failed: int = 0


class IndexerService:
    """Parses and extracts messages on a bounded worker pool and feeds a single sink writer.

    Insert order into the sink follows extraction completion, not file order.
    A failure on one message (read, extract or insert) is logged and counted;
    the rest of the batch keeps going. A timed-out insert counts as failed
    even if the sink call completes later on its own thread.
    """

    def __init__(
        self,
        engine: HL7Engine,
        sink: DocumentSink,
        paths,
        collection: str = "messages",
        workers: Optional[int] = None,
        insert_timeout_sec: float = 10.0,
    ):
        self.engine = engine
        self.sink = sink
        self.paths = paths
        self.collection = collection
        self.workers = workers or os.cpu_count() or 1
        self.insert_timeout_sec = insert_timeout_sec
        self._pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="hl7-extract")
        Path(paths.error).mkdir(parents=True, exist_ok=True)

    def close(self):
        self._pool.shutdown(wait=True)

    def _archive_source(self, src: str):
        try:
            if not Path(src).exists():
                return
            dst_dir = Path(self.paths.archive) / "hl7"
            dst_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(src, dst_dir / Path(src).name)
        except OSError as ex:
            logger.exception(f"Could not archive {src}: {ex}")

    def _quarantine(self, src: str, hl7_text: Optional[str]) -> Optional[Path]:
        errp = Path(self.paths.error) / Path(src).name
        try:
            if hl7_text is not None:
                errp.write_text(hl7_text, encoding="utf-8")
            elif Path(src).exists():
                shutil.copyfile(src, errp)
        except OSError as ex:
            logger.exception(f"Could not copy {src} to the error folder: {ex}")
            return None
        return errp

    async def _extract(self, hl7_text: str) -> Dict:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._pool, self.engine.parse_and_extract, hl7_text)

    def _start_insert(self, document: Dict) -> asyncio.Future:
        """Runs sink.insert on a thread of its own; the future settles when that call returns."""
        loop = asyncio.get_running_loop()
        fut = loop.create_future()

        def _settle(result, error):
            if fut.done():
                return  # timed out already
            if error is not None:
                fut.set_exception(error)
            else:
                fut.set_result(result)

        def _post(result, error):
            try:
                loop.call_soon_threadsafe(_settle, result, error)
            except RuntimeError:
                # loop closed while a timed-out insert was still running
                logger.warning(f"Late insert result dropped: {error or result}")

        def _run():
            try:
                ack = self.sink.insert(self.collection, document)
            except Exception as ex:
                _post(None, ex)
            else:
                _post(ack, None)

        threading.Thread(target=_run, name="hl7-sink", daemon=True).start()
        return fut

    async def _insert(self, document: Dict, src: str) -> bool:
        # timeout covers this insert's own thread only
        try:
            ack = await asyncio.wait_for(self._start_insert(document), timeout=self.insert_timeout_sec)
        except asyncio.TimeoutError:
            logger.error(f"Insert timed out after {self.insert_timeout_sec}s for {src}")
            return False
        except Exception as ex:
            logger.exception(f"Insert failed for {src}: {ex}")
            return False
        logger.debug(f"Indexed {src} -> {ack}")
        return True

    async def _worker(self, inbox: asyncio.Queue, outbox: asyncio.Queue, report: IndexReport):
        while True:
            path = await inbox.get()
            try:
                if path is _DONE:
                    return
                hl7_text = None
                try:
                    hl7_text = read_message(path)
                    document = await self._extract(hl7_text)
                except Exception as ex:
                    report.failed += 1
                    errp = self._quarantine(str(path), hl7_text)
                    logger.exception(f"Error processing {path}: {ex}. Copied to {errp}")
                    continue
                await outbox.put((str(path), document))
            finally:
                inbox.task_done()

    async def _writer(self, outbox: asyncio.Queue, report: IndexReport, archive_processed: bool):
        while True:
            item = await outbox.get()
            if item is _DONE:
                return
            src, document = item
            if await self._insert(document, src):
                report.indexed += 1
                if archive_processed:
                    self._archive_source(src)
            else:
                report.failed += 1

    async def index_files(self, files: Iterable[Path], archive_processed: bool = False) -> IndexReport:
        files = list(files)
        report = IndexReport(total=len(files))
        if not files:
            return report

        inbox: asyncio.Queue = asyncio.Queue()
        outbox: asyncio.Queue = asyncio.Queue(maxsize=self.workers * 2)
        for f in files:
            inbox.put_nowait(f)
        n_workers = min(self.workers, len(files))
        for _ in range(n_workers):
            inbox.put_nowait(_DONE)

        writer = asyncio.create_task(self._writer(outbox, report, archive_processed))
        try:
            await asyncio.gather(*(self._worker(inbox, outbox, report) for _ in range(n_workers)))
        except BaseException:
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)
            raise
        await outbox.put(_DONE)
        await writer

        logger.info(
            f"Batch done: {report.indexed}/{report.total} indexed, {report.failed} failed"
        )
        return report

    async def index_folder(
        self, folder: str, globs: Iterable[str], archive_processed: bool = False
    ) -> IndexReport:
        self.sink.ensure_indexes()
        files = list_message_files(folder, globs)
        if not files:
            logger.info(f"No message files found in {folder}")
            return IndexReport()
        logger.info(f"Found {len(files)} message file(s) in {folder}")
        return await self.index_files(files, archive_processed=archive_processed)

    async def _process_text(self, hl7_text: str, src: str):
        """Single message from the watcher; processed files move to <archive>/hl7/."""
        try:
            document = await self._extract(hl7_text)
        except Exception as ex:
            errp = self._quarantine(src, hl7_text)
            logger.exception(f"Error processing {src}: {ex}. Copied to {errp}")
            return
        if await self._insert(document, src):
            self._archive_source(src)

    async def run_watch_mode(self, folder: str, globs: Iterable[str], stop_event: Optional[asyncio.Event] = None):
        loop = asyncio.get_running_loop()
        globs = list(globs)
        Path(folder).mkdir(parents=True, exist_ok=True)

        # 1) existing backlog
        await self.index_folder(folder, globs, archive_processed=True)

        # 2) files arriving from now on
        watcher = FileWatcher(folder, globs, self._process_text, loop)
        watcher.start()
        logger.info(f"Watching {folder} for new messages...")
        try:
            await (stop_event or asyncio.Event()).wait()
        finally:
            watcher.stop()
