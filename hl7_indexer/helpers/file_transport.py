import asyncio
import fnmatch
import time
from pathlib import Path
from typing import Iterable, List

from watchdog.events import PatternMatchingEventHandler
from watchdog.observers import Observer

DEFAULT_GLOBS = ("*.hl7", "*.txt")


def matches_any(name: str, globs: Iterable[str]) -> bool:
    name = name.lower()
    return any(fnmatch.fnmatchcase(name, g.lower()) for g in globs)


def list_message_files(folder: str, globs: Iterable[str] = DEFAULT_GLOBS) -> List[Path]:
    """Message files directly under folder matching any glob (case-insensitive), sorted by name.

    A missing folder has no backlog.
    """
    base = Path(folder)
    if not base.is_dir():
        return []
    globs = list(globs)
    return sorted(p for p in base.iterdir() if p.is_file() and matches_any(p.name, globs))


def read_message(path: Path) -> str:
    # newline="" keeps CR/CRLF untouched so the stored raw text is byte-for-byte;
    # a leading BOM survives as U+FEFF and is dropped by the segment parser
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


class FileWatcher:
    """Feeds every new or moved-in message file to on_message_async(text, path) on the given loop."""

    def __init__(self, inbox: str, globs: Iterable[str], on_message_async, loop: asyncio.AbstractEventLoop):
        self.inbox = Path(inbox)
        self.inbox.mkdir(parents=True, exist_ok=True)
        self.loop = loop
        self.on_message_async = on_message_async
        globs = list(globs)
        patterns = globs + [g.upper() for g in globs]
        self.handler = PatternMatchingEventHandler(patterns=patterns, ignore_directories=True)

        def _submit(path: Path):
            # Already moved away: nothing to read
            if not path.exists():
                return
            # Short wait until the writer is done
            for _ in range(10):
                try:
                    text = read_message(path)
                    break
                except FileNotFoundError:
                    return
                except (OSError, UnicodeDecodeError):
                    time.sleep(0.05)
            else:
                # Last attempt; let it raise so it shows up in the logs
                text = read_message(path)

            asyncio.run_coroutine_threadsafe(self.on_message_async(text, str(path)), self.loop)

        self.handler.on_created = lambda e: _submit(Path(e.src_path))
        self.handler.on_moved = lambda e: _submit(Path(e.dest_path))

        self.observer = Observer()

    def start(self):
        self.observer.schedule(self.handler, str(self.inbox), recursive=False)
        self.observer.start()

    def stop(self):
        self.observer.stop()
        self.observer.join()
