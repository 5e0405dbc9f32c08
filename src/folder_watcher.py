"""Polling watcher that reports new screenshot files in a folder."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable

from src.errors import FolderNotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_EXTENSIONS = (".png",)
DEFAULT_MAX_WORKERS = 4
THREAD_JOIN_TIMEOUT = 5.0

NewFileCallback = Callable[[Path], None]


def _is_regular_file(entry: os.DirEntry[str]) -> bool:
    try:
        return entry.is_file()
    except OSError:
        return False


class _WatchSession:
    """State of one ``Watching`` period; discarded when watching stops."""

    def __init__(
        self,
        folder: Path,
        callback: NewFileCallback,
        seen: set[str],
        max_workers: int,
    ) -> None:
        self.folder = folder
        self.callback = callback
        self.seen = seen
        self.stop_event = threading.Event()
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="screenshot-ingest"
        )
        self.thread: threading.Thread | None = None
        self._gate = threading.Condition()
        self._active = True
        self._running: set[int] = set()

    def deactivate(self) -> int:
        """Close the gate and return how many callbacks are still running."""
        with self._gate:
            self._active = False
            running = len(self._running)
        self.stop_event.set()
        return running

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no other thread is inside the callback."""
        current = threading.get_ident()
        with self._gate:
            return self._gate.wait_for(
                lambda: not (self._running - {current}), timeout
            )

    def invoke(self, path: Path) -> None:
        # The callback counts as started once its thread is registered under
        # the gate; deactivate() sees every such invocation.
        ident = threading.get_ident()
        with self._gate:
            if not self._active:
                logger.info("Watcher stopped before %s was handled; skipping", path)
                return
            self._running.add(ident)
        try:
            self.callback(path)
        except Exception:
            logger.exception("New-file callback failed for %s", path)
        finally:
            with self._gate:
                self._running.discard(ident)
                self._gate.notify_all()


class FolderWatcher:
    """Watches one folder and reports each new matching file exactly once.

    The directory is polled on a background thread. Every new file is handed to
    the callback on a worker pool so slow callbacks never delay polling.
    """

    def __init__(
        self,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.poll_interval = poll_interval
        self.extensions = {extension.lower() for extension in extensions}
        self.max_workers = max_workers
        self._state_lock = threading.Lock()
        self._session: _WatchSession | None = None

    @property
    def is_watching(self) -> bool:
        with self._state_lock:
            return self._session is not None

    @property
    def folder(self) -> Path | None:
        with self._state_lock:
            return self._session.folder if self._session else None

    def _matches(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def _list_names(self, folder: Path) -> list[str]:
        with os.scandir(folder) as entries:
            return sorted(entry.name for entry in entries)

    def _list_file_names(self, folder: Path) -> list[str]:
        """Names of regular files only; directories and sockets are never reported."""
        with os.scandir(folder) as entries:
            return sorted(entry.name for entry in entries if _is_regular_file(entry))

    def start_watching(self, folder: str | os.PathLike[str], on_new_file: NewFileCallback) -> None:
        """Begin watching ``folder``; a no-op if already watching."""
        folder_path = Path(folder).expanduser()

        with self._state_lock:
            if self._session is not None:
                logger.debug("Already watching %s; start ignored", self._session.folder)
                return

            if not folder_path.is_dir():
                raise FolderNotFoundError(folder_path)
            try:
                seen = set(self._list_names(folder_path))
            except PermissionError as exc:
                raise PermissionDeniedError(folder_path) from exc
            except (FileNotFoundError, NotADirectoryError) as exc:
                raise FolderNotFoundError(folder_path) from exc

            session = _WatchSession(folder_path, on_new_file, seen, self.max_workers)
            session.thread = threading.Thread(
                target=self._run,
                args=(session,),
                name="folder-watcher",
                daemon=True,
            )
            self._session = session
            session.thread.start()

        logger.info(
            "Started watching %s (%d existing entries ignored)",
            folder_path,
            len(seen),
        )

    def stop_watching(self, wait: bool = False) -> None:
        """Stop watching. No callback starts after this returns.

        Callbacks already running are not interrupted; with ``wait=True`` this
        also blocks until they have finished.
        """
        with self._state_lock:
            session = self._session
            self._session = None
        if session is None:
            return

        running = session.deactivate()
        session.executor.shutdown(wait=False)
        if session.thread is not None and session.thread is not threading.current_thread():
            session.thread.join(timeout=THREAD_JOIN_TIMEOUT)
            if session.thread.is_alive():
                logger.warning("Watcher thread for %s did not exit in time", session.folder)
        if running and wait:
            logger.info("Waiting for %d running callback(s) to finish", running)
            session.wait_idle()
        elif running:
            logger.info("%d callback(s) still running for %s", running, session.folder)
        logger.info("Stopped watching %s", session.folder)

    def _run(self, session: _WatchSession) -> None:
        """The polling loop for one watch session."""
        while not session.stop_event.wait(self.poll_interval):
            try:
                self._poll(session)
            except Exception:
                logger.exception("Unexpected error while polling %s", session.folder)

    def _poll(self, session: _WatchSession) -> None:
        try:
            names = self._list_file_names(session.folder)
        except OSError as exc:
            logger.warning("Unable to list %s: %s", session.folder, exc)
            return

        for name in names:
            if session.stop_event.is_set():
                return
            if name in session.seen:
                continue
            path = session.folder / name
            if not self._matches(path):
                continue
            session.seen.add(name)
            logger.debug("Detected new file %s", path)
            try:
                session.executor.submit(session.invoke, path)
            except RuntimeError:
                # Executor already shut down by stop_watching().
                logger.info("Watcher stopped before %s was dispatched; skipping", path)
                return
