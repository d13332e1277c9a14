"""Process-scoped scratch directory holding intermediate capture and join artifacts."""

from __future__ import annotations

import logging
import os
import shutil
import signal
import sys
import threading
import uuid
from pathlib import Path
from typing import Dict, Optional, Union

from contact_sheet.exceptions import WorkspaceError

WORKSPACE_PREFIX = ".contact-sheet-"
_HANDLED_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGINT", None), getattr(signal, "SIGTERM", None)) if sig is not None
)


class Workspace:
    """Scratch directory owned by a single run.

    ``acquire`` creates ``<parent>/.contact-sheet-<random>`` once and keeps
    returning it. When ``auto_clean`` is set the directory is removed by
    ``release``, which may be called from the normal teardown path and from a
    signal handler; only the first caller removes anything.
    """

    def __init__(
        self,
        parent_dir: Union[str, Path, None] = None,
        *,
        auto_clean: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.parent_dir = Path(parent_dir) if parent_dir is not None else None
        self.auto_clean = auto_clean
        self.logger = logger or logging.getLogger(__name__)
        self._name = f"{WORKSPACE_PREFIX}{uuid.uuid4().hex[:12]}"
        self._path: Optional[Path] = None
        self._to_remove: Optional[Path] = None
        self._lock = threading.RLock()
        self._released = False
        self._removed = threading.Event()
        self._remover: Optional[threading.Thread] = None
        self._pending_signal: Optional[int] = None
        self._previous_handlers: Dict[int, object] = {}

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def acquire(self) -> Path:
        with self._lock:
            if self._path is not None:
                return self._path

            parent = self.parent_dir if self.parent_dir is not None else Path.cwd()
            path = parent / self._name
            if not path.exists():
                try:
                    path.mkdir(parents=True)
                except OSError as exc:
                    raise WorkspaceError(f"failed to create temp-dir {path}: {exc}") from exc
                if self.auto_clean:
                    self._to_remove = path
                self.logger.debug("Created workspace %s", path)
            self._path = path
            return path

    def release(self) -> bool:
        """Remove the workspace if this handle owns it. Returns ``True`` if it removed it.

        A SIGINT/SIGTERM delivered to the thread doing the removal is held
        until the directory is gone, then acted on.
        """
        with self._lock:
            if self._released:
                return False
            self._remover = threading.current_thread()
            self._released = True
            target, self._to_remove = self._to_remove, None

        try:
            if target is None:
                if self._path is not None and not self.auto_clean:
                    self.logger.info("Keeping workspace %s", self._path)
                return False

            try:
                shutil.rmtree(target)
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise WorkspaceError(f"failed to remove temp-dir {target}: {exc}") from exc
            self.logger.debug("Removed workspace %s", target)
            return True
        finally:
            self._removed.set()
            self._remover = None
            pending, self._pending_signal = self._pending_signal, None
            if pending is not None:
                self._exit_for_signal(pending)

    # ------------------------------------------------------------------
    # Signal handling
    # ------------------------------------------------------------------

    def install_signal_handlers(self) -> None:
        """Release the workspace and exit when SIGINT/SIGTERM arrives.

        Only effective from the main thread, where Python delivers signals.
        """
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in _HANDLED_SIGNALS:
            self._previous_handlers[sig] = signal.getsignal(sig)
            signal.signal(sig, self._handle_signal)

    def restore_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        while self._previous_handlers:
            sig, handler = self._previous_handlers.popitem()
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)

    def _handle_signal(self, signum: int, frame: object) -> None:
        self.logger.warning("Received signal %s, removing workspace", signum)
        if self._remover is threading.current_thread():
            # Interrupted our own removal; release() exits once it is done.
            self._pending_signal = signum
            return
        try:
            self.release()
        except WorkspaceError as exc:
            self.logger.error("%s", exc)
            os._exit(1)
        # Another thread may still be removing the directory.
        self._removed.wait()
        self._exit_for_signal(signum)

    def _exit_for_signal(self, signum: int) -> None:
        self.restore_signal_handlers()
        sys.exit(128 + signum)

    # ------------------------------------------------------------------
    # Context manager protocol
    # ------------------------------------------------------------------

    def __enter__(self) -> Path:
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


__all__ = ["WORKSPACE_PREFIX", "Workspace"]
