# backend/nursery/landing/watcher.py
"""
content 파일이 밖에서 바뀌면 (수동 편집, 백업 복원) 디바운스 후 라벨을 다시 맞춘다.

STOPPED ─start()→ WATCHING ─변경(mtime 다름)→ PENDING_SYNC ─타이머→ WATCHING
PENDING_SYNC 중 변경이 또 오면 타이머를 다시 건다 (마지막 변경 기준).
잠금을 잡지 않는 best-effort 경로다. 실패는 로그만 남기고 다음 변경이나 daily job 이 맞춘다.
"""
from __future__ import annotations
import enum
import os
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..shared.config import settings
from ..shared.logging import get_logger


class WatcherState(str, enum.Enum):
    STOPPED = "STOPPED"
    WATCHING = "WATCHING"
    PENDING_SYNC = "PENDING_SYNC"


class _ContentFileHandler(FileSystemEventHandler):
    """디렉터리 이벤트 중 대상 파일만 전달"""

    def __init__(self, watcher: "LandingPageWatcher"):
        self.watcher = watcher

    def _is_target(self, path: Any) -> bool:
        if not path:
            return False
        return os.path.abspath(os.fsdecode(path)) == str(self.watcher.path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_target(event.src_path):
            self.watcher.handle_change()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_target(event.src_path):
            self.watcher.handle_change()

    def on_moved(self, event: FileSystemEvent) -> None:
        # 원자적 교체 (tmp → content) 는 moved 이벤트로 온다
        if not event.is_directory and self._is_target(getattr(event, "dest_path", None)):
            self.watcher.handle_change()

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_target(event.src_path):
            self.watcher.handle_deleted()


class LandingPageWatcher:
    def __init__(
        self,
        path: Path | str,
        on_sync: Callable[[], Any],
        debounce: float | None = None,
        observer_factory: Callable[[], Any] = Observer,
        log=None,
    ):
        self.path = Path(os.path.abspath(path))
        self.on_sync = on_sync
        self.debounce = settings.WATCHER_DEBOUNCE_SECONDS if debounce is None else debounce
        self.observer_factory = observer_factory
        self.log = log or get_logger("watcher")

        self.state = WatcherState.STOPPED
        self.last_mtime: Optional[int] = None
        self._timer: Optional[threading.Timer] = None
        self._observer = None
        self._mutex = threading.Lock()  # watchdog 스레드 ↔ 타이머 스레드

    def _mtime(self) -> int:
        return os.stat(self.path).st_mtime_ns

    def start(self) -> bool:
        with self._mutex:
            if self.state != WatcherState.STOPPED:
                return True
            if not self.path.exists():
                self.log.warning(f"Landing page content file not found at {self.path} - watcher not started")
                return False
            self.last_mtime = self._mtime()

            # 파일이 아니라 디렉터리를 본다: 삭제 후 재생성돼도 계속 감지
            observer = self.observer_factory()
            observer.schedule(_ContentFileHandler(self), str(self.path.parent), recursive=False)
            observer.start()
            self._observer = observer
            self.state = WatcherState.WATCHING

        self.log.info(f"Started watching landing page content file: {self.path}")
        self.log.info(f"Image labels will auto-sync {self.debounce}s after file changes")
        return True

    def stop(self) -> None:
        with self._mutex:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            observer, self._observer = self._observer, None
            was_running = self.state != WatcherState.STOPPED
            self.state = WatcherState.STOPPED
        if observer is not None:
            observer.stop()
            observer.join()
        if was_running:
            self.log.info("Stopped landing page file watcher")

    def handle_change(self) -> None:
        try:
            mtime = self._mtime()
        except FileNotFoundError:
            return
        except OSError as e:
            self.log.error(f"Error checking file modification time: {e}")
            return

        with self._mutex:
            if self.state == WatcherState.STOPPED:
                return
            # mtime 그대로면 읽기 접근 등 잡음
            if self.last_mtime is not None and mtime == self.last_mtime:
                return
            self.last_mtime = mtime

            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.debounce, self._fire)
            timer.daemon = True
            self._timer = timer
            self.state = WatcherState.PENDING_SYNC
            timer.start()
        self.log.debug(f"File change detected - sync scheduled in {self.debounce}s")

    def handle_deleted(self) -> None:
        with self._mutex:
            if self.state == WatcherState.STOPPED:
                return
            # 재생성되면 mtime 비교 없이 다시 sync
            self.last_mtime = None
        self.log.warning(f"Landing page content file deleted: {self.path}")

    def _fire(self) -> None:
        with self._mutex:
            if self._timer is None or threading.current_thread() is not self._timer:
                return
            self._timer = None
            self.state = WatcherState.WATCHING
        self.sync_now()

    def sync_now(self) -> None:
        """디바운스 없이 즉시 (수동 트리거 / 시작 시)"""
        self.log.info("Landing page content file changed - syncing image labels...")
        try:
            result = self.on_sync()
        except Exception as e:
            self.log.error(f"Failed to sync image labels after file change: {e}")
            return
        self.log.info(f"Image label sync completed: {result}")
