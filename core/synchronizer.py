"""작업 주기 동기화 모듈

백그라운드 스레드 하나가 주기적으로 서버에 새 작업이 있는지 가볍게 확인하고,
변경이 있을 때만 전체 작업 목록을 받아 콜백으로 전달합니다.
"""

import datetime
import threading
from enum import Enum
from typing import Callable, List, Optional

from utils.exceptions import NetworkUnavailableError, UnauthorizedError
from utils.logger import EventLogger
from .mapper import map_inventory_tasks
from .tasks import InventoryTask


MIN_INTERVAL_SECONDS = 5
DEFAULT_INTERVAL_SECONDS = 30

TasksCallback = Callable[[List[InventoryTask]], None]
UnauthorizedCallback = Callable[[UnauthorizedError], None]
Dispatcher = Callable[[Callable[[], None]], None]


def _call_now(fn: Callable[[], None]):
    fn()


class SyncState(Enum):
    IDLE = "Idle"
    POLLING = "Polling"
    STOPPED = "Stopped"


class TaskSynchronizer:
    """작업 목록 주기 동기화

    - start()는 이미 폴링 중이면 무시합니다.
    - stop()은 여러 번 불러도 안전하며, 반환된 뒤에는 그 실행에서 on_update가 더 호출되지 않습니다.
    - dispose() 이후에는 다시 시작할 수 없습니다.
    - dispatch를 주면 콜백을 그 함수로 넘겨 단일 작성자 컨텍스트(UI 스레드 등)에서 실행합니다.
    """

    def __init__(self, remote_api, worker_id: int, event_logger: Optional[EventLogger] = None,
                 dispatch: Optional[Dispatcher] = None):
        self.remote_api = remote_api
        self.worker_id = worker_id
        self.event_logger = event_logger
        self._dispatch = dispatch or _call_now
        self._lock = threading.RLock()
        self._state = SyncState.IDLE
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self.interval_seconds: float = DEFAULT_INTERVAL_SECONDS
        self.last_error: Optional[Exception] = None
        self.last_check: Optional[datetime.datetime] = None

    def _log_event(self, event_type: str, detail: Optional[dict] = None):
        if self.event_logger:
            self.event_logger.log_event(event_type, detail)

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_polling(self) -> bool:
        return self._state == SyncState.POLLING

    @staticmethod
    def _utcnow() -> datetime.datetime:
        return datetime.datetime.now(datetime.timezone.utc)

    def fetch_tasks(self) -> List[InventoryTask]:
        payload = self.remote_api.fetch_assignments(self.worker_id)
        return map_inventory_tasks(payload, self.worker_id)

    def refresh_now(self) -> List[InventoryTask]:
        """당겨서 새로고침. 즉시 전체 목록을 가져오며 오류는 호출자에게 그대로 전달됩니다."""
        checked_at = self._utcnow()
        tasks = self.fetch_tasks()
        self.last_check = checked_at
        self._log_event('SYNC_MANUAL_REFRESH', detail={'task_count': len(tasks)})
        return tasks

    def start(self, on_update: TasksCallback, interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
              on_unauthorized: Optional[UnauthorizedCallback] = None) -> bool:
        if on_update is None:
            raise ValueError("on_update 콜백이 필요합니다.")

        with self._lock:
            if self._state == SyncState.STOPPED:
                self._log_event('SYNC_START_IGNORED', detail={'reason': 'disposed'})
                return False
            if self._state == SyncState.POLLING:
                self._log_event('SYNC_START_IGNORED', detail={'reason': 'already_polling'})
                return False

            interval = interval_seconds if interval_seconds else MIN_INTERVAL_SECONDS
            if interval < MIN_INTERVAL_SECONDS:
                self._log_event('SYNC_INTERVAL_CLAMPED', detail={
                    'requested': interval_seconds, 'applied': MIN_INTERVAL_SECONDS})
                interval = MIN_INTERVAL_SECONDS
            self.interval_seconds = interval

            stop_event = threading.Event()
            self._stop_event = stop_event
            self.last_check = self._utcnow()
            self._state = SyncState.POLLING
            self._thread = threading.Thread(
                target=self._run,
                args=(stop_event, on_update, interval, on_unauthorized),
                name=f"task-sync-{self.worker_id}",
                daemon=True,
            )
            self._thread.start()

        self._log_event('SYNC_STARTED', detail={'worker_id': self.worker_id, 'interval_seconds': interval})
        return True

    def stop(self):
        with self._lock:
            if self._state != SyncState.POLLING:
                return
            self._stop_event.set()
            self._state = SyncState.IDLE
        self._log_event('SYNC_STOPPED', detail={'worker_id': self.worker_id})

    def dispose(self):
        self.stop()
        with self._lock:
            self._state = SyncState.STOPPED

    def join(self, timeout: Optional[float] = None) -> bool:
        """폴링 스레드가 끝날 때까지 기다립니다. 끝났으면 True."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _run(self, stop_event: threading.Event, on_update: TasksCallback, interval: float,
             on_unauthorized: Optional[UnauthorizedCallback]):
        # wait()는 stop()이 호출되면 즉시 True를 반환하므로 다음 네트워크 호출 전에 빠져나갑니다.
        while not stop_event.wait(interval):
            try:
                checked_at = self._utcnow()
                has_new = self.remote_api.has_new_tasks(self.worker_id, since=self.last_check)
                if stop_event.is_set():
                    break
                if not has_new:
                    continue
                tasks = self.fetch_tasks()
            except UnauthorizedError as e:
                self._handle_unauthorized(stop_event, e, on_unauthorized)
                return
            except NetworkUnavailableError as e:
                self.last_error = e
                self._log_event('SYNC_TICK_FAILED', detail={'error_type': 'NetworkUnavailable', 'error': str(e)})
                continue
            except Exception as e:
                self.last_error = e
                self._log_event('SYNC_TICK_FAILED', detail={'error_type': type(e).__name__, 'error': str(e)})
                continue

            self.last_error = None
            if self._deliver(stop_event, on_update, tasks):
                # 전달된 경우에만 기준 시각을 이번 확인 시각으로 옮깁니다.
                self.last_check = checked_at

    def _deliver(self, stop_event: threading.Event, on_update: TasksCallback, tasks: List[InventoryTask]) -> bool:
        def deliver():
            # 디스패처가 나중에 실행하더라도 그 사이 중지되었다면 버립니다.
            if stop_event.is_set():
                return
            on_update(tasks)

        with self._lock:
            if stop_event.is_set():
                self._log_event('SYNC_RESULT_DISCARDED', detail={'task_count': len(tasks)})
                return False
            try:
                self._dispatch(deliver)
            except Exception as e:
                self._log_event('SYNC_CALLBACK_FAILED', detail={'error_type': type(e).__name__, 'error': str(e)})
                return False
        self._log_event('SYNC_TASKS_UPDATED', detail={'task_count': len(tasks)})
        return True

    def _handle_unauthorized(self, stop_event: threading.Event, error: UnauthorizedError,
                             on_unauthorized: Optional[UnauthorizedCallback]):
        with self._lock:
            already_stopped = stop_event.is_set()
            stop_event.set()
            if self._stop_event is stop_event and self._state == SyncState.POLLING:
                self._state = SyncState.IDLE
        if already_stopped:
            return
        self.last_error = error
        self._log_event('SYNC_UNAUTHORIZED', detail={'worker_id': self.worker_id, 'error': str(error)})
        if on_unauthorized is not None:
            self._dispatch(lambda: on_unauthorized(error))
