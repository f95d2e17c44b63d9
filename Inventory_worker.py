import datetime
import json
import os
import queue
import sys
import time
from typing import Any, Callable, Dict, List, Optional

# 분리된 모듈들 import
from core.completion import CompletionCoordinator
from core.models import Assignment, CompletionReport, Item, PositionGroup, ScanEvent, ScanResult, WorkerSession
from core.scan_matcher import ScanMatcher, ConfirmUnplanned
from core.synchronizer import TaskSynchronizer, DEFAULT_INTERVAL_SECONDS, MIN_INTERVAL_SECONDS
from core.tasks import InventoryTask, TaskCard, to_cards
from core.variance import VarianceTracker
from utils.api_client import InventoryApiClient
from utils.exceptions import (InventoryError, ConfigurationError, NetworkUnavailableError, NotFoundError, SessionError,
                              UnauthorizedError, ValidationError, CompletionInProgressError)
from utils.file_handler import application_path, get_daily_log_path
from utils.logger import EventLogger


# #####################################################################
# # 설정 관리 클래스
# #####################################################################

class ConfigManager:
    """애플리케이션 설정을 관리하는 클래스"""

    def __init__(self, config_file: str = "config.json", base_dir: Optional[str] = None):
        self.config_file = config_file
        self.base_dir = base_dir or application_path()
        self.config = self._load_config()

    @property
    def config_path(self) -> str:
        return os.path.join(self.base_dir, self.config_file)

    def _load_config(self) -> Dict[str, Any]:
        """설정 파일을 로드합니다."""
        try:
            if os.path.exists(self.config_path):
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            else:
                # 기본 설정 생성
                return self._create_default_config()
        except (OSError, json.JSONDecodeError) as e:
            print(f"설정 파일 로드 오류: {e}")
            return self._create_default_config()

    def _create_default_config(self) -> Dict[str, Any]:
        """기본 설정을 생성합니다."""
        default_config = {
            "app": {
                "name": "Inventory Worker",
                "version": "v1.0.0",
                "description": "재고 실사 작업 시스템"
            },
            "server": {
                "base_url": "http://localhost:5000/",
                "timeout_sec": 30
            },
            "sync": {
                "enabled": True,
                "interval_sec": DEFAULT_INTERVAL_SECONDS
            },
            "scan": {
                "duplicate_window_ms": 900
            },
            "logging": {
                "enabled": True,
                "log_dir": "logs",
                "log_prefix": "inventory_log"
            }
        }
        self.save_config(default_config)
        return default_config

    def get(self, key_path: str, default=None):
        """점 표기법으로 설정값을 가져옵니다. 예: 'server.base_url'"""
        keys = key_path.split('.')
        value = self.config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key_path: str, value):
        """점 표기법으로 설정값을 설정합니다."""
        keys = key_path.split('.')
        config = self.config

        for key in keys[:-1]:
            if key not in config:
                config[key] = {}
            config = config[key]

        config[keys[-1]] = value

    def save_config(self, config_data=None):
        """설정을 파일로 저장합니다."""
        try:
            data = config_data if config_data is not None else self.config

            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=4)
        except OSError as e:
            print(f"설정 파일 저장 오류: {e}")

    def require(self, key_path: str):
        """값이 반드시 있어야 하는 설정을 가져옵니다."""
        value = self.get(key_path)
        if value in (None, ""):
            raise ConfigurationError(f"필수 설정이 없습니다: {key_path}")
        return value


# #####################################################################
# # 스캔 입력 (중복 억제)
# #####################################################################

class ScanIntake:
    """스캐너 입력을 받아 ScanEvent로 바꿉니다.

    같은 코드가 window_ms 안에 다시 들어오면 버립니다. 대조 로직은 중복 억제를 하지 않으므로
    이 책임은 여기에만 있습니다.
    """

    def __init__(self, window_ms: int = 900, clock: Callable[[], float] = time.monotonic):
        self.window_sec = window_ms / 1000.0
        self.clock = clock
        self.last_code: Optional[str] = None
        self.last_scan_time = float('-inf')

    def accept(self, position_code: str, raw_code: str) -> Optional[ScanEvent]:
        code = (raw_code or "").strip()
        if not code:
            return None

        current_time = self.clock()
        if code == self.last_code and current_time - self.last_scan_time < self.window_sec:
            return None
        self.last_code = code
        self.last_scan_time = current_time
        return ScanEvent(position_code=position_code, raw_code=code)

    def reset(self):
        self.last_code = None
        self.last_scan_time = float('-inf')


# #####################################################################
# # 메인 어플리케이션
# #####################################################################

class InventoryWorkerApp:
    """재고 실사 엔진을 조립하고 화면 계층에 필요한 동작을 제공합니다.

    모든 모델 변경은 이 객체를 소유한 스레드에서만 일어나야 합니다.
    동기화 스레드의 콜백은 dispatch를 통해 그 스레드로 넘겨집니다.
    """

    def __init__(self, config: ConfigManager, session: WorkerSession,
                 api_client=None, event_logger: Optional[EventLogger] = None,
                 dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
                 on_logout: Optional[Callable[[], None]] = None):
        if session.is_expired():
            raise SessionError("토큰이 만료되었습니다. 다시 로그인하세요.")
        self.config = config
        self.session = session
        self.event_logger = event_logger
        self.on_logout = on_logout

        if api_client is None:
            api_client = InventoryApiClient(config.require('server.base_url'),
                                            timeout=config.get('server.timeout_sec', 30))
            api_client.set_auth_token(session.access_token)
        self.api_client = api_client

        self.synchronizer = TaskSynchronizer(api_client, session.worker_id, event_logger, dispatch)
        self.coordinator = CompletionCoordinator(api_client, session.worker_id, event_logger)
        self.scan_intake = ScanIntake(config.get('scan.duplicate_window_ms', 900))

        self.tasks: List[InventoryTask] = []
        self.current_assignment: Optional[Assignment] = None
        self.matcher: Optional[ScanMatcher] = None
        self.tracker: Optional[VarianceTracker] = None
        self.status_message = "준비"
        self.has_network = True
        self.logged_out = False

    def _log_event(self, event_type: str, detail: Optional[Dict] = None):
        if self.event_logger:
            self.event_logger.log_event(event_type, detail)

    def show_status_message(self, message: str):
        self.status_message = message

    # ------------------------------------------------------------------
    # 작업 목록
    # ------------------------------------------------------------------

    def refresh_tasks(self) -> bool:
        """작업 목록을 즉시 다시 받습니다. 오류는 상태 메시지로 바뀝니다."""
        try:
            tasks = self.synchronizer.refresh_now()
        except UnauthorizedError:
            self.logout()
            return False
        except NetworkUnavailableError:
            self.has_network = False
            self.show_status_message("네트워크에 연결되어 있지 않습니다.")
            return False
        except InventoryError as e:
            self.show_status_message(f"작업 목록 로드 오류: {e}")
            return False

        self.has_network = True
        self._replace_tasks(tasks)
        return True

    def _replace_tasks(self, tasks: List[InventoryTask]):
        # 전체 교체. 열려 있는 배정 객체는 그대로 두므로 진행 중인 스캔 결과는 덮어쓰지 않습니다.
        self.tasks = list(tasks)
        self.show_status_message(f"작업 {len(self.tasks)}건")

    def task_cards(self) -> List[TaskCard]:
        return to_cards(self.tasks)

    def start_sync(self) -> bool:
        if not self.config.get('sync.enabled', True):
            return False
        return self.synchronizer.start(self._replace_tasks,
                                       self.config.get('sync.interval_sec', DEFAULT_INTERVAL_SECONDS),
                                       on_unauthorized=lambda error: self.logout())

    def stop_sync(self):
        self.synchronizer.stop()

    def set_sync_interval(self, seconds: int) -> int:
        """동기화 주기를 바꾸고 설정 파일에 저장합니다. 실행 중이면 새 주기로 다시 시작합니다."""
        seconds = max(MIN_INTERVAL_SECONDS, int(seconds))
        self.config.set('sync.interval_sec', seconds)
        self.config.save_config()
        self._log_event('SYNC_INTERVAL_CHANGED', {'interval_sec': seconds})

        if self.synchronizer.is_polling:
            self.synchronizer.stop()
            self.start_sync()
        return seconds

    def todays_activity(self) -> Dict[str, int]:
        """오늘 로그를 이벤트 종류별로 셉니다."""
        if not self.event_logger:
            return {}
        self.event_logger.flush()
        counts: Dict[str, int] = {}
        for log in self.event_logger.get_todays_logs():
            counts[log['event']] = counts.get(log['event'], 0) + 1
        return counts

    # ------------------------------------------------------------------
    # 실사 진행
    # ------------------------------------------------------------------

    def open_assignment(self, assignment_id: int) -> Assignment:
        task = next((t for t in self.tasks if t.assignment_id == assignment_id), None)
        if task is None:
            raise NotFoundError(f"배정 {assignment_id}을(를) 찾을 수 없습니다.")

        self.close_assignment()
        self.current_assignment = task.assignment
        self.matcher = ScanMatcher(task.assignment, self.api_client, self.event_logger)
        self.tracker = VarianceTracker(task.assignment)
        self.scan_intake.reset()
        self._log_event('ASSIGNMENT_OPENED', detail={
            'assignment_id': assignment_id,
            'zone_code': task.assignment.zone_code,
            'group_count': len(task.assignment.groups),
        })
        return task.assignment

    def close_assignment(self):
        if self.tracker:
            self.tracker.close()
        self.current_assignment = None
        self.matcher = None
        self.tracker = None

    def find_group(self, position_code: str) -> Optional[PositionGroup]:
        if self.current_assignment is None:
            return None
        return self.current_assignment.find_group(position_code)

    def handle_scan(self, position_code: str, raw_code: str,
                    confirm_unplanned: Optional[ConfirmUnplanned] = None) -> Optional[ScanResult]:
        """스캐너 입력 한 건을 처리합니다. 중복으로 버려지면 None을 반환합니다."""
        if self.matcher is None:
            self.show_status_message("먼저 실사 작업을 선택하세요.")
            return ScanResult(applied=False, message=self.status_message)

        event = self.scan_intake.accept(position_code, raw_code)
        if event is None:
            return None

        try:
            result = self.matcher.process_scan_event(event, confirm_unplanned)
        except UnauthorizedError:
            self.logout()
            return ScanResult(applied=False, message="세션이 만료되었습니다. 다시 로그인하세요.")

        self.show_status_message(result.message)
        return result

    def override_quantity(self, position_code: str, item_id: int, quantity: int) -> ScanResult:
        if self.matcher is None:
            return ScanResult(applied=False, message="먼저 실사 작업을 선택하세요.")
        line = self._find_line(position_code, item_id)
        try:
            result = self.matcher.override_quantity(line, quantity)
        except InventoryError as e:
            result = ScanResult(applied=False, message=str(e))
        self.show_status_message(result.message)
        return result

    def mark_absent(self, position_code: str, item_id: int) -> ScanResult:
        return self.override_quantity(position_code, item_id, 0)

    def _find_line(self, position_code: str, item_id: int):
        group = self.find_group(position_code)
        line = group.find_line(item_id) if group else None
        if line is None:
            raise NotFoundError(f"{position_code} 위치에 품목 {item_id}이(가) 없습니다.")
        return line

    def complete_current(self) -> Optional[CompletionReport]:
        """열린 배정을 완료 처리합니다. 실패하면 상태 메시지를 남기고 None을 반환합니다."""
        assignment = self.current_assignment
        if assignment is None:
            self.show_status_message("완료할 실사 작업이 없습니다.")
            return None

        try:
            report = self.coordinator.complete(assignment)
        except UnauthorizedError:
            self.logout()
            return None
        except CompletionInProgressError:
            self.show_status_message("완료 요청을 처리하는 중입니다.")
            return None
        except NetworkUnavailableError:
            self.has_network = False
            self.show_status_message("네트워크에 연결되어 있지 않습니다. 다시 시도하세요.")
            return None
        except InventoryError as e:
            self.show_status_message(f"완료 처리 오류: {e}")
            return None

        self.tasks = [t for t in self.tasks if t.assignment is not assignment]
        self.close_assignment()
        self.show_status_message(report.message or "실사가 완료되었습니다.")
        return report

    # ------------------------------------------------------------------
    # 세션
    # ------------------------------------------------------------------

    def logout(self):
        if self.logged_out:
            return
        self.logged_out = True
        self.synchronizer.stop()
        self.close_assignment()
        self.tasks = []
        if hasattr(self.api_client, 'set_auth_token'):
            self.api_client.set_auth_token(None)
        self._log_event('SESSION_TERMINATED', detail={'worker_id': self.session.worker_id})
        self.show_status_message("세션이 만료되었습니다. 다시 로그인하세요.")
        if self.on_logout:
            self.on_logout()

    def shutdown(self):
        self.synchronizer.dispose()
        self.close_assignment()
        if self.event_logger:
            self.event_logger.stop_logger()


# #####################################################################
# # 콘솔 실행
# #####################################################################

HELP_TEXT = """명령어:
  list                  작업 목록
  refresh               작업 목록 새로고침
  open <배정ID>          실사 시작
  pos <위치코드>         스캔할 위치 선택
  <코드>                 현재 위치에서 스캔
  set <품목ID> <수량>     수량 직접 입력
  absent <품목ID>        없음으로 표시
  stats                 진행 현황
  log                   오늘 작업 기록
  interval <초>          동기화 주기 변경
  done                  실사 완료
  quit                  종료"""


def _ask_yes_no(question: str) -> bool:
    return input(f"{question} [y/N] ").strip().lower() in ('y', 'yes')


def _confirm_unplanned(item: Item, group: PositionGroup) -> bool:
    return _ask_yes_no(f"'{item.name}'은(는) {group.position_code} 위치의 예상 품목이 아닙니다. 추가할까요?")


def run_console(app: InventoryWorkerApp, ui_queue: "queue.Queue[Callable[[], None]]"):
    """스캐너(키보드 입력)로 실사를 진행하는 간단한 콘솔 루프"""
    position_code = ""
    print(HELP_TEXT)
    while not app.logged_out:
        # 동기화 스레드가 보낸 콜백은 여기서만 실행됩니다.
        while not ui_queue.empty():
            ui_queue.get_nowait()()

        try:
            line = input(f"[{position_code or '-'}] > ").strip()
        except EOFError:
            break
        if not line:
            continue

        command, _, rest = line.partition(' ')
        try:
            if command == 'quit':
                break
            elif command == 'list':
                for card in app.task_cards():
                    print(f"  #{card.navigation_id} {card.title} | {card.primary_metric} | {card.status_text}")
            elif command == 'refresh':
                app.refresh_tasks()
            elif command == 'open':
                assignment = app.open_assignment(int(rest))
                print("  위치: " + ", ".join(g.position_code for g in assignment.groups))
            elif command == 'pos':
                position_code = rest.strip()
            elif command == 'set':
                item_id, quantity = rest.split()
                app.override_quantity(position_code, int(item_id), int(quantity))
            elif command == 'absent':
                app.mark_absent(position_code, int(rest))
            elif command == 'stats':
                if app.tracker:
                    snapshot = app.tracker.snapshot
                    print(f"  확인 {snapshot.scanned_count}/{snapshot.total_items}, "
                          f"불일치 {snapshot.variance_count}, {snapshot.completion_percentage:.1f}%")
            elif command == 'log':
                for event, count in sorted(app.todays_activity().items()):
                    print(f"  {event}: {count}")
            elif command == 'interval':
                seconds = app.set_sync_interval(int(rest))
                app.show_status_message(f"동기화 주기 {seconds}초")
            elif command == 'done':
                if _ask_yes_no("실사를 완료할까요? 세지 않은 품목은 0개로 처리됩니다."):
                    report = app.complete_current()
                    if report:
                        print(report.summary_text())
            else:
                app.handle_scan(position_code, line, _confirm_unplanned)
        except (ValueError, NotFoundError, ValidationError) as e:
            app.show_status_message(str(e))
        print(f"  {app.status_message}")


def main() -> int:
    config = ConfigManager()
    worker_id = os.environ.get('INVENTORY_WORKER_ID') or input("작업자 ID: ").strip()
    token = os.environ.get('INVENTORY_ACCESS_TOKEN') or input("접근 토큰: ").strip()
    if not worker_id.isdigit() or not token:
        print("작업자 ID와 토큰이 필요합니다.")
        return 1

    session = WorkerSession(worker_id=int(worker_id), access_token=token)
    event_logger = None
    if config.get('logging.enabled', True):
        log_dir = os.path.join(application_path(), config.get('logging.log_dir', 'logs'))
        log_path = get_daily_log_path(log_dir, config.get('logging.log_prefix', 'inventory_log'),
                                      worker_id, datetime.date.today())
        event_logger = EventLogger(log_path, worker_name=worker_id)

    ui_queue: "queue.Queue[Callable[[], None]]" = queue.Queue()
    app = InventoryWorkerApp(config, session, event_logger=event_logger, dispatch=ui_queue.put)
    try:
        app.refresh_tasks()
        app.start_sync()
        run_console(app, ui_queue)
    finally:
        app.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
