"""로깅 유틸리티 모듈"""

import csv
import json
import datetime
import os
import queue
import threading
from typing import Dict, Any, Optional, List


class EventLogger:
    """이벤트 로깅을 담당하는 클래스

    이벤트는 큐에 쌓이고 별도의 데몬 스레드가 CSV 파일에 기록합니다.
    호출하는 쪽(스캔 처리, 동기화 스레드)은 파일 I/O를 기다리지 않습니다.
    """

    FIELDNAMES = ['timestamp', 'worker', 'event', 'details']

    def __init__(self, log_file_path: str, worker_name: str = "System"):
        self.log_file_path = log_file_path
        self.worker_name = worker_name
        self.log_queue: queue.Queue = queue.Queue()
        self.log_writer_running = True
        self._start_log_writer_thread()

    def _start_log_writer_thread(self):
        """로그 작성 스레드를 시작합니다."""
        self.log_thread = threading.Thread(target=self._event_log_writer, daemon=True)
        self.log_thread.start()

    def _event_log_writer(self):
        """이벤트 로그를 파일에 작성하는 스레드 함수"""
        while self.log_writer_running:
            try:
                log_entry = self.log_queue.get(timeout=1)
            except queue.Empty:
                continue

            try:
                if log_entry is None:
                    break

                file_exists = os.path.exists(self.log_file_path) and os.stat(self.log_file_path).st_size > 0
                with open(self.log_file_path, mode='a', newline='', encoding='utf-8-sig') as csvfile:
                    writer = csv.DictWriter(csvfile, fieldnames=self.FIELDNAMES)

                    if not file_exists:
                        writer.writeheader()

                    writer.writerow(log_entry)
                    csvfile.flush()
            except OSError as e:
                print(f"로그 작성 오류: {e}")
            finally:
                self.log_queue.task_done()

    def log_event(self, event_type: str, detail: Optional[Dict] = None):
        """이벤트를 로그에 기록합니다."""
        log_entry = {
            'timestamp': datetime.datetime.now().isoformat(),
            'worker': self.worker_name or "System",
            'event': event_type,
            'details': json.dumps(detail, ensure_ascii=False, default=str) if detail else ""
        }
        self.log_queue.put(log_entry)

    def flush(self):
        """큐에 쌓인 로그가 모두 기록될 때까지 기다립니다."""
        if self.log_thread.is_alive():
            self.log_queue.join()

    def get_todays_logs(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """오늘 날짜의 로그를 반환합니다. event_type을 주면 해당 이벤트만 반환합니다."""
        today = datetime.date.today().isoformat()
        logs = []

        if not os.path.exists(self.log_file_path):
            return logs

        try:
            with open(self.log_file_path, mode='r', encoding='utf-8-sig') as csvfile:
                reader = csv.DictReader(csvfile)
                for row in reader:
                    if not row['timestamp'].startswith(today):
                        continue
                    if event_type and row['event'] != event_type:
                        continue
                    try:
                        detail = json.loads(row['details']) if row['details'] else {}
                    except json.JSONDecodeError:
                        continue
                    logs.append({
                        'timestamp': row['timestamp'],
                        'worker': row['worker'],
                        'event': row['event'],
                        'details': detail
                    })
            return logs
        except OSError as e:
            print(f"로그 파일 읽기 오류: {e}")
            return logs

    def stop_logger(self):
        """로깅을 중지합니다."""
        self.log_queue.put(None)  # 종료 신호
        if self.log_thread.is_alive():
            self.log_thread.join(timeout=2.0)
        self.log_writer_running = False
