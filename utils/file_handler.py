"""파일 처리 유틸리티 모듈"""

import datetime
import os
import re
import sys
from typing import Optional


def application_path() -> str:
    """실행 파일 또는 메인 스크립트가 위치한 디렉토리를 반환합니다."""
    if getattr(sys, 'frozen', False):
        return os.path.dirname(sys.executable)
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def ensure_directory_exists(directory_path: str) -> bool:
    """디렉토리가 없으면 생성합니다."""
    try:
        if not os.path.exists(directory_path):
            os.makedirs(directory_path, exist_ok=True)
        return True
    except OSError as e:
        print(f"디렉토리 생성 실패: {e}")
        return False


def get_safe_filename(filename: str) -> str:
    """파일명에서 안전하지 않은 문자를 제거합니다."""
    # 파일명에 사용할 수 없는 문자들을 언더스코어로 대체
    safe_name = re.sub(r'[<>:"/\\|?*]', '_', filename)
    return safe_name.strip()


def get_daily_log_path(log_dir: str, prefix: str, worker_name: str,
                       day: Optional[datetime.date] = None) -> str:
    """작업자별 일일 이벤트 로그 파일 경로를 만듭니다.

    예: ``logs/2025/09/inventory_log_홍길동_20250922.csv``
    """
    day = day or datetime.date.today()
    folder = os.path.join(log_dir, day.strftime('%Y'), day.strftime('%m'))
    ensure_directory_exists(folder)
    safe_worker = get_safe_filename(worker_name) or "System"
    filename = f"{prefix}_{safe_worker}_{day.strftime('%Y%m%d')}.csv"
    return os.path.join(folder, filename)
