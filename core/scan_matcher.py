"""스캔 코드 대조 모듈

스캔 한 번은 실물 한 개를 센 것으로 봅니다. 같은 코드가 연달아 들어오는 것을 막는
중복 억제는 호출하는 쪽(ScanIntake)의 책임이며 여기서는 하지 않습니다.
"""

import re
from typing import Callable, Optional

from utils.exceptions import (InventoryError, NetworkUnavailableError, NotFoundError,
                              UnauthorizedError, ValidationError, AssignmentClosedError,
                              CompletionInProgressError)
from utils.logger import EventLogger
from .models import Assignment, Item, Line, PositionGroup, ScanEvent, ScanResult


ConfirmUnplanned = Callable[[Item, PositionGroup], bool]

ITEM_CODE_PATTERN = re.compile(r'^\d+$')


def parse_item_code(raw_code: Optional[str]) -> Optional[int]:
    """스캔 코드의 문자열 자체를 숫자 품목 ID로 해석합니다. 해석할 수 없으면 None."""
    if raw_code is None:
        return None
    code = raw_code.strip()
    if not ITEM_CODE_PATTERN.match(code):
        return None
    return int(code)


class ScanMatcher:
    """배정 한 건에 대해 스캔을 대조하고 수량을 갱신합니다.

    변경이 적용된 호출마다 assignment.notify_changed()를 정확히 한 번 호출합니다.
    """

    def __init__(self, assignment: Assignment, item_lookup, event_logger: Optional[EventLogger] = None):
        self.assignment = assignment
        self.item_lookup = item_lookup
        self.event_logger = event_logger

    def _log_event(self, event_type: str, detail: Optional[dict] = None):
        if self.event_logger:
            self.event_logger.log_event(event_type, detail)

    def _reject(self, message: str, raw_code: str, position_code: str) -> ScanResult:
        self._log_event('SCAN_REJECTED', detail={
            'assignment_id': self.assignment.assignment_id,
            'position_code': position_code,
            'raw_code': raw_code,
            'reason': message,
        })
        return ScanResult(applied=False, message=message)

    def process_scan_event(self, event: ScanEvent,
                           confirm_unplanned: Optional[ConfirmUnplanned] = None) -> ScanResult:
        group = self.assignment.find_group(event.position_code)
        if group is None:
            return self._reject("현재 작업에 없는 위치입니다.", event.raw_code, event.position_code)
        return self.process_scan(group, event.raw_code, confirm_unplanned)

    def process_scan(self, group: PositionGroup, raw_code: str,
                     confirm_unplanned: Optional[ConfirmUnplanned] = None) -> ScanResult:
        """스캔 코드를 그룹의 라인과 대조합니다.

        실패는 예외가 아니라 applied=False인 ScanResult로 돌려줍니다.
        UnauthorizedError만 세션 종료 처리를 위해 그대로 전파됩니다.
        confirm_unplanned가 없으면 계획에 없던 품목은 추가하지 않습니다.
        """
        raw_code = raw_code or ""
        if self.assignment.is_completed:
            return self._reject("이미 완료된 실사입니다.", raw_code, group.position_code)
        if self.assignment.submitting:
            return self._reject("완료 요청을 처리하는 중입니다.", raw_code, group.position_code)
        if not any(g is group for g in self.assignment.groups):
            return self._reject("현재 작업에 없는 위치입니다.", raw_code, group.position_code)
        if not raw_code.strip():
            return self._reject("빈 코드", raw_code, group.position_code)

        item_id = parse_item_code(raw_code)
        if item_id is None:
            return self._reject(f"잘못된 형식: {raw_code}", raw_code, group.position_code)

        line = group.find_line(item_id)
        if line is not None:
            line.actual_quantity = (line.actual_quantity or 0) + 1
            self._log_event('SCAN_APPLIED', detail={
                'assignment_id': self.assignment.assignment_id,
                'position_code': group.position_code,
                'item_id': item_id,
                'actual_quantity': line.actual_quantity,
            })
            self.assignment.notify_changed()
            return ScanResult(applied=True, message=f"✓ {line.item_name}: {line.actual_quantity}", line=line)

        return self._handle_unknown_item(group, item_id, raw_code, confirm_unplanned)

    def _handle_unknown_item(self, group: PositionGroup, item_id: int, raw_code: str,
                             confirm_unplanned: Optional[ConfirmUnplanned]) -> ScanResult:
        try:
            item = self.item_lookup.fetch_item(item_id)
        except UnauthorizedError:
            raise
        except NotFoundError:
            item = None
        except NetworkUnavailableError:
            return self._reject("네트워크에 연결할 수 없어 품목을 확인하지 못했습니다.", raw_code, group.position_code)
        except InventoryError as e:
            return self._reject(f"품목 조회 오류: {e}", raw_code, group.position_code)

        if item is None:
            return self._reject(f"ID {item_id} 품목이 카탈로그에 없습니다.", raw_code, group.position_code)

        if confirm_unplanned is None or not confirm_unplanned(item, group):
            return self._reject("사용자가 취소했습니다.", raw_code, group.position_code)

        # 확인 대기 중에 다른 경로로 완료(또는 전송 시작)되었을 수 있습니다.
        if self.assignment.is_completed:
            return self._reject("이미 완료된 실사입니다.", raw_code, group.position_code)
        if self.assignment.submitting:
            return self._reject("완료 요청을 처리하는 중입니다.", raw_code, group.position_code)

        new_line = Line(
            line_id=None,
            item_id=item.item_id,
            item_name=item.name,
            expected_quantity=None,
            actual_quantity=1,
            position_code=group.position_code,
        )
        group.lines.append(new_line)
        self._log_event('UNPLANNED_ITEM_ADDED', detail={
            'assignment_id': self.assignment.assignment_id,
            'position_code': group.position_code,
            'item_id': item.item_id,
            'item_name': item.name,
        })
        self.assignment.notify_changed()
        return ScanResult(applied=True, message=f"✓ {item.name}: 추가됨 (1)",
                          new_line_created=True, line=new_line)

    def override_quantity(self, line: Line, quantity: int) -> ScanResult:
        """실사 수량을 직접 입력합니다. 0 이상의 정수만 허용합니다."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValidationError("0 이상의 정수를 입력하세요.")
        self._ensure_editable(line)

        previous = line.actual_quantity
        line.actual_quantity = quantity
        self._log_event('MANUAL_OVERRIDE', detail={
            'assignment_id': self.assignment.assignment_id,
            'position_code': line.position_code,
            'item_id': line.item_id,
            'previous': previous,
            'actual_quantity': quantity,
        })
        self.assignment.notify_changed()
        return ScanResult(applied=True, message=f"✓ {line.item_name}: {quantity}", line=line)

    def mark_absent(self, line: Line) -> ScanResult:
        """품목을 없음(0개)으로 표시합니다."""
        return self.override_quantity(line, 0)

    def _ensure_editable(self, line: Line):
        if self.assignment.is_completed:
            raise AssignmentClosedError("이미 완료된 실사는 수정할 수 없습니다.")
        if self.assignment.submitting:
            raise CompletionInProgressError("완료 요청을 처리하는 중에는 수정할 수 없습니다.")
        if not any(existing is line for existing in self.assignment.iter_lines()):
            raise ValidationError("현재 작업에 속하지 않은 라인입니다.")
