"""서버 DTO(JSON dict)를 도메인 모델로 변환하는 모듈"""

from typing import Any, Dict, Iterable, List, Optional
import datetime
import re

from utils.exceptions import ValidationError
from .models import Assignment, AssignmentStatus, Line, PositionGroup
from .tasks import InventoryTask, priority_for_status


FRACTION_PATTERN = re.compile(r'\.(\d+)')


def parse_datetime(value: Any) -> Optional[datetime.datetime]:
    """ISO 8601 문자열을 datetime으로 변환합니다. 'Z' 접미사도 허용합니다."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        return value
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    # .NET은 소수점 이하 7자리까지 보냄. fromisoformat(3.11 미만)은 3/6자리만 받음
    text = FRACTION_PATTERN.sub(lambda m: '.' + (m.group(1) + '000000')[:6], text)
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f"날짜 형식이 올바르지 않습니다: {value}") from e


def parse_status(value: Any) -> AssignmentStatus:
    if value is None:
        return AssignmentStatus.ASSIGNED
    if isinstance(value, AssignmentStatus):
        return value
    if isinstance(value, int):
        try:
            return AssignmentStatus(value)
        except ValueError as e:
            raise ValidationError(f"알 수 없는 배정 상태: {value}") from e
    key = str(value).replace(' ', '').replace('_', '').upper()
    for status in AssignmentStatus:
        if status.name.replace('_', '') == key:
            return status
    raise ValidationError(f"알 수 없는 배정 상태: {value}")


def _optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"'{field_name}' 값이 정수가 아닙니다: {value}") from e


def _required(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    raise ValidationError(f"필수 필드 누락: {'/'.join(keys)}")


def map_line(data: Dict[str, Any]) -> Line:
    actual = _optional_int(data.get('actualQuantity'), 'actualQuantity')
    if actual is not None and actual < 0:
        raise ValidationError(f"실사 수량은 음수일 수 없습니다: {actual}")
    return Line(
        line_id=_optional_int(data.get('lineId', data.get('id')), 'lineId'),
        item_id=_optional_int(_required(data, 'itemId'), 'itemId'),
        item_name=data.get('itemName') or "",
        expected_quantity=_optional_int(data.get('expectedQuantity'), 'expectedQuantity'),
        actual_quantity=actual,
        position_code=str(_required(data, 'positionCode')),
    )


def group_lines(lines: Iterable[Line]) -> List[PositionGroup]:
    """위치 코드별로 라인을 나눕니다. 그룹은 위치 코드 순, 그룹 안은 원래 순서를 유지합니다."""
    by_position: Dict[str, List[Line]] = {}
    for line in lines:
        by_position.setdefault(line.position_code, []).append(line)
    return [PositionGroup(position_code=code, lines=by_position[code])
            for code in sorted(by_position)]


def map_assignment(data: Dict[str, Any], worker_id: int = 0) -> Assignment:
    """배정 상세 DTO를 Assignment로 변환합니다."""
    if not isinstance(data, dict):
        raise ValidationError("배정 데이터 형식이 올바르지 않습니다.")

    raw_lines = data.get('lines')
    if raw_lines is None:
        raw_lines = data.get('items') or []
    lines = [map_line(item) for item in raw_lines]

    return Assignment(
        assignment_id=_optional_int(_required(data, 'id', 'assignmentId'), 'id'),
        zone_code=data.get('zoneCode') or "",
        status=parse_status(data.get('status')),
        initiated_at=parse_datetime(data.get('initiatedAt') or data.get('assignedAt')),
        groups=group_lines(lines),
        task_id=_optional_int(data.get('taskId'), 'taskId') or 0,
        branch_id=_optional_int(data.get('branchId'), 'branchId') or 0,
        worker_id=_optional_int(data.get('assignedToUserId'), 'assignedToUserId') or worker_id,
        completed_at=parse_datetime(data.get('completedAt')),
    )


def map_inventory_task(data: Dict[str, Any], worker_id: int) -> InventoryTask:
    """배정 DTO를 작업 목록용 InventoryTask로 변환합니다."""
    assignment = map_assignment(data, worker_id)
    line_count = len(assignment.lines)
    task_id = assignment.task_id or assignment.assignment_id

    if assignment.zone_code:
        title = f"재고 실사 (구역 {assignment.zone_code})"
    else:
        title = f"재고 실사 #{task_id}"

    return InventoryTask(
        task_id=task_id,
        assignment=assignment,
        title=title,
        description=f"지점: {assignment.branch_id}. 배정: {assignment.assignment_id}. 위치: {line_count}.",
        priority=priority_for_status(assignment.status),
        created_at=assignment.initiated_at,
        assigned_to_worker_id=worker_id,
    )


def map_inventory_tasks(payload: Optional[Iterable[Dict[str, Any]]], worker_id: int) -> List[InventoryTask]:
    if not payload:
        return []
    return [map_inventory_task(item, worker_id) for item in payload]
