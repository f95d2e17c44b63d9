"""실사 완료 처리 모듈"""

import dataclasses
import datetime
import threading
from typing import Any, Callable, Dict, List, Optional, Set

from utils.exceptions import (AssignmentClosedError, CompletionInProgressError, InventoryError,
                              ValidationError)
from utils.logger import EventLogger
from .mapper import parse_datetime
from .models import (Assignment, AssignmentStatus, CompletionLine, CompletionReport, CompletionRequest, Line,
                     CompletionStatistics, Discrepancy, DiscrepancyType)


# 서버 통계 필드 이름 -> CompletionStatistics 필드 이름
STATISTICS_FIELDS = {
    'totalPositions': 'total_positions',
    'countedPositions': 'counted_positions',
    'completionPercentage': 'completion_percentage',
    'discrepancyCount': 'discrepancy_count',
    'surplusCount': 'surplus_count',
    'shortageCount': 'shortage_count',
    'totalSurplusQuantity': 'total_surplus_quantity',
    'totalShortageQuantity': 'total_shortage_quantity',
}


def build_request(assignment: Assignment, worker_id: int) -> CompletionRequest:
    """완료 요청을 만듭니다. 세지 않은 라인은 요청에서만 0으로 보냅니다 (모델은 그대로)."""
    lines = tuple(
        CompletionLine(
            line_id=line.line_id,
            item_id=line.item_id,
            position_code=line.position_code,
            actual_quantity=line.actual_quantity if line.actual_quantity is not None else 0,
        )
        for line in assignment.iter_lines()
    )
    return CompletionRequest(assignment_id=assignment.assignment_id, worker_id=worker_id, lines=lines)


def local_discrepancies(lines: List[Line], request: CompletionRequest) -> List[Discrepancy]:
    discrepancies = []
    for line, submitted in zip(lines, request.lines):
        expected = line.expected_quantity or 0
        variance = submitted.actual_quantity - expected
        if variance == 0:
            continue
        discrepancies.append(Discrepancy(
            line_id=line.line_id,
            expected_quantity=expected,
            actual_quantity=submitted.actual_quantity,
            variance=variance,
            discrepancy_type=DiscrepancyType.SURPLUS if variance > 0 else DiscrepancyType.SHORTAGE,
        ))
    return discrepancies


def local_statistics(lines: List[Line], discrepancies: List[Discrepancy]) -> CompletionStatistics:
    total = len(lines)
    counted = sum(1 for line in lines if line.is_counted)
    surplus = [d for d in discrepancies if d.discrepancy_type == DiscrepancyType.SURPLUS]
    shortage = [d for d in discrepancies if d.discrepancy_type == DiscrepancyType.SHORTAGE]
    return CompletionStatistics(
        total_positions=total,
        counted_positions=counted,
        completion_percentage=(counted / total * 100) if total else 0.0,
        discrepancy_count=len(discrepancies),
        surplus_count=len(surplus),
        shortage_count=len(shortage),
        total_surplus_quantity=sum(d.variance for d in surplus),
        total_shortage_quantity=sum(-d.variance for d in shortage),
    )


def merge_statistics(local: CompletionStatistics, server: Optional[Dict[str, Any]]) -> CompletionStatistics:
    """서버가 준 필드는 서버 값을, 빠졌거나 해석할 수 없는 필드는 로컬 계산 값을 사용합니다."""
    if not server or not isinstance(server, dict):
        return local
    overrides = {}
    for key, attr in STATISTICS_FIELDS.items():
        value = server.get(key)
        if value is None:
            continue
        try:
            overrides[attr] = float(value) if attr == 'completion_percentage' else int(value)
        except (TypeError, ValueError):
            continue
    return dataclasses.replace(local, **overrides)


def discrepancy_type_for(value: Any, variance: int) -> DiscrepancyType:
    """서버 type 값을 해석합니다. 알 수 없는 값이면 variance 부호로 판단합니다."""
    try:
        return DiscrepancyType(int(value))
    except (TypeError, ValueError):
        return DiscrepancyType.SURPLUS if variance > 0 else DiscrepancyType.SHORTAGE


def _parse_discrepancy(item: Dict[str, Any]) -> Discrepancy:
    expected = int(item.get('expectedQuantity') or 0)
    actual = int(item.get('actualQuantity') or 0)
    variance = int(item['variance']) if item.get('variance') is not None else actual - expected
    return Discrepancy(
        line_id=item.get('inventoryAssignmentLineId'),
        expected_quantity=expected,
        actual_quantity=actual,
        variance=variance,
        discrepancy_type=discrepancy_type_for(item.get('type'), variance),
        item_position_id=item.get('itemPositionId'),
        note=item.get('note'),
    )


SkipHandler = Callable[[Any, Exception], None]


def parse_discrepancies(report: Optional[Dict[str, Any]],
                        on_skip: Optional[SkipHandler] = None) -> Optional[List[Discrepancy]]:
    """서버 불일치 목록을 해석합니다. 목록이 없으면 None, 해석할 수 없는 항목은 건너뜁니다."""
    if not isinstance(report, dict) or not isinstance(report.get('discrepancies'), list):
        return None
    result = []
    for item in report['discrepancies']:
        try:
            result.append(_parse_discrepancy(item))
        except (AttributeError, TypeError, ValueError) as e:
            if on_skip:
                on_skip(item, e)
    return result


class CompletionCoordinator:
    """완료 요청을 만들어 전송하고 결과를 CompletionReport로 돌려줍니다.

    같은 배정에 대한 완료는 재진입할 수 없습니다. 진행 중에 다시 호출하면
    CompletionInProgressError가 발생합니다. 전송 중에는 assignment.submitting이 True입니다.
    서버가 확인(2xx)한 뒤에는 응답 내용과 관계없이 배정을 완료 상태로 바꿉니다.
    """

    def __init__(self, remote_api, worker_id: int, event_logger: Optional[EventLogger] = None):
        self.remote_api = remote_api
        self.worker_id = worker_id
        self.event_logger = event_logger
        self._lock = threading.Lock()
        self._in_flight: Set[int] = set()

    def _log_event(self, event_type: str, detail: Optional[dict] = None):
        if self.event_logger:
            self.event_logger.log_event(event_type, detail)

    def is_busy(self, assignment: Assignment) -> bool:
        with self._lock:
            return assignment.assignment_id in self._in_flight

    def complete(self, assignment: Assignment) -> CompletionReport:
        if assignment.is_completed:
            raise AssignmentClosedError("이미 완료된 실사입니다.")

        with self._lock:
            if assignment.assignment_id in self._in_flight:
                self._log_event('COMPLETION_REJECTED_BUSY', detail={'assignment_id': assignment.assignment_id})
                raise CompletionInProgressError("완료 요청이 이미 진행 중입니다.")
            self._in_flight.add(assignment.assignment_id)
            assignment.submitting = True

        try:
            return self._complete(assignment)
        finally:
            with self._lock:
                self._in_flight.discard(assignment.assignment_id)
                assignment.submitting = False

    def _complete(self, assignment: Assignment) -> CompletionReport:
        # 재시도할 때마다 현재 수량을 새로 읽습니다.
        lines = assignment.lines
        request = build_request(assignment, self.worker_id)
        fallback = local_discrepancies(lines, request)
        local = local_statistics(lines, fallback)
        self._log_event('COMPLETION_SUBMITTED', detail={
            'assignment_id': assignment.assignment_id,
            'line_count': len(request.lines),
            'unscanned_defaulted_to_zero': local.total_positions - local.counted_positions,
        })

        try:
            response = self.remote_api.submit_completion(request)
        except InventoryError as e:
            self._log_event('COMPLETION_FAILED', detail={
                'assignment_id': assignment.assignment_id,
                'error_type': type(e).__name__,
                'error': str(e),
            })
            raise

        report = self._build_report(assignment, request, response, local, fallback)
        self._apply_acknowledged(assignment, lines, request, report.completed_at)
        self._log_event('COMPLETION_SUCCEEDED', detail={
            'assignment_id': assignment.assignment_id,
            'discrepancy_count': report.statistics.discrepancy_count,
            'message': report.message,
        })
        return report

    def _build_report(self, assignment: Assignment, request: CompletionRequest, response: Any,
                      local: CompletionStatistics, fallback: List[Discrepancy]) -> CompletionReport:
        """서버가 이미 완료를 기록했으므로 해석할 수 없는 값은 로컬 값으로 대체합니다."""
        if not isinstance(response, dict):
            response = {}

        def skip_entry(item, error):
            self._log_event('COMPLETION_RESPONSE_IGNORED', detail={
                'assignment_id': assignment.assignment_id, 'field': 'discrepancies',
                'value': item, 'error': str(error)})

        server_discrepancies = parse_discrepancies(response.get('discrepancyReport'), on_skip=skip_entry)
        discrepancies = server_discrepancies if server_discrepancies is not None else fallback

        try:
            completed_at = parse_datetime(response.get('completedAt'))
        except ValidationError as e:
            self._log_event('COMPLETION_RESPONSE_IGNORED', detail={
                'assignment_id': assignment.assignment_id, 'field': 'completedAt', 'error': str(e)})
            completed_at = None

        message = response.get('message')
        return CompletionReport(
            assignment_id=assignment.assignment_id,
            message=message if isinstance(message, str) else "",
            statistics=merge_statistics(local, response.get('statistics')),
            discrepancies=tuple(discrepancies),
            completed_at=completed_at or datetime.datetime.now(datetime.timezone.utc),
            submitted_lines=request.lines,
        )

    @staticmethod
    def _apply_acknowledged(assignment: Assignment, lines: List[Line], request: CompletionRequest,
                            completed_at: Optional[datetime.datetime]):
        """서버 확인 후에만 제출한 수량을 모델에 반영하고 종료 상태로 바꿉니다."""
        for line, sent in zip(lines, request.lines):
            line.actual_quantity = sent.actual_quantity
        assignment.status = AssignmentStatus.COMPLETED
        assignment.completed_at = completed_at
        assignment.notify_changed()
