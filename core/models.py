"""데이터 모델 정의 모듈"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Callable, Dict, Iterator, List, Optional, Tuple
import datetime


class AssignmentStatus(IntEnum):
    """서버의 inventoryassignments.status 값과 동일합니다."""
    ASSIGNED = 0
    IN_PROGRESS = 1
    COMPLETED = 2
    CANCELLED = 3


class LineStatus(str, Enum):
    """라인별 실사 상태"""
    NOT_COUNTED = "NotCounted"
    UNEXPECTED = "Unexpected"
    ABSENT = "Absent"
    MATCH = "Match"
    SURPLUS = "Surplus"
    SHORTAGE = "Shortage"


class DiscrepancyType(IntEnum):
    SURPLUS = 0
    SHORTAGE = 1


@dataclass
class Line:
    """배정 안의 품목 한 줄. expected_quantity가 None이면 계획에 없던 품목입니다."""
    line_id: Optional[int]
    item_id: int
    item_name: str = ""
    expected_quantity: Optional[int] = None
    actual_quantity: Optional[int] = None
    position_code: str = ""

    @property
    def is_counted(self) -> bool:
        return self.actual_quantity is not None

    @property
    def is_unplanned(self) -> bool:
        return self.expected_quantity is None

    @property
    def variance(self) -> Optional[int]:
        if self.actual_quantity is None or self.expected_quantity is None:
            return None
        return self.actual_quantity - self.expected_quantity

    @property
    def has_variance(self) -> bool:
        if self.actual_quantity is None:
            return False
        return self.expected_quantity is None or self.actual_quantity != self.expected_quantity

    @property
    def status(self) -> LineStatus:
        if self.actual_quantity is None:
            return LineStatus.NOT_COUNTED
        if self.expected_quantity is None:
            return LineStatus.UNEXPECTED
        if self.actual_quantity == 0:
            return LineStatus.ABSENT
        if self.actual_quantity == self.expected_quantity:
            return LineStatus.MATCH
        if self.actual_quantity > self.expected_quantity:
            return LineStatus.SURPLUS
        return LineStatus.SHORTAGE


@dataclass
class PositionGroup:
    """같은 보관 위치 코드를 공유하는 라인들의 묶음"""
    position_code: str
    lines: List[Line] = field(default_factory=list)
    expanded: bool = False

    @property
    def item_count(self) -> int:
        return len(self.lines)

    @property
    def scanned_count(self) -> int:
        return sum(1 for line in self.lines if line.is_counted)

    @property
    def expected_total_quantity(self) -> int:
        return sum(line.expected_quantity or 0 for line in self.lines)

    @property
    def actual_total_quantity(self) -> int:
        return sum(line.actual_quantity or 0 for line in self.lines)

    def find_line(self, item_id: int) -> Optional[Line]:
        return next((line for line in self.lines if line.item_id == item_id), None)

    def toggle_expanded(self) -> bool:
        self.expanded = not self.expanded
        return self.expanded


ChangeListener = Callable[['Assignment'], None]


@dataclass(eq=False)
class Assignment:
    """재고 실사 배정 한 건.

    라인/그룹이 바뀌면 notify_changed()가 정확히 한 번 호출되어야 합니다.
    version은 알림마다 1씩 증가하므로 구독 대신 폴링하는 쪽도 변경을 감지할 수 있습니다.
    submitting이 True인 동안(완료 요청 전송 중)에는 수량을 바꿀 수 없습니다.
    """
    assignment_id: int
    zone_code: str = ""
    status: AssignmentStatus = AssignmentStatus.ASSIGNED
    initiated_at: Optional[datetime.datetime] = None
    groups: List[PositionGroup] = field(default_factory=list)
    task_id: int = 0
    branch_id: int = 0
    worker_id: int = 0
    completed_at: Optional[datetime.datetime] = None
    version: int = 0
    submitting: bool = False
    _listeners: List[ChangeListener] = field(default_factory=list, repr=False)

    @property
    def is_completed(self) -> bool:
        return self.status == AssignmentStatus.COMPLETED

    def iter_lines(self) -> Iterator[Line]:
        for group in self.groups:
            yield from group.lines

    @property
    def lines(self) -> List[Line]:
        return list(self.iter_lines())

    def find_group(self, position_code: str) -> Optional[PositionGroup]:
        return next((g for g in self.groups if g.position_code == position_code), None)

    def subscribe(self, listener: ChangeListener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify_changed(self):
        self.version += 1
        for listener in list(self._listeners):
            listener(self)


@dataclass(frozen=True)
class ScanEvent:
    """스캔 한 번. 저장되지 않으며 매칭과 중복 억제에만 쓰입니다."""
    position_code: str
    raw_code: str
    timestamp_utc: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc))


@dataclass(frozen=True)
class ScanResult:
    applied: bool
    message: str
    new_line_created: bool = False
    line: Optional[Line] = field(default=None, compare=False)


@dataclass(frozen=True)
class VarianceSnapshot:
    total_items: int = 0
    scanned_count: int = 0
    variance_count: int = 0

    @property
    def has_variances(self) -> bool:
        return self.variance_count > 0

    @property
    def completion_percentage(self) -> float:
        if self.total_items == 0:
            return 0.0
        return self.scanned_count / self.total_items * 100


@dataclass(frozen=True)
class Item:
    """카탈로그 품목 정보"""
    item_id: int
    name: str = ""
    weight: Optional[float] = None
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass(frozen=True)
class WorkerSession:
    """로그인된 작업자 정보. 전역 상태가 아니라 생성자로 전달됩니다."""
    worker_id: int
    access_token: str
    employee_id: int = 0
    display_name: str = ""
    role: str = ""
    token_expires_at: Optional[datetime.datetime] = None

    def is_expired(self, now: Optional[datetime.datetime] = None) -> bool:
        if self.token_expires_at is None:
            return False
        now = now or datetime.datetime.now(datetime.timezone.utc)
        expires_at = self.token_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=datetime.timezone.utc)
        return expires_at <= now


@dataclass(frozen=True)
class CompletionLine:
    line_id: Optional[int]
    item_id: int
    position_code: str
    actual_quantity: int

    def to_dict(self) -> Dict[str, object]:
        return {
            'lineId': self.line_id,
            'itemId': self.item_id,
            'positionCode': self.position_code,
            'actualQuantity': self.actual_quantity,
        }


@dataclass(frozen=True)
class CompletionRequest:
    assignment_id: int
    worker_id: int
    lines: Tuple[CompletionLine, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {
            'assignmentId': self.assignment_id,
            'workerId': self.worker_id,
            'lines': [line.to_dict() for line in self.lines],
        }


@dataclass(frozen=True)
class CompletionStatistics:
    total_positions: int = 0
    counted_positions: int = 0
    completion_percentage: float = 0.0
    discrepancy_count: int = 0
    surplus_count: int = 0
    shortage_count: int = 0
    total_surplus_quantity: int = 0
    total_shortage_quantity: int = 0


@dataclass(frozen=True)
class Discrepancy:
    line_id: Optional[int]
    expected_quantity: int
    actual_quantity: int
    variance: int
    discrepancy_type: DiscrepancyType
    item_position_id: Optional[int] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class CompletionReport:
    """서버가 확인한 실사 완료 결과. 생성 후 변경되지 않습니다."""
    assignment_id: int
    message: str
    statistics: CompletionStatistics
    discrepancies: Tuple[Discrepancy, ...] = ()
    completed_at: Optional[datetime.datetime] = None
    submitted_lines: Tuple[CompletionLine, ...] = ()

    def summary_text(self) -> str:
        stats = self.statistics
        text = (f"전체 위치: {stats.total_positions}\n"
                f"확인 완료: {stats.counted_positions}\n"
                f"진행률: {stats.completion_percentage:.1f}%\n\n"
                f"불일치: {stats.discrepancy_count}\n")
        if stats.discrepancy_count > 0:
            text += (f"  ├ 과잉: {stats.surplus_count} (+{stats.total_surplus_quantity}개)\n"
                     f"  └ 부족: {stats.shortage_count} (-{stats.total_shortage_quantity}개)\n\n")
        return text + self.message
