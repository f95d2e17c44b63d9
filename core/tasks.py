"""작업 종류(태그 유니언)와 목록 화면용 카드 변환"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union
import datetime

from .models import Assignment, AssignmentStatus
from .variance import snapshot_for_assignment


INVENTORY = "Inventory"


@dataclass
class InventoryTask:
    """재고 실사 작업. 실제 라인 데이터는 assignment에 있습니다."""
    task_id: int
    assignment: Assignment
    title: str = ""
    description: str = ""
    priority: int = 5
    created_at: Optional[datetime.datetime] = None
    assigned_to_worker_id: int = 0
    kind: str = field(default=INVENTORY, init=False)

    @property
    def assignment_id(self) -> int:
        return self.assignment.assignment_id

    @property
    def status(self) -> AssignmentStatus:
        return self.assignment.status


@dataclass
class OtherTask:
    """아직 전용 화면이 없는 작업 종류 (입고, 이동, 출고 등)"""
    task_id: int
    kind: str
    title: str = ""
    description: str = ""
    status: str = "New"
    priority: int = 5
    created_at: Optional[datetime.datetime] = None
    assigned_to_worker_id: int = 0


Task = Union[InventoryTask, OtherTask]


@dataclass(frozen=True)
class TaskCard:
    """작업 목록에 표시할 카드"""
    task_id: int
    navigation_id: int
    kind: str
    title: str
    subtitle: str
    status_text: str
    primary_metric: str
    created_at: Optional[datetime.datetime]
    badges: Tuple[Tuple[str, str], ...] = ()


STATUS_PRIORITY = {
    AssignmentStatus.IN_PROGRESS: 8,
    AssignmentStatus.ASSIGNED: 6,
    AssignmentStatus.COMPLETED: 3,
    AssignmentStatus.CANCELLED: 1,
}


def priority_for_status(status: AssignmentStatus) -> int:
    return STATUS_PRIORITY.get(status, 5)


def to_card(task: Task) -> TaskCard:
    """작업 종류에 따라 카드로 변환합니다."""
    if task is None:
        raise ValueError("task는 None일 수 없습니다.")
    if isinstance(task, InventoryTask):
        return _inventory_card(task)
    return _generic_card(task)


def to_cards(tasks: List[Task]) -> List[TaskCard]:
    return [to_card(task) for task in tasks]


def _inventory_card(task: InventoryTask) -> TaskCard:
    snapshot = snapshot_for_assignment(task.assignment)
    if snapshot.total_items > 0:
        primary_metric = f"{snapshot.scanned_count}/{snapshot.total_items} 위치"
    else:
        primary_metric = "위치 없음"

    badges = (
        ("구역", task.assignment.zone_code or "—"),
        ("배정 상태", task.status.name),
        ("불일치", str(snapshot.variance_count)),
    )
    return TaskCard(
        task_id=task.task_id,
        navigation_id=task.assignment_id,
        kind=task.kind,
        title=task.title,
        subtitle=task.description,
        status_text=task.status.name,
        primary_metric=primary_metric,
        created_at=task.created_at,
        badges=badges,
    )


def _generic_card(task: OtherTask) -> TaskCard:
    return TaskCard(
        task_id=task.task_id,
        navigation_id=task.task_id,
        kind=task.kind,
        title=task.title,
        subtitle=task.description,
        status_text=task.status,
        primary_metric=f"우선순위: {task.priority}",
        created_at=task.created_at,
        badges=(("유형", task.kind), ("상태", task.status)),
    )
