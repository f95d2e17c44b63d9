"""불일치 통계 계산 모듈"""

from typing import Callable, Iterable, List

from .models import Assignment, Line, PositionGroup, VarianceSnapshot


def calculate_variance(lines: Iterable[Line]) -> VarianceSnapshot:
    """현재 라인 상태로부터 통계를 계산합니다. 부수 효과가 없는 순수 함수입니다."""
    total_items = 0
    scanned_count = 0
    variance_count = 0
    for line in lines:
        total_items += 1
        if line.actual_quantity is None:
            continue
        scanned_count += 1
        if line.expected_quantity is None or line.actual_quantity != line.expected_quantity:
            variance_count += 1
    return VarianceSnapshot(total_items=total_items,
                            scanned_count=scanned_count,
                            variance_count=variance_count)


def snapshot_for_assignment(assignment: Assignment) -> VarianceSnapshot:
    return calculate_variance(assignment.iter_lines())


def snapshot_for_group(group: PositionGroup) -> VarianceSnapshot:
    return calculate_variance(group.lines)


SnapshotListener = Callable[[VarianceSnapshot], None]


class VarianceTracker:
    """배정의 변경 신호를 구독하여 변경마다 통계를 다시 계산합니다."""

    def __init__(self, assignment: Assignment):
        self.assignment = assignment
        self._listeners: List[SnapshotListener] = []
        self.recompute_count = 0
        assignment.subscribe(self._on_changed)

    @property
    def snapshot(self) -> VarianceSnapshot:
        """항상 현재 라인에서 새로 계산합니다. 변경 사이에 값을 캐시하지 않습니다."""
        return snapshot_for_assignment(self.assignment)

    def add_listener(self, listener: SnapshotListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _on_changed(self, assignment: Assignment):
        snapshot = snapshot_for_assignment(assignment)
        self.recompute_count += 1
        for listener in list(self._listeners):
            listener(snapshot)

    def close(self):
        self.assignment.unsubscribe(self._on_changed)
        self._listeners.clear()
