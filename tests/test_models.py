"""데이터 모델 테스트"""

import unittest
import datetime
import os
import sys

# 상위 디렉토리의 모듈들을 import 하기 위해 경로 추가
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.models import (Assignment, AssignmentStatus, CompletionLine, CompletionReport, CompletionRequest,
                         CompletionStatistics, Line, LineStatus, PositionGroup, VarianceSnapshot, WorkerSession)


class TestLine(unittest.TestCase):
    """Line 상태 계산 테스트"""

    def test_not_counted(self):
        line = Line(line_id=1, item_id=10, expected_quantity=3)
        self.assertFalse(line.is_counted)
        self.assertIsNone(line.variance)
        self.assertFalse(line.has_variance)
        self.assertEqual(line.status, LineStatus.NOT_COUNTED)

    def test_match_surplus_shortage_absent(self):
        """예상 수량과 비교한 상태"""
        self.assertEqual(Line(1, 10, expected_quantity=3, actual_quantity=3).status, LineStatus.MATCH)
        self.assertEqual(Line(1, 10, expected_quantity=3, actual_quantity=5).status, LineStatus.SURPLUS)
        self.assertEqual(Line(1, 10, expected_quantity=3, actual_quantity=1).status, LineStatus.SHORTAGE)
        self.assertEqual(Line(1, 10, expected_quantity=3, actual_quantity=0).status, LineStatus.ABSENT)

    def test_unplanned_line_counts_as_variance(self):
        """계획에 없던 품목은 세면 불일치"""
        line = Line(line_id=None, item_id=99, expected_quantity=None, actual_quantity=1)
        self.assertTrue(line.is_unplanned)
        self.assertTrue(line.has_variance)
        self.assertEqual(line.status, LineStatus.UNEXPECTED)

    def test_variance_value(self):
        line = Line(1, 10, expected_quantity=4, actual_quantity=1)
        self.assertEqual(line.variance, -3)


class TestPositionGroup(unittest.TestCase):
    """PositionGroup 집계 테스트"""

    def setUp(self):
        self.group = PositionGroup("A-01", [
            Line(1, 10, expected_quantity=2, actual_quantity=2, position_code="A-01"),
            Line(2, 20, expected_quantity=3, actual_quantity=None, position_code="A-01"),
        ])

    def test_aggregates(self):
        self.assertEqual(self.group.item_count, 2)
        self.assertEqual(self.group.scanned_count, 1)
        self.assertEqual(self.group.expected_total_quantity, 5)
        self.assertEqual(self.group.actual_total_quantity, 2)

    def test_find_line(self):
        self.assertEqual(self.group.find_line(20).line_id, 2)
        self.assertIsNone(self.group.find_line(30))

    def test_toggle_expanded(self):
        self.assertTrue(self.group.toggle_expanded())
        self.assertFalse(self.group.toggle_expanded())


class TestAssignment(unittest.TestCase):
    """Assignment 변경 신호 테스트"""

    def setUp(self):
        self.assignment = Assignment(assignment_id=7, groups=[
            PositionGroup("A-01", [Line(1, 10, position_code="A-01")]),
            PositionGroup("B-02", [Line(2, 20, position_code="B-02"), Line(3, 30, position_code="B-02")]),
        ])

    def test_lines_in_group_order(self):
        self.assertEqual([line.line_id for line in self.assignment.lines], [1, 2, 3])

    def test_find_group(self):
        self.assertIs(self.assignment.find_group("B-02"), self.assignment.groups[1])
        self.assertIsNone(self.assignment.find_group("Z-99"))

    def test_notify_changed_calls_each_listener_once(self):
        calls = []
        listener = calls.append
        self.assignment.subscribe(listener)
        self.assignment.subscribe(listener)  # 중복 구독은 무시

        self.assignment.notify_changed()

        self.assertEqual(calls, [self.assignment])
        self.assertEqual(self.assignment.version, 1)

    def test_unsubscribe(self):
        calls = []
        self.assignment.subscribe(calls.append)
        self.assignment.unsubscribe(calls.append)
        self.assignment.notify_changed()
        self.assertEqual(calls, [])

    def test_is_completed(self):
        self.assertFalse(self.assignment.is_completed)
        self.assignment.status = AssignmentStatus.COMPLETED
        self.assertTrue(self.assignment.is_completed)


class TestValueObjects(unittest.TestCase):
    """스냅샷, 세션, 완료 요청 테스트"""

    def test_snapshot_percentage(self):
        self.assertEqual(VarianceSnapshot().completion_percentage, 0.0)
        snapshot = VarianceSnapshot(total_items=4, scanned_count=1, variance_count=1)
        self.assertEqual(snapshot.completion_percentage, 25.0)
        self.assertTrue(snapshot.has_variances)

    def test_session_expiry(self):
        now = datetime.datetime(2025, 9, 22, 9, 0, tzinfo=datetime.timezone.utc)
        self.assertFalse(WorkerSession(1, "t").is_expired(now))
        expired = WorkerSession(1, "t", token_expires_at=now - datetime.timedelta(minutes=1))
        self.assertTrue(expired.is_expired(now))

    def test_completion_request_to_dict(self):
        request = CompletionRequest(assignment_id=7, worker_id=3, lines=(
            CompletionLine(line_id=None, item_id=99, position_code="A-01", actual_quantity=1),
        ))
        self.assertEqual(request.to_dict(), {
            'assignmentId': 7,
            'workerId': 3,
            'lines': [{'lineId': None, 'itemId': 99, 'positionCode': "A-01", 'actualQuantity': 1}],
        })

    def test_report_summary_text(self):
        report = CompletionReport(
            assignment_id=7,
            message="완료되었습니다",
            statistics=CompletionStatistics(total_positions=2, counted_positions=2, completion_percentage=100.0,
                                            discrepancy_count=1, surplus_count=1, total_surplus_quantity=2),
        )
        text = report.summary_text()
        self.assertIn("불일치: 1", text)
        self.assertIn("+2개", text)
        self.assertTrue(text.endswith("완료되었습니다"))


if __name__ == '__main__':
    unittest.main()
