"""작업 카드 변환 테스트"""

import unittest
import os
import sys

# 상위 디렉토리의 모듈들을 import 하기 위해 경로 추가
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.models import Assignment, AssignmentStatus, Line, PositionGroup
from core.tasks import InventoryTask, OtherTask, priority_for_status, to_card, to_cards


class TestTaskCards(unittest.TestCase):
    """작업 종류별 카드 변환"""

    def make_inventory_task(self, groups=None, zone_code="Z1"):
        assignment = Assignment(assignment_id=7, zone_code=zone_code, status=AssignmentStatus.IN_PROGRESS,
                                groups=groups or [])
        return InventoryTask(task_id=70, assignment=assignment, title="재고 실사 (구역 Z1)", description="설명")

    def test_inventory_card(self):
        task = self.make_inventory_task([
            PositionGroup("A-01", [
                Line(1, 10, expected_quantity=2, actual_quantity=2),
                Line(2, 20, expected_quantity=5, actual_quantity=3),
                Line(3, 30, expected_quantity=1),
            ]),
        ])
        card = to_card(task)

        self.assertEqual(card.kind, "Inventory")
        self.assertEqual(card.navigation_id, 7)
        self.assertEqual(card.task_id, 70)
        self.assertEqual(card.primary_metric, "2/3 위치")
        self.assertIn(("불일치", "1"), card.badges)
        self.assertIn(("구역", "Z1"), card.badges)
        self.assertEqual(card.status_text, "IN_PROGRESS")

    def test_inventory_card_without_lines(self):
        card = to_card(self.make_inventory_task(zone_code=""))
        self.assertEqual(card.primary_metric, "위치 없음")
        self.assertIn(("구역", "—"), card.badges)

    def test_card_reflects_live_counts(self):
        """카드는 만들 때마다 현재 수량을 다시 읽음"""
        line = Line(1, 10, expected_quantity=2)
        task = self.make_inventory_task([PositionGroup("A-01", [line])])
        self.assertEqual(to_card(task).primary_metric, "0/1 위치")

        line.actual_quantity = 2
        self.assertEqual(to_card(task).primary_metric, "1/1 위치")

    def test_generic_card(self):
        task = OtherTask(task_id=9, kind="Receiving", title="입고", status="New", priority=4)
        card = to_card(task)

        self.assertEqual(card.navigation_id, 9)
        self.assertEqual(card.primary_metric, "우선순위: 4")
        self.assertEqual(card.badges, (("유형", "Receiving"), ("상태", "New")))

    def test_none_task(self):
        with self.assertRaises(ValueError):
            to_card(None)

    def test_mixed_list(self):
        cards = to_cards([self.make_inventory_task(), OtherTask(task_id=9, kind="Move")])
        self.assertEqual([c.kind for c in cards], ["Inventory", "Move"])

    def test_priority_for_status(self):
        self.assertEqual(priority_for_status(AssignmentStatus.IN_PROGRESS), 8)
        self.assertEqual(priority_for_status(AssignmentStatus.CANCELLED), 1)


if __name__ == '__main__':
    unittest.main()
