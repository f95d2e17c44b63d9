"""서버 DTO 변환 테스트"""

import unittest
import datetime
import os
import sys

# 상위 디렉토리의 모듈들을 import 하기 위해 경로 추가
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.mapper import (map_assignment, map_inventory_task, map_inventory_tasks, map_line,
                         parse_datetime, parse_status)
from core.models import AssignmentStatus
from utils.exceptions import ValidationError


def assignment_dto(**overrides):
    data = {
        'id': 7,
        'taskId': 70,
        'branchId': 2,
        'zoneCode': 'Z1',
        'status': 1,
        'initiatedAt': '2025-09-22T08:30:00Z',
        'lines': [
            {'lineId': 3, 'itemId': 30, 'itemName': '볼트', 'expectedQuantity': 1, 'positionCode': 'B-02'},
            {'lineId': 1, 'itemId': 10, 'itemName': '너트', 'expectedQuantity': 2, 'positionCode': 'A-01'},
            {'lineId': 2, 'itemId': 20, 'itemName': '와셔', 'expectedQuantity': 5, 'positionCode': 'A-01'},
        ],
    }
    data.update(overrides)
    return data


class TestParsers(unittest.TestCase):
    """날짜 및 상태 파서 테스트"""

    def test_parse_datetime_z_suffix(self):
        value = parse_datetime('2025-09-22T08:30:00Z')
        self.assertEqual(value, datetime.datetime(2025, 9, 22, 8, 30, tzinfo=datetime.timezone.utc))

    def test_parse_datetime_seven_digit_fraction(self):
        """.NET 형식의 7자리 소수 초는 6자리로 잘라서 읽음"""
        value = parse_datetime('2025-09-22T10:00:00.1234567Z')
        self.assertEqual(value.microsecond, 123456)
        self.assertEqual(value.tzinfo, datetime.timezone.utc)

    def test_parse_datetime_short_fraction(self):
        value = parse_datetime('2025-09-22T10:00:00.12+09:00')
        self.assertEqual(value.microsecond, 120000)
        self.assertEqual(value.utcoffset(), datetime.timedelta(hours=9))

    def test_parse_datetime_empty(self):
        self.assertIsNone(parse_datetime(None))
        self.assertIsNone(parse_datetime(""))

    def test_parse_datetime_invalid(self):
        with self.assertRaises(ValidationError):
            parse_datetime("어제")

    def test_parse_status(self):
        self.assertEqual(parse_status(2), AssignmentStatus.COMPLETED)
        self.assertEqual(parse_status("InProgress"), AssignmentStatus.IN_PROGRESS)
        self.assertEqual(parse_status(None), AssignmentStatus.ASSIGNED)
        with self.assertRaises(ValidationError):
            parse_status(9)
        with self.assertRaises(ValidationError):
            parse_status("Paused")


class TestMapAssignment(unittest.TestCase):
    """배정 변환 테스트"""

    def test_groups_sorted_by_position(self):
        """그룹은 위치 코드 순, 그룹 안은 서버 순서 유지"""
        assignment = map_assignment(assignment_dto(), worker_id=5)

        self.assertEqual([g.position_code for g in assignment.groups], ['A-01', 'B-02'])
        self.assertEqual([line.line_id for line in assignment.groups[0].lines], [1, 2])
        self.assertEqual(assignment.status, AssignmentStatus.IN_PROGRESS)
        self.assertEqual(assignment.branch_id, 2)
        self.assertEqual(assignment.worker_id, 5)

    def test_unscanned_lines_have_no_actual(self):
        assignment = map_assignment(assignment_dto())
        self.assertTrue(all(line.actual_quantity is None for line in assignment.lines))

    def test_items_alias_and_assigned_at(self):
        data = assignment_dto(assignedAt='2025-09-22T08:00:00Z')
        data['items'] = data.pop('lines')
        del data['initiatedAt']
        assignment = map_assignment(data)

        self.assertEqual(len(assignment.lines), 3)
        self.assertEqual(assignment.initiated_at.hour, 8)

    def test_missing_position_code(self):
        with self.assertRaises(ValidationError):
            map_line({'lineId': 1, 'itemId': 10})

    def test_negative_actual_rejected(self):
        with self.assertRaises(ValidationError):
            map_line({'lineId': 1, 'itemId': 10, 'positionCode': 'A', 'actualQuantity': -1})

    def test_missing_id(self):
        data = assignment_dto()
        del data['id']
        with self.assertRaises(ValidationError):
            map_assignment(data)

    def test_no_lines(self):
        assignment = map_assignment(assignment_dto(lines=[]))
        self.assertEqual(assignment.groups, [])


class TestMapInventoryTask(unittest.TestCase):
    """작업 변환 테스트"""

    def test_title_with_zone(self):
        task = map_inventory_task(assignment_dto(), worker_id=5)

        self.assertEqual(task.title, "재고 실사 (구역 Z1)")
        self.assertEqual(task.task_id, 70)
        self.assertEqual(task.assignment_id, 7)
        self.assertEqual(task.priority, 8)
        self.assertEqual(task.assigned_to_worker_id, 5)

    def test_title_without_zone(self):
        task = map_inventory_task(assignment_dto(zoneCode=None, taskId=None), worker_id=5)
        self.assertEqual(task.title, "재고 실사 #7")

    def test_empty_payload(self):
        self.assertEqual(map_inventory_tasks(None, 5), [])
        self.assertEqual(map_inventory_tasks([], 5), [])


if __name__ == '__main__':
    unittest.main()
