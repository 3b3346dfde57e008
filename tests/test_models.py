"""Tests for payload parsing in the shared data types."""

import unittest
from datetime import date, datetime, timedelta, timezone

from wt.core.models import (ActiveSession, AttendanceDay, PendingTimeEntry, Project, ReportTask,
                            TimeEntryEvent, TimeEntryEventType, User)
from wt.util import extract_ref, format_hms, format_short, parse_server_time


class TestHelpers(unittest.TestCase):

    def test_parse_server_time_utc(self):
        parsed = parse_server_time("2026-03-02T09:00:00Z")
        self.assertIsNotNone(parsed.tzinfo)
        self.assertEqual(parsed, datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))

    def test_parse_server_time_rejects_garbage(self):
        for value in (None, "", "   ", "yesterday", 12345):
            self.assertIsNone(parse_server_time(value))

    def test_extract_ref_shapes(self):
        self.assertEqual(extract_ref({"_id": "p1", "name": "Alpha"}), ("p1", "Alpha"))
        self.assertEqual(extract_ref({"id": 7}), ("7", ""))
        self.assertEqual(extract_ref("p2"), ("p2", ""))
        self.assertEqual(extract_ref(None), (None, ""))

    def test_format_hms(self):
        self.assertEqual(format_hms(0), "00:00:00")
        self.assertEqual(format_hms(timedelta(hours=1, minutes=2, seconds=3)), "01:02:03")
        self.assertEqual(format_hms(-5), "00:00:00")

    def test_format_short(self):
        self.assertEqual(format_short(30), "< 1m")
        self.assertEqual(format_short(45 * 60), "45m")
        self.assertEqual(format_short(2 * 3600), "2h")
        self.assertEqual(format_short(2 * 3600 + 30 * 60), "2h 30m")


class TestUser(unittest.TestCase):

    def test_from_login_response(self):
        user = User.from_login_response({
            "success": True,
            "accessToken": "acc",
            "refreshToken": "ref",
            "user": {"id": 42, "email": "jane.doe@example.com", "role": "engineer", "permissions": ["x"]},
        })
        self.assertEqual(user.id, "42")
        self.assertEqual(user.name, "jane.doe")
        self.assertEqual(user.token, "acc")
        self.assertEqual(user.refresh_token, "ref")
        self.assertEqual(user.permissions, ["x"])
        self.assertIsNotNone(user.last_login_at)

    def test_json_round_trip_keeps_tokens(self):
        user = User(id="u1", email="a@example.com", name="a", token="t", refresh_token="r", role="admin")
        restored = User.from_json(user.to_json())
        self.assertEqual(restored.token, "t")
        self.assertEqual(restored.refresh_token, "r")
        self.assertEqual(restored.role, "admin")

    def test_with_tokens_keeps_refresh_token_when_not_rotated(self):
        user = User(id="u1", email="a@example.com", name="a", token="old", refresh_token="r")
        updated = user.with_tokens("new")
        self.assertEqual(updated.token, "new")
        self.assertEqual(updated.refresh_token, "r")
        self.assertEqual(user.token, "old")


class TestProject(unittest.TestCase):

    def test_from_json(self):
        project = Project.from_json({"_id": "p1", "name": "Alpha", "status": "completed", "totalSeconds": 90})
        self.assertEqual(project.id, "p1")
        self.assertEqual(project.status, "completed")
        self.assertEqual(project.total_seconds, 90)

    def test_missing_fields_default(self):
        project = Project.from_json({"id": "p2"})
        self.assertEqual(project.name, "")
        self.assertEqual(project.status, "active")
        self.assertEqual(project.total_seconds, 0)


class TestTimeEntryEvent(unittest.TestCase):

    def test_started_payload(self):
        event = TimeEntryEvent.from_started_payload({
            "_id": "e1", "user": "u1", "project": {"_id": "p1", "name": "Alpha"},
            "startedAt": "2026-03-02T09:00:00Z", "source": "mobile", "openStatus": True,
        })
        self.assertEqual(event.type, TimeEntryEventType.STARTED)
        self.assertEqual(event.project_id, "p1")
        self.assertEqual(event.project_name, "Alpha")
        self.assertEqual(event.source, "mobile")
        self.assertTrue(event.open_status)
        self.assertIsNone(event.ended_at)
        self.assertIsNone(event.duration)

    def test_ended_payload(self):
        event = TimeEntryEvent.from_ended_payload({
            "_id": "e1", "project": "p1", "startedAt": "2026-03-02T09:00:00Z",
            "endedAt": "2026-03-02T10:00:00Z", "duration": 3600,
        })
        self.assertEqual(event.type, TimeEntryEventType.ENDED)
        self.assertEqual(event.duration, 3600)
        self.assertEqual(event.ended_at, datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc))

    def test_boolean_duration_is_ignored(self):
        event = TimeEntryEvent.from_ended_payload({"_id": "e1", "project": "p1", "duration": True})
        self.assertIsNone(event.duration)

    def test_float_duration_is_truncated_to_seconds(self):
        event = TimeEntryEvent.from_ended_payload({"_id": "e1", "project": "p1", "duration": 120.0})
        self.assertEqual(event.duration, 120)
        self.assertIsInstance(event.duration, int)


class TestActiveSession(unittest.TestCase):

    def test_elapsed_never_negative(self):
        now = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
        session = ActiveSession(id="e1", project_id="p1", project_name="Alpha", started_at=now + timedelta(seconds=5))
        self.assertEqual(session.elapsed(now), timedelta(0))

    def test_elapsed(self):
        now = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
        session = ActiveSession(id="e1", project_id="p1", project_name="Alpha", started_at=now - timedelta(hours=2))
        self.assertEqual(session.elapsed(now), timedelta(hours=2))


class TestAttendanceDay(unittest.TestCase):

    def test_check_in_and_out(self):
        day = AttendanceDay.from_json({
            "_id": "a1", "user": "u1", "day": "2026-03-02T00:00:00Z",
            "intervals": ["2026-03-02T08:00:00Z", "bad", "2026-03-02T17:00:00Z"],
            "totalSeconds": 32400,
        })
        self.assertTrue(day.has_checked_in)
        self.assertTrue(day.has_checked_out)
        self.assertEqual(len(day.intervals), 2)
        self.assertEqual(day.formatted_total, "9h 0m")

    def test_only_checked_in(self):
        day = AttendanceDay.from_json({"day": "2026-03-02", "intervals": ["2026-03-02T08:00:00Z"]})
        self.assertTrue(day.has_checked_in)
        self.assertFalse(day.has_checked_out)
        self.assertIsNone(day.check_out_time)
        self.assertEqual(day.formatted_total, "0m")

    def test_format_clock_placeholder(self):
        self.assertEqual(AttendanceDay.format_clock(None), "--")


class TestReportTask(unittest.TestCase):

    def test_nested_task_payload(self):
        task = ReportTask.from_json({
            "reportId": "r1",
            "task": {"_id": "t1", "title": "Site survey", "description": "North wing",
                     "project": {"_id": "p1"}, "images": [{"url": "http://x/1.png"}, "http://x/2.png", 5]},
        })
        self.assertEqual(task.id, "t1")
        self.assertEqual(task.task_name, "Site survey")
        self.assertEqual(task.task_description, "North wing")
        self.assertEqual(task.project_id, "p1")
        self.assertEqual(task.report_id, "r1")
        self.assertEqual(task.attachments, ["http://x/1.png", "http://x/2.png"])

    def test_equality_by_id(self):
        a = ReportTask.from_json({"_id": "t1", "taskName": "A"})
        b = ReportTask.from_json({"_id": "t1", "taskName": "B"})
        self.assertEqual(a, b)
        self.assertEqual(len({a, b}), 1)


class TestPendingTimeEntry(unittest.TestCase):

    def test_from_json(self):
        entry = PendingTimeEntry.from_json({
            "_id": "e1", "project": {"_id": "p1", "name": "Alpha", "projectImage": "img.png"},
            "startedAt": "2026-03-01T09:00:00Z", "endedAt": "2026-03-01T11:00:00Z",
            "date": "2026-03-01T12:00:00Z", "duration": 7200,
            "entryIds": ["e1", {"_id": "e2"}],
        })
        self.assertEqual(entry.project_name, "Alpha")
        self.assertEqual(entry.project_image, "img.png")
        self.assertEqual(entry.all_entry_ids, ["e1", "e2"])
        self.assertEqual(entry.formatted_duration, "2h")
        self.assertFalse(entry.task_submitted)
        self.assertIsInstance(entry.date, date)

    def test_single_entry_ids_fall_back_to_own_id(self):
        entry = PendingTimeEntry.from_json({"_id": "e5", "project": "p1", "taskSubmitted": True})
        self.assertEqual(entry.all_entry_ids, ["e5"])
        self.assertEqual(entry.project_name, "Unknown Project")
        self.assertTrue(entry.task_submitted)
        self.assertIn("In Progress", entry.formatted_time_range)


if __name__ == "__main__":
    unittest.main()
