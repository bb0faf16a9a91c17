import unittest

from fakes import FakeDataSource, seed_school

from classpulse.core.cache import ShortLivedCache
from classpulse.services.data_source import DataSourceError
from classpulse.services.grade_service import GradeAggregator
from classpulse.services.name_service import NameDirectory
from classpulse.services.resolution import AcademicResolver


def make_aggregator(source):
    resolver = AcademicResolver(source, ShortLivedCache(), retry_delay=0)
    return GradeAggregator(resolver, NameDirectory(source, retry_delay=0))


class GradeAggregatorTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.source = seed_school(FakeDataSource())
        self.aggregator = make_aggregator(self.source)

    async def test_builds_grade_views_latest_first(self):
        outcome = await self.aggregator.aggregate("s1", ["a1"])

        self.assertTrue(outcome.ok)
        self.assertEqual([view.id for view in outcome.records], ["g1", "g2"])

        graded = outcome.records[0]
        self.assertEqual(graded.assignment_title, "Quadratics")
        self.assertEqual(graded.subject, "Math")
        self.assertEqual(graded.grade, 80.0)
        self.assertEqual(graded.max_points, 100)
        self.assertEqual(graded.teacher_name, "Ada Lovelace")
        self.assertEqual(graded.graded_date, "2026-01-11T10:00:00+00:00")
        self.assertEqual(graded.teacher_comment, "Good")
        self.assertEqual(graded.comment_count, 1)

        missing = outcome.records[1]
        self.assertEqual(missing.grade, "--")
        self.assertIsNone(missing.score)
        self.assertEqual(missing.status, "not_submitted")
        self.assertEqual(missing.subject, "Biology")
        self.assertEqual(missing.classroom_color, "#3B82F6")
        self.assertEqual(missing.comment_count, 0)

    async def test_only_latest_grade_per_assignment(self):
        self.source.tables["assignment_grades"].append(
            {
                "id": "g4",
                "assignment_id": "as1",
                "student_id": "s1",
                "score": 10,
                "status": "graded",
                "submitted_date": "2026-01-04T10:00:00+00:00",
                "updated_at": "2026-01-05T10:00:00+00:00",
            }
        )

        outcome = await self.aggregator.aggregate("s1", ["a1"])

        self.assertEqual([view.id for view in outcome.records], ["g1", "g2"])

    async def test_other_students_grades_are_not_visible(self):
        outcome = await self.aggregator.aggregate("s2", ["a1"])

        self.assertEqual([view.id for view in outcome.records], ["g3"])
        self.assertEqual(outcome.records[0].grade, 55.0)

    async def test_unavailable_grades_are_an_error(self):
        self.source.failing_tables["assignment_grades"] = DataSourceError("permission denied")

        outcome = await self.aggregator.aggregate("s1", ["a1"])

        self.assertEqual(outcome.records, [])
        self.assertEqual(outcome.error.step, "grades")

    async def test_sessions_failure_short_circuits(self):
        self.source.failing_tables["classroom_sessions"] = DataSourceError("permission denied")

        outcome = await self.aggregator.aggregate("s1", ["a1"])

        self.assertEqual(outcome.records, [])
        self.assertEqual(outcome.error.step, "sessions")
        self.assertEqual(self.source.table_calls("assignments"), [])
        self.assertEqual(self.source.table_calls("assignment_grades"), [])

    async def test_no_grades_is_empty_not_failed(self):
        self.source.tables["assignment_grades"] = []

        outcome = await self.aggregator.aggregate("s1", ["a1"])

        self.assertEqual(outcome.records, [])
        self.assertTrue(outcome.ok)


if __name__ == "__main__":
    unittest.main()
