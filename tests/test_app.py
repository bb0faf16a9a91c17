import unittest

from fastapi.testclient import TestClient
from fakes import FakeDataSource, seed_school

from classpulse.app import create_app
from classpulse.services.data_source import DataSourceError

ACADEMY = {"academy_id": "a1"}
USER = {"x-user-id": "guardian-1"}


class ApiTests(unittest.TestCase):
    def setUp(self):
        self.source = seed_school(FakeDataSource())
        self.app = create_app(data_source=self.source)
        self.client = TestClient(self.app)

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_student_routes_require_user(self):
        for path in (
            "/students/s1/assignments",
            "/students/s1/grades",
            "/students/s1/grades/chart",
            "/students/s1/classrooms",
            "/students/s1/overview",
        ):
            response = self.client.get(path, params=ACADEMY)
            self.assertEqual(response.status_code, 401, path)
        self.assertEqual(self.source.calls, [])

    def test_assignments(self):
        response = self.client.get("/students/s1/assignments", params=ACADEMY, headers=USER)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["ok"])
        self.assertIsNone(body["error"])
        self.assertEqual({item["id"] for item in body["items"]}, {"as1", "as2", "as3"})

    def test_failed_step_still_answers_200(self):
        self.source.failing_tables["classroom_students"] = DataSourceError("permission denied")

        response = self.client.get("/students/s1/grades", params=ACADEMY, headers=USER)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["items"], [])
        self.assertFalse(body["ok"])
        self.assertEqual(body["error"]["step"], "enrollments")

    def test_grade_chart(self):
        response = self.client.get("/students/s1/grades/chart", params={**ACADEMY, "period": "All"}, headers=USER)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["period"], "All")
        self.assertEqual(body["points"][0]["average"], 80)
        # The not_submitted grade has no submission date, so only one grade is charted.
        self.assertEqual(body["overall_average"], 80)

    def test_invalid_period(self):
        response = self.client.get("/students/s1/grades/chart", params={**ACADEMY, "period": "2W"}, headers=USER)
        self.assertEqual(response.status_code, 422)

    def test_classrooms(self):
        response = self.client.get("/students/s1/classrooms", params=ACADEMY, headers=USER)
        self.assertEqual([item["classroom_id"] for item in response.json()["items"]], ["c1", "c2"])

    def test_overview(self):
        body = self.client.get("/students/s1/overview", params=ACADEMY, headers=USER).json()

        self.assertEqual(len(body["assignments"]["items"]), 3)
        self.assertEqual(len(body["grades"]["items"]), 2)

    def test_switching_student_clears_grade_cache(self):
        self.client.get("/students/s1/grades", params=ACADEMY, headers=USER)
        pipeline = self.app.state.app_state.pipeline
        self.assertEqual(len(pipeline.cache), 1)

        self.client.get("/students/s2/grades", params=ACADEMY, headers=USER)

        # Only the entry for the newly selected student remains.
        self.assertEqual(len(pipeline.cache), 1)
        self.assertEqual(self.app.state.app_state.session.subject_id, "s2")

    def test_add_comment_requires_user(self):
        response = self.client.post("/assignments/as1/comments", json={"content": "hi"})
        self.assertEqual(response.status_code, 401)

    def test_add_comment(self):
        response = self.client.post(
            "/assignments/as1/comments", json={"content": "hi"}, headers={"x-user-id": "t1"}
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["author_name"], "Ada Lovelace")

    def test_blank_comment(self):
        response = self.client.post(
            "/assignments/as1/comments", json={"content": "  "}, headers={"x-user-id": "t1"}
        )
        self.assertEqual(response.status_code, 400)

    def test_add_comment_insert_failure(self):
        self.source.insert_error = DataSourceError("permission denied", code=401)

        response = self.client.post(
            "/assignments/as1/comments", json={"content": "hi"}, headers={"x-user-id": "t1"}
        )

        self.assertEqual(response.status_code, 502)

    def test_clear_cache(self):
        self.client.get("/students/s1/grades", params=ACADEMY, headers=USER)
        response = self.client.post("/cache/clear")

        self.assertEqual(response.json(), {"status": "cleared"})
        self.assertEqual(len(self.app.state.app_state.pipeline.cache), 0)


if __name__ == "__main__":
    unittest.main()
