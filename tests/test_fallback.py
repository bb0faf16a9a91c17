import unittest

from classpulse.core.fallback import resolve, try_in_order
from classpulse.services.data_source import DataSourceError


class FallbackTests(unittest.IsolatedAsyncioTestCase):
    async def test_empty_primary_returns_exactly_the_fallback_rows(self):
        rows = [{"id": 1}, {"id": 2}, {"id": 3}]

        async def primary():
            return []

        async def fallback():
            return rows

        resolution = await resolve(primary, fallback, step="sessions")

        self.assertEqual(resolution.records, rows)
        self.assertEqual(resolution.strategy, "fallback")
        self.assertFalse(resolution.failed)

    async def test_failing_primary_falls_through(self):
        async def primary():
            raise DataSourceError("function not found", code=404)

        async def fallback():
            return ["row"]

        resolution = await resolve(primary, fallback, step="enrollments")

        self.assertEqual(resolution.records, ["row"])
        self.assertEqual(len(resolution.errors), 1)
        self.assertFalse(resolution.failed)

    async def test_primary_result_short_circuits(self):
        calls = []

        async def primary():
            calls.append("primary")
            return ["a"]

        async def fallback():
            calls.append("fallback")
            return ["b"]

        resolution = await resolve(primary, fallback, step="assignments")

        self.assertEqual(resolution.records, ["a"])
        self.assertEqual(calls, ["primary"])

    async def test_every_strategy_failing_is_empty_and_failed(self):
        async def primary():
            raise DataSourceError("down")

        async def fallback():
            raise DataSourceError("also down")

        resolution = await try_in_order([primary, fallback], step="sessions")

        self.assertEqual(resolution.records, [])
        self.assertIsNone(resolution.strategy)
        self.assertTrue(resolution.failed)

    async def test_every_strategy_empty_is_not_a_failure(self):
        async def nothing():
            return None

        resolution = await try_in_order([nothing, nothing], step="sessions")

        self.assertEqual(resolution.records, [])
        self.assertFalse(resolution.failed)

    async def test_fallback_answering_empty_after_error_is_not_a_failure(self):
        async def primary():
            raise DataSourceError("function not found", code=404)

        async def fallback():
            return []

        resolution = await resolve(primary, fallback, step="enrollments")

        self.assertEqual(resolution.records, [])
        self.assertFalse(resolution.failed)

    async def test_empty_primary_then_failing_fallback_is_a_failure(self):
        async def primary():
            return []

        async def fallback():
            raise DataSourceError("permission denied")

        resolution = await resolve(primary, fallback, step="enrollments")

        self.assertEqual(resolution.records, [])
        self.assertTrue(resolution.failed)

    async def test_unexpected_exceptions_propagate(self):
        async def broken():
            raise KeyError("id")

        with self.assertRaises(KeyError):
            await try_in_order([broken], step="sessions")


if __name__ == "__main__":
    unittest.main()
