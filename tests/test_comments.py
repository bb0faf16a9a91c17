import unittest

from classpulse.core.comments import initials, normalize_comments


class NormalizeCommentsTests(unittest.TestCase):
    def test_empty_forms(self):
        self.assertEqual(normalize_comments("[]"), [])
        self.assertEqual(normalize_comments([]), [])
        self.assertEqual(normalize_comments(None), [])
        self.assertEqual(normalize_comments("   "), [])

    def test_json_string(self):
        comments = normalize_comments('[{"id":"1","text":"hi","user_id":"u1"}]')
        self.assertEqual(comments, [{"id": "1", "text": "hi", "user_id": "u1"}])

    def test_malformed_json(self):
        self.assertEqual(normalize_comments("[{not json"), [])

    def test_non_list_payloads(self):
        self.assertEqual(normalize_comments('{"id": "1"}'), [])
        self.assertEqual(normalize_comments(42), [])

    def test_drops_non_mapping_items(self):
        self.assertEqual(normalize_comments([{"id": "1"}, "stray", 3]), [{"id": "1"}])


class InitialsTests(unittest.TestCase):
    def test_initials(self):
        self.assertEqual(initials("ada lovelace"), "AL")
        self.assertEqual(initials("  Gregor  Mendel "), "GM")

    def test_default(self):
        self.assertEqual(initials(""), "?")
        self.assertEqual(initials("", default="T"), "T")


if __name__ == "__main__":
    unittest.main()
