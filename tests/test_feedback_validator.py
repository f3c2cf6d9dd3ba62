import unittest

from codeguardian.feedback_validator import FeedbackValidator, KeywordRelevanceScorer
from codeguardian.hunk_mapper import build_validation_index
from codeguardian.models import RejectionReason

from diff_samples import APP_AND_README_DIFF


class FixedScorer:
    def __init__(self, value):
        self.value = value
        self.calls = []

    def score(self, code, comment):
        self.calls.append((code, comment))
        return self.value


class TestFeedbackValidator(unittest.TestCase):
    def setUp(self):
        self.index = build_validation_index(APP_AND_README_DIFF)
        self.validator = FeedbackValidator(self.index)

    def test_line_in_diff_is_accepted(self):
        raw = {"file": "app.py", "line": 11, "comment": "load_user may return None"}
        outcome = self.validator.validate(raw)

        self.assertTrue(outcome.accepted)
        self.assertEqual(outcome.item.file, "app.py")
        self.assertEqual(outcome.item.line, 11)
        self.assertEqual(outcome.item.comment, "load_user may return None")
        self.assertTrue(outcome.item.diff_hunk.startswith("@@ -10,3 +10,4 @@"))
        self.assertIn("+    user = load_user(request)", outcome.item.diff_hunk)

    def test_line_outside_diff_is_rejected(self):
        outcome = self.validator.validate({"file": "app.py", "line": 9, "comment": "Consider renaming"})

        self.assertFalse(outcome.accepted)
        self.assertEqual(outcome.reason, RejectionReason.LINE_NOT_IN_DIFF)
        self.assertEqual(outcome.detail, "Line 9 in app.py is not part of the diff")
        self.assertEqual(outcome.file, "app.py")
        self.assertEqual(outcome.line, 9)

    def test_line_after_hunk_is_rejected(self):
        outcome = self.validator.validate({"file": "app.py", "line": 13, "comment": "x"})
        self.assertEqual(outcome.reason, RejectionReason.LINE_NOT_IN_DIFF)

    def test_file_outside_diff_is_rejected(self):
        outcome = self.validator.validate({"file": "other.py", "line": 1, "comment": "Typo"})

        self.assertFalse(outcome.accepted)
        self.assertEqual(outcome.reason, RejectionReason.FILE_NOT_IN_DIFF)
        self.assertEqual(outcome.detail, "File other.py does not exist in the diff")

    def test_malformed_items(self):
        malformed = [
            "not an object",
            None,
            ["app.py", 11, "comment"],
            {"line": 11, "comment": "no file"},
            {"file": "", "line": 11, "comment": "empty file"},
            {"file": "app.py", "comment": "no line"},
            {"file": "app.py", "line": "eleven", "comment": "bad line"},
            {"file": "app.py", "line": True, "comment": "bool line"},
            {"file": "app.py", "line": 11.5, "comment": "fractional line"},
            {"file": "app.py", "line": 11},
            {"file": "app.py", "line": 11, "comment": "   "},
        ]
        for raw in malformed:
            outcome = self.validator.validate(raw)
            self.assertFalse(outcome.accepted, raw)
            self.assertEqual(outcome.reason, RejectionReason.MALFORMED, raw)
            self.assertIs(outcome.raw, raw)

    def test_numeric_line_forms(self):
        for line in (11, "11", " 12 ", 10.0):
            outcome = self.validator.validate({"file": "app.py", "line": line, "comment": "ok"})
            self.assertTrue(outcome.accepted, line)
            self.assertIsInstance(outcome.item.line, int)

    def test_validate_all_keeps_order(self):
        raw_items = [
            {"file": "README.md", "line": 2, "comment": "Expand the docs"},
            {"file": "app.py", "line": 9, "comment": "Out of range"},
            {"file": "app.py", "line": 12, "comment": "render could fail"},
            "garbage",
        ]
        report = self.validator.validate_all(raw_items)

        self.assertEqual([(item.file, item.line) for item in report.accepted], [("README.md", 2), ("app.py", 12)])
        self.assertEqual([o.reason for o in report.rejected],
                         [RejectionReason.LINE_NOT_IN_DIFF, RejectionReason.MALFORMED])

    def test_empty_index_rejects_everything(self):
        validator = FeedbackValidator(build_validation_index(""))
        outcome = validator.validate({"file": "app.py", "line": 11, "comment": "x"})
        self.assertEqual(outcome.reason, RejectionReason.FILE_NOT_IN_DIFF)


class TestRelevanceScoring(unittest.TestCase):
    def setUp(self):
        self.index = build_validation_index(APP_AND_README_DIFF)

    def test_low_score_is_rejected(self):
        validator = FeedbackValidator(self.index, scorer=FixedScorer(0.1), min_score=0.5)
        outcome = validator.validate({"file": "app.py", "line": 11, "comment": "Nice"})

        self.assertFalse(outcome.accepted)
        self.assertEqual(outcome.reason, RejectionReason.LOW_RELEVANCE)

    def test_scorer_sees_surrounding_code(self):
        scorer = FixedScorer(1.0)
        validator = FeedbackValidator(self.index, scorer=scorer, min_score=0.5)
        outcome = validator.validate({"file": "app.py", "line": 11, "comment": "Nice"})

        self.assertTrue(outcome.accepted)
        code, comment = scorer.calls[0]
        self.assertEqual(code.splitlines(),
                         ["def handler(request):", "    user = load_user(request)", "    return render(user)"])
        self.assertEqual(comment, "Nice")

    def test_scorer_not_called_for_invalid_lines(self):
        scorer = FixedScorer(1.0)
        validator = FeedbackValidator(self.index, scorer=scorer)
        validator.validate({"file": "app.py", "line": 9, "comment": "x"})
        self.assertEqual(scorer.calls, [])

    def test_keyword_scorer_with_validator(self):
        validator = FeedbackValidator(self.index, scorer=KeywordRelevanceScorer(), min_score=0.5)

        relevant = validator.validate({"file": "app.py", "line": 11,
                                       "comment": "load_user can return None here; guard before render."})
        generic = validator.validate({"file": "app.py", "line": 11, "comment": "Consider adding more tests."})

        self.assertTrue(relevant.accepted)
        self.assertFalse(generic.accepted)
        self.assertEqual(generic.reason, RejectionReason.LOW_RELEVANCE)


class TestKeywordRelevanceScorer(unittest.TestCase):
    def setUp(self):
        self.scorer = KeywordRelevanceScorer()

    def test_identifier_mentions(self):
        code = "    user = load_user(request)"
        self.assertGreaterEqual(self.scorer.score(code, "Check that load_user handles a missing request"), 2.0)
        self.assertEqual(self.scorer.score(code, "Looks fine to me"), 0.0)

    def test_common_words_do_not_count(self):
        self.assertEqual(self.scorer.score("return self", "Why return self here?"), 0.0)

    def test_string_literal(self):
        code = 'logger.info("Saving record")'
        self.assertGreaterEqual(self.scorer.score(code, 'The message "saving record" is misleading'),
                                0.5)

    def test_keyword_pair(self):
        code = "    for item in items:"
        score = self.scorer.score(code, "This loop could be a comprehension")
        self.assertEqual(score, 0.25)

    def test_empty_inputs(self):
        self.assertEqual(self.scorer.score("", "comment"), 0.0)
        self.assertEqual(self.scorer.score("x = 1", ""), 0.0)


if __name__ == '__main__':
    unittest.main()
