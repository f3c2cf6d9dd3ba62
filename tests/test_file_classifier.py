import unittest

from codeguardian.diff_splitter import split_diff
from codeguardian.file_classifier import chunk_file_diff, classify, split_into_sub_chunks
from codeguardian.models import FileDiff
from codeguardian.plugin_config import ChunkingConfig

from diff_samples import SEPARATOR_CHARS_DIFF, file_segment


def make_file_diff(path, n_lines, width=40):
    return split_diff(file_segment(path, n_lines, width))[0]


class TestClassify(unittest.TestCase):
    def setUp(self):
        self.config = ChunkingConfig()

    def test_small_file_is_never_split(self):
        file_diff = make_file_diff("src/app.py", 50)
        decision = classify(file_diff, self.config)

        self.assertFalse(decision.needs_split)
        self.assertIn("small", decision.reason)

    def test_dense_file(self):
        within = make_file_diff("fixtures/data.json", 500)
        self.assertGreater(within.byte_size, self.config.small_file_max_bytes)
        self.assertFalse(classify(within, self.config).needs_split)

        too_big = make_file_diff("fixtures/data.json", 1000)
        decision = classify(too_big, self.config)
        self.assertTrue(decision.needs_split)
        self.assertEqual(decision.chunk_size, self.config.dense_chunk_lines)

    def test_source_file_split_on_lines(self):
        file_diff = make_file_diff("src/big.py", 450)
        self.assertLess(file_diff.byte_size, self.config.source_max_bytes)

        decision = classify(file_diff, self.config)
        self.assertTrue(decision.needs_split)
        self.assertEqual(decision.chunk_size, self.config.source_chunk_lines)

    def test_source_file_split_on_bytes(self):
        file_diff = make_file_diff("src/Wide.java", 300, width=80)
        self.assertLess(file_diff.line_count, self.config.source_max_lines)
        self.assertTrue(classify(file_diff, self.config).needs_split)

    def test_source_file_within_limits(self):
        file_diff = make_file_diff("cmd/main.go", 380, width=45)
        self.assertGreater(file_diff.byte_size, self.config.small_file_max_bytes)
        self.assertFalse(classify(file_diff, self.config).needs_split)

    def test_source_file_by_name(self):
        decision = classify(make_file_diff("docker/Dockerfile", 450), self.config)
        self.assertTrue(decision.needs_split)
        self.assertEqual(decision.chunk_size, self.config.source_chunk_lines)

    def test_prose_file_ignores_line_count(self):
        file_diff = make_file_diff("docs/guide.md", 500)
        self.assertGreater(file_diff.line_count, self.config.source_max_lines)
        self.assertFalse(classify(file_diff, self.config).needs_split)

        decision = classify(make_file_diff("docs/guide.md", 700), self.config)
        self.assertTrue(decision.needs_split)
        self.assertEqual(decision.chunk_size, self.config.prose_chunk_lines)

    def test_fallback(self):
        decision = classify(make_file_diff("assets/table.dat", 350, width=50), self.config)
        self.assertTrue(decision.needs_split)
        self.assertEqual(decision.chunk_size, self.config.default_chunk_lines)

        self.assertFalse(classify(make_file_diff("assets/table.dat", 250, width=70), self.config).needs_split)

    def test_unknown_path_uses_fallback(self):
        big = make_file_diff("src/big.py", 450)
        decision = classify(FileDiff(path=None, text=big.text), self.config)

        self.assertTrue(decision.needs_split)
        self.assertEqual(decision.chunk_size, self.config.default_chunk_lines)

    def test_thresholds_come_from_config(self):
        config = ChunkingConfig(small_file_max_bytes=100, source_max_lines=10)
        decision = classify(make_file_diff("src/app.py", 20), config)
        self.assertTrue(decision.needs_split)


class TestSplitIntoSubChunks(unittest.TestCase):
    def test_windows(self):
        file_diff = FileDiff(path="a.txt", text="a\nb\nc\nd\ne")
        parts = split_into_sub_chunks(file_diff, 2)

        self.assertEqual(parts, ["a\nb\n", "c\nd\n", "e"])
        self.assertEqual("".join(parts), file_diff.text)

    def test_round_trip(self):
        file_diff = make_file_diff("src/big.py", 450)
        for size in (1, 7, 120, 1000):
            self.assertEqual("".join(split_into_sub_chunks(file_diff, size)), file_diff.text)

    def test_round_trip_with_separator_characters(self):
        file_diff = split_diff(SEPARATOR_CHARS_DIFF)[0]
        self.assertEqual(file_diff.line_count, 11)
        for size in (1, 2, 3, 5, 11):
            parts = split_into_sub_chunks(file_diff, size)
            self.assertEqual("".join(parts), file_diff.text)
            self.assertEqual(len(parts), -(-11 // size))

    def test_form_feed_does_not_add_windows(self):
        file_diff = FileDiff(path="a.txt", text="a\x0cb\nc\x0bd\ne\u2028f\n")
        self.assertEqual(split_into_sub_chunks(file_diff, 1), ["a\x0cb\n", "c\x0bd\n", "e\u2028f\n"])

    def test_whitespace_windows_are_dropped(self):
        file_diff = FileDiff(path="a.txt", text="a\nb\n \n\n")
        self.assertEqual(split_into_sub_chunks(file_diff, 2), ["a\nb\n"])

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            split_into_sub_chunks(FileDiff(path="a.txt", text="a\n"), 0)


class TestChunkFileDiff(unittest.TestCase):
    def test_whole_file(self):
        file_diff = make_file_diff("src/app.py", 10)
        chunks = chunk_file_diff(file_diff, ChunkingConfig())

        self.assertEqual(len(chunks), 1)
        self.assertEqual(chunks[0].content, file_diff.text)
        self.assertEqual(chunks[0].label, "src/app.py")
        self.assertEqual(chunks[0].paths, ["src/app.py"])

    def test_split_file(self):
        file_diff = make_file_diff("src/big.py", 450)
        chunks = chunk_file_diff(file_diff, ChunkingConfig())

        # 455 lines in windows of 120
        self.assertEqual(len(chunks), 4)
        self.assertEqual([c.label for c in chunks],
                         [f"src/big.py (part {i}/4)" for i in range(1, 5)])
        self.assertEqual("".join(c.content for c in chunks), file_diff.text)
        self.assertTrue(all(c.paths == ["src/big.py"] for c in chunks))
        self.assertTrue(all(c.line_count <= 120 for c in chunks))


if __name__ == '__main__':
    unittest.main()
