# src/codeguardian/review_engine.py
import logging
from dataclasses import replace
from typing import List, Optional

from .batch_orchestrator import ChunkAnalyzer, analyze_chunks
from .chunk_merger import merge_chunks
from .diff_splitter import split_diff
from .feedback_validator import FeedbackValidator, KeywordRelevanceScorer, RelevanceScorer
from .file_classifier import chunk_file_diff
from .hunk_mapper import index_file_diffs
from .models import Chunk, FileDiff, ReviewResult
from .plugin_config import ChunkingConfig
from .utils.file_filter import filter_files_by_patterns

logger = logging.getLogger(__name__)


class ReviewEngine:
    """
    Turns a pull request diff into model-sized chunks, runs them through an analyzer
    and keeps only the feedback that points at lines present in the diff.
    One engine can serve many runs; nothing is carried over between them.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None, scorer: Optional[RelevanceScorer] = None):
        self.config = config or ChunkingConfig()
        if scorer is None and self.config.relevance_check:
            scorer = KeywordRelevanceScorer()
        self.scorer = scorer

    def _reviewable_files(self, file_diffs: List[FileDiff]) -> List[FileDiff]:
        files = file_diffs
        if self.config.skip_deleted_files:
            files = []
            for file_diff in file_diffs:
                if file_diff.is_deleted_file or file_diff.is_binary:
                    # No new-file lines to comment on
                    logger.info(f"Skipping deleted or binary file: {file_diff.display_path}")
                    continue
                files.append(file_diff)

        if self.config.include_patterns:
            known = [f.path for f in files if f.path]
            included = set(filter_files_by_patterns(known, include_patterns=self.config.include_patterns))
            files = [f for f in files if f.path is None or f.path in included]
        return files

    def plan_chunks(self, diff_text: str) -> List[Chunk]:
        """Splits, filters, sub-chunks and merges a diff into the chunks that will be analyzed."""
        return self._plan(split_diff(diff_text))

    def _plan(self, file_diffs: List[FileDiff]) -> List[Chunk]:
        file_diffs = self._reviewable_files(file_diffs)
        chunks: List[Chunk] = []
        for file_diff in file_diffs:
            chunks.extend(chunk_file_diff(file_diff, self.config))

        merged = merge_chunks(chunks, self.config)
        return [
            chunk if chunk.sequence_index == i else replace(chunk, sequence_index=i)
            for i, chunk in enumerate(merged)
        ]

    async def review(self, diff_text: str, analyzer: ChunkAnalyzer) -> ReviewResult:
        """
        Runs a full review of one diff.

        Args:
            diff_text: The pull request diff.
            analyzer: Async callable taking a Chunk and returning a list of raw
                feedback dicts ({"file", "line", "comment"}).

        Returns:
            A ReviewResult with accepted feedback in chunk order, rejected feedback
            with reasons, and chunks whose analysis failed. An empty or unusable diff
            gives an empty result.
        """
        if not diff_text or not isinstance(diff_text, str) or not diff_text.strip():
            logger.warning("Empty or non-text diff received. Nothing to review.")
            return ReviewResult()

        file_diffs = split_diff(diff_text)
        if not file_diffs:
            logger.warning("No file segments found in diff. Nothing to review.")
            return ReviewResult()

        chunks = self._plan(file_diffs)
        if not chunks:
            logger.info("No reviewable chunks left after filtering.")
            return ReviewResult()
        logger.info(f"Prepared {len(chunks)} chunks for analysis.")

        batch = await analyze_chunks(chunks, analyzer, self.config.concurrency_limit)

        index = index_file_diffs(file_diffs)
        logger.info(f"Built validation index with {len(index.files)} files and {index.total_lines} total line mappings.")
        validator = FeedbackValidator(index, scorer=self.scorer, min_score=self.config.relevance_min_score)
        report = validator.validate_all(batch.feedback)

        return ReviewResult(
            accepted=report.accepted,
            rejected=report.rejected,
            failures=batch.failures,
            chunk_count=batch.chunk_count,
        )
