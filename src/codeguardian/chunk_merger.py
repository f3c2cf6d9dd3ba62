# src/codeguardian/chunk_merger.py
import logging
from typing import List, Optional, Sequence

from .models import Chunk
from .plugin_config import ChunkingConfig
from .utils.file_filter import PathExcluder

logger = logging.getLogger(__name__)

MAX_LABELS_IN_SUMMARY = 5


def filter_excluded(chunks: Sequence[Chunk], exclude_patterns: Optional[Sequence[str]] = None) -> List[Chunk]:
    """Drops chunks whose files match the exclude patterns or the built-in ignore list."""
    excluder = PathExcluder(exclude_patterns)
    kept = []
    for chunk in chunks:
        if chunk.paths and all(excluder.is_excluded(path) for path in chunk.paths):
            logger.info(f"Excluding chunk from review due to pattern match: {chunk.label}")
            continue
        kept.append(chunk)
    return kept


def _normalized(content: str) -> str:
    return content if content.endswith("\n") else content + "\n"


def _summary_label(batch: List[Chunk]) -> str:
    labels = [c.label for c in batch[:MAX_LABELS_IN_SUMMARY]]
    if len(batch) > MAX_LABELS_IN_SUMMARY:
        labels.append(f"+{len(batch) - MAX_LABELS_IN_SUMMARY} more")
    return f"merged: {len(batch)} chunks ({', '.join(labels)})"


def _flush(batch: List[Chunk], output: List[Chunk]) -> None:
    if not batch:
        return
    if len(batch) == 1:
        output.append(batch[0])
    else:
        # Texts are separated by one blank line
        content = "\n".join(_normalized(c.content) for c in batch)
        paths: List[str] = []
        for c in batch:
            paths.extend(p for p in c.paths if p not in paths)
        output.append(Chunk(content=content, label=_summary_label(batch),
                            sequence_index=len(output), paths=paths))
    batch.clear()


def merge_chunks(chunks: Sequence[Chunk], config: Optional[ChunkingConfig] = None) -> List[Chunk]:
    """
    Combines small chunks so fewer model calls are needed, without crossing the hard limits.

    Single greedy pass in input order:
    - a chunk larger than the optimal size (lines, or bytes derived from lines) is
      emitted alone, after flushing the open batch;
    - a chunk that would push the open batch over the max lines or bytes starts a
      new batch;
    - otherwise it joins the open batch, which is flushed as soon as it reaches the
      optimal line count.

    Excluded files are dropped first. A batch of one is emitted as the same Chunk
    object; larger batches are joined with a blank line between them.
    """
    config = config or ChunkingConfig()
    candidates = filter_excluded(chunks, config.exclude_patterns)
    if not candidates:
        return []

    output: List[Chunk] = []
    batch: List[Chunk] = []
    batch_lines = 0
    batch_bytes = 0

    for chunk in candidates:
        lines = chunk.line_count
        size = len(_normalized(chunk.content).encode("utf-8"))

        if lines > config.optimal_chunk_lines or size > config.optimal_chunk_bytes:
            _flush(batch, output)
            batch_lines = batch_bytes = 0
            output.append(chunk)
            continue

        # One separator line (one byte) between batch members
        separator = 1 if batch else 0
        if batch and (batch_lines + separator + lines > config.max_chunk_lines or
                      batch_bytes + separator + size > config.max_chunk_bytes):
            _flush(batch, output)
            batch_lines = batch_bytes = 0
            separator = 0

        batch.append(chunk)
        batch_lines += separator + lines
        batch_bytes += separator + size

        if batch_lines >= config.optimal_chunk_lines:
            _flush(batch, output)
            batch_lines = batch_bytes = 0

    _flush(batch, output)

    undersized_in = sum(1 for c in candidates if c.line_count < config.min_chunk_lines)
    undersized_out = sum(1 for c in output if c.line_count < config.min_chunk_lines)
    logger.info(f"Merged {len(candidates)} chunks into {len(output)} "
                f"(undersized: {undersized_in} before, {undersized_out} after).")
    return output
