# src/codeguardian/batch_orchestrator.py
import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from .models import BatchResult, Chunk, ChunkFailure

logger = logging.getLogger(__name__)

ChunkAnalyzer = Callable[[Chunk], Awaitable[Any]]


async def analyze_chunks(chunks: Sequence[Chunk], analyzer: ChunkAnalyzer, concurrency_limit: int) -> BatchResult:
    """
    Runs the analyzer over every chunk, concurrency_limit chunks at a time.

    Chunks in a group are analyzed concurrently; the next group starts only once
    every analysis in the current one has settled. A chunk whose analysis raises
    or returns something other than a list contributes no feedback and is recorded
    as a failure; the remaining chunks are still analyzed.

    Returns:
        A BatchResult with the raw feedback entries in chunk order (then in the
        order the analyzer returned them), and the per-chunk failures.
    """
    if concurrency_limit < 1:
        raise ValueError(f"concurrency_limit must be at least 1, got {concurrency_limit}")

    result = BatchResult(chunk_count=len(chunks))
    if not chunks:
        return result

    total_groups = (len(chunks) + concurrency_limit - 1) // concurrency_limit
    for group_no, start in enumerate(range(0, len(chunks), concurrency_limit), start=1):
        group = chunks[start:start + concurrency_limit]
        logger.info(f"Analyzing chunk group {group_no}/{total_groups} ({len(group)} chunks)...")

        outcomes = await asyncio.gather(*(analyzer(chunk) for chunk in group), return_exceptions=True)

        # gather keeps submission order, so results line up with chunk positions
        for offset, (chunk, outcome) in enumerate(zip(group, outcomes)):
            position = start + offset
            if isinstance(outcome, Exception):
                logger.error(f"Analysis failed for chunk {position} ({chunk.label}): {outcome}")
                result.failures.append(ChunkFailure(position, chunk.label, str(outcome) or type(outcome).__name__))
            elif isinstance(outcome, BaseException):
                raise outcome
            elif not isinstance(outcome, list):
                logger.warning(f"Analysis of chunk {position} ({chunk.label}) returned "
                               f"{type(outcome).__name__} instead of a list. Ignoring it.")
                result.failures.append(ChunkFailure(position, chunk.label,
                                                    f"non-list response ({type(outcome).__name__})"))
            else:
                logger.debug(f"Chunk {position} ({chunk.label}) produced {len(outcome)} feedback items.")
                result.feedback.extend(outcome)

    logger.info(f"Analyzed {len(chunks)} chunks: {len(result.feedback)} raw feedback items, "
                f"{len(result.failures)} failed chunks.")
    return result
