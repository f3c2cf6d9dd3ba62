# src/codeguardian/hunk_mapper.py
import logging
import re
from typing import Iterable, List, Optional, Tuple

from .diff_splitter import FILE_HEADER_PREFIX, split_diff
from .models import FileDiff, FileLineIndex, Hunk, HunkLine, LineKind, LineMap, ValidationIndex
from .utils.diff_lines import split_lines

logger = logging.getLogger(__name__)

# @@ -<oldStart>[,<oldCount>] +<newStart>[,<newCount>] @@ [section heading]
HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


def map_hunks(segment_text: str) -> Tuple[LineMap, List[Hunk]]:
    """
    Parses the hunks of one file segment (or any slice of one) and assigns
    new-file line numbers to their lines.

    Added and context lines take the current new-file line number, which then
    advances; removed lines take none. Lines that appear before any recognized
    hunk header, and hunks whose header is malformed, are skipped.

    Args:
        segment_text: Diff text for a single file, or a sub-chunk of it.

    Returns:
        (line_map, hunks): new-file line number -> code text for every added or
        context line, and the parsed hunks in order.
    """
    line_map: LineMap = {}
    hunks: List[Hunk] = []
    if not segment_text:
        return line_map, hunks

    current: Optional[Hunk] = None
    new_line_no = 0
    anomalies = 0

    for raw in split_lines(segment_text):
        if raw.startswith(FILE_HEADER_PREFIX):
            current = None
            continue

        if raw.startswith("@@"):
            match = HUNK_HEADER_RE.match(raw)
            if not match:
                logger.debug(f"Ignoring malformed hunk header: {raw[:120]}")
                anomalies += 1
                current = None
                continue
            old_start, old_count, new_start, new_count = match.groups()
            current = Hunk(
                header=raw,
                old_start=int(old_start),
                old_count=int(old_count) if old_count is not None else 1,
                new_start=int(new_start),
                new_count=int(new_count) if new_count is not None else 1,
                raw_lines=[raw],
            )
            hunks.append(current)
            new_line_no = current.new_start
            continue

        if current is None:
            # File metadata (index, ---/+++, mode lines) or a fragment without its header
            continue

        if raw.startswith("+") or raw.startswith(" "):
            kind = LineKind.ADDED if raw[0] == "+" else LineKind.CONTEXT
            current.lines.append(HunkLine(kind=kind, text=raw[1:], new_line_no=new_line_no))
            current.raw_lines.append(raw)
            line_map[new_line_no] = raw[1:]
            new_line_no += 1
        elif raw.startswith("-"):
            current.lines.append(HunkLine(kind=LineKind.REMOVED, text=raw[1:]))
            current.raw_lines.append(raw)
        elif raw.startswith("\\"):
            # "\ No newline at end of file"
            current.raw_lines.append(raw)
        else:
            anomalies += 1

    if anomalies:
        logger.debug(f"Skipped {anomalies} unrecognized lines while mapping hunks.")
    return line_map, hunks


def find_hunk_for_line(hunks: Iterable[Hunk], target_line: int) -> Optional[Hunk]:
    """Returns the first hunk whose [new_start, end_line] range contains target_line."""
    for hunk in hunks:
        if hunk.new_start <= target_line <= hunk.end_line:
            return hunk
    return None


def index_file_diffs(file_diffs: Iterable[FileDiff]) -> ValidationIndex:
    """
    Builds the per-file set of valid new-file lines from already split segments.
    Segments without a parseable path cannot be referenced by feedback and are left out.
    """
    index = ValidationIndex()
    for file_diff in file_diffs:
        if file_diff.path is None:
            logger.debug("Leaving segment with unknown path out of the validation index.")
            continue
        line_map, hunks = map_hunks(file_diff.text)
        file_index = index.files.get(file_diff.path)
        if file_index is None:
            file_index = FileLineIndex(path=file_diff.path)
            index.files[file_diff.path] = file_index
        file_index.valid_lines.update(line_map.keys())
        file_index.line_map.update(line_map)
        file_index.hunks.extend(hunks)
    return index


def build_validation_index(diff_text: str) -> ValidationIndex:
    """
    Builds the ValidationIndex for a full diff: which (file, line) pairs feedback may
    reference. Computed once per run; no SCM calls are needed to validate afterwards.
    """
    index = index_file_diffs(split_diff(diff_text))
    logger.info(f"Built validation index with {len(index.files)} files and {index.total_lines} total line mappings.")
    return index
