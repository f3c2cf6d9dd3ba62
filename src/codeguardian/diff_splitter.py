# src/codeguardian/diff_splitter.py
import logging
import re
from typing import List, Optional, Tuple

from .models import FileDiff
from .utils.diff_lines import split_lines

logger = logging.getLogger(__name__)

FILE_HEADER_PREFIX = "diff --git "

_QUOTED_HEADER_RE = re.compile(r'^"a/(.+?)" "b/(.+)"$')
_PLAIN_HEADER_RE = re.compile(r'^a/(.+?) b/(.+)$')


def parse_header_paths(header_line: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Extracts (old_path, new_path) from a `diff --git a/<old> b/<new>` line.
    Returns (None, None) when the line cannot be parsed.
    """
    line = header_line.rstrip("\r\n")
    if not line.startswith(FILE_HEADER_PREFIX):
        return None, None
    rest = line[len(FILE_HEADER_PREFIX):].strip()

    match = _QUOTED_HEADER_RE.match(rest)
    if match:
        return match.group(1), match.group(2)

    # Unchanged path: "a/P b/P". Splitting on length handles paths containing " b/".
    if rest.startswith("a/") and (len(rest) - 5) % 2 == 0:
        path_len = (len(rest) - 5) // 2
        old_path = rest[2:2 + path_len]
        if old_path and rest[2 + path_len:] == " b/" + old_path:
            return old_path, old_path

    match = _PLAIN_HEADER_RE.match(rest)
    if match:
        return match.group(1), match.group(2)

    return None, None


def _build_file_diff(lines: List[str]) -> FileDiff:
    header_idx = next((i for i, line in enumerate(lines) if line.startswith(FILE_HEADER_PREFIX)), 0)
    header = lines[header_idx]
    old_path, new_path = parse_header_paths(header)
    if new_path is None:
        logger.warning(f"Could not parse file paths from diff header: {header.strip()[:200]}")

    file_diff = FileDiff(path=new_path, old_path=old_path, text="".join(lines))

    # Metadata only appears between the file header and the first hunk
    for line in lines[header_idx + 1:]:
        if line.startswith("@@"):
            break
        if line.startswith("new file mode"):
            file_diff.is_new_file = True
        elif line.startswith("deleted file mode") or line.rstrip("\r\n") == "+++ /dev/null":
            file_diff.is_deleted_file = True
        elif line.startswith("Binary files ") or line.startswith("GIT binary patch"):
            file_diff.is_binary = True
    return file_diff


def split_diff(diff_text: str) -> List[FileDiff]:
    """
    Splits a multi-file unified diff into one FileDiff per `diff --git` segment.

    Every input line lands in exactly one segment, in order. Lines before the first
    file header (commit metadata from `git format-patch` and the like) are kept at
    the start of the first segment; if no file header exists at all, the input is
    treated as degenerate and nothing is returned.

    Args:
        diff_text: The raw diff output as a string.

    Returns:
        A list of FileDiff objects in diff order.
    """
    if not diff_text or not isinstance(diff_text, str):
        logger.info("Received empty or non-text diff, returning no file segments.")
        return []

    segments: List[List[str]] = []
    preamble: List[str] = []
    current: Optional[List[str]] = None

    for line in split_lines(diff_text, keepends=True):
        if line.startswith(FILE_HEADER_PREFIX):
            if current:
                segments.append(current)
            current = [line]
            if preamble and not segments:
                current = preamble + current
                preamble = []
        elif current is None:
            preamble.append(line)
        else:
            current.append(line)

    if current:
        segments.append(current)

    if not segments:
        logger.warning(f"No file headers found in diff ({len(preamble)} lines), nothing to split.")
        return []

    file_diffs = [_build_file_diff(lines) for lines in segments]
    logger.debug(f"Split diff into {len(file_diffs)} file segments.")
    return file_diffs
