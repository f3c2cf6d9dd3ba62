# src/codeguardian/utils/diff_lines.py
from typing import List


def split_lines(text: str, keepends: bool = False) -> List[str]:
    """
    Splits diff text into lines on "\\n" only.

    Unlike str.splitlines(), form feeds, vertical tabs, U+2028/U+2029 and the
    other Unicode separators stay inside their line, as they do for git.
    With keepends, joining the result gives back `text` exactly; without it,
    the "\\n" and a trailing "\\r" (CRLF diffs) are removed from each line.
    """
    if not text:
        return []
    parts = text.split("\n")
    last = parts.pop()
    if keepends:
        lines = [part + "\n" for part in parts]
    else:
        lines = [part[:-1] if part.endswith("\r") else part for part in parts]
    if last:
        lines.append(last if keepends or not last.endswith("\r") else last[:-1])
    return lines
