# src/codeguardian/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .utils.diff_lines import split_lines

# new-file line number -> literal code text at that line
LineMap = Dict[int, str]


class LineKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"


@dataclass
class FileDiff:
    """
    One file's segment of a multi-file diff, header and metadata lines included.
    The first segment also carries any preamble that preceded the first file header.
    """
    path: Optional[str] # New path from the `diff --git` header, None if the header could not be parsed
    text: str
    old_path: Optional[str] = None
    is_new_file: bool = False
    is_deleted_file: bool = False
    is_binary: bool = False

    @property
    def lines(self) -> List[str]:
        return split_lines(self.text, keepends=True)

    @property
    def line_count(self) -> int:
        return len(split_lines(self.text))

    @property
    def byte_size(self) -> int:
        return len(self.text.encode("utf-8"))

    @property
    def display_path(self) -> str:
        return self.path or "<unknown>"


@dataclass
class HunkLine:
    kind: LineKind
    text: str # Line content without the leading marker
    new_line_no: Optional[int] = None # None for removed lines


@dataclass
class Hunk:
    """
    A single `@@ -a,b +c,d @@` block. `end_line` is new_start plus the number of
    non-removed lines, as used by find_hunk_for_line.
    """
    header: str
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: List[HunkLine] = field(default_factory=list)
    raw_lines: List[str] = field(default_factory=list) # Header plus content lines, as they appear in the diff

    @property
    def end_line(self) -> int:
        return self.new_start + sum(1 for line in self.lines if line.kind != LineKind.REMOVED)

    @property
    def text(self) -> str:
        return "\n".join(self.raw_lines)


@dataclass
class FileLineIndex:
    """Valid new-file lines of one path, with the code and hunks they came from."""
    path: str
    valid_lines: Set[int] = field(default_factory=set)
    line_map: LineMap = field(default_factory=dict)
    hunks: List[Hunk] = field(default_factory=list)

    @property
    def hunk_texts(self) -> List[str]:
        return [hunk.text for hunk in self.hunks]


@dataclass
class ValidationIndex:
    files: Dict[str, FileLineIndex] = field(default_factory=dict)

    def has_file(self, path: str) -> bool:
        return path in self.files

    def has_line(self, path: str, line: int) -> bool:
        file_index = self.files.get(path)
        return file_index is not None and line in file_index.valid_lines

    def code_at(self, path: str, line: int) -> Optional[str]:
        file_index = self.files.get(path)
        if file_index is None:
            return None
        return file_index.line_map.get(line)

    @property
    def total_lines(self) -> int:
        return sum(len(f.valid_lines) for f in self.files.values())


@dataclass
class Chunk:
    """
    Unit of work sent to the model: a whole file diff, a slice of one,
    or several small ones merged together.
    """
    content: str
    label: str
    sequence_index: int = 0
    paths: List[str] = field(default_factory=list)

    @property
    def line_count(self) -> int:
        return len(split_lines(self.content))

    @property
    def byte_size(self) -> int:
        return len(self.content.encode("utf-8"))


@dataclass
class FeedbackItem:
    """
    A review comment that passed validation and can be posted to the SCM.
    """
    file: str
    line: int # Line number in the new version of the file
    comment: str
    diff_hunk: Optional[str] = None


class RejectionReason(str, Enum):
    MALFORMED = "malformed"
    FILE_NOT_IN_DIFF = "file_not_in_diff"
    LINE_NOT_IN_DIFF = "line_not_in_diff"
    LOW_RELEVANCE = "low_relevance"


@dataclass
class ValidationOutcome:
    accepted: bool
    item: Optional[FeedbackItem] = None
    reason: Optional[RejectionReason] = None
    detail: str = ""
    raw: Any = None # The untrusted payload as received from the model

    @property
    def file(self) -> Optional[str]:
        if self.item:
            return self.item.file
        return self.raw.get("file") if isinstance(self.raw, dict) else None

    @property
    def line(self) -> Any:
        if self.item:
            return self.item.line
        return self.raw.get("line") if isinstance(self.raw, dict) else None


@dataclass
class ValidationReport:
    accepted: List[FeedbackItem] = field(default_factory=list)
    rejected: List[ValidationOutcome] = field(default_factory=list)


@dataclass
class ChunkFailure:
    sequence_index: int
    label: str
    reason: str


@dataclass
class BatchResult:
    feedback: List[Any] = field(default_factory=list) # Raw, unvalidated model output in chunk order
    failures: List[ChunkFailure] = field(default_factory=list)
    chunk_count: int = 0


@dataclass
class PostingResult:
    posted: List[FeedbackItem] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list) # {"item": FeedbackItem, "error": str}

    @property
    def success(self) -> bool:
        return not self.failed


@dataclass
class ReviewResult:
    accepted: List[FeedbackItem] = field(default_factory=list)
    rejected: List[ValidationOutcome] = field(default_factory=list)
    failures: List[ChunkFailure] = field(default_factory=list)
    chunk_count: int = 0

    def summary(self) -> Dict[str, int]:
        return {
            "chunks": self.chunk_count,
            "failed_chunks": len(self.failures),
            "accepted": len(self.accepted),
            "rejected": len(self.rejected),
        }


# PR details fetched from the SCM API, supplementing what the CI environment provides
@dataclass
class SCMPRDetails:
    pr_id: int
    title: str
    description: str


@dataclass
class SplitDecision:
    needs_split: bool
    reason: str
    chunk_size: int # Lines per sub-chunk when needs_split is set
