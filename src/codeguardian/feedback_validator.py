# src/codeguardian/feedback_validator.py
import logging
import re
from typing import Any, Iterable, Optional, Protocol, Set

from .hunk_mapper import find_hunk_for_line
from .models import FeedbackItem, RejectionReason, ValidationIndex, ValidationOutcome, ValidationReport
from .plugin_config import DEFAULT_RELEVANCE_MIN_SCORE

logger = logging.getLogger(__name__)

# Lines on each side of the commented line that count as its code for relevance scoring
RELEVANCE_CONTEXT_LINES = 2

IDENTIFIER_WEIGHT = 1.0
STRING_LITERAL_WEIGHT = 0.5
KEYWORD_PAIR_WEIGHT = 0.25

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_STRING_LITERAL_RE = re.compile(r"""(["'`])((?:\\.|(?!\1).){2,}?)\1""")

# Identifiers that say nothing about what a comment refers to
_COMMON_WORDS = {
    "and", "the", "for", "not", "def", "var", "let", "const", "self", "this", "return",
    "function", "class", "import", "from", "true", "false", "none", "null", "new", "public",
    "private", "protected", "static", "void", "int", "str", "string", "bool", "if", "else",
    "elif", "while", "try", "except", "catch", "finally", "with", "async", "await", "export",
    "default", "package", "struct", "func", "pass", "end", "then", "use", "pub", "mut", "fn",
}

# (code tokens, comment words): the comment talks about a construct present in the code
_KEYWORD_PAIRS = [
    ({"await", "async"}, {"async", "await", "promise", "coroutine"}),
    ({"try", "except", "catch", "finally"}, {"exception", "error", "catch", "handling"}),
    ({"raise", "throw", "throws"}, {"exception", "error", "raise", "throw"}),
    ({"for", "while", "foreach"}, {"loop", "iteration", "iterate", "infinite"}),
    ({"null", "None", "nil", "undefined"}, {"null", "none", "nil", "undefined"}),
    ({"lock", "mutex", "Lock", "synchronized"}, {"race", "lock", "deadlock", "thread", "concurrency"}),
    ({"select", "SELECT", "insert", "INSERT", "execute", "query"}, {"sql", "injection", "query"}),
    ({"password", "secret", "token", "api_key"}, {"secret", "credential", "password", "token", "hardcoded"}),
    ({"open", "close", "connect"}, {"file", "close", "leak", "resource", "connection"}),
]


class RelevanceScorer(Protocol):
    def score(self, code: str, comment: str) -> float:
        ...


def _words(text: str) -> Set[str]:
    return {w.lower() for w in _IDENTIFIER_RE.findall(text)}


class KeywordRelevanceScorer:
    """
    Approximate measure of how much a comment talks about the code it is attached to.
    Identifiers from the code mentioned in the comment count most, quoted string
    literals less, and a few construct/keyword pairs least.
    """

    def score(self, code: str, comment: str) -> float:
        if not code or not comment:
            return 0.0

        comment_lower = comment.lower()
        comment_words = _words(comment)
        total = 0.0

        identifiers = {w for w in _IDENTIFIER_RE.findall(code) if len(w) >= 3 and w.lower() not in _COMMON_WORDS}
        for identifier in identifiers:
            if identifier.lower() in comment_words:
                total += IDENTIFIER_WEIGHT

        for _, literal in _STRING_LITERAL_RE.findall(code):
            if literal.strip() and literal.lower() in comment_lower:
                total += STRING_LITERAL_WEIGHT

        code_tokens = set(_IDENTIFIER_RE.findall(code))
        for code_keys, comment_keys in _KEYWORD_PAIRS:
            if code_tokens & code_keys and comment_words & comment_keys:
                total += KEYWORD_PAIR_WEIGHT

        return total


def _coerce_line(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


class FeedbackValidator:
    """
    Checks model feedback against the lines actually present in the diff before
    anything is posted. Every item ends up either accepted or rejected with a reason;
    nothing raises for bad input.
    """

    def __init__(self, index: ValidationIndex, scorer: Optional[RelevanceScorer] = None,
                 min_score: float = DEFAULT_RELEVANCE_MIN_SCORE):
        self.index = index
        self.scorer = scorer
        self.min_score = min_score

    def _code_context(self, path: str, line: int) -> str:
        code_lines = []
        for n in range(line - RELEVANCE_CONTEXT_LINES, line + RELEVANCE_CONTEXT_LINES + 1):
            code = self.index.code_at(path, n)
            if code is not None:
                code_lines.append(code)
        return "\n".join(code_lines)

    def validate(self, raw: Any) -> ValidationOutcome:
        if not isinstance(raw, dict):
            return ValidationOutcome(False, reason=RejectionReason.MALFORMED,
                                     detail=f"expected an object, got {type(raw).__name__}", raw=raw)

        file_path = raw.get("file")
        comment = raw.get("comment")
        line = _coerce_line(raw.get("line"))

        if not isinstance(file_path, str) or not file_path.strip():
            return ValidationOutcome(False, reason=RejectionReason.MALFORMED, detail="missing file", raw=raw)
        if not isinstance(comment, str) or not comment.strip():
            return ValidationOutcome(False, reason=RejectionReason.MALFORMED, detail="missing comment", raw=raw)
        if line is None:
            return ValidationOutcome(False, reason=RejectionReason.MALFORMED,
                                     detail=f"line is not a number: {raw.get('line')!r}", raw=raw)

        if not self.index.has_file(file_path):
            return ValidationOutcome(False, reason=RejectionReason.FILE_NOT_IN_DIFF,
                                     detail=f"File {file_path} does not exist in the diff", raw=raw)
        if not self.index.has_line(file_path, line):
            return ValidationOutcome(False, reason=RejectionReason.LINE_NOT_IN_DIFF,
                                     detail=f"Line {line} in {file_path} is not part of the diff", raw=raw)

        if self.scorer is not None:
            score = self.scorer.score(self._code_context(file_path, line), comment)
            if score < self.min_score:
                return ValidationOutcome(False, reason=RejectionReason.LOW_RELEVANCE,
                                         detail=f"relevance score {score:.2f} below {self.min_score:.2f}", raw=raw)

        hunk = find_hunk_for_line(self.index.files[file_path].hunks, line)
        item = FeedbackItem(file=file_path, line=line, comment=comment,
                            diff_hunk=hunk.text if hunk else None)
        return ValidationOutcome(True, item=item, raw=raw)

    def validate_all(self, raw_items: Iterable[Any]) -> ValidationReport:
        report = ValidationReport()
        for raw in raw_items:
            outcome = self.validate(raw)
            if outcome.accepted:
                logger.debug(f"Comment validated: {outcome.item.file}:{outcome.item.line}")
                report.accepted.append(outcome.item)
            else:
                logger.warning(f"Skipping comment for {outcome.file}:{outcome.line}: {outcome.detail}")
                report.rejected.append(outcome)
        logger.info(f"Validated feedback: {len(report.accepted)} accepted, {len(report.rejected)} rejected.")
        return report
