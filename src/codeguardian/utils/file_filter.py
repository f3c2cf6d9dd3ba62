# src/codeguardian/utils/file_filter.py
import os
from typing import List, Optional, Sequence

from pathspec import GitIgnoreSpec

# Files that are generated, vendored or otherwise not worth a model call
BUILTIN_EXCLUDE_PATTERNS = [
    # Lock files
    "package-lock.json",
    "npm-shrinkwrap.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "poetry.lock",
    "Pipfile.lock",
    "uv.lock",
    "Cargo.lock",
    "composer.lock",
    "Gemfile.lock",
    "go.sum",
    # Build output and dependencies
    # Leading "/" anchors output directories at the repository root
    "node_modules/",
    "bower_components/",
    "/vendor/",
    "/dist/",
    "/build/",
    "/out/",
    "/target/",
    "/.next/",
    "__pycache__/",
    "*.pyc",
    "*.min.js",
    "*.min.css",
    "*.map",
    # VCS metadata
    ".git/",
    ".svn/",
    ".hg/",
    # OS and IDE artifacts
    ".DS_Store",
    "Thumbs.db",
    ".idea/",
    ".vscode/",
    "*.swp",
    # Logs and coverage
    "*.log",
    "/logs/",
    "/coverage/",
    "/htmlcov/",
    "/.nyc_output/",
    ".coverage",
    "*.lcov",
]

_BUILTIN_SPEC = GitIgnoreSpec.from_lines(BUILTIN_EXCLUDE_PATTERNS)


def _matches_simple(path: str, pattern: str) -> bool:
    """Exact name, exact path, path prefix ("dir/") or suffix (".ext") match."""
    if path == pattern or os.path.basename(path) == pattern:
        return True
    if pattern.endswith("/") and path.startswith(pattern):
        return True
    if pattern.startswith(".") and path.endswith(pattern):
        return True
    return False


class PathExcluder:
    """
    Decides which diff paths should never be sent to the model.

    Configured patterns match by exact file name or path, by path prefix
    (patterns ending in "/"), by suffix (patterns starting with "."), or as
    git-style wildcards. The built-in patterns are checked as well unless
    use_builtin is False. Patterns are compiled once, so one excluder can be
    reused for every chunk of a run.
    """

    def __init__(self, exclude_patterns: Optional[Sequence[str]] = None, use_builtin: bool = True):
        self.patterns = [p for p in (exclude_patterns or []) if p]
        self.use_builtin = use_builtin
        self._spec = GitIgnoreSpec.from_lines(self.patterns) if self.patterns else None

    def is_excluded(self, path: Optional[str]) -> bool:
        # A missing path is never excluded
        if not path:
            return False
        path = path.lstrip("/")
        if self.use_builtin and _BUILTIN_SPEC.match_file(path):
            return True
        if self._spec is None:
            return False
        if any(_matches_simple(path, p) for p in self.patterns):
            return True
        return self._spec.match_file(path)


def is_excluded(path: Optional[str], exclude_patterns: Optional[Sequence[str]] = None,
                use_builtin: bool = True) -> bool:
    """Returns True if a diff path should never be sent to the model. See PathExcluder."""
    return PathExcluder(exclude_patterns, use_builtin).is_excluded(path)


def filter_files_by_patterns(
    files: List[str],
    include_patterns: Optional[List[str]] = None,
    exclude_patterns: Optional[List[str]] = None
) -> List[str]:
    """
    Filter a list of files based on include and exclude patterns.

    Args:
        files: List of file paths to filter
        include_patterns: Optional list of patterns to include (git-style patterns)
        exclude_patterns: Optional list of patterns to exclude (git-style patterns)

    Returns:
        List of filtered file paths
    """
    if not files:
        return []

    if include_patterns:
        include_spec = GitIgnoreSpec.from_lines(include_patterns)
        included_files = [f for f in files if include_spec.match_file(f)]
    else:
        included_files = files  # No include patterns means include everything

    if exclude_patterns:
        exclude_spec = GitIgnoreSpec.from_lines(exclude_patterns)
        return [f for f in included_files if not exclude_spec.match_file(f)]

    return included_files
