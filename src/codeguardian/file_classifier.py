# src/codeguardian/file_classifier.py
import logging
import os
from typing import List, Optional

from .models import Chunk, FileDiff, SplitDecision
from .plugin_config import ChunkingConfig

logger = logging.getLogger(__name__)

# Structured data and lock files: many bytes, little to review per line
DENSE_EXTENSIONS = {
    ".json", ".lock", ".yaml", ".yml", ".csv", ".tsv", ".xml", ".svg", ".snap", ".pbxproj",
}

SOURCE_EXTENSIONS = {
    ".py", ".pyi", ".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".java", ".kt", ".kts",
    ".go", ".rs", ".rb", ".php", ".c", ".h", ".cc", ".cpp", ".cxx", ".hpp", ".cs",
    ".swift", ".scala", ".m", ".mm", ".sh", ".bash", ".sql", ".vue", ".svelte", ".dart",
    ".lua", ".pl", ".r", ".ex", ".exs", ".erl", ".hs", ".clj", ".groovy", ".tf",
}
SOURCE_FILENAMES = {"Dockerfile", "Makefile", "Jenkinsfile", "Rakefile", "Gemfile"}

# Markup, docs and plain config
PROSE_EXTENSIONS = {
    ".md", ".markdown", ".rst", ".txt", ".adoc", ".html", ".htm", ".css", ".scss", ".less",
    ".ini", ".cfg", ".conf", ".toml", ".properties", ".env",
}


def _category(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    name = os.path.basename(path)
    ext = os.path.splitext(name)[1].lower()
    if ext in DENSE_EXTENSIONS:
        return "dense"
    if ext in SOURCE_EXTENSIONS or name in SOURCE_FILENAMES:
        return "source"
    if ext in PROSE_EXTENSIONS:
        return "prose"
    return None


def classify(file_diff: FileDiff, config: Optional[ChunkingConfig] = None) -> SplitDecision:
    """
    Decides whether a file's diff can go to the model whole or must be split,
    and how many lines each piece should hold. The first matching rule wins:

    1. small files are never split;
    2. dense files (JSON, lock files, ...) get a more lenient size limit;
    3. source files split on line count or size, into small pieces;
    4. prose/config files get a lenient size limit;
    5. anything else uses the fallback limits.

    Segments with an unknown path skip the extension based rules.
    """
    config = config or ChunkingConfig()
    size = file_diff.byte_size
    lines = file_diff.line_count

    if size < config.small_file_max_bytes:
        return SplitDecision(False, f"small file ({size} bytes)", config.default_chunk_lines)

    category = _category(file_diff.path)
    if category == "dense":
        if size > config.dense_file_max_bytes:
            return SplitDecision(True, f"dense file over {config.dense_file_max_bytes} bytes ({size})",
                                 config.dense_chunk_lines)
        return SplitDecision(False, f"dense file within limit ({size} bytes)", config.dense_chunk_lines)

    if category == "source":
        if lines > config.source_max_lines or size > config.source_max_bytes:
            return SplitDecision(True, f"source file too large ({lines} lines, {size} bytes)",
                                 config.source_chunk_lines)
        return SplitDecision(False, f"source file within limits ({lines} lines, {size} bytes)",
                             config.source_chunk_lines)

    if category == "prose":
        if size > config.prose_max_bytes:
            return SplitDecision(True, f"prose file over {config.prose_max_bytes} bytes ({size})",
                                 config.prose_chunk_lines)
        return SplitDecision(False, f"prose file within limit ({size} bytes)", config.prose_chunk_lines)

    if lines > config.fallback_max_lines or size > config.fallback_max_bytes:
        return SplitDecision(True, f"file too large ({lines} lines, {size} bytes)", config.default_chunk_lines)
    return SplitDecision(False, f"file within limits ({lines} lines, {size} bytes)", config.default_chunk_lines)


def split_into_sub_chunks(file_diff: FileDiff, chunk_size: int) -> List[str]:
    """
    Slices a file segment into consecutive windows of chunk_size lines.
    Windows do not overlap and keep their line endings, so joining them gives back
    the segment. Windows holding only whitespace are dropped.

    A window may start in the middle of a hunk; its lines before the next hunk
    header cannot be mapped to new-file line numbers on their own.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    lines = file_diff.lines
    sub_chunks = []
    for start in range(0, len(lines), chunk_size):
        window = "".join(lines[start:start + chunk_size])
        if window.strip():
            sub_chunks.append(window)
    return sub_chunks


def chunk_file_diff(file_diff: FileDiff, config: Optional[ChunkingConfig] = None) -> List[Chunk]:
    """Turns one file segment into one chunk, or several when the classifier asks for a split."""
    decision = classify(file_diff, config)
    paths = [file_diff.path] if file_diff.path else []

    if not decision.needs_split:
        return [Chunk(content=file_diff.text, label=file_diff.display_path, paths=paths)]

    parts = split_into_sub_chunks(file_diff, decision.chunk_size)
    logger.info(f"Splitting {file_diff.display_path} into {len(parts)} sub-chunks of up to "
                f"{decision.chunk_size} lines: {decision.reason}")
    return [
        Chunk(content=part, label=f"{file_diff.display_path} (part {i}/{len(parts)})", paths=list(paths))
        for i, part in enumerate(parts, start=1)
    ]
