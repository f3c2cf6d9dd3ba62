# src/codeguardian/plugin_config.py
import logging
import os
from dataclasses import dataclass, field
from typing import Optional, List

logger = logging.getLogger(__name__)

# Default values for optional parameters
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 2048
DEFAULT_EXCLUDE_PATTERNS = ""
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_RULES_FILE = ".codeguardian.yml"

# --- File classification thresholds ---
DEFAULT_SMALL_FILE_MAX_BYTES = 15 * 1024
DEFAULT_DENSE_FILE_MAX_BYTES = 30 * 1024
DEFAULT_DENSE_CHUNK_LINES = 150
DEFAULT_SOURCE_MAX_LINES = 400
DEFAULT_SOURCE_MAX_BYTES = 20 * 1024
DEFAULT_SOURCE_CHUNK_LINES = 120
DEFAULT_PROSE_MAX_BYTES = 25 * 1024
DEFAULT_PROSE_CHUNK_LINES = 100
DEFAULT_FALLBACK_MAX_LINES = 300
DEFAULT_FALLBACK_MAX_BYTES = 25 * 1024
DEFAULT_CHUNK_LINES = 200

# --- Merge limits ---
DEFAULT_OPTIMAL_CHUNK_LINES = 300
DEFAULT_MAX_CHUNK_LINES = 500
DEFAULT_MAX_CHUNK_BYTES = 40 * 1024
DEFAULT_MIN_CHUNK_LINES = 20
DEFAULT_BYTES_PER_LINE = 80

DEFAULT_CONCURRENCY_LIMIT = 3
DEFAULT_RELEVANCE_MIN_SCORE = 0.5

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in _TRUE_VALUES


def _env_list(name: str, default: str) -> List[str]:
    return [p.strip() for p in os.getenv(name, default).split(',') if p.strip()]


@dataclass
class ChunkingConfig:
    """
    Size thresholds for splitting, merging and analyzing diff chunks.
    Every value can be overridden through a PLUGIN_ prefixed environment variable.
    """

    # --- Per-category split thresholds (bytes / lines of diff text) ---
    small_file_max_bytes: int = field(
        default_factory=lambda: _env_int("PLUGIN_SMALL_FILE_MAX_BYTES", DEFAULT_SMALL_FILE_MAX_BYTES)
    )
    dense_file_max_bytes: int = field(
        default_factory=lambda: _env_int("PLUGIN_DENSE_FILE_MAX_BYTES", DEFAULT_DENSE_FILE_MAX_BYTES)
    )
    dense_chunk_lines: int = field(
        default_factory=lambda: _env_int("PLUGIN_DENSE_CHUNK_LINES", DEFAULT_DENSE_CHUNK_LINES)
    )
    source_max_lines: int = field(
        default_factory=lambda: _env_int("PLUGIN_SOURCE_MAX_LINES", DEFAULT_SOURCE_MAX_LINES)
    )
    source_max_bytes: int = field(
        default_factory=lambda: _env_int("PLUGIN_SOURCE_MAX_BYTES", DEFAULT_SOURCE_MAX_BYTES)
    )
    source_chunk_lines: int = field(
        default_factory=lambda: _env_int("PLUGIN_SOURCE_CHUNK_LINES", DEFAULT_SOURCE_CHUNK_LINES)
    )
    prose_max_bytes: int = field(
        default_factory=lambda: _env_int("PLUGIN_PROSE_MAX_BYTES", DEFAULT_PROSE_MAX_BYTES)
    )
    prose_chunk_lines: int = field(
        default_factory=lambda: _env_int("PLUGIN_PROSE_CHUNK_LINES", DEFAULT_PROSE_CHUNK_LINES)
    )
    fallback_max_lines: int = field(
        default_factory=lambda: _env_int("PLUGIN_FALLBACK_MAX_LINES", DEFAULT_FALLBACK_MAX_LINES)
    )
    fallback_max_bytes: int = field(
        default_factory=lambda: _env_int("PLUGIN_FALLBACK_MAX_BYTES", DEFAULT_FALLBACK_MAX_BYTES)
    )
    default_chunk_lines: int = field(
        default_factory=lambda: _env_int("PLUGIN_DEFAULT_CHUNK_LINES", DEFAULT_CHUNK_LINES)
    )

    # --- Merge limits ---
    optimal_chunk_lines: int = field(
        default_factory=lambda: _env_int("PLUGIN_OPTIMAL_CHUNK_LINES", DEFAULT_OPTIMAL_CHUNK_LINES)
    )
    max_chunk_lines: int = field(
        default_factory=lambda: _env_int("PLUGIN_MAX_CHUNK_LINES", DEFAULT_MAX_CHUNK_LINES)
    )
    max_chunk_bytes: int = field(
        default_factory=lambda: _env_int("PLUGIN_MAX_CHUNK_BYTES", DEFAULT_MAX_CHUNK_BYTES)
    )
    min_chunk_lines: int = field(
        default_factory=lambda: _env_int("PLUGIN_MIN_CHUNK_LINES", DEFAULT_MIN_CHUNK_LINES)
    )
    bytes_per_line: int = field(
        default_factory=lambda: _env_int("PLUGIN_BYTES_PER_LINE", DEFAULT_BYTES_PER_LINE)
    )

    # --- Analysis ---
    concurrency_limit: int = field(
        default_factory=lambda: _env_int("PLUGIN_CONCURRENCY_LIMIT", DEFAULT_CONCURRENCY_LIMIT)
    )
    exclude_patterns: List[str] = field(
        default_factory=lambda: _env_list("PLUGIN_EXCLUDE_PATTERNS", DEFAULT_EXCLUDE_PATTERNS)
    )
    include_patterns: List[str] = field(
        default_factory=lambda: _env_list("PLUGIN_INCLUDE_PATTERNS", "")
    )
    skip_deleted_files: bool = field(
        default_factory=lambda: _env_bool("PLUGIN_SKIP_DELETED_FILES", True)
    )
    relevance_check: bool = field(
        default_factory=lambda: _env_bool("PLUGIN_RELEVANCE_CHECK", False)
    )
    relevance_min_score: float = field(
        default_factory=lambda: float(os.getenv("PLUGIN_RELEVANCE_MIN_SCORE", str(DEFAULT_RELEVANCE_MIN_SCORE)))
    )

    @property
    def optimal_chunk_bytes(self) -> int:
        return self.optimal_chunk_lines * self.bytes_per_line

    def __post_init__(self):
        if self.concurrency_limit < 1:
            logger.warning(f"Invalid concurrency limit {self.concurrency_limit}. Using 1.")
            self.concurrency_limit = 1
        if self.max_chunk_lines < 1:
            logger.warning(f"Invalid max chunk lines {self.max_chunk_lines}. Using {DEFAULT_MAX_CHUNK_LINES}.")
            self.max_chunk_lines = DEFAULT_MAX_CHUNK_LINES
        if self.optimal_chunk_lines > self.max_chunk_lines:
            logger.warning(f"Optimal chunk lines ({self.optimal_chunk_lines}) exceed max chunk lines "
                           f"({self.max_chunk_lines}). Capping at the maximum.")
            self.optimal_chunk_lines = self.max_chunk_lines
        if self.optimal_chunk_bytes > self.max_chunk_bytes:
            # Keep the byte-derived optimum under the hard byte limit
            self.bytes_per_line = max(1, self.max_chunk_bytes // max(1, self.optimal_chunk_lines))
        if self.min_chunk_lines > self.optimal_chunk_lines:
            logger.warning(f"Min chunk lines ({self.min_chunk_lines}) exceed optimal chunk lines. Capping.")
            self.min_chunk_lines = self.optimal_chunk_lines
        for name in ("dense_chunk_lines", "source_chunk_lines", "prose_chunk_lines", "default_chunk_lines"):
            if getattr(self, name) < 1:
                logger.warning(f"Invalid {name} {getattr(self, name)}. Using {DEFAULT_CHUNK_LINES}.")
                setattr(self, name, DEFAULT_CHUNK_LINES)


@dataclass
class PluginConfig:
    """
    Holds all configuration for the CodeGuardian reviewer plugin,
    primarily sourced from PLUGIN_ prefixed environment variables.
    """

    # --- Core LLM Settings ---
    llm_model: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_LLM_MODEL")
    )
    llm_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_LLM_API_KEY")
    ) # Handled as a secret by CI
    llm_api_base: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_LLM_API_BASE")
    )
    temperature: float = field(
        default_factory=lambda: float(os.getenv("PLUGIN_TEMPERATURE", str(DEFAULT_TEMPERATURE)))
    )
    max_tokens: int = field(
        default_factory=lambda: _env_int("PLUGIN_MAX_TOKENS", DEFAULT_MAX_TOKENS)
    )
    llm_timeout: float = field(
        default_factory=lambda: float(os.getenv("PLUGIN_LLM_TIMEOUT", "120"))
    )

    # --- Optional Provider-Specific Configuration ---
    azure_api_version: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_AZURE_API_VERSION")
    )
    vertex_project: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_VERTEXAI_PROJECT")
    )
    vertex_location: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_VERTEXAI_LOCATION")
    )
    aws_region_name: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_AWS_REGION_NAME")
    )

    # --- SCM Settings ---
    scm_token: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_SCM_TOKEN")
    ) # Handled as a secret by CI
    scm_api_url: str = field(
        default_factory=lambda: os.getenv("PLUGIN_SCM_API_URL", "https://api.github.com").rstrip("/")
    )
    rules_file: str = field(
        default_factory=lambda: os.getenv("PLUGIN_RULES_FILE", DEFAULT_RULES_FILE)
    )

    # --- Plugin Behavior ---
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    log_level: str = field(
        default_factory=lambda: os.getenv("PLUGIN_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    )

    # --- CI Environment Information (populated by main.py from CI system variables) ---
    ci_system: Optional[str] = None
    ci_event_name: Optional[str] = None
    ci_event_action: Optional[str] = None

    ci_repo_owner: Optional[str] = None
    ci_repo_name: Optional[str] = None
    ci_repo_full_name: Optional[str] = None
    ci_repo_link: Optional[str] = None

    ci_pr_number: Optional[int] = None
    ci_pr_title: Optional[str] = None
    ci_pr_description: Optional[str] = None # Fetched via SCM API

    ci_target_branch: Optional[str] = None
    ci_head_sha: Optional[str] = None
    ci_base_sha: Optional[str] = None

    is_pr_event: bool = False
    is_pr_opened_event: bool = False
    is_pr_synchronize_event: bool = False

    def __post_init__(self):
        if not self.llm_model:
            logger.warning("PLUGIN_LLM_MODEL is not set.")

        if not self.scm_token:
            logger.warning("PLUGIN_SCM_TOKEN is not set.")

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            logger.warning(f"Invalid PLUGIN_LOG_LEVEL '{self.log_level}'. Defaulting to '{DEFAULT_LOG_LEVEL}'.")
            self.log_level = DEFAULT_LOG_LEVEL


def load_plugin_config() -> PluginConfig:
    """
    Factory function to create and return a PluginConfig instance.
    """
    return PluginConfig()
