# src/codeguardian/llm_reviewer.py
import json
import logging
import re
import importlib.resources # For loading prompt from package data
from string import Template
from typing import List, Dict, Any, Optional, Sequence, TYPE_CHECKING

import litellm  # type: ignore

from .exceptions import ChunkAnalysisError

if TYPE_CHECKING:
    from .models import Chunk
    from .plugin_config import PluginConfig

logger = logging.getLogger(__name__)

NO_CUSTOM_RULES = "No custom rules provided."
FALLBACK_PROMPT = "Review this diff and answer with a JSON array of {\"file\", \"line\", \"comment\"} objects.\n" \
                  "Rules:\n${rules}\n\nDiff:\n${diff_content}"

# Keys under which models sometimes wrap the feedback array
_WRAPPER_KEYS = ("feedback", "reviews", "comments")
_CODE_FENCE_RE = re.compile(r"^```[A-Za-z]*\s*(.*?)\s*```$", re.DOTALL)


def extract_feedback(parsed: Any) -> Any:
    """
    Returns the feedback array from a parsed model response. A bare array is returned
    as is; an object wrapping one under a known key is unwrapped. Anything else is
    returned unchanged for the caller to reject.
    """
    if isinstance(parsed, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(parsed.get(key), list):
                return parsed[key]
    return parsed


class LLMReviewer:
    def __init__(self, config: 'PluginConfig'):
        """
        Initializes the LLMReviewer.

        Args:
            config: The plugin configuration object.
        """
        self.config = config
        self.prompt_template: Template = self._load_prompt_template()

    @staticmethod
    def _load_prompt_template() -> Template:
        """Loads the review prompt template from the packaged file."""
        try:
            prompt_file_ref = importlib.resources.files('codeguardian.prompts').joinpath('default_review_prompt.txt')
            prompt_template_str = prompt_file_ref.read_text(encoding='utf-8')
        except (FileNotFoundError, ModuleNotFoundError):
            logger.error("Prompt template file 'default_review_prompt.txt' not found in package. Using fallback prompt.")
            prompt_template_str = FALLBACK_PROMPT
        return Template(prompt_template_str)

    def _create_prompt_messages(self, chunk_text: str, rules: Optional[str],
                                file_paths: Sequence[str]) -> List[Dict[str, str]]:
        """
        Creates the list of messages for the LLM API call using the prompt template.
        """
        prompt = self.prompt_template.safe_substitute(
            pr_title=self.config.ci_pr_title or "N/A",
            pr_description=self.config.ci_pr_description or "N/A",
            file_paths=", ".join(file_paths) if file_paths else "see diff headers",
            rules=rules or NO_CUSTOM_RULES,
            diff_content=chunk_text,
        )
        return [
            {"role": "system", "content": prompt},
            {"role": "user", "content": "Please review the code changes above and respond with the JSON array."},
        ]

    def _completion_kwargs(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.config.llm_model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "timeout": self.config.llm_timeout,
        }
        if self.config.llm_api_key:
            kwargs["api_key"] = self.config.llm_api_key
        if self.config.llm_api_base:
            kwargs["api_base"] = self.config.llm_api_base
        # api_version only applies to Azure deployments
        if self.config.azure_api_version and "azure" in self.config.llm_model.lower():
            kwargs["api_version"] = self.config.azure_api_version
        return kwargs

    async def analyze_chunk(self, chunk_text: str, rules: Optional[str] = None,
                            file_paths: Sequence[str] = ()) -> Any:
        """
        Asks the model to review one chunk of diff text.

        Args:
            chunk_text: Diff text of the chunk.
            rules: Repository specific review rules, if any.
            file_paths: Paths covered by the chunk, mentioned in the prompt.

        Returns:
            The feedback array from the model, normally a list of dicts with
            "file", "line" and "comment". The entries are not validated here.

        Raises:
            ChunkAnalysisError: if the model is not configured, the call fails or
                the response is empty or not JSON.
        """
        if not self.config.llm_model:
            raise ChunkAnalysisError("LLM model is not configured.")

        kwargs = self._completion_kwargs(self._create_prompt_messages(chunk_text, rules, file_paths))
        logger.info(f"Sending request to LLM for {', '.join(file_paths) or 'chunk'}, model: {self.config.llm_model}")
        if logger.isEnabledFor(logging.DEBUG):
            # Avoid logging potentially large messages payload unless DEBUG is on
            debug_kwargs = {k: (v if k not in ("messages", "api_key") else "[REDACTED]") for k, v in kwargs.items()}
            logger.debug(f"LiteLLM Request kwargs: {json.dumps(debug_kwargs, indent=2, default=str)}")

        try:
            response = await litellm.acompletion(**kwargs)
        except litellm.exceptions.RateLimitError as e: # type: ignore
            raise ChunkAnalysisError(f"LiteLLM Rate Limit Error: {e}") from e
        except litellm.exceptions.APIConnectionError as e: # type: ignore
            raise ChunkAnalysisError(f"LiteLLM API Connection Error: {e}") from e
        except litellm.exceptions.APIError as e: # type: ignore
            raise ChunkAnalysisError(f"LiteLLM API Error (Status: {e.status_code}): {e.message}") from e

        content: Optional[str] = None
        if response and response.choices and response.choices[0].message:
            content = response.choices[0].message.content
        if not content or not content.strip():
            raise ChunkAnalysisError("LLM returned empty content.")

        content = content.strip()
        fenced = _CODE_FENCE_RE.match(content)
        if fenced:
            content = fenced.group(1)

        logger.debug(f"LLM response content to parse: {content}")
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"LLM Raw Response Content that failed parsing: {content[:1000]}...")
            raise ChunkAnalysisError(f"Failed to parse JSON response from LLM: {e}") from e

        feedback = extract_feedback(parsed)
        if isinstance(feedback, list):
            logger.info(f"Received {len(feedback)} review suggestions from LLM.")
        return feedback

    def make_analyzer(self, rules: Optional[str] = None):
        """Binds the repository rules into a per-chunk analyzer for the review engine."""
        async def analyze(chunk: 'Chunk') -> Any:
            return await self.analyze_chunk(chunk.content, rules, chunk.paths)
        return analyze
