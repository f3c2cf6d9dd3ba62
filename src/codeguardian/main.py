# src/codeguardian/main.py
import os
import sys
import asyncio # For running async LLM calls
import logging
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv # For local development using .env file

from . import __version__
from .plugin_config import load_plugin_config, PluginConfig
from .llm_auth_helper import setup_litellm_provider_env
from .llm_reviewer import LLMReviewer
from .scm_client import SCMClient
from .review_engine import ReviewEngine
from .models import ReviewResult

# Global logger for the module
logger = logging.getLogger("codeguardian") # Use a named logger

NULL_SHA = "0" * 40


def setup_logging(log_level_str: str):
    """Configures basic logging for the plugin."""
    numeric_level = getattr(logging, log_level_str.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    # LiteLLM is chatty at INFO
    logging.getLogger("LiteLLM").setLevel(max(numeric_level, logging.WARNING))


def parse_repo_link(link: str) -> Optional[tuple]:
    """Returns (owner, name) from a repository URL, or None if it cannot be parsed."""
    parsed_url = urlparse(link)
    path_segments = [segment for segment in parsed_url.path.split('/') if segment]
    if path_segments and path_segments[-1].endswith(".git"):
        path_segments[-1] = path_segments[-1][:-4]
    if len(path_segments) < 2:
        return None
    # Last part is the repo, everything before is owner/namespace
    return "/".join(path_segments[:-1]), path_segments[-1]


def populate_ci_environment_info(config: PluginConfig, scm_client: SCMClient):
    """
    Populates the PluginConfig object with information derived from Drone CI
    environment variables. Leaves config.is_pr_event False when there is nothing to review.
    """
    logger.info("Populating CI environment information into config...")
    config.ci_system = "drone"

    # --- Event Type ---
    config.ci_event_name = os.getenv("DRONE_BUILD_EVENT")
    pr_number_str = os.getenv("DRONE_PULL_REQUEST")
    config.is_pr_event = False

    if not pr_number_str:
        logger.info("Not a PR event (DRONE_PULL_REQUEST not set). Skipping review process.")
        return
    try:
        config.ci_pr_number = int(pr_number_str)
    except ValueError:
        logger.error(f"Invalid DRONE_PULL_REQUEST value: {pr_number_str}. Not a number.")
        return

    # --- Repository Info ---
    config.ci_repo_owner = os.getenv("DRONE_REPO_OWNER")
    config.ci_repo_name = os.getenv("DRONE_REPO_NAME")
    config.ci_repo_link = os.getenv("DRONE_REPO_LINK")
    if not (config.ci_repo_owner and config.ci_repo_name) and config.ci_repo_link:
        parsed = parse_repo_link(config.ci_repo_link)
        if parsed:
            config.ci_repo_owner, config.ci_repo_name = parsed
    if not (config.ci_repo_owner and config.ci_repo_name):
        logger.error("Could not determine repository owner and name. SCM operations will fail.")
        return
    config.ci_repo_full_name = f"{config.ci_repo_owner}/{config.ci_repo_name}"

    # --- SHAs ---
    config.ci_head_sha = os.getenv("DRONE_COMMIT_SHA") or os.getenv("DRONE_COMMIT") or os.getenv("DRONE_COMMIT_AFTER")
    if not config.ci_head_sha:
        logger.error("Could not determine head SHA (DRONE_COMMIT_SHA / DRONE_COMMIT / DRONE_COMMIT_AFTER missing).")
        return

    config.ci_pr_title = os.getenv("DRONE_PULL_REQUEST_TITLE") # May be overridden by SCM API call
    config.ci_target_branch = os.getenv("DRONE_TARGET_BRANCH")

    # --- Determine Event Action and Base SHA ---
    if config.ci_event_name == "pull_request":
        config.is_pr_opened_event = True
        config.ci_event_action = "opened"
        config.ci_base_sha = os.getenv("DRONE_PULL_REQUEST_BASE_SHA")
        if not config.ci_base_sha and config.ci_target_branch:
            logger.info("DRONE_PULL_REQUEST_BASE_SHA not found for 'opened' PR. Fetching target branch head.")
            config.ci_base_sha = scm_client.get_target_branch_head_sha()
    elif config.ci_event_name == "push":
        config.is_pr_synchronize_event = True
        config.ci_event_action = "synchronize"
        config.ci_base_sha = os.getenv("DRONE_COMMIT_BEFORE")
        if not config.ci_base_sha or config.ci_base_sha == NULL_SHA:
            logger.error(f"DRONE_COMMIT_BEFORE is missing or null for 'push' event on PR #{config.ci_pr_number}.")
            return
        if config.ci_base_sha == config.ci_head_sha:
            logger.info(f"Base SHA is same as Head SHA ({config.ci_head_sha}). No changes to review.")
            return
    else:
        logger.info(f"Unhandled DRONE_BUILD_EVENT '{config.ci_event_name}' for PR review logic.")
        return

    config.is_pr_event = True
    logger.info(f"Determined event action: {config.ci_event_action}, Base SHA: {config.ci_base_sha}, "
                f"Head SHA: {config.ci_head_sha}")


def log_run_summary(result: ReviewResult, posting_failures: int = 0):
    summary = result.summary()
    logger.info("Comment processing complete:")
    logger.info(f"- Chunks analyzed: {summary['chunks']} (failed: {summary['failed_chunks']})")
    logger.info(f"- Accepted: {summary['accepted']}")
    logger.info(f"- Rejected: {summary['rejected']}")
    logger.info(f"- Failed to post: {posting_failures}")

    for failure in result.failures:
        logger.warning(f"  - chunk {failure.sequence_index} ({failure.label}): {failure.reason}")
    for outcome in result.rejected:
        logger.warning(f"  - {outcome.file}:{outcome.line}: {outcome.reason.value} ({outcome.detail})")


async def review_pr(config: PluginConfig, scm_client: SCMClient, llm_reviewer: LLMReviewer,
                    engine: Optional[ReviewEngine] = None) -> bool:
    """
    Main Pull Request review process.
    """
    if not config.is_pr_event:
        logger.info("Not a valid PR event for review. Skipping.")
        return True # Not a failure, just nothing to do.

    logger.info(f"Fetching details for PR #{config.ci_pr_number}...")
    if not scm_client.get_pr_details():
        # LLMReviewer uses "N/A" for a missing title/description
        logger.warning(f"Failed to fetch PR details for PR #{config.ci_pr_number}. Proceeding without them.")

    diff_text: Optional[str] = None
    if config.is_pr_synchronize_event:
        logger.info(f"Fetching diff for synchronized PR #{config.ci_pr_number} "
                    f"(Base: {config.ci_base_sha}, Head: {config.ci_head_sha})...")
        diff_text = scm_client.compare_commits_diff()
    else:
        logger.info(f"Fetching full diff for PR #{config.ci_pr_number}...")
        diff_text = scm_client.get_pr_diff()

    if not diff_text:
        logger.warning("No diff text could be retrieved. Skipping review.")
        return True # No diff means nothing to review, not a failure.

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Retrieved diff text (first 1000 chars):\n{diff_text[:1000]}")

    rules = scm_client.get_file_content(config.rules_file, config.ci_head_sha)
    if rules:
        logger.info(f"Found {config.rules_file} file with custom rules.")

    engine = engine or ReviewEngine(config.chunking)
    result = await engine.review(diff_text, llm_reviewer.make_analyzer(rules))

    if not result.accepted:
        logger.info("No valid review comments generated by the LLM across all chunks.")
        log_run_summary(result)
        return True

    posting = scm_client.post_review_comments(result.accepted)
    log_run_summary(result, len(posting.failed))
    if not posting.posted:
        logger.error("Failed to post any review comments to SCM.")
        return False
    return True


async def async_main():
    """
    Asynchronous main function to orchestrate the plugin.
    """
    config = load_plugin_config()
    setup_logging(config.log_level) # Configure logging early

    logger.info(f"Starting CodeGuardian PR Reviewer {__version__}...")

    if not config.llm_model:
        logger.critical("PLUGIN_LLM_MODEL is not configured. Cannot proceed.")
        return 1
    if not config.scm_token:
        logger.critical("PLUGIN_SCM_TOKEN is not configured. Cannot proceed.")
        return 1

    setup_litellm_provider_env(config)
    scm_client = SCMClient(config)
    populate_ci_environment_info(config, scm_client)
    llm_reviewer = LLMReviewer(config)

    try:
        success = await review_pr(config, scm_client, llm_reviewer)
        logger.info(f"Plugin execution finished. Success: {success}")
        return 0 if success else 1
    except Exception as e:
        logger.critical(f"Unhandled exception in plugin execution: {e}", exc_info=True)
        return 1 # General failure


def main_cli():
    """
    CLI entry point. Loads .env for local dev.
    """
    # In a real CI environment, variables are injected by the system.
    if os.path.exists(".env"):
        load_dotenv(override=True)
    elif os.path.exists("../.env"): # Check one level up for monorepo structure
        load_dotenv(dotenv_path="../.env", override=True)

    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Plugin execution interrupted by user (KeyboardInterrupt).")
        return 130 # Standard exit code for Ctrl+C


if __name__ == "__main__":
    sys.exit(main_cli())
