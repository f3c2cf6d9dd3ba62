# src/codeguardian/scm_client.py
import json
import logging
from typing import List, Dict, Any, Optional, TYPE_CHECKING
from urllib.parse import quote

import requests # Using requests library for HTTP calls

from .exceptions import SCMRequestError
from .models import FeedbackItem, PostingResult, SCMPRDetails

if TYPE_CHECKING:
    from .plugin_config import PluginConfig

logger = logging.getLogger(__name__)

DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
RAW_MEDIA_TYPE = "application/vnd.github.raw"
REQUEST_TIMEOUT = 30
REVIEW_BODY = "CodeGuardian review suggestions:"


class SCMClient:
    """
    GitHub REST client for the few calls a review run needs: fetch the diff and the
    rules file, and post line comments. Self-hosted instances are reached through
    PLUGIN_SCM_API_URL.
    """
    def __init__(self, config: 'PluginConfig'):
        self.config = config
        self.api_base_url = config.scm_api_url
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "Authorization": f"token {self.config.scm_token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        logger.info(f"SCM Client initialized for base URL: {self.api_base_url}")

    @property
    def _repo_endpoint(self) -> str:
        return f"/repos/{self.config.ci_repo_owner}/{self.config.ci_repo_name}"

    def _send(self, method: str, endpoint: str, params: Optional[Dict] = None, json_data: Optional[Dict] = None,
              expected_status: int = 200, custom_headers: Optional[Dict] = None) -> Any:
        """
        Makes an HTTP request and returns the parsed body: text for non-JSON media
        types, decoded JSON otherwise, True for empty successful responses.

        Raises:
            SCMRequestError: on transport errors or an unexpected status code.
        """
        url = f"{self.api_base_url}{endpoint}"
        request_headers = self.headers.copy()
        if custom_headers:
            request_headers.update(custom_headers)

        logger.debug(f"Making SCM API {method} request to {url} with params {params}")
        try:
            response = requests.request(method, url, headers=request_headers, params=params, json=json_data,
                                        timeout=REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise SCMRequestError(f"SCM API request to {url} encountered an exception: {e}") from e

        if response.status_code != expected_status:
            raise SCMRequestError(f"SCM API request to {url} failed with status {response.status_code}: "
                                  f"{response.text[:500]}", status_code=response.status_code)
        if not response.content:
            return True # Successful call with no content (e.g., 204 No Content)
        if request_headers["Accept"] in (DIFF_MEDIA_TYPE, RAW_MEDIA_TYPE):
            return response.text
        return response.json()

    def _request(self, method: str, endpoint: str, **kwargs) -> Optional[Any]:
        """Like _send, but logs failures and returns None instead of raising."""
        try:
            return self._send(method, endpoint, **kwargs)
        except SCMRequestError as e:
            logger.error(str(e))
            return None

    def _has_pr_context(self) -> bool:
        return bool(self.config.ci_repo_owner and self.config.ci_repo_name and self.config.ci_pr_number)

    def get_pr_details(self) -> Optional[SCMPRDetails]:
        """
        Fetches the PR title and description, which CI variables do not fully provide,
        and stores them on the config for the prompt.
        """
        if not self._has_pr_context():
            logger.error("Cannot fetch PR details: Missing repo owner, name, or PR number in config.")
            return None

        endpoint = f"{self._repo_endpoint}/pulls/{self.config.ci_pr_number}"
        logger.info(f"Fetching PR details from SCM: {endpoint}")
        response_data = self._request("GET", endpoint)
        if not isinstance(response_data, dict):
            logger.error(f"Failed to fetch or parse PR details for PR #{self.config.ci_pr_number}.")
            return None

        title = response_data.get("title") or self.config.ci_pr_title or "N/A"
        description = response_data.get("body") or "" # Body can be None
        self.config.ci_pr_title = title
        self.config.ci_pr_description = description
        return SCMPRDetails(pr_id=self.config.ci_pr_number, title=title, description=description)

    def get_pr_diff(self) -> Optional[str]:
        """Fetches the diff of the whole pull request."""
        if not self._has_pr_context():
            logger.error("Cannot fetch PR diff: Missing repo owner, name, or PR number.")
            return None

        endpoint = f"{self._repo_endpoint}/pulls/{self.config.ci_pr_number}"
        logger.info(f"Fetching full PR diff from SCM: {endpoint}")
        diff_text = self._request("GET", endpoint, custom_headers={"Accept": DIFF_MEDIA_TYPE})
        if isinstance(diff_text, str):
            logger.info(f"Successfully fetched PR diff (length: {len(diff_text)}).")
            return diff_text
        logger.error(f"Failed to fetch PR diff for PR #{self.config.ci_pr_number}.")
        return None

    def compare_commits_diff(self) -> Optional[str]:
        """
        Fetches the diff between base_sha and head_sha from config.
        Used for "synchronize" events, so only the new commits are reviewed.
        """
        if not (self.config.ci_repo_owner and self.config.ci_repo_name and
                self.config.ci_base_sha and self.config.ci_head_sha):
            logger.error("Cannot compare commits: Missing repo owner/name or base/head SHAs.")
            return None

        endpoint = f"{self._repo_endpoint}/compare/{self.config.ci_base_sha}...{self.config.ci_head_sha}"
        logger.info(f"Fetching commit comparison diff from SCM: {endpoint}")
        diff_text = self._request("GET", endpoint, custom_headers={"Accept": DIFF_MEDIA_TYPE})
        if isinstance(diff_text, str):
            logger.info(f"Successfully fetched commit comparison diff (length: {len(diff_text)}).")
            return diff_text
        logger.error("Failed to fetch commit comparison diff.")
        return None

    def get_target_branch_head_sha(self) -> Optional[str]:
        """
        Fetches the HEAD SHA of the PR's target branch.
        Needed for 'opened' PR events when the CI does not provide the base SHA.
        """
        if not (self.config.ci_repo_owner and self.config.ci_repo_name and self.config.ci_target_branch):
            logger.error("Cannot fetch target branch head SHA: Missing repo owner/name or target branch.")
            return None

        endpoint = f"{self._repo_endpoint}/git/ref/heads/{self.config.ci_target_branch}"
        response_data = self._request("GET", endpoint)
        if isinstance(response_data, dict) and "sha" in response_data.get("object", {}):
            sha = response_data["object"]["sha"]
            logger.info(f"Target branch '{self.config.ci_target_branch}' head SHA: {sha}")
            return sha

        logger.error(f"Failed to fetch target branch head SHA for '{self.config.ci_target_branch}'.")
        return None

    def get_file_content(self, path: str, ref: Optional[str] = None) -> Optional[str]:
        """
        Returns the text of a file at the given commit, or None if it does not exist
        there or cannot be fetched.
        """
        if not (self.config.ci_repo_owner and self.config.ci_repo_name):
            logger.error("Cannot fetch file content: Missing repo owner or name.")
            return None

        endpoint = f"{self._repo_endpoint}/contents/{quote(path)}"
        params = {"ref": ref} if ref else None
        try:
            content = self._send("GET", endpoint, params=params, custom_headers={"Accept": RAW_MEDIA_TYPE})
        except SCMRequestError as e:
            if e.status_code == 404:
                logger.info(f"File {path} not found at {ref or 'default branch'}.")
            else:
                logger.error(f"Failed to fetch {path}: {e}")
            return None
        return content if isinstance(content, str) else None

    def _post_single_comment(self, item: FeedbackItem) -> None:
        endpoint = f"{self._repo_endpoint}/pulls/{self.config.ci_pr_number}/comments"
        payload = {
            "body": item.comment,
            "commit_id": self.config.ci_head_sha,
            "path": item.file,
            "line": item.line,
            "side": "RIGHT",
        }
        self._send("POST", endpoint, json_data=payload, expected_status=201)

    def post_review_comments(self, items: List[FeedbackItem]) -> PostingResult:
        """
        Posts validated feedback as line comments on the pull request.

        All comments go out in a single review first. If that request fails, each
        comment is posted on its own so one bad comment does not sink the rest;
        failures are reported per item.
        """
        result = PostingResult()
        if not items:
            logger.info("No comments to post.")
            return result

        if not (self._has_pr_context() and self.config.ci_head_sha):
            logger.error("Cannot post review comments: Missing repo owner, name, PR number, or head SHA.")
            result.failed = [{"item": item, "error": "missing PR context"} for item in items]
            return result

        # `line` is the absolute line in the new file; side RIGHT anchors it to the new version
        payload = {
            "commit_id": self.config.ci_head_sha,
            "event": "COMMENT",
            "body": REVIEW_BODY,
            "comments": [
                {"path": item.file, "line": item.line, "side": "RIGHT", "body": item.comment}
                for item in items
            ],
        }
        endpoint = f"{self._repo_endpoint}/pulls/{self.config.ci_pr_number}/reviews"
        logger.info(f"Batch posting {len(items)} review comments to PR #{self.config.ci_pr_number}.")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Review payload: {json.dumps(payload, indent=2)}")

        try:
            self._send("POST", endpoint, json_data=payload, expected_status=200)
            result.posted = list(items)
            return result
        except SCMRequestError as e:
            logger.error(f"Batch posting failed: {e}. Falling back to posting comments individually.")

        for item in items:
            try:
                self._post_single_comment(item)
                result.posted.append(item)
            except SCMRequestError as e:
                logger.warning(f"Failed to post comment on {item.file}:{item.line}: {e}")
                result.failed.append({"item": item, "error": str(e)})
        return result
