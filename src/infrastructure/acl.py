import re
from typing import Any, Optional
from src.domain.models import GitHubFields

# owner and repo are limited to word characters, dots, underscores and hyphens,
# so anything after the repo segment (/tree/master, #readme, ...) is ignored.
GITHUB_PATH_RE = re.compile(r"https?://github\.com/([\w._-]+)/([\w._-]+)", re.IGNORECASE)
GIT_SUFFIX = ".git"


def extract_github_path(url: Any) -> Optional[str]:
    """
    Returns the normalized ``owner/repo`` identifier for a github.com URL.

    A trailing ``.git`` is stripped once; other suffixes such as ``.rs`` are
    part of the repository name and kept. Returns None for anything else,
    it never raises.
    """
    if not isinstance(url, str):
        return None

    match = GITHUB_PATH_RE.search(url)
    if match is None:
        return None

    owner, repo = match.group(1), match.group(2)
    if repo.endswith(GIT_SUFFIX):
        repo = repo[:-len(GIT_SUFFIX)]
    if not repo:
        return None

    return f"{owner}/{repo}"


class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST repository payloads into GitHubFields instances.
    """

    @staticmethod
    def to_domain(raw_repo: dict) -> GitHubFields:
        """
        Transforms a decoded ``GET /repos/{owner}/{repo}`` payload into GitHubFields.

        Missing or wrong-typed fields get their defaults, so this never fails
        on an individual field.

        Args:
            raw_repo (dict): The JSON object returned by the GitHub REST API.

        Returns:
            GitHubFields: The fully populated metadata snapshot.
        """
        return GitHubFields.model_validate(raw_repo)
