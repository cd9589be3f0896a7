"""
GitHub REST client used to collect commits for the weekly report.
"""

import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from weekly_report import CommitRecord, MalformedCommitError


GITHUB_API_URL = 'https://api.github.com'
PER_PAGE = 100
REQUEST_TIMEOUT = 30


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _auth_headers(token: str) -> Dict[str, str]:
    return {
        'Authorization': f'token {token}',
        'Accept': 'application/vnd.github.v3+json'
    }


class GitHubService:
    """Fetch organizations, repositories and commits from GitHub."""

    def __init__(self, token: str):
        """
        Initialize the GitHub service.

        Args:
            token: GitHub personal access token
        """
        self.token = token
        self.headers = _auth_headers(token)
        self.base_url = GITHUB_API_URL

    def _make_request(self, endpoint: str, params: Dict = None) -> Any:
        """Make a request to the GitHub API."""
        url = f"{self.base_url}/{endpoint}"
        try:
            response = requests.get(url, headers=self.headers, params=params,
                                    timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            status_code = e.response.status_code if e.response is not None else None
            raise GitHubAPIError(f"Error making request to {endpoint}: {e}",
                                 status_code) from e

    def _get_all_pages(self, endpoint: str, params: Dict = None) -> List[Dict]:
        """Follow page numbers until GitHub returns a short page."""
        items = []
        page = 1
        while True:
            page_params = dict(params or {}, per_page=PER_PAGE, page=page)
            page_items = self._make_request(endpoint, page_params) or []
            items.extend(page_items)
            if len(page_items) < PER_PAGE:
                return items
            page += 1

    def get_authenticated_user(self) -> Dict:
        """Return the user the token belongs to."""
        try:
            return self._make_request('user')
        except GitHubAPIError as e:
            raise GitHubAPIError(f"Failed to get authenticated user: {e}", e.status_code) from e

    def get_organization_repos(self, org: str) -> List[Dict]:
        """List every repository of an organization."""
        try:
            return self._get_all_pages(f"orgs/{org}/repos")
        except GitHubAPIError as e:
            raise GitHubAPIError(f"Failed to fetch repositories for {org}: {e}",
                                 e.status_code) from e

    def get_repository(self, owner: str, repo: str) -> Dict:
        """Fetch a single repository."""
        return self._make_request(f"repos/{owner}/{repo}")

    def get_commits_for_repo(self, owner: str, repo: str, author: str,
                             since: datetime, until: datetime) -> List[Dict]:
        """
        Fetch commits by one author in a repository.

        Args:
            owner: Repository owner (organization or user login)
            repo: Repository name
            author: GitHub login of the commit author
            since: Earliest commit date
            until: Latest commit date

        Returns:
            List of commit dictionaries, empty for an empty repository
        """
        params = {
            'author': author,
            'since': since.isoformat(),
            'until': until.isoformat(),
        }
        try:
            return self._get_all_pages(f"repos/{owner}/{repo}/commits", params)
        except GitHubAPIError as e:
            # 409 Conflict: the repository has no commits yet
            if e.status_code == 409:
                return []
            raise GitHubAPIError(f"Failed to fetch commits for {owner}/{repo}: {e}",
                                 e.status_code) from e

    def fetch_commit_records(self, repositories: List[Dict], author: str,
                             since: datetime, until: datetime) -> List[CommitRecord]:
        """
        Collect commits across repositories as report records.

        A repository that cannot be read is reported and skipped.
        """
        records = []
        for index, repo in enumerate(repositories, start=1):
            repo_name = repo['name']
            print(f"Fetching commits for {repo_name} ({index}/{len(repositories)})",
                  file=sys.stderr)
            try:
                commits = self.get_commits_for_repo(
                    repo['owner']['login'], repo_name, author, since, until
                )
                repo_records = [CommitRecord.from_api(commit, repo_name) for commit in commits]
                records.extend(repo_records)
            except (GitHubAPIError, MalformedCommitError) as e:
                print(f"Error fetching commits for {repo_name}: {e}", file=sys.stderr)
        return records


def check_connection(token: str) -> bool:
    """Test GitHub API connection and credentials."""
    print("Testing GitHub API connection...", file=sys.stderr)

    try:
        response = requests.get(
            f'{GITHUB_API_URL}/user',
            headers=_auth_headers(token),
            timeout=REQUEST_TIMEOUT
        )
    except requests.exceptions.RequestException as e:
        print(f"❌ Connection error: {e}", file=sys.stderr)
        return False

    if response.status_code == 200:
        user_data = response.json()
        print("✅ Connected successfully", file=sys.stderr)
        print(f"   User: {user_data.get('login')}", file=sys.stderr)
        rate_limit = response.headers.get('X-RateLimit-Remaining')
        rate_total = response.headers.get('X-RateLimit-Limit')
        print(f"   API rate limit: {rate_limit}/{rate_total} remaining", file=sys.stderr)
        return True
    elif response.status_code == 401:
        print("❌ Invalid token. Check your GITHUB_TOKEN", file=sys.stderr)
        return False
    else:
        print(f"❌ API error: {response.status_code}", file=sys.stderr)
        return False
