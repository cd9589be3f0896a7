"""
Terminal prompts for picking the organization and repositories to report on.
"""

import getpass
import sys
from typing import Callable, Dict, List, Optional, Sequence

from config_manager import ConfigManager
from github_service import GitHubAPIError, GitHubService


RECENT_REPO_LIMIT = 10
NEW_ORG_CHOICE = '+ Add a new organization'

InputFn = Callable[[str], str]


def prompt_text(message: str, input_fn: InputFn = input, required: bool = True,
                required_message: str = 'A value is required') -> str:
    """Ask for a line of text, re-asking while a required answer is empty."""
    while True:
        answer = input_fn(f"{message} ").strip()
        if answer or not required:
            return answer
        print(required_message, file=sys.stderr)


def prompt_secret(message: str, input_fn: InputFn = getpass.getpass) -> str:
    return prompt_text(message, input_fn=input_fn, required_message='Token is required')


def prompt_confirm(message: str, input_fn: InputFn = input, default: bool = True) -> bool:
    suffix = '[Y/n]' if default else '[y/N]'
    while True:
        answer = input_fn(f"{message} {suffix} ").strip().lower()
        if not answer:
            return default
        if answer in ('y', 'yes'):
            return True
        if answer in ('n', 'no'):
            return False
        print("Please answer 'y' or 'n'", file=sys.stderr)


def _print_choices(labels: Sequence[str]) -> None:
    for number, label in enumerate(labels, start=1):
        print(f"  {number}) {label}", file=sys.stderr)


def prompt_choice(message: str, labels: Sequence[str], input_fn: InputFn = input) -> int:
    """
    Ask the user to pick one entry from a numbered list.

    Returns:
        Zero-based index of the chosen entry
    """
    print(message, file=sys.stderr)
    _print_choices(labels)
    while True:
        answer = input_fn('Enter a number: ').strip()
        if answer.isdigit() and 1 <= int(answer) <= len(labels):
            return int(answer) - 1
        print(f"Please enter a number between 1 and {len(labels)}", file=sys.stderr)


def parse_selection(answer: str, count: int) -> Optional[List[int]]:
    """
    Parse '1,3,5-7' style answers into zero-based indexes.

    Returns None when the answer contains anything out of range or unparsable.
    """
    indexes: List[int] = []
    for part in answer.replace(' ', '').split(','):
        if not part:
            continue
        if '-' in part:
            low, _, high = part.partition('-')
            if not (low.isdigit() and high.isdigit()) or int(low) > int(high):
                return None
            numbers = range(int(low), int(high) + 1)
        elif part.isdigit():
            numbers = [int(part)]
        else:
            return None
        for number in numbers:
            if not 1 <= number <= count:
                return None
            if number - 1 not in indexes:
                indexes.append(number - 1)
    return indexes


def prompt_checkbox(message: str, labels: Sequence[str], input_fn: InputFn = input) -> List[int]:
    """Ask for one or more entries from a numbered list."""
    print(message, file=sys.stderr)
    _print_choices(labels)
    while True:
        answer = input_fn("Enter numbers (e.g. 1,3,5-7): ")
        indexes = parse_selection(answer, len(labels))
        if indexes:
            return indexes
        print('You must select at least one repository', file=sys.stderr)


def select_organization(config: ConfigManager, input_fn: InputFn = input) -> str:
    """Pick a saved organization or register a new one."""
    saved_orgs = config.get_organizations()
    if saved_orgs:
        labels = list(saved_orgs) + [NEW_ORG_CHOICE]
        index = prompt_choice('Select a GitHub organization:', labels, input_fn)
        if index < len(saved_orgs):
            return saved_orgs[index]
        org = prompt_text('Enter the organization name:', input_fn,
                          required_message='Organization name is required')
    else:
        org = prompt_text('Enter the GitHub organization name:', input_fn,
                          required_message='Organization name is required')
    config.add_organization(org)
    return org


def _describe_repo(repo: Dict) -> str:
    return f"{repo['name']} ({repo.get('description') or 'No description'})"


def select_repositories(github: GitHubService, org: str, config: ConfigManager,
                        input_fn: InputFn = input) -> List[Dict]:
    """
    Interactively choose repositories of an organization.

    Args:
        github: Service used to list the organization's repositories
        org: Organization login
        config: Config that stores chosen repositories as favorites
        input_fn: Source of user answers

    Returns:
        Selected repository dictionaries, empty when nothing can be listed
    """
    print(f"Fetching repositories for {org}...", file=sys.stderr)
    try:
        all_repos = github.get_organization_repos(org)
    except GitHubAPIError as e:
        print(f"Failed to fetch repositories: {e}", file=sys.stderr)
        return []

    print(f"Found {len(all_repos)} repositories in {org}", file=sys.stderr)
    if not all_repos:
        print('No repositories found in this organization.', file=sys.stderr)
        return []

    recent_repos = sorted(all_repos, key=lambda repo: repo.get('updated_at') or '',
                          reverse=True)[:RECENT_REPO_LIMIT]
    actions = [
        'Choose from recently updated repositories',
        'Search for specific repositories',
        'Select from all repositories (may be slow for large orgs)',
    ]

    while True:
        action = prompt_choice('How would you like to select repositories?', actions, input_fn)
        if action == 0:
            candidates = recent_repos
        elif action == 1:
            query = prompt_text('Enter search term for repository names:', input_fn,
                                required_message='Search term is required')
            candidates = [repo for repo in all_repos if query.lower() in repo['name'].lower()]
            if not candidates:
                print(f'No repositories found matching "{query}"', file=sys.stderr)
                continue
        else:
            candidates = all_repos
        break

    indexes = prompt_checkbox('Select repositories to include:',
                              [_describe_repo(repo) for repo in candidates], input_fn)
    selected = [candidates[index] for index in indexes]

    if prompt_confirm('Would you like to save these repositories as favorites for future use?',
                      input_fn):
        names = [repo['name'] for repo in selected]
        config.add_favorite_repos(org, names)
        print(f"Saved {len(names)} repositories as favorites", file=sys.stderr)

    return selected
