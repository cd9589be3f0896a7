#!/usr/bin/env python3
"""
Weekly Commit Report Generator
Summarizes your commits across an organization's repositories, week by week.
"""

import argparse
import getpass
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

import repo_prompts
from config_manager import DEFAULT_CONFIG_PATH, ConfigManager
from github_service import GitHubAPIError, GitHubService, check_connection
from weekly_report import ReportGenerator


def setup_argument_parser() -> argparse.ArgumentParser:
    """Setup and return the argument parser."""
    parser = argparse.ArgumentParser(
        description='Generate a weekly report of your commits across organization repositories.'
    )
    parser.add_argument(
        '--org', '-o',
        help='GitHub organization name (or set GITHUB_ORG env var)',
        default=os.environ.get('GITHUB_ORG')
    )
    parser.add_argument(
        '--user', '-u',
        help='GitHub username whose commits to report (default: authenticated user)',
        default=os.environ.get('GITHUB_USERNAME')
    )
    parser.add_argument(
        '--weeks', '-w',
        type=int,
        default=1,
        help='Number of weeks to look back (default: 1)'
    )
    parser.add_argument(
        '--repos', '-r',
        nargs='+',
        help='Specific repositories to check (space or comma separated)'
    )
    parser.add_argument(
        '--format', '-f',
        choices=ReportGenerator.FORMATS,
        default='markdown',
        help='Output format (default: markdown)'
    )
    parser.add_argument(
        '--output',
        help='Output file path (default: print to stdout)'
    )
    parser.add_argument(
        '--config', '-c',
        default=str(DEFAULT_CONFIG_PATH),
        help=f'Path to config file (default: {DEFAULT_CONFIG_PATH})'
    )
    parser.add_argument(
        '--token',
        help='GitHub personal access token (default: config file, then GITHUB_TOKEN env var)'
    )
    parser.add_argument(
        '--tz',
        default=os.environ.get('REPORT_TZ'),
        help='Time zone for week boundaries, e.g. Europe/Berlin (default: system local)'
    )
    parser.add_argument(
        '--test',
        action='store_true',
        help='Test GitHub API connection and credentials'
    )
    return parser


def parse_repo_names(values: Optional[List[str]]) -> List[str]:
    """Flatten '--repos a,b c' into ['a', 'b', 'c']."""
    names = []
    for value in values or []:
        for name in value.split(','):
            name = name.strip()
            if name and name not in names:
                names.append(name)
    return names


def resolve_timezone(name: Optional[str]):
    """Return a ZoneInfo for name, or None for the system local zone."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        print(f"Error: unknown time zone '{name}'", file=sys.stderr)
        sys.exit(1)


def resolve_token(args, config: ConfigManager, input_fn=getpass.getpass) -> str:
    """Use the given token or the stored one, prompting (and saving) when there is none."""
    token = args.token or config.get_token()
    if token:
        return token

    print("To create a token, visit: https://github.com/settings/tokens", file=sys.stderr)
    try:
        token = repo_prompts.prompt_secret('Enter your GitHub personal access token:',
                                           input_fn)
    except EOFError:
        print("Error: GitHub token is required. Set GITHUB_TOKEN environment variable "
              "or use --token flag.", file=sys.stderr)
        sys.exit(1)
    config.set_token(token)
    print("Token saved to config file", file=sys.stderr)
    return token


def resolve_organization(args, config: ConfigManager, input_fn=input) -> str:
    if args.org:
        return args.org
    return repo_prompts.select_organization(config, input_fn)


def _fetch_named_repos(github: GitHubService, org: str, names: List[str]) -> List[Dict]:
    repositories = []
    for name in names:
        try:
            repositories.append(github.get_repository(org, name))
        except GitHubAPIError:
            print(f"Warning: Repository {name} not found or not accessible", file=sys.stderr)
    return repositories


def resolve_repositories(args, github: GitHubService, config: ConfigManager,
                         org: str, input_fn=input) -> List[Dict]:
    """
    Decide which repositories to report on.

    Repositories named on the command line win, then saved favorites, then an
    interactive selection.
    """
    specified = parse_repo_names(args.repos)
    if specified:
        config.add_favorite_repos(org, specified)
        repositories = _fetch_named_repos(github, org, specified)
        print(f"Using {len(repositories)} specified repositories", file=sys.stderr)
        return repositories

    favorites = config.get_favorite_repos(org)
    if favorites and repo_prompts.prompt_confirm(
            f"Would you like to use your {len(favorites)} favorite repositories for {org}?",
            input_fn):
        repositories = _fetch_named_repos(github, org, favorites)
        print(f"Using {len(repositories)} favorite repositories", file=sys.stderr)
        return repositories

    return repo_prompts.select_repositories(github, org, config, input_fn)


def calculate_date_range(weeks: int, now: Optional[datetime] = None):
    """Return (since, until) covering the last number of weeks."""
    until = now or datetime.now(timezone.utc)
    return until - timedelta(days=weeks * 7), until


def save_or_print_report(report: str, output_path: str = None) -> None:
    """Save report to file or print to stdout."""
    if output_path:
        path = Path(output_path).resolve()
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            f.write(report)
        print(f"Report saved to {path}", file=sys.stderr)
    else:
        print(report)


def main(argv=None):
    """Main entry point for the script."""
    load_dotenv()
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    if args.weeks < 1:
        parser.error('--weeks must be at least 1')
    tz = resolve_timezone(args.tz)

    config = ConfigManager(args.config)
    token = resolve_token(args, config)

    if args.test:
        success = check_connection(token)
        sys.exit(0 if success else 1)

    github = GitHubService(token)
    try:
        user = github.get_authenticated_user()
    except GitHubAPIError as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Authenticated as {user['login']}", file=sys.stderr)
    author = args.user or user['login']

    org = resolve_organization(args, config)
    since, until = calculate_date_range(args.weeks)
    print(f"Looking for commits between {since.date().isoformat()} and "
          f"{until.date().isoformat()}", file=sys.stderr)

    repositories = resolve_repositories(args, github, config, org)
    if not repositories:
        print("No repositories selected. Exiting.", file=sys.stderr)
        sys.exit(1)

    commits = github.fetch_commit_records(repositories, author, since, until)
    print(f"Found {len(commits)} commits across all repositories", file=sys.stderr)

    report = ReportGenerator(args.format, tz).generate_report(commits)
    save_or_print_report(report, args.output)


if __name__ == '__main__':
    main()
