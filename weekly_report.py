"""
Weekly Commit Report
Groups a user's commits into calendar weeks, turns them into categorized tasks
and renders the result as text, Markdown or JSON.
"""

import json
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple


WEEK_RULE_WIDTH = 60
MERGE_PREFIX = 'Merge '
END_OF_DAY = time(23, 59, 59, 999000)


class MalformedCommitError(ValueError):
    """Raised when a commit record lacks the fields the report needs."""


class Category(Enum):
    BUG_FIXES = 'Bug Fixes'
    NEW_FEATURES = 'New Features'
    IMPROVEMENTS = 'Improvements'
    MAINTENANCE = 'Maintenance'
    DOCUMENTATION = 'Documentation'
    OTHER = 'Other'


# Checked in order, first match wins.
CATEGORY_KEYWORDS: List[Tuple[Category, Tuple[str, ...]]] = [
    (Category.BUG_FIXES, ('fix', 'bug', 'issue')),
    (Category.NEW_FEATURES, ('add', 'implement', 'create')),
    (Category.IMPROVEMENTS, ('update', 'improve', 'enhance')),
    (Category.MAINTENANCE, ('refactor', 'cleanup', 'chore')),
    (Category.DOCUMENTATION, ('doc', 'readme')),
]


def parse_github_datetime(value: str) -> datetime:
    """Parse a GitHub API timestamp into a timezone-aware datetime."""
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


@dataclass(frozen=True)
class CommitRecord:
    """A single commit, tagged with the repository it came from."""
    message: str
    author_date: datetime
    url: str
    repository: str

    @classmethod
    def from_api(cls, payload: Dict[str, Any], repository: str) -> 'CommitRecord':
        """
        Build a record from a GitHub "list commits" item.

        Args:
            payload: Commit object as returned by the REST API
            repository: Name of the repository the commit was fetched from

        Raises:
            MalformedCommitError: if the message or author date is missing
        """
        commit = payload.get('commit') or {}
        message = commit.get('message')
        author_date = (commit.get('author') or {}).get('date')
        if message is None or not author_date:
            raise MalformedCommitError(
                f"Malformed commit record {payload.get('sha', '<unknown>')} in {repository}: "
                "missing message or author date"
            )
        return cls(
            message=message,
            author_date=parse_github_datetime(author_date),
            url=payload.get('html_url', ''),
            repository=repository,
        )


@dataclass(frozen=True)
class WeekGroup:
    start_date: datetime
    end_date: datetime
    commits: Tuple[CommitRecord, ...]


@dataclass(frozen=True)
class Task:
    title: str
    repository: str
    date: datetime
    url: str


class CategorizedTasks:
    """Tasks of one week keyed by category, remembering first-seen order."""

    def __init__(self, tasks: Sequence[Task] = ()):
        self._order: List[Category] = []
        self._tasks: Dict[Category, List[Task]] = {}
        for task in tasks:
            self.add(task)

    def add(self, task: Task) -> None:
        category = categorize_task(task)
        if category not in self._tasks:
            self._order.append(category)
            self._tasks[category] = []
        self._tasks[category].append(task)

    def first_encountered(self) -> Iterator[Tuple[Category, List[Task]]]:
        for category in self._order:
            yield category, self._tasks[category]

    def alphabetical(self) -> Iterator[Tuple[Category, List[Task]]]:
        for category in sorted(self._order, key=lambda c: c.value):
            yield category, self._tasks[category]

    def __len__(self) -> int:
        return len(self._order)


def _require_field(commit: CommitRecord, field: str) -> Any:
    value = getattr(commit, field, None)
    if value is None:
        raise MalformedCommitError(
            f"Malformed commit record in {getattr(commit, 'repository', '<unknown>')}: "
            f"missing {field}"
        )
    return value


def _at_local_time(day: date, clock: time, tz: Optional[tzinfo]) -> datetime:
    """Pin a calendar day to a wall-clock time in the report time zone."""
    naive = datetime.combine(day, clock)
    if tz is None:
        return naive.astimezone()
    return naive.replace(tzinfo=tz)


def _to_local(value: datetime, tz: Optional[tzinfo]) -> datetime:
    if tz is None:
        return value.astimezone()
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(tz)


def week_start_for(value: datetime, tz: Optional[tzinfo] = None) -> date:
    """Return the Sunday that opens the week containing ``value``."""
    local_day = _to_local(value, tz).date()
    days_since_sunday = (local_day.weekday() + 1) % 7
    return local_day - timedelta(days=days_since_sunday)


def group_commits_by_week(commits: Sequence[CommitRecord],
                          tz: Optional[tzinfo] = None) -> List[WeekGroup]:
    """
    Partition commits into Sunday-to-Saturday weeks.

    Args:
        commits: Commit records in any order
        tz: Time zone that defines calendar days (system local when None)

    Returns:
        Week groups, newest week first, commits kept in input order
    """
    buckets: Dict[str, Tuple[date, List[CommitRecord]]] = {}

    for commit in commits:
        author_date = _require_field(commit, 'author_date')
        start_day = week_start_for(author_date, tz)
        week_key = start_day.isoformat()
        if week_key not in buckets:
            buckets[week_key] = (start_day, [])
        buckets[week_key][1].append(commit)

    groups = []
    for start_day, week_commits in buckets.values():
        groups.append(WeekGroup(
            start_date=_at_local_time(start_day, time.min, tz),
            end_date=_at_local_time(start_day + timedelta(days=6), END_OF_DAY, tz),
            commits=tuple(week_commits),
        ))
    groups.sort(key=lambda group: group.start_date, reverse=True)
    return groups


def extract_tasks(commits: Sequence[CommitRecord]) -> List[Task]:
    """
    Turn the commits of one week into deduplicated tasks.

    Merge commits and commits with an empty subject line are dropped. Commits
    sharing a subject line within the same repository collapse into the first
    one seen.
    """
    tasks: Dict[Tuple[str, str], Task] = {}

    for commit in commits:
        message = _require_field(commit, 'message')
        if message.startswith(MERGE_PREFIX):
            continue

        title = message.split('\n')[0].strip()
        if not title:
            continue

        key = (title, commit.repository)
        if key not in tasks:
            tasks[key] = Task(
                title=title,
                repository=commit.repository,
                date=_require_field(commit, 'author_date'),
                url=commit.url,
            )

    return list(tasks.values())


def categorize_task(task: Task) -> Category:
    """Classify a task by keywords in its title."""
    lower_title = task.title.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lower_title for keyword in keywords):
            return category
    return Category.OTHER


def format_report_date(value: datetime) -> str:
    """Format a date as e.g. 'June 2, 2024'."""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


class ReportGenerator:
    """Render weekly commit reports."""

    FORMATS = ('text', 'markdown', 'json')

    def __init__(self, output_format: str = 'markdown', tz: Optional[tzinfo] = None):
        """
        Initialize the report generator.

        Args:
            output_format: 'text', 'markdown' or 'json'; anything else renders as text
            tz: Time zone for week boundaries and timestamps (system local when None)
        """
        self.output_format = output_format
        self.tz = tz

    def _week_title(self, week: WeekGroup) -> str:
        return (f"Weekly Report: {format_report_date(week.start_date)} - "
                f"{format_report_date(week.end_date)}")

    def _categorize_week(self, week: WeekGroup) -> CategorizedTasks:
        return CategorizedTasks(extract_tasks(week.commits))

    def _timestamp(self, value: datetime) -> str:
        return _to_local(value, self.tz).isoformat(timespec='milliseconds')

    def render_text(self, week_groups: Sequence[WeekGroup]) -> str:
        """Format report as plain text."""
        report = []
        for week in week_groups:
            report.append(f"{self._week_title(week)}\n")
            report.append('=' * WEEK_RULE_WIDTH + '\n\n')

            for category, tasks in self._categorize_week(week).first_encountered():
                report.append(f"{category.value}:\n")
                report.append('-' * (len(category.value) + 1) + '\n')
                for task in tasks:
                    report.append(f"* {task.title} ({task.repository})\n")
                report.append('\n')

            report.append('\n\n')
        return ''.join(report)

    def render_markdown(self, week_groups: Sequence[WeekGroup]) -> str:
        """Format report as Markdown."""
        report = []
        for week in week_groups:
            report.append(f"# {self._week_title(week)}\n\n")

            for category, tasks in self._categorize_week(week).alphabetical():
                report.append(f"## {category.value}\n\n")
                for task in tasks:
                    report.append(f"* [{task.title}]({task.url}) ({task.repository})\n")
                report.append('\n')

            report.append('---\n\n')
        return ''.join(report)

    def render_json(self, week_groups: Sequence[WeekGroup]) -> List[Dict[str, Any]]:
        """Build a JSON-serializable report structure."""
        report = []
        for week in week_groups:
            categories: Dict[str, List[Dict[str, str]]] = {}
            for category, tasks in self._categorize_week(week).first_encountered():
                categories[category.value] = [
                    {
                        'title': task.title,
                        'repository': task.repository,
                        'date': self._timestamp(task.date),
                        'url': task.url,
                    }
                    for task in tasks
                ]
            report.append({
                'startDate': self._timestamp(week.start_date),
                'endDate': self._timestamp(week.end_date),
                'categories': categories,
            })
        return report

    def render(self, week_groups: Sequence[WeekGroup]) -> Any:
        """Render week groups in the configured format."""
        if self.output_format == 'markdown':
            return self.render_markdown(week_groups)
        elif self.output_format == 'json':
            return self.render_json(week_groups)
        else:
            return self.render_text(week_groups)

    def generate_report(self, commits: Sequence[CommitRecord]) -> str:
        """
        Generate the report for a flat list of commits.

        Args:
            commits: Commits already filtered to one author and date range

        Returns:
            Formatted report string
        """
        week_groups = group_commits_by_week(commits, self.tz)
        rendered = self.render(week_groups)
        if self.output_format == 'json':
            return json.dumps(rendered, indent=2, ensure_ascii=False)
        return rendered
