from datetime import datetime, timezone

import pytest
import requests

import github_service
from github_service import GitHubAPIError, GitHubService


class FakeResponse:
    def __init__(self, payload=None, status_code=200, headers=None):
        self.payload = payload
        self.status_code = status_code
        self.headers = headers or {}

    def json(self):
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error", response=self)


def install_fake_get(monkeypatch, responses):
    """
    Replace requests.get with a stub that pops responses in order and records calls.
    """
    calls = []

    def fake_get(url, headers=None, params=None, timeout=None):
        calls.append({'url': url, 'headers': headers, 'params': params})
        return responses.pop(0)

    monkeypatch.setattr(github_service.requests, 'get', fake_get)
    return calls


SINCE = datetime(2024, 6, 1, tzinfo=timezone.utc)
UNTIL = datetime(2024, 6, 8, tzinfo=timezone.utc)


def test_requests_carry_token_headers(monkeypatch) -> None:
    calls = install_fake_get(monkeypatch, [FakeResponse({'login': 'alice'})])
    user = GitHubService('secret').get_authenticated_user()
    assert user == {'login': 'alice'}
    assert calls[0]['url'] == 'https://api.github.com/user'
    assert calls[0]['headers']['Authorization'] == 'token secret'


def test_organization_repos_follow_pages(monkeypatch) -> None:
    first_page = [{'name': f'repo-{i}'} for i in range(100)]
    calls = install_fake_get(monkeypatch, [FakeResponse(first_page),
                                           FakeResponse([{'name': 'last'}])])
    repos = GitHubService('t').get_organization_repos('acme')
    assert len(repos) == 101
    assert [call['params']['page'] for call in calls] == [1, 2]
    assert calls[0]['url'].endswith('/orgs/acme/repos')
    assert calls[0]['params']['per_page'] == 100


def test_commits_request_parameters(monkeypatch) -> None:
    calls = install_fake_get(monkeypatch, [FakeResponse([])])
    assert GitHubService('t').get_commits_for_repo('acme', 'api', 'alice', SINCE, UNTIL) == []
    params = calls[0]['params']
    assert calls[0]['url'].endswith('/repos/acme/api/commits')
    assert params['author'] == 'alice'
    assert params['since'] == SINCE.isoformat()
    assert params['until'] == UNTIL.isoformat()


def test_empty_repository_conflict_returns_no_commits(monkeypatch) -> None:
    install_fake_get(monkeypatch, [FakeResponse({'message': 'Git Repository is empty.'}, 409)])
    assert GitHubService('t').get_commits_for_repo('acme', 'api', 'alice', SINCE, UNTIL) == []


def test_errors_are_wrapped_with_status(monkeypatch) -> None:
    install_fake_get(monkeypatch, [FakeResponse({'message': 'Not Found'}, 404)])
    with pytest.raises(GitHubAPIError) as excinfo:
        GitHubService('t').get_commits_for_repo('acme', 'api', 'alice', SINCE, UNTIL)
    assert excinfo.value.status_code == 404
    assert 'acme/api' in str(excinfo.value)


def test_connection_errors_have_no_status(monkeypatch) -> None:
    def broken_get(*args, **kwargs):
        raise requests.exceptions.ConnectionError('offline')

    monkeypatch.setattr(github_service.requests, 'get', broken_get)
    with pytest.raises(GitHubAPIError) as excinfo:
        GitHubService('t').get_authenticated_user()
    assert excinfo.value.status_code is None


def test_fetch_commit_records_tags_repository_and_skips_failures(monkeypatch, capsys) -> None:
    service = GitHubService('t')
    commit = {
        'html_url': 'https://github.com/acme/api/commit/1',
        'commit': {'message': 'Fix login bug', 'author': {'date': '2024-06-03T10:00:00Z'}},
    }

    def fake_commits(owner, repo, author, since, until):
        if repo == 'broken':
            raise GitHubAPIError('boom', 500)
        return [commit]

    monkeypatch.setattr(service, 'get_commits_for_repo', fake_commits)
    repositories = [
        {'name': 'api', 'owner': {'login': 'acme'}},
        {'name': 'broken', 'owner': {'login': 'acme'}},
    ]
    records = service.fetch_commit_records(repositories, 'alice', SINCE, UNTIL)
    assert [record.repository for record in records] == ['api']
    assert records[0].message == 'Fix login bug'
    assert 'Error fetching commits for broken' in capsys.readouterr().err


def test_check_connection(monkeypatch) -> None:
    install_fake_get(monkeypatch, [
        FakeResponse({'login': 'alice'}, headers={'X-RateLimit-Remaining': '4999',
                                                  'X-RateLimit-Limit': '5000'}),
        FakeResponse({'message': 'Bad credentials'}, 401),
    ])
    assert github_service.check_connection('good') is True
    assert github_service.check_connection('bad') is False


def test_fetch_commit_records_drops_whole_repository_on_malformed_commit(monkeypatch, capsys) -> None:
    service = GitHubService('t')

    def good(message):
        return {'html_url': 'u', 'commit': {'message': message,
                                            'author': {'date': '2024-06-03T10:00:00Z'}}}

    malformed = {'sha': 'bad1', 'html_url': 'u', 'commit': {'message': 'No date'}}
    batches = {'api': [good('Fix a'), malformed, good('Add b')], 'web': [good('Update c')]}
    monkeypatch.setattr(service, 'get_commits_for_repo',
                        lambda owner, repo, author, since, until: batches[repo])

    repositories = [
        {'name': 'api', 'owner': {'login': 'acme'}},
        {'name': 'web', 'owner': {'login': 'acme'}},
    ]
    records = service.fetch_commit_records(repositories, 'alice', SINCE, UNTIL)
    assert [(record.repository, record.message) for record in records] == [('web', 'Update c')]
    assert 'Error fetching commits for api' in capsys.readouterr().err
