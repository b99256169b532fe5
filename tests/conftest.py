import hashlib
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault('APP_ENV', 'test')
os.environ.setdefault('SECRET_KEY', 'test-secret-key-with-enough-length-for-hs256')
os.environ.setdefault('WORKFLOW_SETTLE_SECONDS', '0')
os.environ.setdefault('LOG_LEVEL', 'DEBUG')
os.environ.pop('DATABASE_URL', None)

from provisioner.core.exceptions import GitHubAPIError, GitHubNotFoundError  # noqa: E402
from provisioner.core.security import SessionContext  # noqa: E402
from provisioner.integrations.github import Identity, RepositoryGateway, RunSummary, WriteResult  # noqa: E402
from provisioner.services.audit_sink import AuditSink  # noqa: E402
from provisioner.services.provisioning import ProvisioningPipeline  # noqa: E402


class FakeGateway(RepositoryGateway):
    """In-memory repository store keyed by (owner, repo, path)."""

    def __init__(self):
        self.files = {}
        self.calls = []
        self.login = 'octocat'
        self.permission = 'admin'
        self.errors = {}
        self.read_errors = {}
        self.lose_writes = False
        self.runs = []

    def _maybe_fail(self, method):
        self.calls.append(method)
        if method in self.errors:
            raise self.errors[method]

    def put(self, owner, repo, path, content):
        sha = hashlib.sha1(f'{path}:{content}'.encode()).hexdigest()
        self.files[(owner, repo, path)] = {'content': content, 'sha': sha}
        return sha

    def content(self, owner, repo, path):
        return self.files[(owner, repo, path)]['content']

    def paths(self, owner='acme', repo='widgets'):
        return sorted(p for (o, r, p) in self.files if (o, r) == (owner, repo))

    async def get_authenticated_identity(self):
        self._maybe_fail('get_authenticated_identity')
        return Identity(login=self.login)

    async def get_permission_level(self, owner, repo, username):
        self._maybe_fail('get_permission_level')
        return self.permission

    async def read_path(self, owner, repo, path, ref=None):
        self._maybe_fail('read_path')
        if path in self.read_errors:
            raise self.read_errors[path]
        key = (owner, repo, path)
        if key in self.files:
            entry = self.files[key]
            return {
                'name': path.rsplit('/', 1)[-1],
                'path': path,
                'sha': entry['sha'],
                'type': 'file',
            }
        prefix = path.rstrip('/') + '/'
        entries = [
            {
                'name': p[len(prefix):],
                'path': p,
                'sha': entry['sha'],
                'size': len(entry['content']),
                'type': 'file',
                'html_url': f'https://github.com/{o}/{r}/blob/main/{p}',
                'download_url': f'https://raw.githubusercontent.com/{o}/{r}/main/{p}',
            }
            for (o, r, p), entry in sorted(self.files.items())
            if (o, r) == (owner, repo) and p.startswith(prefix) and '/' not in p[len(prefix):]
        ]
        if entries:
            return entries
        raise GitHubNotFoundError()

    async def write_file(self, owner, repo, path, content, message, branch):
        self._maybe_fail('write_file')
        created = (owner, repo, path) not in self.files
        if self.lose_writes:
            return WriteResult(sha='lost', created=created)
        return WriteResult(sha=self.put(owner, repo, path, content), created=created)

    async def delete_file(self, owner, repo, path, sha, message, branch=None):
        self._maybe_fail('delete_file')
        key = (owner, repo, path)
        if key not in self.files:
            raise GitHubNotFoundError()
        if self.files[key]['sha'] != sha:
            raise GitHubAPIError(f'{path} does not match {sha}', status=409)
        del self.files[key]

    async def list_workflow_runs(self, owner, repo, page_size):
        self._maybe_fail('list_workflow_runs')
        return self.runs[:page_size]


class RecordingSink(AuditSink):
    def __init__(self, fail=False):
        super().__init__(session_factory=None)
        self.fail = fail
        self.configs = []
        self.events = []

    def save_workflow_config(self, actor, repo_name, template_id, variables):
        if self.fail:
            raise RuntimeError('database unavailable')
        self.configs.append(
            {'actor': actor, 'repo_name': repo_name, 'template_id': template_id, 'variables': variables}
        )

    def log_audit_event(self, event):
        if self.fail:
            raise RuntimeError('database unavailable')
        self.events.append(event)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def session():
    return SessionContext(actor='dev@example.com', access_token='gho_test_token')


@pytest.fixture
def pipeline(gateway, sink):
    return ProvisioningPipeline(
        lambda token: gateway,
        sink,
        branch='main',
        web_url='https://github.com',
        settle_seconds=0,
        runs_page_size=5,
    )


@pytest.fixture
def sample_run():
    return RunSummary(
        id=42,
        name='Daily Backup',
        status='completed',
        conclusion='success',
        head_branch='main',
        event='schedule',
        created_at='2024-01-01T00:00:00Z',
        html_url='https://github.com/acme/widgets/actions/runs/42',
    )


@pytest.fixture
def failing_sink():
    return RecordingSink(fail=True)
