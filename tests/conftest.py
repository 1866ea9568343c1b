"""
Shared pytest fixtures for git-risk tests.
"""

from datetime import datetime, timedelta, timezone

import git
import pytest

from gitrisk.store import InMemoryHistoryStore

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def build_log(entries, start=BASE_TIME, step=timedelta(days=1)):
    """Builds commit and change rows from a compact description.

    Args:
        entries: one ``(author, files)`` tuple per commit, oldest first. ``files`` maps a path to
            ``(lines_added, lines_deleted)``, or is a plain list of paths (one added line each).
            A third element, when present, is the commit timestamp.
        start: timestamp of the first commit when none is given
        step: spacing between commits without an explicit timestamp

    Returns:
        tuple: ``(commit_rows, change_rows)`` lists of dicts
    """
    commits = []
    changes = []
    for idx, entry in enumerate(entries, start=1):
        author, files = entry[0], entry[1]
        timestamp = entry[2] if len(entry) > 2 else start + step * (idx - 1)
        commits.append(
            {
                "id": idx,
                "hash": f"{idx:040x}",
                "author": author,
                "timestamp": timestamp,
                "message": f"commit {idx}",
            }
        )
        if not isinstance(files, dict):
            files = {path: (1, 0) for path in files}
        for path, (added, deleted) in files.items():
            changes.append(
                {
                    "id": len(changes) + 1,
                    "commit_id": idx,
                    "file_path": path,
                    "lines_added": added,
                    "lines_deleted": deleted,
                }
            )
    return commits, changes


@pytest.fixture
def log_builder():
    """The ``build_log`` helper as a fixture."""
    return build_log


@pytest.fixture
def store_builder():
    """Returns a function registering ``entries`` (see ``build_log``) as project 1 of a new store."""

    def _build(entries, project_id=1, **kwargs):
        commits, changes = build_log(entries, **kwargs)
        store = InMemoryHistoryStore()
        store.add_project(project_id, commits, changes)
        return store

    return _build


@pytest.fixture
def sample_store(store_builder):
    """A small project with a hotspot, a coupled pair and a single-owner file."""
    entries = [
        ("alice", {"src/app.js": (30, 0), "src/util.js": (10, 0), "README.md": (5, 0)}),
        ("alice", {"src/app.js": (12, 4), "src/util.js": (3, 1)}),
        ("bob", {"src/app.js": (8, 2), "src/util.js": (2, 2)}),
        ("alice", {"src/app.js": (5, 5)}),
        ("carol", {"src/app.js": (7, 1), "src/util.js": (4, 0)}),
        ("alice", {"src/app.js": (2, 2)}),
        ("bob", {"docs/guide.md": (40, 0)}),
    ]
    return store_builder(entries)


@pytest.fixture
def git_repo(tmp_path):
    """Returns a function committing ``(author, {path: content})`` steps into a fresh repository."""
    repo_dir = tmp_path / "repository1"
    repo_dir.mkdir()
    grepo = git.Repo.init(str(repo_dir))

    def _commit(steps, start=BASE_TIME):
        for idx, (author, files) in enumerate(steps):
            grepo.git.config("user.name", author)
            grepo.git.config("user.email", f"{author.lower().replace(' ', '.')}@example.com")
            for path, content in files.items():
                target = repo_dir / path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content)
            grepo.git.add(all=True)
            when = (start + timedelta(days=idx)).isoformat()
            grepo.git.commit(m=f"commit {idx}", env={"GIT_AUTHOR_DATE": when, "GIT_COMMITTER_DATE": when})
        return repo_dir

    _commit.repo = grepo
    _commit.path = repo_dir
    return _commit


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
