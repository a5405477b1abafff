"""Shared fixtures for the sync test suite."""

from pathlib import Path

import pytest

from git_mirror_sync.config import Credentials, SyncJob

SOURCE_TOKEN = "src-token-0123456789"
MIRROR_TOKEN = "dst-token-9876543210"


@pytest.fixture
def job(tmp_path: Path) -> SyncJob:
    """A job with distinct, easily searchable tokens."""
    return SyncJob(
        source_url="https://github.com/org/source.git",
        mirror_url="https://gitlab.com/org/mirror.git",
        workdir=tmp_path / "work",
        source_auth=Credentials("alice", SOURCE_TOKEN),
        mirror_auth=Credentials("bob", MIRROR_TOKEN),
    )
