"""Shared fixtures: settings without delays and a request builder."""

import pytest

from repo_grader.config import Settings
from repo_grader.models.schemas import EvaluationRequest


@pytest.fixture
def fast_settings():
    return Settings(
        model="test-model",
        base_urls=["http://primary", "http://backup"],
        retry_delay=0,
        batch_cooldown=0,
        truncate_files=False,
    )


@pytest.fixture
def request_factory():
    def make(files=(), tasks=("Build login page", "Add password reset")):
        return EvaluationRequest(
            project_detail="A web app with user accounts",
            tasks=tuple(tasks),
            current_task=tasks[0],
            evidence="Login page exists and validates input",
            repo_summary="Repository: example/app",
            files=tuple(files),
            repo_url="https://github.com/example/app",
        )
    return make
