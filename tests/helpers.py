"""Test helpers: a scripted fake model backend and small builders."""

import json

from repo_grader.models.errors import NetworkError, TIMEOUT
from repo_grader.models.schemas import ScoredFile


def verdict_json(assessment=0.5, summary="Overall the implementation covers the basics", requirement="Login form"):
    return json.dumps({
        "assessment": assessment,
        "checkpoints": [
            {"requirement": requirement, "status": "Completed", "details": "Found in code"},
        ],
        "summary": summary,
        "improvements": ["Add tests"],
    })


class FakeEvaluator:
    """Records every call and answers through a handler(payload, call_number)."""

    def __init__(self, handler=None):
        self.handler = handler or (lambda payload, n: verdict_json())
        self.calls = []

    def __call__(self, system_prompt, user_prompt, cfg, base_url):
        payload = json.loads(user_prompt)
        self.calls.append({"payload": payload, "base_url": base_url, "system": system_prompt})
        return self.handler(payload, len(self.calls))

    def tasks(self):
        return [c["payload"]["current_task"] for c in self.calls]

    def base_urls(self):
        return [c["base_url"] for c in self.calls]


def always_timeout(payload, n):
    raise NetworkError(TIMEOUT, "request timed out")


def make_file(path, size=10, relevance=0.5, char="x"):
    return ScoredFile(path=path, content=char * size, relevance=relevance)
