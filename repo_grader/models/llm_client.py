from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import logging
import os
import time

import openai
from openai import OpenAI

from repo_grader.models.errors import (
    DNS,
    OTHER,
    REFUSED,
    TIMEOUT,
    NetworkError,
    RetriesExhausted,
)
from repo_grader.models.schemas import RetryAttempt

logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    model: str
    base_urls: List[str] = field(default_factory=list)
    timeout: float = 600.0
    temperature: Optional[float] = 0.0  # deterministic grading
    max_completion_tokens: Optional[int] = None
    seed: Optional[int] = None
    client_retries: int = 0  # the SDK must not retry; call_with_retries does
    json_mode: bool = False
    api_key: Optional[str] = None


# signature of the model-call capability: (system, user, cfg, base_url) -> text
Evaluator = Callable[[str, str, LLMConfig, Optional[str]], str]


class EndpointSelector:
    """Which configured base URL the next call goes to.

    One selector belongs to one evaluation run, so concurrent runs never
    share failover state. With no base URLs configured the SDK default is used.
    """

    def __init__(self, base_urls: Optional[List[str]] = None):
        self.base_urls = list(base_urls or [])
        self.index = 0

    @property
    def current(self) -> Optional[str]:
        if not self.base_urls:
            return None
        return self.base_urls[self.index]

    def has_next(self) -> bool:
        return self.index < len(self.base_urls) - 1

    # Move to the next endpoint; stays on the last one when exhausted
    def advance(self) -> bool:
        if not self.has_next():
            return False
        self.index += 1
        return True


_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "temporary failure in name resolution",
    "no address associated",
    "enotfound",
)
_REFUSED_MARKERS = ("connection refused", "econnrefused", "actively refused")


def _error_chain_text(error: BaseException) -> str:
    parts = []
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(f"{type(current).__name__}: {current}")
        current = current.__cause__ or current.__context__
    return " | ".join(parts).lower()


# Map an SDK/transport exception onto DNS / TIMEOUT / REFUSED / OTHER
def classify_network_error(error: BaseException) -> str:
    if isinstance(error, (openai.APITimeoutError, TimeoutError)):
        return TIMEOUT

    text = _error_chain_text(error)
    if any(m in text for m in _DNS_MARKERS):
        return DNS
    if any(m in text for m in _REFUSED_MARKERS):
        return REFUSED
    if "timed out" in text or "timeout" in text:
        return TIMEOUT
    return OTHER


def call_llm(
    system_prompt: str,
    user_prompt: str,
    cfg: LLMConfig,
    base_url: Optional[str] = None,
) -> str:

    client = OpenAI(
        api_key=cfg.api_key or os.getenv("OPENAI_API_KEY") or "dummy-key",
        base_url=base_url,
        timeout=cfg.timeout,
        max_retries=cfg.client_retries,
    )

    # Build request payload
    request: Dict[str, Any] = {
        "model": cfg.model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ],
    }

    if cfg.temperature is not None:
        request["temperature"] = cfg.temperature

    if cfg.max_completion_tokens is not None:
        request["max_completion_tokens"] = cfg.max_completion_tokens

    if cfg.seed is not None:
        request["seed"] = cfg.seed

    if cfg.json_mode:
        request["response_format"] = {"type": "json_object"}

    try:
        response = client.chat.completions.create(**request)
    except (openai.APIError, OSError) as e:
        kind = classify_network_error(e)
        raise NetworkError(kind, str(e), base_url=base_url) from e

    if not response.choices:
        return ""
    return response.choices[0].message.content or ""


# Up to max_attempts calls, switching endpoint before each retry
def call_with_retries(
    evaluator: Evaluator,
    system_prompt: str,
    user_prompt: str,
    cfg: LLMConfig,
    selector: EndpointSelector,
    max_attempts: int = 3,
    retry_delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "model call",
) -> str:

    max_attempts = max(1, max_attempts)
    attempt = RetryAttempt(attempt_number=0, endpoint_index=selector.index)

    for n in range(1, max_attempts + 1):
        if n > 1 and selector.advance():
            logger.info("Switching to fallback endpoint %s", selector.current)

        attempt.attempt_number = n
        attempt.endpoint_index = selector.index

        if n > 1:
            logger.info("%s: attempt %d/%d", label, n, max_attempts)

        try:
            return evaluator(system_prompt, user_prompt, cfg, selector.current)
        except NetworkError as e:
            attempt.last_error = e
            logger.error("%s failed (attempt %d/%d): %s", label, n, max_attempts, e)

            if n < max_attempts:
                sleep(retry_delay)

    logger.error("%s failed, reached max attempts (%d)", label, max_attempts)
    raise RetriesExhausted(max_attempts, attempt.last_error)
