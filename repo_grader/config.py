from dataclasses import dataclass, field
from typing import List, Optional
import os

from dotenv import load_dotenv

from repo_grader.models.llm_client import LLMConfig

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
ENV_PATH = os.path.join(ROOT_DIR, ".env")

PARTIAL_FAILURE_POLICIES = ("ignore", "scale")


@dataclass
class Settings:
    # Model backend
    model: str = "gemini-2.0-flash"
    base_urls: List[str] = field(default_factory=lambda: [
        "https://generativelanguage.googleapis.com/v1beta/openai/",
    ])
    timeout: float = 600.0
    api_key: Optional[str] = None
    max_completion_tokens: Optional[int] = None
    seed: Optional[int] = None
    json_mode: bool = False

    # Retry / pacing
    max_attempts: int = 3
    retry_delay: float = 2.0
    batch_cooldown: float = 1.0

    # Size budgets (characters of serialized JSON)
    batch_budget: int = 300000
    max_total_chars: Optional[int] = 100000
    max_file_chars: int = 15000
    truncate_files: bool = True

    # Degraded modes
    use_mock_data: bool = False
    mock_on_failure: bool = False

    # How failed batches affect the final assessment: "ignore" | "scale"
    partial_failure_policy: str = "ignore"

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.partial_failure_policy not in PARTIAL_FAILURE_POLICIES:
            raise ValueError(
                f"partial_failure_policy must be one of {PARTIAL_FAILURE_POLICIES}, "
                f"got {self.partial_failure_policy!r}"
            )
        if self.batch_budget <= 0:
            raise ValueError("batch_budget must be positive")

    def llm_config(self) -> LLMConfig:
        return LLMConfig(
            model=self.model,
            base_urls=list(self.base_urls),
            timeout=self.timeout,
            temperature=0.0,
            max_completion_tokens=self.max_completion_tokens,
            seed=self.seed,
            client_retries=0,
            json_mode=self.json_mode,
            api_key=self.api_key,
        )


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_optional_int(value: str) -> Optional[int]:
    if value.strip().lower() in ("", "none", "off", "0"):
        return None
    return int(value)


# env var -> (attribute, parser)
_ENV_MAP = {
    "LLM_MODEL": ("model", str),
    "LLM_BASE_URLS": ("base_urls", lambda v: [u.strip() for u in v.split(",") if u.strip()]),
    "LLM_TIMEOUT": ("timeout", float),
    "LLM_MAX_COMPLETION_TOKENS": ("max_completion_tokens", _env_optional_int),
    "LLM_SEED": ("seed", int),
    "LLM_JSON_MODE": ("json_mode", _env_bool),
    "GRADER_MAX_ATTEMPTS": ("max_attempts", int),
    "GRADER_RETRY_DELAY": ("retry_delay", float),
    "GRADER_BATCH_COOLDOWN": ("batch_cooldown", float),
    "GRADER_BATCH_BUDGET": ("batch_budget", int),
    "GRADER_MAX_TOTAL_CHARS": ("max_total_chars", _env_optional_int),
    "GRADER_MAX_FILE_CHARS": ("max_file_chars", int),
    "GRADER_TRUNCATE_FILES": ("truncate_files", _env_bool),
    "USE_MOCK_DATA": ("use_mock_data", _env_bool),
    "GRADER_MOCK_ON_FAILURE": ("mock_on_failure", _env_bool),
    "GRADER_PARTIAL_FAILURE_POLICY": ("partial_failure_policy", str),
    "LOG_LEVEL": ("log_level", str),
}


def _apply_env_overrides(settings: Settings) -> Settings:
    for env_key, (attr, parse) in _ENV_MAP.items():
        val = os.getenv(env_key)
        if val:
            setattr(settings, attr, parse(val))

    settings.api_key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY") or settings.api_key

    # re-validate after overrides
    settings.__post_init__()
    return settings


def load_settings(env_path: Optional[str] = None) -> Settings:
    load_dotenv(env_path or ENV_PATH)
    return _apply_env_overrides(Settings())
