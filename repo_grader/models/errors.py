from typing import Optional


DNS = "DNS"
TIMEOUT = "TIMEOUT"
REFUSED = "REFUSED"
OTHER = "OTHER"

NETWORK_ERROR_KINDS = (DNS, TIMEOUT, REFUSED, OTHER)


# Transient failure of one model call (retried with endpoint failover)
class NetworkError(Exception):

    def __init__(self, kind: str, message: str, base_url: Optional[str] = None):
        if kind not in NETWORK_ERROR_KINDS:
            kind = OTHER
        super().__init__(message)
        self.kind = kind
        self.base_url = base_url

    def __str__(self) -> str:
        msg = super().__str__()
        if self.base_url:
            return f"[{self.kind}] {msg} ({self.base_url})"
        return f"[{self.kind}] {msg}"


# Raised once the attempt ceiling is reached for a single call
class RetriesExhausted(NetworkError):

    def __init__(self, attempts: int, last_error: NetworkError):
        super().__init__(
            last_error.kind,
            f"gave up after {attempts} attempts: {last_error}",
        )
        self.attempts = attempts
        self.last_error = last_error

    def __str__(self) -> str:
        return Exception.__str__(self)


# The run cannot produce a verdict (final batch failed or nothing succeeded)
class FatalPipelineFailure(RuntimeError):
    pass
