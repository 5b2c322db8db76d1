"""Error taxonomy for audit runs.

Only InputError and ConfigError ever reach a caller as a non-200 response.
The rest are folded into zero-score AuditResult payloads by the orchestrator.
"""


class AuditError(Exception):
    """Base class for all audit errors."""

    kind = "audit"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class InputError(AuditError):
    """A request is missing a required field or carries an invalid value."""

    kind = "input"


class ConfigError(AuditError):
    """Required upstream configuration (credentials, backend URLs) is missing."""

    kind = "config"


class FetchFailure(AuditError):
    """A page could not be fetched: network error, timeout or non-2xx status."""

    kind = "fetch"

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url

    def __str__(self) -> str:
        return f"Failed to fetch {self.url}: {self.message}"


class LLMCallFailure(AuditError):
    """The LLM provider call raised or timed out."""

    kind = "llm"


class ParseFailure(AuditError):
    """LLM output could not be recovered as a JSON object."""

    kind = "parse"

    def __init__(self, message: str, snippet: str = ""):
        super().__init__(message)
        self.snippet = snippet


class PersistenceFailure(AuditError):
    """A store write failed. Logged by the orchestrator, never surfaced."""

    kind = "persistence"
