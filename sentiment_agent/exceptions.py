"""
Custom exceptions for the sentiment agent.
Provides specific error types for each way an analysis round can fail.
"""
from __future__ import annotations


class SentimentAgentError(Exception):
    """Base exception for sentiment agent errors."""
    pass


class AgentProcessError(SentimentAgentError):
    """Raised when the external agent process cannot deliver output."""
    pass


class ProcessSpawnFailed(AgentProcessError):
    """Raised when the agent executable cannot be started."""
    def __init__(self, strategy: str, reason: str):
        self.strategy = strategy
        self.reason = reason
        super().__init__(f"Could not start agent via {strategy}: {reason}")


class ProcessExitedWithError(AgentProcessError):
    """Raised when the agent exits non-zero without any usable output."""
    def __init__(self, exit_code: int | None, stderr: str = ""):
        self.exit_code = exit_code
        self.stderr = stderr
        msg = f"Agent process failed with code {exit_code}"
        tail = stderr.strip().splitlines()[-1:] if stderr else []
        if tail:
            msg += f": {tail[0][:200]}"
        super().__init__(msg)


class ProcessTimedOut(AgentProcessError):
    """Raised when the overall deadline elapses before the stream completes."""
    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Agent process timed out after {timeout:g}s")


class NoRecoverablePayload(SentimentAgentError):
    """Raised when no JSON object (or Markdown fields) can be recovered."""
    pass


class InvalidSchema(SentimentAgentError):
    """Raised by field coercers when a value does not fit the output schema."""
    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid value for {field}: {value!r}")


class ProviderError(SentimentAgentError):
    """Raised when a news provider fails."""
    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")


class ConfigurationError(SentimentAgentError):
    """Raised when configuration is invalid or missing."""
    pass
