from __future__ import annotations


class AgentError(Exception):
    """Base class for failures surfaced by the agent."""


class RecognitionError(AgentError):
    """Engine-reported speech recognition failure (e.g. 'network', 'not-allowed')."""

    def __init__(self, code: str, message: str = ""):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}" if message else code)


class CapabilityMissingError(AgentError):
    """A platform capability the agent needs is not present."""

    def __init__(self, capability: str):
        self.capability = capability
        super().__init__(f"{capability} is not available on this platform")


class AgentStateError(AgentError):
    """Operation not allowed in the agent's current lifecycle state."""
