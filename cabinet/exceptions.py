# =============================================================================
# Exceptions — Registry and Routing Contract Violations
# =============================================================================
#
# Only programmer/configuration mistakes surface as exceptions from the
# core: registering two agents under one name, or routing to a name that
# was never registered. Provider and parsing failures are handled inside
# each agent operation and never reach these classes.
# =============================================================================


class CabinetError(Exception):
    """Base class for errors raised by the orchestration core."""


class AgentNameConflictError(CabinetError):
    """An agent with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Agent with name {name} already exists.")
        self.name = name


class UnknownAgentError(CabinetError, LookupError):
    """A message was addressed to (or from) an unregistered agent."""

    def __init__(self, name: str, role: str = "Target") -> None:
        super().__init__(f"{role} agent {name} not found.")
        self.name = name
        self.role = role
