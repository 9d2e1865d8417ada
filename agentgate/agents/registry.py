"""Registry of agent definitions by name."""

from typing import Optional

from agentgate.agents.definition import AgentDefinition
from agentgate.errors import ConfigurationError


class AgentRegistry:
    def __init__(self, definitions: Optional[list[AgentDefinition]] = None):
        self._definitions: dict[str, AgentDefinition] = {}
        for definition in definitions or []:
            self.register(definition)

    def register(self, definition: AgentDefinition) -> AgentDefinition:
        if definition.name in self._definitions:
            raise ConfigurationError(f"Agent already registered: {definition.name}")
        self._definitions[definition.name] = definition
        return definition

    def get(self, name: str) -> AgentDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise ConfigurationError(f"Unknown agent: {name}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._definitions

    def names(self) -> list[str]:
        return sorted(self._definitions)
