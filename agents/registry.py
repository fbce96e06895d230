"""
Agent Registry

Explicit agent registration. No auto-discovery - agents come from the
agents.yaml roster or are registered by the caller.

DESIGN RULES:
- Registry is the single source of truth for agent specifications
- AgentRef is immutable; re-registering an id replaces the reference
- Constructed explicitly and injected, never a module global
"""

import logging
from threading import Lock
from typing import Dict, List, Optional, Sequence

import yaml

from app.core.config import settings
from orchestration.errors import EmptyAgentSet, UnknownAgent
from schemas.agent import AgentRef, ModelParams

logger = logging.getLogger(__name__)


class AgentRegistry:
    """
    Named agent specifications, looked up by id.

    Read-mostly: writes take an exclusive lock, reads return the immutable
    AgentRef objects directly.
    """

    def __init__(self, agents: Optional[Sequence[AgentRef]] = None):
        self._lock = Lock()
        self._agents: Dict[str, AgentRef] = {}
        for agent in agents or ():
            self.register(agent)

    def register(self, agent: AgentRef) -> None:
        with self._lock:
            replaced = agent.id in self._agents
            self._agents[agent.id] = agent
        logger.info(f"Agent {'replaced' if replaced else 'registered'}: {agent.id} ({agent.role})")

    def get(self, agent_id: str) -> Optional[AgentRef]:
        """Get an agent by id."""
        return self._agents.get(agent_id)

    def resolve(self, agent_ids: Sequence[str]) -> List[AgentRef]:
        """
        Resolve ids in order.

        Raises:
            UnknownAgent: first id that is not registered
            EmptyAgentSet: no ids given
        """
        agents = []
        for agent_id in agent_ids:
            agent = self._agents.get(agent_id)
            if agent is None:
                raise UnknownAgent(agent_id)
            agents.append(agent)
        if not agents:
            raise EmptyAgentSet()
        return agents

    def list_all(self) -> List[AgentRef]:
        """Get all registered agents."""
        return list(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def reset(self) -> None:
        """Remove every agent (for testing)."""
        with self._lock:
            self._agents.clear()


# --- Agent Registration Bootstrap ---

def load_agents(path: Optional[str] = None) -> List[AgentRef]:
    """Read the agent roster from YAML."""
    with open(path or settings.agents_file, "r") as f:
        data = yaml.safe_load(f) or {}

    agents = []
    for agent_id, spec in data.items():
        agents.append(AgentRef(
            id=agent_id,
            name=spec.get("name", ""),
            role=spec["role"],
            capabilities=spec.get("capabilities", []),
            model_params=ModelParams(
                temperature=spec.get("temperature", 0.7),
                max_output_tokens=spec.get("max_tokens", 1000),
            ),
            system_instructions=spec.get("system", ""),
            tools=spec.get("tools", []),
        ))
    return agents


def bootstrap_agents(path: Optional[str] = None) -> AgentRegistry:
    """
    Build a registry holding the predefined roster.

    Called once at startup.
    """
    registry = AgentRegistry(load_agents(path))
    logger.info(f"Agent registry initialized with {len(registry)} agents")
    return registry
