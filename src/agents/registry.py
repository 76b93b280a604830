"""
Persisted set of user-authored agents.

The registry is the only writer of the stored agent list. Agents are replaced
whole, and deleting one strips its id from every other agent's handoffs so
that no stored agent refers to a missing id.
"""

from __future__ import annotations

from collections import deque
from typing import Dict, List, Optional

from pydantic import ValidationError

from src.agents.models import AgentDefinition, Scenario
from src.agents.validation import prune_handoffs, resolve_handoffs
from src.storage.kv_store import KeyValueStore, StorageKeys, read_json, write_json
from utils.ml_logging import get_logger

logger = get_logger(__name__)

CUSTOM_SCENARIO_PREFIX = "custom_"


class AgentRegistry:
    def __init__(self, store: KeyValueStore, key: str = StorageKeys.CUSTOM_AGENTS) -> None:
        self._store = store
        self._key = key
        self._agents: List[AgentDefinition] = []
        self.is_loaded = False

    def load(self) -> List[AgentDefinition]:
        """
        Read the stored agent list. A document that is not a JSON list is
        discarded entirely; individual records that fail validation are
        skipped. Dangling handoff ids are repaired in memory.
        """
        data = read_json(self._store, self._key)
        agents: List[AgentDefinition] = []
        if data is not None and not isinstance(data, list):
            logger.warning("Stored agent set is not a list, discarding it")
            self._store.remove_item(self._key)
            data = None

        for record in data or []:
            try:
                agents.append(AgentDefinition.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping malformed stored agent: {e}")

        self._agents = prune_handoffs(agents)
        self.is_loaded = True
        logger.info(f"Loaded {len(self._agents)} custom agent(s)")
        return list(self._agents)

    def _persist(self) -> None:
        write_json(self._store, self._key, [a.to_document() for a in self._agents])

    def list(self) -> List[AgentDefinition]:
        return list(self._agents)

    def get(self, agent_id: str) -> Optional[AgentDefinition]:
        return next((a for a in self._agents if a.id == agent_id), None)

    def save(self, agent: AgentDefinition) -> AgentDefinition:
        """Insert or replace an agent by id."""
        others = [a for a in self._agents if a.id != agent.id]
        if any(a.name == agent.name for a in others):
            raise ValueError(f"An agent named '{agent.name}' already exists")

        known = {a.id for a in others} | {agent.id}
        handoffs = [h for h in agent.handoffs if h in known and h != agent.id]
        if handoffs != agent.handoffs:
            agent = agent.replace(handoffs=handoffs)

        existing = self.get(agent.id)
        if existing is None:
            self._agents.append(agent)
        else:
            self._agents[self._agents.index(existing)] = agent
        self._persist()
        return agent

    def delete(self, agent_id: str) -> bool:
        if self.get(agent_id) is None:
            return False
        self._agents = [a for a in self._agents if a.id != agent_id]
        self._agents = prune_handoffs(self._agents)
        self._persist()
        logger.info(f"Deleted custom agent {agent_id}")
        return True

    def scenarios(self) -> Dict[str, Scenario]:
        """
        One ``custom_<name>`` scenario per agent. Each set starts with the
        agent itself followed by every agent reachable through its handoffs,
        so handoffs always resolve inside the session.
        """
        result: Dict[str, Scenario] = {}
        for agent in self._agents:
            members = [agent]
            queue = deque([agent])
            while queue:
                current = queue.popleft()
                for target in resolve_handoffs(current, self._agents):
                    if target not in members:
                        members.append(target)
                        queue.append(target)

            key = f"{CUSTOM_SCENARIO_PREFIX}{agent.name}"
            result[key] = Scenario(
                key=key,
                agents=members,
                guardrail_display_name=agent.name,
            )
        return result
