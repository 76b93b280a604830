"""
Scenario catalog: built-in agent sets shipped as YAML plus the user-authored
sets produced by :class:`~src.agents.registry.AgentRegistry`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import ValidationError

from src.agents.models import Scenario
from src.agents.registry import AgentRegistry
from src.agents.validation import prune_handoffs
from utils.ml_logging import get_logger

logger = get_logger(__name__)

SCENARIO_STORE_DIR = Path(__file__).parent / "scenario_store"
DEFAULT_SCENARIO_KEY = "customerSupport"


def _load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def load_scenario_file(path: Path) -> Scenario:
    scenario = Scenario.model_validate(_load_yaml(path))
    scenario.agents = prune_handoffs(scenario.agents)
    return scenario


def load_builtin_scenarios(directory: Optional[Path] = None) -> Dict[str, Scenario]:
    directory = Path(directory or SCENARIO_STORE_DIR)
    scenarios: Dict[str, Scenario] = {}
    for path in sorted(directory.glob("*.yaml")):
        try:
            scenario = load_scenario_file(path)
        except (yaml.YAMLError, ValidationError, OSError):
            logger.exception(f"Error loading scenario file: {path}")
            continue
        scenarios[scenario.key] = scenario
    logger.debug(f"Built-in scenarios: {list(scenarios)}")
    return scenarios


def available_scenarios(
    registry: Optional[AgentRegistry] = None,
    builtins: Optional[Dict[str, Scenario]] = None,
) -> Dict[str, Scenario]:
    """Built-in scenarios merged with custom ones; custom keys win on clash."""
    merged = dict(builtins if builtins is not None else load_builtin_scenarios())
    if registry is not None:
        if not registry.is_loaded:
            registry.load()
        merged.update(registry.scenarios())
    return merged
