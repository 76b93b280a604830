"""
Drafts a custom agent from a one-line description with a chat model.

The model answers with an agent document; the result is normalized with
:meth:`AgentDefinition.from_generated`, so ids are fresh and handoffs empty.
"""

import json
import re
from typing import Optional

from openai import AsyncOpenAI

from src.agents.models import AgentDefinition
from utils.ml_logging import get_logger

logger = get_logger(__name__)

DEFAULT_GENERATION_MODEL = "gpt-4o"

SYSTEM_PROMPT = """You design voice agent configurations. Given a description of the agent a user wants, reply with ONLY a JSON object of this shape:
{
  "name": "camelCaseName",
  "voice": "sage | alloy | ash | ballad | coral | echo | shimmer | verse",
  "handoffDescription": "one or two sentences on what the agent handles",
  "instructions": "personality, responsibilities, guidelines and example exchanges, in markdown",
  "tools": [
    {
      "name": "snake_case_name",
      "description": "what the tool does",
      "parameters": [
        {"name": "param_name", "type": "string | number | boolean", "description": "...", "required": true}
      ]
    }
  ]
}
Suggest two to five practical tools."""

_CODE_FENCE = re.compile(r"```(?:json)?\n?")


class AgentGenerationError(Exception):
    def __init__(self, message: str, raw: Optional[str] = None) -> None:
        super().__init__(message)
        self.raw = raw


class AgentGenerator:
    def __init__(self, client: AsyncOpenAI, model: str = DEFAULT_GENERATION_MODEL) -> None:
        self.client = client
        self.model = model

    async def generate(self, prompt: str) -> AgentDefinition:
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Create a voice agent for: {prompt}"},
            ],
            temperature=0.7,
            max_tokens=2000,
        )
        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise AgentGenerationError("No response from AI")

        try:
            payload = json.loads(_CODE_FENCE.sub("", content).strip())
        except json.JSONDecodeError:
            logger.error(f"Failed to parse generated agent: {content[:200]}")
            raise AgentGenerationError("Failed to parse AI response", raw=content)

        if not isinstance(payload, dict) or not payload.get("name") or not payload.get("instructions"):
            raise AgentGenerationError("Invalid agent configuration", raw=content)

        agent = AgentDefinition.from_generated(payload)
        logger.info(f"Generated agent '{agent.name}' with {len(agent.tools)} tool(s)")
        return agent
