"""
Agent generation schemas.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class GenerateAgentRequest(BaseModel):
    prompt: Optional[str] = Field(None, description="What the agent should do")


class GenerateAgentResponse(BaseModel):
    agent: Dict[str, Any] = Field(..., description="Agent document with camelCase keys")
