"""
Agent generation endpoint.

``POST /api/generate-agent`` turns a short description into a draft agent
document for the builder. The draft is not saved; the builder persists it.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from openai import APIError
from opentelemetry import trace

from apps.studio.backend.api.v1.dependencies.clients import get_agent_generator
from apps.studio.backend.api.v1.schemas.agents import GenerateAgentRequest, GenerateAgentResponse
from apps.studio.backend.services.agent_generator import AgentGenerationError, AgentGenerator
from utils.ml_logging import get_logger

logger = get_logger("api.v1.agents")
tracer = trace.get_tracer(__name__)

router = APIRouter()


@router.post("/generate-agent", response_model=GenerateAgentResponse)
async def generate_agent(
    body: GenerateAgentRequest,
    generator: AgentGenerator = Depends(get_agent_generator),
):
    prompt = (body.prompt or "").strip()
    if not prompt:
        return JSONResponse({"error": "Prompt is required"}, status_code=400)

    with tracer.start_as_current_span("api.agents.generate") as span:
        try:
            agent = await generator.generate(prompt)
        except AgentGenerationError as e:
            span.set_attribute("error.message", str(e))
            content = {"error": str(e)}
            if e.raw is not None:
                content["raw"] = e.raw
            return JSONResponse(content, status_code=500)
        except APIError as e:
            logger.error(f"Agent generation request failed: {e}")
            return JSONResponse({"error": str(e) or "Failed to generate agent"}, status_code=500)
        span.set_attribute("agent.name", agent.name)
    return GenerateAgentResponse(agent=agent.to_document())
