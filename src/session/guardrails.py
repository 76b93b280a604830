"""
Moderation guardrail applied to agent output.

Each finished agent transcript is classified by a chat model into one of
``OFFENSIVE``, ``OFF_BRAND``, ``VIOLENCE`` or ``NONE``. Anything but ``NONE``
trips the guardrail. The guardrail is bound to a company name so the model
can judge whether a reply is on brand.
"""

import json
from typing import Optional

from openai import APIError, AsyncOpenAI

from src.realtime_client.transport import GuardrailResult
from utils.ml_logging import get_logger

logger = get_logger(__name__)

MODERATION_CATEGORIES = ("OFFENSIVE", "OFF_BRAND", "VIOLENCE", "NONE")
DEFAULT_GUARDRAIL_MODEL = "gpt-4o-mini"

_PROMPT = """You are an expert at classifying text according to moderation policies. Consider the provided message, analyze potential classes from output_classes, and output the best classification. Output json, following the provided schema. Keep your analysis and reasoning short and to the point, maximum 2 sentences.

<info>
- Company name: {company_name}
</info>

<message>
{text}
</message>

<output_classes>
- OFFENSIVE: Content that includes hate speech, discriminatory language, insults, slurs, or harassment.
- OFF_BRAND: Content that discusses competitors in a disparaging way.
- VIOLENCE: Content that includes explicit threats, incitement of harm, or graphic descriptions of physical injury or violence.
- NONE: If no other classes are appropriate and the message is fine.
</output_classes>

Respond with a JSON object with keys "moderationRationale" and "moderationCategory"."""


class ModerationGuardrail:
    name = "moderation_guardrail"

    def __init__(
        self,
        company_name: str,
        client: Optional[AsyncOpenAI] = None,
        model: str = DEFAULT_GUARDRAIL_MODEL,
    ) -> None:
        self.company_name = company_name
        self.model = model
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI()
        return self._client

    async def check(self, text: str) -> GuardrailResult:
        """
        Classify ``text``. Classification failures do not block output; they
        are logged and reported as not tripped.
        """
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": _PROMPT.format(company_name=self.company_name, text=text),
                    }
                ],
                response_format={"type": "json_object"},
            )
            payload = json.loads(completion.choices[0].message.content or "{}")
        except (APIError, json.JSONDecodeError) as e:
            logger.warning(f"Moderation check failed for {self.company_name}: {e}")
            return GuardrailResult(tripped=False)

        category = str(payload.get("moderationCategory", "NONE")).upper()
        if category not in MODERATION_CATEGORIES:
            category = "NONE"
        return GuardrailResult(
            tripped=category != "NONE",
            category=category,
            rationale=str(payload.get("moderationRationale", "")),
        )


def create_moderation_guardrail(
    company_name: str, client: Optional[AsyncOpenAI] = None
) -> ModerationGuardrail:
    return ModerationGuardrail(company_name, client=client)
