"""
Secondary critic model for destructive tool calls.

A single-shot chat completion, separate from the conversational model,
that returns a structured risk assessment. Any failure is raised as
SafetyAssessmentError; deciding what to do about it is the gate's job.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import json_repair
from openai import AsyncOpenAI

from ..errors import SafetyAssessmentError
from ..models import CriticConfig
from ..tracing import TracingContext
from .prompts import CRITIC_SYSTEM_PROMPT, build_critic_prompt

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


@dataclass
class Assessment:
    """Critic verdict for one tool invocation."""

    should_reject: bool = False
    needs_confirmation: bool = True
    reason: str = ""
    action_description: str = ""
    safety_checks: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def verdict(self) -> str:
        if self.should_reject:
            return "reject"
        if self.needs_confirmation:
            return "confirm"
        return "approve"

    @classmethod
    def from_json(cls, data: dict) -> "Assessment":
        """Build from the critic's JSON, matching keys case-insensitively."""
        lowered = {str(k).lower(): v for k, v in data.items()}
        return cls(
            should_reject=bool(lowered.get("shouldreject", False)),
            needs_confirmation=bool(lowered.get("needsuserconfirmation", True)),
            reason=str(lowered.get("reason") or "")
            or "Reflection completed but reason not provided",
            action_description=str(lowered.get("actiondescription") or ""),
            safety_checks=[str(c) for c in lowered.get("safetychecks") or []],
            warnings=[str(w) for w in lowered.get("warnings") or []],
        )


def extract_json(text: str) -> Optional[str]:
    """
    Pull the JSON object out of a critic reply.

    Prefers a fenced block; otherwise takes everything from the first
    brace to the last one (or to the end, for a truncated reply).
    """
    for block in _FENCED_BLOCK.findall(text):
        if "{" in block:
            return block.strip()

    start = text.find("{")
    if start == -1:
        return None
    end = text.rfind("}")
    return text[start : end + 1] if end > start else text[start:]


class CriticModel:
    """
    Risk assessor backed by an OpenAI-compatible endpoint.

    Args:
        client: Async OpenAI client for the critic endpoint
        model: Model identifier
        timeout: Seconds allowed for one assessment
        temperature: Sampling temperature
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        timeout: float = 10.0,
        temperature: float = 0.0,
    ):
        self.client = client
        self.model = model
        self.timeout = timeout
        self.temperature = temperature

    @classmethod
    def from_config(cls, config: CriticConfig) -> "CriticModel":
        client = AsyncOpenAI(
            base_url=config.base_url,
            api_key=config.api_key or "not-needed",
        )
        return cls(
            client=client,
            model=config.model,
            timeout=config.timeout,
            temperature=config.temperature,
        )

    async def assess(
        self,
        function_name: str,
        arguments: dict[str, Any],
        tracing_context: Optional[TracingContext] = None,
    ) -> Assessment:
        """
        Assess the risk of a tool invocation.

        Args:
            function_name: Tool being invoked
            arguments: Tool arguments
            tracing_context: Optional request trace to record the call under

        Returns:
            Parsed Assessment

        Raises:
            SafetyAssessmentError: On timeout, transport failure, empty or
                malformed output
        """
        messages = [
            {"role": "system", "content": CRITIC_SYSTEM_PROMPT},
            {"role": "user", "content": build_critic_prompt(function_name, arguments)},
        ]

        if tracing_context is None:
            text = await self._complete(function_name, messages)
        else:
            with tracing_context.generation(
                name="safety_critic",
                model=self.model,
                input=messages,
                metadata={"tool": function_name},
            ) as gen:
                try:
                    text = await self._complete(function_name, messages)
                except SafetyAssessmentError:
                    gen.set_status("error")
                    raise
                gen.set_output(text)

        return self._parse(function_name, text)

    async def _complete(self, function_name: str, messages: list[dict]) -> str:
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=self.temperature,
                ),
                self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Critic call timed out for {function_name}")
            raise SafetyAssessmentError(
                f"Safety assessment timed out after {self.timeout}s"
            ) from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Critic call failed for {function_name}: {e}")
            raise SafetyAssessmentError(f"Safety assessment failed: {e}") from e

        text = ""
        if response.choices:
            text = (response.choices[0].message.content or "").strip()
        if not text:
            logger.warning(f"Critic returned empty response for {function_name}")
            raise SafetyAssessmentError("Safety assessment returned an empty response")
        return text

    def _parse(self, function_name: str, text: str) -> Assessment:
        body = extract_json(text)
        if body is None:
            logger.warning(
                f"No JSON in critic response for {function_name}: {text[:500]}"
            )
            raise SafetyAssessmentError("Safety assessment was not valid JSON")

        data = json_repair.loads(body)
        if not isinstance(data, dict) or not data:
            raise SafetyAssessmentError("Safety assessment was not a JSON object")

        assessment = Assessment.from_json(data)
        logger.info(
            f"Critic assessed {function_name}: verdict={assessment.verdict}, "
            f"reason={assessment.reason}"
        )
        return assessment
