"""Tests for the critic model and its prompt."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import openai
import pytest

from vault_agent.errors import SafetyAssessmentError
from vault_agent.models import CriticConfig
from vault_agent.safety import Assessment, CriticModel
from vault_agent.safety.critic import extract_json
from vault_agent.safety.prompts import build_critic_prompt, serialize_arguments


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def make_critic(content=None, side_effect=None, timeout=10.0) -> CriticModel:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=completion(content), side_effect=side_effect
    )
    return CriticModel(client=client, model="critic-model", timeout=timeout)


VERDICT = {
    "shouldReject": False,
    "needsUserConfirmation": True,
    "reason": "Explicit single file",
    "actionDescription": "Delete notes/todo.md",
    "safetyChecks": ["path is explicit"],
    "warnings": ["Cannot be undone"],
}


class TestCriticPrompt:
    """Tests for the critic prompt text."""

    def test_prompt_names_operation_and_arguments(self):
        prompt = build_critic_prompt("obsidian_delete_file", {"filepath": "notes/todo.md"})
        assert "Operation: obsidian_delete_file\n" in prompt
        assert 'Arguments: {"filepath":"notes/todo.md"}\n' in prompt

    def test_prompt_keeps_trailing_space_after_confirmed(self):
        prompt = build_critic_prompt("obsidian_delete_file", {})
        assert "does NOT mean the user has confirmed. \n" in prompt

    def test_prompt_asks_for_json_fields(self):
        prompt = build_critic_prompt("obsidian_move_file", {})
        for key in ("shouldReject", "needsUserConfirmation", "actionDescription", "safetyChecks"):
            assert f'"{key}"' in prompt

    def test_serialize_arguments_is_compact(self):
        assert serialize_arguments({"a": 1, "b": "ü"}) == '{"a":1,"b":"ü"}'


class TestExtractJson:
    def test_json_fence(self):
        assert extract_json('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_prose_around_object(self):
        assert extract_json('Here you go: {"a": 1} Hope that helps.') == '{"a": 1}'

    def test_truncated_object_kept_to_end(self):
        assert extract_json('{"a": 1, "b": [') == '{"a": 1, "b": ['

    def test_no_object(self):
        assert extract_json("looks fine to me") is None


class TestAssessment:
    """Tests for Assessment.from_json."""

    def test_keys_are_case_insensitive(self):
        assessment = Assessment.from_json({"SHOULDREJECT": True, "Reason": "Nope"})
        assert assessment.should_reject
        assert assessment.reason == "Nope"
        assert assessment.verdict == "reject"

    def test_defaults(self):
        assessment = Assessment.from_json({})
        assert not assessment.should_reject
        assert assessment.needs_confirmation
        assert assessment.reason == "Reflection completed but reason not provided"
        assert assessment.verdict == "confirm"

    def test_approve_verdict(self):
        assert Assessment(needs_confirmation=False).verdict == "approve"


class TestCriticModel:
    """Tests for CriticModel.assess."""

    async def test_parses_verdict(self):
        critic = make_critic(json.dumps(VERDICT))

        assessment = await critic.assess("obsidian_delete_file", {"filepath": "notes/todo.md"})

        assert assessment.needs_confirmation
        assert assessment.action_description == "Delete notes/todo.md"
        assert assessment.warnings == ["Cannot be undone"]
        assert assessment.safety_checks == ["path is explicit"]

    async def test_sends_system_and_user_prompt(self):
        critic = make_critic(json.dumps(VERDICT))

        await critic.assess("obsidian_delete_file", {"filepath": "a.md"})

        kwargs = critic.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "critic-model"
        assert kwargs["temperature"] == 0.0
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]

    async def test_fenced_output_is_accepted(self):
        critic = make_critic("```json\n" + json.dumps(VERDICT) + "\n```")
        assessment = await critic.assess("obsidian_delete_file", {})
        assert assessment.reason == "Explicit single file"

    async def test_trailing_comma_is_repaired(self):
        """Small JSON slips from the critic do not block the operation."""
        critic = make_critic(
            '{"shouldReject": false, "needsUserConfirmation": true, '
            '"reason": "Explicit single file", "warnings": [],}'
        )

        assessment = await critic.assess("obsidian_delete_file", {})

        assert assessment.verdict == "confirm"
        assert assessment.reason == "Explicit single file"
        assert assessment.warnings == []

    async def test_malformed_output_raises(self):
        critic = make_critic("I think this is fine")
        with pytest.raises(SafetyAssessmentError, match="not valid JSON"):
            await critic.assess("obsidian_delete_file", {})

    async def test_non_object_output_raises(self):
        critic = make_critic("[1, 2]")
        with pytest.raises(SafetyAssessmentError):
            await critic.assess("obsidian_delete_file", {})

    async def test_empty_output_raises(self):
        critic = make_critic("   ")
        with pytest.raises(SafetyAssessmentError, match="empty"):
            await critic.assess("obsidian_delete_file", {})

    async def test_transport_error_raises(self):
        critic = make_critic(side_effect=openai.OpenAIError("connection refused"))
        with pytest.raises(SafetyAssessmentError, match="connection refused"):
            await critic.assess("obsidian_delete_file", {})

    async def test_timeout_raises(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)
            return completion(json.dumps(VERDICT))

        critic = make_critic(side_effect=slow, timeout=0.05)
        with pytest.raises(SafetyAssessmentError, match="timed out"):
            await critic.assess("obsidian_delete_file", {})

    def test_from_config(self):
        critic = CriticModel.from_config(
            CriticConfig(base_url="http://critic:8000/v1", model="small", timeout=5)
        )
        assert critic.model == "small"
        assert critic.timeout == 5
