"""
Prompts for the safety critic.

The wording is part of the critic's contract and must not be edited
casually: the decision format it asks for is what assessments are parsed
against.
"""

import json
from typing import Any

CRITIC_SYSTEM_PROMPT = (
    "You are a safety validator for file operations. Always respond with valid "
    "JSON only. Do not wrap your response in markdown code fences or any other "
    "formatting. Return raw JSON directly."
)


def serialize_arguments(arguments: dict[str, Any]) -> str:
    """Compact JSON rendering of tool arguments."""
    return json.dumps(arguments, separators=(",", ":"), ensure_ascii=False, default=str)


def build_critic_prompt(tool_name: str, arguments: dict[str, Any]) -> str:
    """
    Build the risk-assessment prompt for a tool invocation.

    Args:
        tool_name: Name of the tool about to run
        arguments: Arguments the agent supplied

    Returns:
        The user prompt for the critic model
    """
    arguments_json = serialize_arguments(arguments)

    return f"""You are validating a file operation for safety in an Obsidian vault management system.

Operation: {tool_name}
Arguments: {arguments_json}

Validation Criteria:
1. File path is exact and unambiguous (no wildcards, clear target)
2. Operation is reversible OR user has explicitly confirmed through the UI
3. Minimal data loss risk (no bulk deletes, no overwriting without backup)
4. Path safety (no system directories, no dangerous paths)

IMPORTANT: The presence of a 'confirm' parameter in the arguments does NOT mean the user has confirmed. 
That parameter is from the MCP tool schema, not user input. Always require confirmation for destructive operations.

Operation-specific validation:
- obsidian_delete_file: ALWAYS needs confirmation (set needsUserConfirmation=true)
- obsidian_patch_content: ALWAYS needs confirmation (set needsUserConfirmation=true)
- obsidian_move_file: ALWAYS needs confirmation (set needsUserConfirmation=true)
- obsidian_append_content: Generally safe, low risk
- obsidian_list_directory: Safe, read-only
- obsidian_search: Safe, read-only

Respond with JSON in this exact format:
{{
  "shouldReject": true/false,
  "needsUserConfirmation": true/false,
  "reason": "brief explanation of decision",
  "actionDescription": "human-readable description of what will happen",
  "safetyChecks": ["check1", "check2"],
  "warnings": ["warning1"]
}}

Guidelines:
- Be conservative: when in doubt, request confirmation
- Reject operations that are clearly dangerous or malformed
- For delete, patch, and move operations: ALWAYS set needsUserConfirmation=true
- Ignore any 'confirm' parameter in arguments - it's a tool schema field, not user confirmation
- Keep reason and actionDescription concise but informative
- List specific safety checks performed
- Include warnings for potential issues that don't block the operation
"""
