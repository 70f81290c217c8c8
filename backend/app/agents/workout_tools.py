# backend/app/agents/workout_tools.py

"""In-process tools the agent uses to emit structured proposals.

They have no side effects: each validates its arguments and echoes them back
tagged with the metadata ``type`` the mobile app renders.
"""

import json
from typing import Any, Dict, Type

from claude_agent_sdk import create_sdk_mcp_server, tool
from pydantic import BaseModel, ValidationError

from app.models.metadata_models import (
    ExerciseProposalInput,
    PresentChoicesInput,
    TemplateProposalInput,
)


MCP_SERVER_NAME = "workout-tools"

PRESENT_CHOICES = "present_choices"
CREATE_TEMPLATE_PROPOSAL = "create_template_proposal"
CREATE_EXERCISE_PROPOSAL = "create_exercise_proposal"

# tool name -> (metadata type, argument model)
STRUCTURED_TOOLS: Dict[str, tuple] = {
    PRESENT_CHOICES: ("multiple_choice", PresentChoicesInput),
    CREATE_TEMPLATE_PROPOSAL: ("template_proposal", TemplateProposalInput),
    CREATE_EXERCISE_PROPOSAL: ("exercise_proposal", ExerciseProposalInput),
}


def _text_result(payload: Dict[str, Any], is_error: bool = False) -> Dict[str, Any]:
    result: Dict[str, Any] = {"content": [{"type": "text", "text": json.dumps(payload)}]}
    if is_error:
        result["is_error"] = True
    return result


def tag_tool_output(tool_name: str, args: Dict[str, Any]) -> Dict[str, Any]:
    """Validate tool arguments and tag them with the matching metadata type.

    Raises ValidationError when the arguments do not fit the tool's schema.
    """
    metadata_type, model = STRUCTURED_TOOLS[tool_name]
    validated = model.model_validate(args)
    return {"type": metadata_type, **validated.model_dump(by_alias=True, exclude_none=True)}


async def _run_structured_tool(tool_name: str, args: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return _text_result(tag_tool_output(tool_name, args))
    except ValidationError as e:
        return _text_result({"error": f"Invalid arguments for {tool_name}", "details": str(e)}, is_error=True)


def _schema(model: Type[BaseModel]) -> Dict[str, Any]:
    return model.model_json_schema(by_alias=True)


@tool(
    PRESENT_CHOICES,
    "Present a multiple-choice question to the user. The mobile app will render the options as tappable buttons.",
    _schema(PresentChoicesInput),
)
async def present_choices(args: Dict[str, Any]) -> Dict[str, Any]:
    return await _run_structured_tool(PRESENT_CHOICES, args)


@tool(
    CREATE_TEMPLATE_PROPOSAL,
    "Create a workout template proposal for the user to review. "
    "The mobile app will display it as a card with a 'Save Template' button.",
    _schema(TemplateProposalInput),
)
async def create_template_proposal(args: Dict[str, Any]) -> Dict[str, Any]:
    return await _run_structured_tool(CREATE_TEMPLATE_PROPOSAL, args)


@tool(
    CREATE_EXERCISE_PROPOSAL,
    "Create an exercise proposal for the user to review. "
    "The mobile app will display it as a card with a 'Save Exercise' button.",
    _schema(ExerciseProposalInput),
)
async def create_exercise_proposal(args: Dict[str, Any]) -> Dict[str, Any]:
    return await _run_structured_tool(CREATE_EXERCISE_PROPOSAL, args)


def build_workout_tools_server():
    return create_sdk_mcp_server(
        name=MCP_SERVER_NAME,
        version="1.0.0",
        tools=[present_choices, create_template_proposal, create_exercise_proposal],
    )
