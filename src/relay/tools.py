"""Tool registry and dispatch for AI-issued function calls."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from relay.errors import ToolRegistrationError
from relay.session import Session, ToolCallRequest, ToolResult

LOGGER = logging.getLogger(__name__)

TERMINATION_TOOL = "disconnect_call"


@dataclass(frozen=True)
class ToolContext:
    session: Session
    terminate: Callable[[str], Awaitable[Any]]


ToolHandler = Callable[[dict[str, Any], ToolContext], Awaitable[dict[str, Any] | None]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    handler: ToolHandler
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required") or [])

    def to_realtime_schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class ToolRegistry:
    """Name to handler table, validated when tools are registered."""

    def __init__(self, tools: Iterable[ToolSpec] = ()) -> None:
        self._tools: dict[str, ToolSpec] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolSpec) -> None:
        if not tool.name or not tool.name.strip():
            raise ToolRegistrationError("Tool name may not be empty.")
        if tool.name in self._tools:
            raise ToolRegistrationError(f"Tool {tool.name!r} is already registered.")
        if tool.parameters.get("type") != "object":
            raise ToolRegistrationError(f"Tool {tool.name!r} parameters must be a JSON object schema.")
        properties = tool.parameters.get("properties") or {}
        unknown = [name for name in tool.required if name not in properties]
        if unknown:
            raise ToolRegistrationError(
                f"Tool {tool.name!r} requires undeclared parameters: {', '.join(unknown)}"
            )
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def to_realtime_schema(self) -> list[dict[str, Any]]:
        return [tool.to_realtime_schema() for tool in self._tools.values()]


class FunctionCallDispatcher:
    """Run a tool call to completion and always produce a result."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def dispatch(self, request: ToolCallRequest, context: ToolContext) -> ToolResult:
        tool = self._registry.get(request.name)
        if tool is None:
            LOGGER.warning("No handler registered for tool %s", request.name)
            return ToolResult.error("no handler")

        try:
            arguments = json.loads(request.arguments) if request.arguments else {}
        except json.JSONDecodeError:
            return ToolResult.error("Invalid JSON arguments for function call.")
        if not isinstance(arguments, dict):
            return ToolResult.error("Invalid JSON arguments for function call.")

        missing = [name for name in tool.required if name not in arguments]
        if missing:
            return ToolResult.error(f"Missing required arguments: {', '.join(missing)}")

        LOGGER.info("Calling tool %s with %s", tool.name, arguments)
        try:
            output = await tool.handler(arguments, context)
        except Exception as exc:
            LOGGER.exception("Tool %s failed", tool.name)
            return ToolResult.error(f"Error running function {tool.name}: {exc}")
        return ToolResult(output=output if output is not None else {"success": True})


async def _record_candidate_response(arguments: dict[str, Any], context: ToolContext) -> dict[str, Any]:
    question_id = str(arguments["question_id"])
    meets_criteria = bool(arguments["meets_criteria"])
    context.session.candidate_responses[question_id] = {
        "response": arguments["response"],
        "meets_criteria": meets_criteria,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    LOGGER.info("Recorded response for %s (meets criteria: %s)", question_id, meets_criteria)
    return {
        "success": True,
        "message": "Response recorded",
        "question_id": question_id,
        "meets_criteria": meets_criteria,
    }


async def _evaluate_candidate(arguments: dict[str, Any], context: ToolContext) -> dict[str, Any]:
    recommend_hire = bool(arguments["recommend_hire"])
    context.session.evaluation = {
        "overall_assessment": arguments["overall_assessment"],
        "recommend_hire": recommend_hire,
        "key_strengths": list(arguments.get("key_strengths") or []),
        "concerns": list(arguments.get("concerns") or []),
    }
    LOGGER.info("Candidate evaluation recorded (recommend hire: %s)", recommend_hire)
    return {"success": True, "message": "Evaluation recorded", "recommend_hire": recommend_hire}


async def _disconnect_call(arguments: dict[str, Any], context: ToolContext) -> dict[str, Any]:
    reason = str(arguments["reason"])
    LOGGER.info("Disconnect requested by model: %s", reason)
    await context.terminate(reason)
    return {"success": True, "message": "Call disconnection completed", "reason": reason}


RECORD_CANDIDATE_RESPONSE = ToolSpec(
    name="record_candidate_response",
    description="Record the candidate's response to a specific question",
    handler=_record_candidate_response,
    parameters={
        "type": "object",
        "properties": {
            "question_id": {
                "type": "string",
                "description": "The identifier of the question being answered",
            },
            "response": {"type": "string", "description": "The candidate's response"},
            "meets_criteria": {
                "type": "boolean",
                "description": "Whether the response meets the criteria for this question",
            },
        },
        "required": ["question_id", "response", "meets_criteria"],
    },
)

EVALUATE_CANDIDATE = ToolSpec(
    name="evaluate_candidate",
    description="Evaluate if the candidate meets all requirements for the position",
    handler=_evaluate_candidate,
    parameters={
        "type": "object",
        "properties": {
            "overall_assessment": {
                "type": "string",
                "description": "Overall assessment of the candidate",
            },
            "recommend_hire": {
                "type": "boolean",
                "description": "Whether to recommend hiring this candidate",
            },
            "key_strengths": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Key strengths of the candidate",
            },
            "concerns": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Potential concerns about the candidate",
            },
        },
        "required": ["overall_assessment", "recommend_hire"],
    },
)

DISCONNECT_CALL = ToolSpec(
    name=TERMINATION_TOOL,
    description="Disconnect the current call when the candidate doesn't meet requirements or the interview is over",
    handler=_disconnect_call,
    parameters={
        "type": "object",
        "properties": {
            "reason": {"type": "string", "description": "The reason for disconnecting the call"},
        },
        "required": ["reason"],
    },
)


def build_default_registry() -> ToolRegistry:
    return ToolRegistry([RECORD_CANDIDATE_RESPONSE, EVALUATE_CANDIDATE, DISCONNECT_CALL])
