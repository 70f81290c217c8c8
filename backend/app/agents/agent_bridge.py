# backend/app/agents/agent_bridge.py

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ClaudeSDKError,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ToolUseBlock,
    UserMessage,
    query,
)

from app.agents.workout_tools import MCP_SERVER_NAME, STRUCTURED_TOOLS, build_workout_tools_server
from app.core.errors import AgentTransportError, AgentTurnError
from app.core.logger import logger
from app.models.metadata_models import parse_metadata


SYSTEM_PROMPT = """You are a workout planning assistant inside a fitness app. Help users create workout templates and exercises through conversation.

IMPORTANT FORMATTING RULES:
- Do NOT use markdown formatting (no **bold**, *italic*, headers, lists, or links). The app renders plain text only, so markdown syntax would appear as raw characters.
- Do NOT use emojis.
- Keep responses short (1-3 sentences). The chat bubbles have limited width.

When helping users, gather information about:
- Fitness goals (strength, hypertrophy, endurance, weight loss)
- Available equipment (full gym, home gym, bodyweight only)
- Experience level (beginner, intermediate, advanced)
- Time available per session
- Target muscle groups or workout split preference

IMPORTANT: Always use present_choices to ask questions. Do NOT type out options as text. The app renders present_choices as tappable buttons. Every time you need user input, use present_choices.

Use WebSearch to look up exercise information, proper form cues, and workout programming principles when needed.

When you have enough information, use create_template_proposal or create_exercise_proposal to present the result. The user can then save it to their app.

RECORDING TYPES:
Each exercise can define custom recording fields. Default is weight (kg) + reps (count).
Available field types: "number" (integer), "decimal" (float), "duration" (seconds)
Common patterns:
  - Weight training (default): weight(decimal,kg) + reps(number). Do NOT specify recordingFields for this.
  - Bodyweight/count only: reps(number) with custom label (e.g. "Slow Blinks", "Pushups")
  - Timed hold: duration(duration,sec)
  - Distance + time: distance(decimal,km) + duration(duration,sec)
When creating non-weight exercises (e.g. eye routines, stretching, timed holds, cardio drills), include recordingFields and targetValues per exercise.
For standard weight training exercises, omit recordingFields entirely (the app uses weight+reps by default).

Focus on being helpful and actionable."""

FALLBACK_TEXT = "I apologize, but I was unable to generate a response. Please try again."

Runtime = Callable[..., AsyncIterator[Any]]


@dataclass(frozen=True)
class AgentConfig:
    """Everything the agent runtime is started with for one turn."""

    system_prompt: str = SYSTEM_PROMPT
    mcp_server_name: str = MCP_SERVER_NAME
    research_tools: Tuple[str, ...] = ("WebSearch", "WebFetch")
    structured_tools: Tuple[str, ...] = tuple(STRUCTURED_TOOLS)
    max_turns: int = 10
    permission_mode: str = "acceptEdits"
    model: Optional[str] = None
    api_key: Optional[str] = field(default=None, repr=False)
    connect_timeout: float = 30.0
    request_timeout: float = 300.0
    fallback_text: str = FALLBACK_TEXT

    @property
    def tool_prefix(self) -> str:
        return f"mcp__{self.mcp_server_name}__"

    @property
    def allowed_tools(self) -> List[str]:
        return list(self.research_tools) + [self.tool_prefix + name for name in self.structured_tools]

    def structured_tool_name(self, qualified_name: str) -> Optional[str]:
        """Map a tool-use name to one of our structured tools, or None."""
        name = qualified_name
        if name.startswith(self.tool_prefix):
            name = name[len(self.tool_prefix):]
        return name if name in self.structured_tools else None

    @classmethod
    def from_settings(cls, settings) -> "AgentConfig":
        return cls(
            max_turns=settings.agent_max_turns,
            permission_mode=settings.agent_permission_mode,
            model=settings.agent_model,
            api_key=settings.anthropic_api_key,
            connect_timeout=settings.agent_connect_timeout,
            request_timeout=settings.agent_request_timeout,
        )


@dataclass
class TurnResult:
    response_text: str
    metadata_items: List[Dict[str, Any]] = field(default_factory=list)
    new_session_id: Optional[str] = None


@dataclass
class _TurnState:
    text_parts: List[str] = field(default_factory=list)
    metadata_items: List[Dict[str, Any]] = field(default_factory=list)
    session_id: Optional[str] = None


def _session_id_of(event: Any) -> Optional[str]:
    if isinstance(event, SystemMessage):
        session_id = (event.data or {}).get("session_id")
    else:
        session_id = getattr(event, "session_id", None)
    return session_id if isinstance(session_id, str) and session_id else None


class AgentSessionBridge:
    """
    Runs one conversational turn against the agent runtime and reduces its
    event stream into a single TurnResult.

    The runtime keeps its own context, resumed through the session id. Stored
    message history is never replayed into the prompt, so the two histories
    can drift apart if stored messages are edited elsewhere.
    """

    def __init__(self, config: Optional[AgentConfig] = None, runtime: Runtime = query):
        self.config = config or AgentConfig()
        self._runtime = runtime
        self._tools_server = build_workout_tools_server()

    # -----------------------------
    # Runtime options
    # -----------------------------
    def build_options(self, existing_session_id: Optional[str] = None) -> ClaudeAgentOptions:
        env: Dict[str, str] = {}
        if self.config.api_key:
            env["ANTHROPIC_API_KEY"] = self.config.api_key

        return ClaudeAgentOptions(
            system_prompt=self.config.system_prompt,
            allowed_tools=self.config.allowed_tools,
            mcp_servers={self.config.mcp_server_name: self._tools_server},
            max_turns=self.config.max_turns,
            permission_mode=self.config.permission_mode,
            model=self.config.model,
            resume=existing_session_id or None,
            env=env,
            stderr=_log_stderr,
        )

    # -----------------------------
    # One turn
    # -----------------------------
    async def run_turn(
        self,
        conversation_id: str,
        user_message: str,
        existing_session_id: Optional[str] = None,
    ) -> TurnResult:
        """
        Send one user message and collect the agent's reply.

        Raises AgentTransportError when the stream cannot be opened or read,
        or when the connect/overall timeout elapses. An error result reported
        by the runtime does not raise; the turn falls back to whatever text
        was collected, or to the fallback apology.
        """
        options = self.build_options(existing_session_id)
        logger.info(
            f"Starting agent turn for conversation {conversation_id} "
            f"(resume={'yes' if existing_session_id else 'no'})"
        )

        state = _TurnState()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.request_timeout
        connect_deadline = min(deadline, loop.time() + self.config.connect_timeout)
        stream = self._runtime(prompt=user_message, options=options)
        received_any = False

        try:
            async with asyncio.timeout_at(connect_deadline) as timeout:
                async for event in stream:
                    if not received_any:
                        received_any = True
                        timeout.reschedule(deadline)
                    self._reduce(conversation_id, event, state)
        except TimeoutError as e:
            phase = "read" if received_any else "connect"
            logger.error(f"Agent {phase} timeout for conversation {conversation_id}")
            raise AgentTransportError(f"Agent runtime {phase} timed out", details=phase) from e
        except (ClaudeSDKError, OSError) as e:
            logger.error(f"Agent stream failed for conversation {conversation_id}: {e}")
            raise AgentTransportError("Agent runtime stream failed", details=str(e)) from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        response = "\n\n".join(state.text_parts).strip()
        return TurnResult(
            response_text=response or self.config.fallback_text,
            metadata_items=state.metadata_items,
            new_session_id=state.session_id,
        )

    # -----------------------------
    # Event reduction
    # -----------------------------
    def _reduce(self, conversation_id: str, event: Any, state: _TurnState) -> None:
        session_id = _session_id_of(event)
        if session_id:
            state.session_id = session_id

        if isinstance(event, AssistantMessage):
            for block in event.content or []:
                if isinstance(block, TextBlock):
                    if block.text:
                        state.text_parts.append(block.text)
                elif isinstance(block, ToolUseBlock):
                    self._collect_tool_call(block, state)

        elif isinstance(event, ResultMessage):
            self._handle_result(conversation_id, event, state)

        elif isinstance(event, (SystemMessage, UserMessage)):
            # tool results and init notices; the tool-use block already
            # carried the structured data
            pass

        else:
            logger.debug(f"Ignoring agent event {type(event).__name__} for conversation {conversation_id}")

    def _collect_tool_call(self, block: ToolUseBlock, state: _TurnState) -> None:
        tool_name = self.config.structured_tool_name(block.name)
        if tool_name is None:
            return

        metadata_type, _ = STRUCTURED_TOOLS[tool_name]
        item = {**(block.input or {}), "type": metadata_type}
        if parse_metadata(item) is None:
            logger.warning(f"Skipping {tool_name} call with invalid arguments")
            return
        state.metadata_items.append(item)

    def _handle_result(self, conversation_id: str, result: ResultMessage, state: _TurnState) -> None:
        if result.subtype == "success" and not result.is_error:
            if result.result and not state.text_parts:
                state.text_parts.append(result.result)
            cost = f"${result.total_cost_usd:.4f}" if result.total_cost_usd is not None else "n/a"
            logger.info(
                f"Agent turn completed for conversation {conversation_id} "
                f"({result.num_turns} turns, {cost})"
            )
            return

        errors = getattr(result, "errors", None) or ([result.result] if result.result else [])
        turn_error = AgentTurnError(subtype=result.subtype, num_turns=result.num_turns, errors=list(errors))
        logger.error(f"Agent error result for conversation {conversation_id}: {turn_error}")


def _log_stderr(line: str) -> None:
    logger.warning(f"[agent stderr] {line.strip()}")
