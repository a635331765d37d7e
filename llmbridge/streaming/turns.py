"""
llmbridge - Multi-Step Tool Streams

Drives a decoder across tool-calling turns:

    turn 1 events ... ToolCallEvent*
    ToolResultEvent / ArtifactEvent per executed call
    turn 2 events ...
    StreamEndEvent (exactly one, usage summed over all turns)

A turn continues into the next one only when it finished with
``tool_calls``, tools and a ``next_turn`` factory were supplied, and the
step budget is not exhausted.
"""

import inspect
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    TYPE_CHECKING,
    Tuple,
    Union,
)

from ..config import get_settings
from ..core.models import FinishReason, ToolCall, ToolOutput, ToolResult
from ..observability.logging import get_logger
from .events import ArtifactEvent, StreamEvent, ToolCallEvent, ToolResultEvent, new_event_id, now
from .sources import Source

if TYPE_CHECKING:
    from ..providers.base import StreamDecoder

logger = get_logger(__name__)

Tool = Callable[..., Union[str, ToolOutput, Awaitable[Union[str, ToolOutput]]]]
NextTurn = Callable[
    [List[ToolCall], List[ToolResult]],
    Union[Source[Dict[str, Any]], Awaitable[Source[Dict[str, Any]]]],
]


async def execute_tool(tools: Dict[str, Tool], tool_call: ToolCall) -> Tuple[ToolResult, Optional[str]]:
    """
    Run one tool call.

    Returns the result and, when the tool failed, the error message. A
    failing tool never aborts the stream; the model receives the error as
    the tool's result.
    """
    tool = tools.get(tool_call.name)
    if tool is None:
        error = f"Tool '{tool_call.name}' is not available"
        logger.warning("Unknown tool requested", tool_name=tool_call.name, tool_call_id=tool_call.id)
        return _failed_result(tool_call, error), error

    try:
        output = tool(**tool_call.arguments)
        if inspect.isawaitable(output):
            output = await output
    except Exception as e:
        logger.exception("Tool execution failed", tool_name=tool_call.name, tool_call_id=tool_call.id)
        error = f"{type(e).__name__}: {e}"
        return _failed_result(tool_call, error), error

    if isinstance(output, ToolOutput):
        return (
            ToolResult(
                tool_call_id=tool_call.id,
                tool_name=tool_call.name,
                args=tool_call.arguments,
                result=output.result,
                artifacts=list(output.artifacts),
            ),
            None,
        )

    return (
        ToolResult(
            tool_call_id=tool_call.id,
            tool_name=tool_call.name,
            args=tool_call.arguments,
            result=output,
        ),
        None,
    )


def _failed_result(tool_call: ToolCall, error: str) -> ToolResult:
    return ToolResult(
        tool_call_id=tool_call.id,
        tool_name=tool_call.name,
        args=tool_call.arguments,
        result=error,
    )


async def run_stream(
    decoder: "StreamDecoder",
    payloads: Source[Dict[str, Any]],
    tools: Optional[Dict[str, Tool]] = None,
    next_turn: Optional[NextTurn] = None,
    max_steps: Optional[int] = None,
) -> AsyncIterator[StreamEvent]:
    """
    Stream a (possibly multi-step) tool-calling conversation.

    Args:
        decoder: StreamDecoder owning the state for this request
        payloads: Decoded payloads of the first provider response
        tools: Tool name -> callable, invoked with the call's arguments
        next_turn: Called with the turn's tool calls and results; returns
            the payloads of the follow-up provider response
        max_steps: Model turns allowed (default LLMBRIDGE_MAX_TOOL_STEPS)
    """
    step_budget = max_steps if max_steps is not None else get_settings().max_tool_steps
    step = 1

    while True:
        tool_calls: List[ToolCall] = []
        message_id = ""

        async for event in decoder.decode_turn(payloads):
            if isinstance(event, ToolCallEvent):
                tool_calls.append(event.tool_call)
                message_id = event.message_id
            yield event

        if decoder.state.finish_reason != FinishReason.TOOL_CALLS or not tool_calls:
            break
        if tools is None or next_turn is None:
            break

        tool_results: List[ToolResult] = []
        for tool_call in tool_calls:
            result, error = await execute_tool(tools, tool_call)
            tool_results.append(result)

            yield ToolResultEvent(
                id=new_event_id(),
                timestamp=now(),
                tool_result=result,
                message_id=message_id,
                success=error is None,
                error=error,
            )
            for artifact in result.artifacts:
                yield ArtifactEvent(
                    id=new_event_id(),
                    timestamp=now(),
                    artifact=artifact,
                    tool_call_id=result.tool_call_id,
                    tool_name=result.tool_name,
                    message_id=message_id,
                )

        if step >= step_budget:
            logger.info("Tool step budget reached", steps=step, max_steps=step_budget)
            break

        decoder.state.reset()
        payloads = next_turn(tool_calls, tool_results)
        if inspect.isawaitable(payloads):
            payloads = await payloads
        step += 1

    yield decoder.end_event()
