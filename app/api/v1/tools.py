"""
Tool endpoints used by the chat agent.

Tools are re-loaded from the registry on every request so approval and
activation changes take effect on the next turn.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.agent.context import ToolContext
from app.agent.tool_loader import load_tools
from app.api.deps import get_current_admin, get_tool_context

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/tools",
    tags=["tools"],
    dependencies=[Depends(get_current_admin)],
)


class ToolInvokeRequest(BaseModel):
    input: Optional[str] = None
    query: Optional[str] = None
    thread_id: Optional[str] = Field(default=None, max_length=64)
    user_id: Optional[str] = Field(default=None, max_length=64)
    channel: Optional[str] = Field(default=None, max_length=32)


class ToolInvokeResponse(BaseModel):
    tool: str
    result: Any


@router.get("")
async def list_tools(ctx: ToolContext = Depends(get_tool_context)):
    """Tool definitions available to the agent for the current turn."""
    tools = await load_tools(ctx)
    return [tool.to_schema() for tool in tools.values()]


@router.post("/{name}/invoke", response_model=ToolInvokeResponse)
async def invoke_tool(
    name: str,
    data: ToolInvokeRequest,
    ctx: ToolContext = Depends(get_tool_context),
):
    """Invoke one tool. Errors from the skill come back in `result`, not as HTTP errors."""
    turn_ctx = ctx.for_turn(thread_id=data.thread_id, user_id=data.user_id, channel=data.channel)
    tools = await load_tools(turn_ctx)
    tool = tools.get(name)
    if tool is None:
        raise HTTPException(status_code=404, detail=f"Tool '{name}' not available")

    # Accept either field name; the tool picks the one it declares
    value = data.input if data.input is not None else data.query
    result = await tool({tool.input_field: value})
    return {"tool": name, "result": result}
