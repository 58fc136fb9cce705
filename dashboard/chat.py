import asyncio
import json
import logging
from typing import Any, Dict, List, Literal, Optional, Union

import anthropic
from anthropic import AsyncAnthropic
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, field_validator

from .config import settings
from .deps import get_llm_client, get_mcp_client
from .limiter import limiter
from .mcp_client import MCPClient, MCPConnectionError

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: Union[str, List[Dict[str, Any]]]


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)

    @field_validator("messages")
    @classmethod
    def validate_messages(cls, v):
        if v[-1].role != "user":
            raise ValueError("The last message must come from the user")
        return v


class ChatResponse(BaseModel):
    content: List[Dict[str, Any]]
    stop_reason: Optional[str] = None


def tool_definitions(tools) -> List[Dict[str, Any]]:
    """MCP tool listings in the shape the Messages API expects."""
    return [
        {"name": tool.name, "description": tool.description or "", "input_schema": tool.inputSchema}
        for tool in tools
    ]


def _result_text(result) -> str:
    parts = []
    for block in result.content:
        if block.type == "text":
            parts.append(block.text)
        else:
            parts.append(json.dumps(block.model_dump(mode="json")))
    return "\n".join(parts)


async def run_tool(mcp: MCPClient, tool_use) -> Dict[str, Any]:
    try:
        result = await mcp.call_tool(tool_use.name, tool_use.input)
    except Exception as e:
        logger.error(f"Tool {tool_use.name} failed: {str(e)}")
        return {
            "type": "tool_result",
            "tool_use_id": tool_use.id,
            "content": json.dumps({"error": str(e) or "Tool execution failed"}),
            "is_error": True,
        }
    block: Dict[str, Any] = {"type": "tool_result", "tool_use_id": tool_use.id, "content": _result_text(result)}
    if result.isError:
        block["is_error"] = True
    return block


def _content_blocks(content) -> List[Dict[str, Any]]:
    return [block.model_dump(mode="json", exclude_none=True) for block in content]


async def converse(llm: AsyncAnthropic, mcp: MCPClient, messages: List[Dict[str, Any]]):
    """Run the model, executing requested tools, until it stops asking for them."""
    tools = tool_definitions(await mcp.list_tools())

    response = await llm.messages.create(
        model=settings.LLM_MODEL,
        max_tokens=settings.LLM_MAX_TOKENS,
        messages=messages,
        tools=tools,
    )

    rounds = 0
    while response.stop_reason == "tool_use":
        if rounds >= settings.MAX_TOOL_ROUNDS:
            logger.warning(f"Stopping after {rounds} tool rounds")
            break
        rounds += 1

        tool_uses = [block for block in response.content if block.type == "tool_use"]
        logger.info(f"Round {rounds}: running tools {[t.name for t in tool_uses]}")
        results = await asyncio.gather(*(run_tool(mcp, tool_use) for tool_use in tool_uses))

        messages.append({"role": "assistant", "content": _content_blocks(response.content)})
        messages.append({"role": "user", "content": list(results)})

        response = await llm.messages.create(
            model=settings.LLM_MODEL,
            max_tokens=settings.LLM_MAX_TOKENS,
            messages=messages,
            tools=tools,
        )

    return response


@router.post("/chat", response_model=ChatResponse)
@limiter.limit(settings.CHAT_RATE_LIMIT)
async def chat(
    request: Request,
    body: ChatRequest,
    llm: AsyncAnthropic = Depends(get_llm_client),
    mcp: MCPClient = Depends(get_mcp_client),
):
    messages = [message.model_dump() for message in body.messages]
    try:
        response = await converse(llm, mcp, messages)
    except MCPConnectionError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except anthropic.APIError as e:
        logger.error(f"LLM request failed: {str(e)}")
        raise HTTPException(status_code=502, detail=f"LLM request failed: {str(e)}")

    return {"content": _content_blocks(response.content), "stop_reason": response.stop_reason}
