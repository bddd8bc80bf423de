from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_core.tools import BaseTool

from movie_agent.agents.errors import ConfigurationError
from movie_agent.schemas.model_io import ModelMessage, ModelReply, PromptArgs
from movie_agent.utils.settings import AppConfig

logger = logging.getLogger(__name__)

NO_GOAL = "(no specific goal provided)"


class LLMClient(ABC):
    """Interface so the executor can swap between real and stub models."""

    @abstractmethod
    async def generate(
        self,
        prompt_args: PromptArgs,
        messages: Sequence[ModelMessage],
        tools: Sequence[BaseTool],
    ) -> ModelReply:
        """Return the model's final text for the given history."""


class EchoLLMClient(LLMClient):
    """Offline stand-in that repeats the latest user message and completes."""

    async def generate(
        self,
        prompt_args: PromptArgs,
        messages: Sequence[ModelMessage],
        tools: Sequence[BaseTool],
    ) -> ModelReply:
        last_user = next((m for m in reversed(messages) if m.role == "user"), None)
        prompt = "\n".join(last_user.content) if last_user else "No message provided"
        return ModelReply(text=f"You asked: {prompt}\nCOMPLETED")


class LangChainLLMClient(LLMClient):
    """Runs a LangChain chat model with the system prompt and a tool-calling loop.

    The chat model only needs ``bind_tools`` and ``ainvoke``. Tool calls are
    executed and fed back until the model answers without calling a tool, for
    at most ``max_tool_rounds`` model calls.
    """

    def __init__(self, chat_model: Any, prompt_path: str, max_tool_rounds: int = 5) -> None:
        self.chat_model = chat_model
        self.prompt = ChatPromptTemplate.from_messages(
            [
                ("system", Path(prompt_path).read_text(encoding="utf-8")),
                MessagesPlaceholder("messages"),
            ]
        )
        self.max_tool_rounds = max_tool_rounds

    async def generate(
        self,
        prompt_args: PromptArgs,
        messages: Sequence[ModelMessage],
        tools: Sequence[BaseTool],
    ) -> ModelReply:
        model = self.chat_model.bind_tools(list(tools)) if tools else self.chat_model
        conversation: List[BaseMessage] = self.prompt.format_messages(
            goal=prompt_args.goal or NO_GOAL,
            now=prompt_args.now,
            messages=[_to_langchain(m) for m in messages],
        )
        tools_by_name: Dict[str, BaseTool] = {t.name: t for t in tools}

        for _ in range(self.max_tool_rounds):
            reply = await model.ainvoke(conversation)
            tool_calls = getattr(reply, "tool_calls", None) or []
            if not tool_calls:
                return ModelReply(text=content_text(reply.content))

            conversation.append(reply)
            for call in tool_calls:
                conversation.append(await self._run_tool(tools_by_name, call))

        raise RuntimeError(f"model kept calling tools after {self.max_tool_rounds} rounds")

    @staticmethod
    async def _run_tool(tools_by_name: Dict[str, BaseTool], call: Dict[str, Any]) -> ToolMessage:
        name = call["name"]
        tool = tools_by_name.get(name)
        if tool is None:
            logger.warning("Model requested unknown tool %s", name)
            output: Any = f"Unknown tool: {name}"
        else:
            logger.debug("Calling tool %s with %s", name, call.get("args"))
            output = await tool.ainvoke(call.get("args") or {})
        if not isinstance(output, str):
            output = json.dumps(output, default=str)
        return ToolMessage(content=output, tool_call_id=call.get("id") or name, name=name)


def content_text(content: Any) -> str:
    """Flatten LangChain message content (a string or content blocks) to text."""
    if isinstance(content, str):
        return content
    chunks: List[str] = []
    for block in content or []:
        if isinstance(block, str):
            chunks.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            chunks.append(block.get("text", ""))
    return "".join(chunks)


def _to_langchain(message: ModelMessage) -> BaseMessage:
    text = "\n".join(message.content)
    if message.role == "assistant":
        return AIMessage(content=text)
    return HumanMessage(content=text)


def build_llm_client(config: AppConfig) -> LLMClient:
    provider = config.llm.provider.lower()
    if provider == "echo":
        return EchoLLMClient()

    prompt_path = config.agents["movie_agent"].prompt_path
    if provider == "gemini":
        from langchain_google_genai import ChatGoogleGenerativeAI

        chat_model = ChatGoogleGenerativeAI(
            model=config.llm.model,
            temperature=config.llm.temperature,
            max_retries=2,
        )
    elif provider == "openai":
        from langchain_openai import ChatOpenAI

        chat_model = ChatOpenAI(
            model=config.llm.model,
            temperature=config.llm.temperature,
            max_retries=2,
        )
    else:
        raise ConfigurationError(f"Unknown LLM provider: {config.llm.provider}")

    return LangChainLLMClient(
        chat_model,
        prompt_path=prompt_path,
        max_tool_rounds=config.turn.max_tool_rounds,
    )
