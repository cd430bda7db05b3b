"""In-process conversation backend driven by an :class:`LLMProvider`.

Each `send_message` starts a background turn: the provider is called in a
worker thread with the full conversation history, the reply is appended, and
then the turn-completed callback fires. This gives the workflow engine the
same asynchronous "message in, completion event later" shape as a remote
agent backend.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import replace

from agent_workflow_runner.llm.provider import LLMProvider
from agent_workflow_runner.orchestrator.workflow.collaborators import (
    Conversation,
    ConversationMessage,
    SendOptions,
)
from agent_workflow_runner.orchestrator.workflow.events import AgentTurnCompleted

logger = logging.getLogger(__name__)

TurnListener = Callable[[AgentTurnCompleted], Awaitable[None]]


class ConversationBusyError(RuntimeError):
    """A message was sent while the previous turn is still generating."""


class LLMConversationAdapter:
    def __init__(
        self,
        provider: LLMProvider,
        *,
        on_turn_complete: TurnListener | None = None,
        system_prompt: str | None = None,
    ) -> None:
        self._provider = provider
        self._system_prompt = system_prompt
        self.on_turn_complete = on_turn_complete

        self._conversations: dict[str, Conversation] = {}
        # Generating turn per conversation; cleared before the completion callback runs.
        self._turns: dict[str, asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    async def create_conversation(self, space_id: str, title: str) -> Conversation:
        conversation = Conversation(id=uuid.uuid4().hex, space_id=space_id, title=title)
        self._conversations[conversation.id] = conversation
        logger.info(
            "Conversation created",
            extra={"space_id": space_id, "conversation_id": conversation.id, "title": title},
        )
        return conversation

    def get_cached_conversation(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    def _append(self, conversation_id: str, role: str, content: str) -> None:
        conversation = self._conversations[conversation_id]
        self._conversations[conversation_id] = replace(
            conversation,
            messages=(*conversation.messages, ConversationMessage(role=role, content=content)),
        )

    async def send_message(
        self, space_id: str, conversation_id: str, text: str, options: SendOptions
    ) -> None:
        if conversation_id not in self._conversations:
            raise LookupError(f"Unknown conversation: {conversation_id}")
        if conversation_id in self._turns:
            raise ConversationBusyError(f"Conversation {conversation_id} is still generating")

        self._append(conversation_id, "user", text)
        logger.debug(
            "Message accepted",
            extra={
                "conversation_id": conversation_id,
                "origin": options.origin,
                "thinking_enabled": options.thinking_enabled,
            },
        )

        task = asyncio.get_running_loop().create_task(
            self._run_turn(space_id, conversation_id), name=f"turn-{conversation_id}"
        )
        self._turns[conversation_id] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_turn(self, space_id: str, conversation_id: str) -> None:
        history = [
            {"role": m.role, "content": m.content}
            for m in self._conversations[conversation_id].messages
        ]
        if self._system_prompt:
            history.insert(0, {"role": "system", "content": self._system_prompt})

        reply: str | None = None
        try:
            reply = await asyncio.to_thread(self._provider.chat, history)
        except asyncio.CancelledError:
            logger.info("Turn cancelled", extra={"conversation_id": conversation_id})
            raise
        except Exception:
            logger.exception("Agent turn failed", extra={"conversation_id": conversation_id})
        finally:
            if self._turns.get(conversation_id) is asyncio.current_task():
                del self._turns[conversation_id]

        if reply is not None:
            self._append(conversation_id, "assistant", reply)

        if self.on_turn_complete is not None:
            await self.on_turn_complete(
                AgentTurnCompleted(space_id=space_id, conversation_id=conversation_id)
            )

    async def stop_generation(self, conversation_id: str) -> None:
        task = self._turns.pop(conversation_id, None)
        if task is not None:
            task.cancel()

    async def wait_idle(self) -> None:
        """Wait until no turn (including its completion callback) is in flight."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
