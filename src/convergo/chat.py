"""Companion replies: store the author's turn, ask the model, store its answer."""

import logging
from dataclasses import dataclass

from convergo.db import Message
from convergo.generation import GenerationClient, GenerationError
from convergo.services import SessionService, persistence_errors
from convergo.text import sanitize_text
from convergo.transcript import DEFAULT_MAX_CHARS, DEFAULT_MAX_MESSAGES, select_recent

logger = logging.getLogger(__name__)

NOT_CONFIGURED_REPLY = "Message saved. Set OPENAI_API_KEY to enable AI replies."
UNAVAILABLE_REPLY = "Sorry - I couldn't reply just now. Your message was saved."
EMPTY_REPLY = "Sorry - no reply returned."

# Conversation-wide history when the turn is not part of a session
HISTORY_LIMIT = 200


@dataclass(frozen=True)
class ChatExchange:
    reply: str
    user_message: Message
    assistant_message: Message


class CompanionChat:
    def __init__(
        self,
        sessions: SessionService,
        generation: GenerationClient,
        system_prompt: str,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.sessions = sessions
        self.generation = generation
        self.system_prompt = system_prompt
        self.max_messages = max_messages
        self.max_chars = max_chars

    async def exchange(
        self, site: str, session_id: str | None, text: str | None, request_id: str
    ) -> ChatExchange:
        # Room for the user turn and the reply
        user_message = await self.sessions.write_message(
            site, session_id, "user", sanitize_text((text or "").strip()), request_id, reserve=2
        )

        reply = await self._reply(site, user_message, request_id)

        assistant_message = await self.sessions.write_message(
            site, session_id, "assistant", reply, request_id
        )
        return ChatExchange(reply, user_message, assistant_message)

    async def _reply(self, site: str, user_message: Message, request_id: str) -> str:
        if not self.generation.configured:
            return NOT_CONFIGURED_REPLY

        store = self.sessions.store
        with persistence_errors("chat:history", request_id):
            conversation = await store.find_conversation(site)
            limit = None if user_message.session_id else HISTORY_LIMIT
            history = await store.list_messages(conversation, user_message.session_id, limit)

        recent = select_recent(history, self.max_messages, self.max_chars)
        messages = [{"role": "system", "content": self.system_prompt}]
        messages.extend({"role": m.role, "content": m.content} for m in recent)

        try:
            raw = await self.generation.complete(messages, request_id)
        except GenerationError as exc:
            logger.error("[chat:reply][%s] generation failed: %s", request_id, exc)
            return UNAVAILABLE_REPLY

        reply = sanitize_text(raw).strip() or EMPTY_REPLY
        return reply[: self.sessions.policy.max_message_chars]
