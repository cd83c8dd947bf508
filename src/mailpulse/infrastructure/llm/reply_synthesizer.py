"""Draft reply generation with a chat model."""

from __future__ import annotations

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from loguru import logger

SYSTEM_PROMPT = """You write short, friendly, professional replies to inbound emails.

Use only the context below for facts about us, including any links.
Keep the reply under 120 words and do not invent details.

Context:
{context}"""


class LlmReplySynthesizer:
    def __init__(self, llm: BaseChatModel):
        self.llm = llm

    def synthesize(self, body: str, context: str) -> str:
        messages = [
            SystemMessage(content=SYSTEM_PROMPT.format(context=context or "(none)")),
            HumanMessage(content=f"Write a reply to this email:\n\n{body}"),
        ]
        response = self.llm.invoke(messages)
        reply = str(response.content).strip()
        logger.debug(f"Synthesized reply of {len(reply)} chars")
        return reply
