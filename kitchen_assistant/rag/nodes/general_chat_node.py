"""
General Chat Node

Handles greetings, thanks, help requests and anything that isn't about
cooking. Empty queries get a clarification prompt.
"""

import re
from typing import Any, Dict

from loguru import logger

from kitchen_assistant.rag.nlp.matching import normalize
from kitchen_assistant.rag.utils.node_wrapper import with_node_error_handling
from kitchen_assistant.rag.utils.state import GraphState

CLARIFICATION_MESSAGE = (
    "I didn't catch a question there. Tell me what you'd like to cook, an ingredient you have, "
    "or any allergies I should keep in mind."
)

CHAT_REPLIES = (
    (
        re.compile(r"\b(hi|hello|hey|good (morning|evening|afternoon))\b|안녕"),
        "Hello! I'm your kitchen assistant. Ask me for a recipe, a substitution or a cooking tip.",
    ),
    (
        re.compile(r"\b(thanks|thank you|thx)\b|고마워|감사"),
        "You're welcome! Enjoy your cooking.",
    ),
    (
        re.compile(r"\b(bye|goodbye|see you)\b|잘 ?가"),
        "Goodbye! Come back whenever you need cooking ideas.",
    ),
    (
        re.compile(r"\b(help|what can you do)\b|도움"),
        "I can find recipes (tell me ingredients, time or difficulty), suggest substitutions, "
        "share technique tips and keep your allergies out of every recipe.",
    ),
)

DEFAULT_REPLY = (
    "I'm best at cooking questions. Try 'recommend a quick chicken dinner' "
    "or 'what can I use instead of soy sauce?'."
)


def chat_reply(query: str) -> str:
    text = normalize(query)
    if not text:
        return CLARIFICATION_MESSAGE
    for pattern, reply in CHAT_REPLIES:
        if pattern.search(text):
            return reply
    return DEFAULT_REPLY


@with_node_error_handling("general_chat", DEFAULT_REPLY)
async def handle_general_chat(state: GraphState) -> Dict[str, Any]:
    user_query = state.get("user_query") or ""
    reply = chat_reply(user_query)
    logger.debug(f"General chat reply selected for query: {user_query[:50]}")
    return {
        "response": reply,
        "metadata": {"clarification_needed": reply == CLARIFICATION_MESSAGE},
    }
