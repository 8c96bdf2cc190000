"""
Prompt assembly for chat and summarize requests.

Rendering is pure: the same topic, transcript and input always produce the
same message list, and transcript order is preserved line for line.
"""

from typing import Dict, List, Optional, Sequence

import jinja2

from .models import ChatMessage, CompletionRequest

DEFAULT_SUMMARY_TOPIC = "general topics"

# Plain-text prompts, so no autoescaping.
_jinja_env = jinja2.Environment(
    autoescape=False,
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=True,
)

SYSTEM_PROMPT_TEMPLATE = _jinja_env.from_string(
    "You are a helpful assistant specialized in {{ topic }}."
)

CHAT_PROMPT_TEMPLATE = _jinja_env.from_string(
    "Here is the conversation so far:\n{{ conversation_text }}\n\n"
    "Respond helpfully to the latest user message: {{ user_input }}"
)

SUMMARY_PROMPT_TEMPLATE = _jinja_env.from_string(
    "Summarize the following conversation briefly and clearly so a newcomer "
    "can catch up:\n{{ conversation_text }}"
)


def display_role(role: str) -> str:
    return "Assistant" if role == "assistant" else "User"


def format_history(history: Sequence[ChatMessage]) -> str:
    """Flatten a transcript into ``Role: content`` lines."""
    return "\n".join(
        f"{display_role(message.role)}: {message.content}" for message in history
    )


def build_chat_request(
    topic: str, history: Sequence[ChatMessage], user_input: str
) -> CompletionRequest:
    return CompletionRequest(
        system_prompt=SYSTEM_PROMPT_TEMPLATE.render(topic=topic),
        conversation_text=format_history(history),
        user_input=user_input,
    )


def build_summary_request(
    topic: Optional[str], history: Sequence[ChatMessage]
) -> CompletionRequest:
    return CompletionRequest(
        system_prompt=SYSTEM_PROMPT_TEMPLATE.render(
            topic=topic or DEFAULT_SUMMARY_TOPIC
        ),
        conversation_text=format_history(history),
    )


def render_messages(request: CompletionRequest) -> List[Dict[str, str]]:
    """Render a CompletionRequest into the upstream ``messages`` array."""
    if request.user_input is None:
        user_content = SUMMARY_PROMPT_TEMPLATE.render(
            conversation_text=request.conversation_text
        )
    else:
        user_content = CHAT_PROMPT_TEMPLATE.render(
            conversation_text=request.conversation_text,
            user_input=request.user_input,
        )
    return [
        {"role": "system", "content": request.system_prompt},
        {"role": "user", "content": user_content},
    ]
