"""Pure builders for the augmented system prompt of a chat turn."""

from shared.models.chat import PromptMessage, PromptRole
from shared.models.conversation import ChatMessage, sort_chronologically
from shared.models.document import DocumentSearchResult, ResultSource

DOCUMENT_HEADER = "Relevant information from the knowledge base:"
CONVERSATION_HEADER = "Relevant context from previous conversations:"

DOCUMENT_INSTRUCTIONS = (
    "Instructions for using the knowledge base:\n"
    "- Base your answer on the information above when it is relevant to the question.\n"
    "- Mention the document title you are drawing from.\n"
    "- Prefer passages that match the question exactly over loosely related ones.\n"
    "- If the information above does not answer the question, say so instead of guessing."
)

CONVERSATION_INSTRUCTIONS = (
    "Instructions for using previous conversations:\n"
    "- Keep your answer consistent with what was said earlier.\n"
    "- Refer back to earlier questions or answers when it helps the user.\n"
    "- Do not repeat earlier answers verbatim unless the user asks for it."
)


def format_document_section(results: list[DocumentSearchResult]) -> str:
    """Numbered list of document excerpts with title, position and relevance."""
    lines = [DOCUMENT_HEADER, ""]
    for i, result in enumerate(results, start=1):
        position = ""
        if result.source == ResultSource.VECTOR:
            position = f", part {result.chunk_index + 1} of {result.total_chunks}"
        lines.append(
            f'[{i}] "{result.title}"{position} (relevance: {result.relevance}, score: {result.score:.2f})'
        )
        lines.append(result.content.strip())
        lines.append("")
    return "\n".join(lines).rstrip()


def format_conversation_section(messages: list[ChatMessage]) -> str:
    """Chronological "role: content" lines of earlier messages."""
    lines = [CONVERSATION_HEADER]
    for message in sort_chronologically(messages):
        lines.append(f"{message.role.value}: {message.content.strip()}")
    return "\n".join(lines)


def build_system_prompt(
    base_prompt: str,
    documents: list[DocumentSearchResult],
    conversation: list[ChatMessage],
) -> str:
    """Compose the system prompt from the bot prompt and the retrieved context.

    Sections are collected in a fixed order and joined once, so identical
    inputs always produce the identical prompt.
    """
    sections = [base_prompt.strip()]
    if documents:
        sections.append(format_document_section(documents))
        sections.append(DOCUMENT_INSTRUCTIONS)
    if conversation:
        sections.append(format_conversation_section(conversation))
        sections.append(CONVERSATION_INSTRUCTIONS)
    return "\n\n".join(sections)


def replace_system_message(messages: list[PromptMessage], system_prompt: str) -> list[PromptMessage]:
    """Drop existing system messages and put a single new one in front."""
    rest = [message for message in messages if message.role != PromptRole.SYSTEM]
    return [PromptMessage(role=PromptRole.SYSTEM, content=system_prompt), *rest]


def latest_user_message(messages: list[PromptMessage]) -> PromptMessage | None:
    for message in reversed(messages):
        if message.role == PromptRole.USER:
            return message
    return None
