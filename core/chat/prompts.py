"""Prompt template for document-grounded chat turns."""

from app.models.conversation import Message
from app.models.document import Document, Language

CHAT_PROMPT_TEMPLATE = """
You are an expert document analyst helping users understand their documents.
The user has uploaded a {category} document titled "{title}".

Document content:
{document_content}

Previous conversation:
{transcript}

User question: {question}

Please provide a helpful, accurate response in {language}.
Keep the language simple and avoid technical jargon. If the question is not related to the document, politely redirect them back to the document content.
"""

FALLBACK_REPLY = "I apologize, but I'm having trouble processing your message right now. Please try again."


def format_transcript(messages: list[Message]) -> str:
    """Serialize a transcript as ``role: content`` lines."""
    return "\n".join(f"{m.role.value}: {m.content}" for m in messages)


def format_chat_prompt(
    document: Document,
    prior_messages: list[Message],
    question: str,
    language: Language,
) -> str:
    """Format the chat prompt for one turn.

    The extracted text is preferred; documents whose extraction came back
    empty are discussed from their summary instead.
    """
    return CHAT_PROMPT_TEMPLATE.format(
        category=document.category.value,
        title=document.title,
        document_content=document.original_text or document.simplified_summary or "",
        transcript=format_transcript(prior_messages),
        question=question,
        language=language.display_name,
    )
