"""Prompt templates and output schemas for document analysis.

Each category maps to exactly one ``PromptSpec``. Medical and legal
documents get dedicated prompts with an extra output field and a mandatory
professional-advice disclaimer; every other category uses the generic
summary-and-key-points prompt.
"""

from dataclasses import dataclass
from typing import Any

from app.models.document import Category, Language

SUMMARY_PROPERTIES: dict[str, Any] = {
    "simplified_summary": {"type": "string"},
    "key_points": {"type": "array", "items": {"type": "string"}},
}


MEDICAL_PROMPT_TEMPLATE = """
You are an expert medical document analyst. Analyze this medical document for a common person and provide:
1. A clear, simple summary in {language}.
2. 3-5 key bullet points highlighting the most important information.
3. An estimated severity percentage with a brief explanation (e.g., "Severity: 75% - High. This indicates a condition that requires prompt medical attention.").
4. Practical, safe, and clear next steps for the user. IMPORTANT: Always advise the user to consult a qualified medical professional and that this is not a substitute for professional medical advice.

Document content:
{document_text}

Make the language extremely simple and accessible. Avoid technical jargon."""

MEDICAL_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        **SUMMARY_PROPERTIES,
        "medical_severity": {
            "type": "string",
            "description": "The estimated severity, including percentage and a short description.",
        },
        "suggested_next_steps": {
            "type": "string",
            "description": "Clear next steps for the user, including consulting a doctor.",
        },
    },
}


LEGAL_PROMPT_TEMPLATE = """
You are an expert legal document analyst. Analyze this legal document for a common person and provide:
1. A clear, simple summary in {language}.
2. 3-5 key bullet points highlighting the most important information.
3. A summary of potentially applicable rights, laws, or legal sections relevant to the document's content.
4. Practical next steps the user might consider. IMPORTANT: Always include a disclaimer that you are an AI assistant, not a lawyer, and the user should consult with a qualified legal professional for advice.

Document content:
{document_text}

Make the language extremely simple and accessible. Avoid technical jargon."""

LEGAL_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        **SUMMARY_PROPERTIES,
        "legal_rights_summary": {
            "type": "string",
            "description": "A summary of relevant rights and laws.",
        },
        "suggested_next_steps": {
            "type": "string",
            "description": "Suggested next steps, including consulting a lawyer.",
        },
    },
}


GENERIC_PROMPT_TEMPLATE = """
You are an expert document simplifier. Analyze this {category} document and provide:
1. A clear, simple summary in {language}
2. 3-5 key bullet points highlighting the most important information

Document content:
{document_text}

Make the language simple and accessible for common people. Avoid technical jargon."""

GENERIC_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": dict(SUMMARY_PROPERTIES),
}


@dataclass(frozen=True)
class PromptSpec:
    """Prompt template plus the schema the model must answer with."""
    template: str
    output_schema: dict[str, Any]

    @property
    def output_fields(self) -> frozenset[str]:
        """Document fields this prompt is allowed to populate."""
        return frozenset(self.output_schema["properties"])


MEDICAL_SPEC = PromptSpec(MEDICAL_PROMPT_TEMPLATE, MEDICAL_OUTPUT_SCHEMA)
LEGAL_SPEC = PromptSpec(LEGAL_PROMPT_TEMPLATE, LEGAL_OUTPUT_SCHEMA)
GENERIC_SPEC = PromptSpec(GENERIC_PROMPT_TEMPLATE, GENERIC_OUTPUT_SCHEMA)


def get_prompt_spec(category: Category) -> PromptSpec:
    """Select the prompt and output schema for a category."""
    match category:
        case Category.MEDICAL:
            return MEDICAL_SPEC
        case Category.LEGAL:
            return LEGAL_SPEC
        case Category.GOVERNMENT | Category.FINANCIAL | Category.EMPLOYMENT | Category.ACADEMIC:
            return GENERIC_SPEC
        case _:
            raise ValueError(f"Unknown document category: {category!r}")


def format_analysis_prompt(category: Category, language: Language, document_text: str) -> str:
    """Format the analysis prompt for a document.

    Args:
        category: Category chosen at upload.
        language: Language the summary must be written in.
        document_text: Extracted text; may be empty.

    Returns:
        Formatted prompt string ready for the model.
    """
    spec = get_prompt_spec(category)
    return spec.template.format(
        category=category.value,
        language=language.display_name,
        document_text=document_text,
    )
