"""Analysis Pipeline - category-driven upload, extraction and summarisation."""

from core.analysis.pipeline import AnalysisPipeline, UploadedFile, validate_upload
from core.analysis.prompts import PromptSpec, get_prompt_spec

__all__ = [
    "AnalysisPipeline",
    "PromptSpec",
    "UploadedFile",
    "get_prompt_spec",
    "validate_upload",
]
