"""Document data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated
from uuid import UUID, uuid4

from pydantic import AfterValidator, BaseModel, Field


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes, such as rows from TIMESTAMP columns, as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class Category(str, Enum):
    """Document categories. Each one selects a prompt template and output schema."""
    LEGAL = "legal"
    MEDICAL = "medical"
    GOVERNMENT = "government"
    FINANCIAL = "financial"
    EMPLOYMENT = "employment"
    ACADEMIC = "academic"


class Language(str, Enum):
    """Target languages for generated summaries and chat replies."""
    ENGLISH = "english"
    HINDI = "hindi"
    TAMIL = "tamil"
    BENGALI = "bengali"
    MALAYALAM = "malayalam"

    @property
    def display_name(self) -> str:
        """Name used inside model prompts (e.g. "Hindi")."""
        return self.value.capitalize()

    @property
    def speech_code(self) -> str:
        """BCP-47 tag used for speech recognition and synthesis."""
        return LANGUAGE_SPEECH_CODES[self]


LANGUAGE_SPEECH_CODES: dict[Language, str] = {
    Language.ENGLISH: "en-US",
    Language.HINDI: "hi-IN",
    Language.TAMIL: "ta-IN",
    Language.BENGALI: "bn-IN",
    Language.MALAYALAM: "ml-IN",
}


class DocumentStatus(str, Enum):
    """Status of document processing."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CategoryInfo(BaseModel):
    """Catalog entry describing a category to the client."""
    value: Category
    label: str
    description: str


CATEGORY_CATALOG: list[CategoryInfo] = [
    CategoryInfo(value=Category.LEGAL, label="Legal Documents", description="Contracts, FIRs, court notices"),
    CategoryInfo(value=Category.MEDICAL, label="Medical Documents", description="Prescriptions, reports, scans"),
    CategoryInfo(value=Category.GOVERNMENT, label="Government Forms", description="Schemes, applications, notices"),
    CategoryInfo(value=Category.FINANCIAL, label="Financial Documents", description="Loan agreements, insurance"),
    CategoryInfo(value=Category.EMPLOYMENT, label="Employment Papers", description="Contracts, offer letters"),
    CategoryInfo(value=Category.ACADEMIC, label="Academic Papers", description="Research papers, articles"),
]


class DocumentCreate(BaseModel):
    """Fields handed to a DocumentStore to create a document."""
    title: str
    category: Category
    file_url: str
    file_type: str | None = None
    original_text: str = ""
    language: Language = Language.ENGLISH
    processing_status: DocumentStatus = DocumentStatus.PENDING
    simplified_summary: str | None = None
    key_points: list[str] = Field(default_factory=list)
    medical_severity: str | None = None
    legal_rights_summary: str | None = None
    suggested_next_steps: str | None = None


class Document(DocumentCreate):
    """Document model representing an analysed upload."""
    id: UUID = Field(default_factory=uuid4)
    created_date: UTCDateTime = Field(default_factory=utc_now)


class DocumentResponse(BaseModel):
    """Response schema for document list operations."""
    id: UUID
    title: str
    category: Category
    language: Language
    processing_status: DocumentStatus
    simplified_summary: str | None
    created_date: datetime


class DashboardStats(BaseModel):
    """Counts shown on the dashboard."""
    total: int
    completed: int
    processing: int
    by_category: dict[str, int] = {}
