"""Library search/filter and dashboard statistics over document lists."""

from collections import Counter

from app.models.document import DashboardStats, Document, DocumentStatus

ALL = "all"


def filter_documents(
    documents: list[Document],
    query: str | None = None,
    category: str | None = None,
    status: str | None = None,
) -> list[Document]:
    """Filter documents the way the library view does.

    Args:
        documents: Documents, already in display order.
        query: Case-insensitive substring matched against title or summary.
        category: Category value, or "all"/None for no filter.
        status: Processing status value, or "all"/None for no filter.

    Returns:
        Matching documents in their original order.
    """
    filtered = documents

    if query:
        needle = query.lower()
        filtered = [
            doc for doc in filtered
            if needle in doc.title.lower()
            or (doc.simplified_summary and needle in doc.simplified_summary.lower())
        ]

    if category and category != ALL:
        filtered = [doc for doc in filtered if doc.category.value == category]

    if status and status != ALL:
        filtered = [doc for doc in filtered if doc.processing_status.value == status]

    return filtered


def completed_documents(documents: list[Document]) -> list[Document]:
    """Documents that can be opened in chat."""
    return [doc for doc in documents if doc.processing_status == DocumentStatus.COMPLETED]


def dashboard_stats(documents: list[Document]) -> DashboardStats:
    """Counts for the dashboard header cards."""
    by_category = Counter(doc.category.value for doc in documents)
    return DashboardStats(
        total=len(documents),
        completed=sum(1 for doc in documents if doc.processing_status == DocumentStatus.COMPLETED),
        processing=sum(1 for doc in documents if doc.processing_status == DocumentStatus.PROCESSING),
        by_category=dict(by_category),
    )
