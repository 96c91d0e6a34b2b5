"""Usage tracking and logging for hosted model calls.

Every gateway call (summary generation, chat replies, vision extraction,
transcription, speech) produces one log line with token counts, latency
and an estimated cost, so spend per document can be read straight from
the service logs.

Usage:
    from core.usage_tracker import UsageTracker

    tracker = UsageTracker()
    record = tracker.create_record(
        operation="DOCUMENT_SUMMARY",
        reference="report.pdf",
        model="gpt-4o-mini",
        input_tokens=1840,
        output_tokens=412,
        latency_ms=2300,
        status="SUCCESS",
    )
    tracker.log_call(record)
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# Records kept in memory for summaries; older ones survive only in the logs
MAX_RECORDS = 1000


class CallStatus(str, Enum):
    """Outcome of a gateway call."""
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class ModelPricing(Enum):
    """Pricing per model (cost per 1M tokens)."""
    GPT_4O_MINI = {"input": 0.15, "output": 0.6}
    GPT_4O = {"input": 2.5, "output": 10.0}
    GPT_4_1_MINI = {"input": 0.4, "output": 1.6}
    UNPRICED = {"input": 0.0, "output": 0.0}

    @classmethod
    def get_pricing(cls, model_name: str) -> dict[str, float]:
        """Get pricing for a model by name."""
        model_map = {
            "gpt-4o-mini": cls.GPT_4O_MINI,
            "gpt-4o": cls.GPT_4O,
            "gpt-4.1-mini": cls.GPT_4_1_MINI,
        }
        pricing = model_map.get(model_name.lower(), cls.UNPRICED)
        return pricing.value


@dataclass
class ModelCallRecord:
    """Log entry for a single gateway call."""
    timestamp: datetime
    operation: str
    reference: str
    model: str
    input_tokens: int
    output_tokens: int
    latency_ms: int
    cost_usd: float
    status: CallStatus
    extra_data: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_log_string(self) -> str:
        """Format as a standardized log string."""
        extra_parts = " | ".join(f"{k}={v}" for k, v in self.extra_data.items())
        base = (
            f"{self.operation} | {self.reference} | "
            f"model={self.model} | input_tokens={self.input_tokens} | "
            f"output_tokens={self.output_tokens} | "
            f"latency_ms={self.latency_ms} | "
            f"cost_usd={self.cost_usd:.5f} | status={self.status.value}"
        )
        if extra_parts:
            base += f" | {extra_parts}"
        if self.error_message:
            base += f" | error={self.error_message}"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "operation": self.operation,
            "reference": self.reference,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "latency_ms": self.latency_ms,
            "cost_usd": self.cost_usd,
            "status": self.status.value,
            "extra_data": self.extra_data,
            "error_message": self.error_message,
        }


@dataclass
class UsageSummary:
    """Aggregated usage over the calls seen by one tracker."""
    total_calls: int
    failed_calls: int
    total_input_tokens: int
    total_output_tokens: int
    total_cost_usd: float


class UsageTracker:
    """Cost and latency logging for gateway operations."""

    def __init__(self, logger_name: str = "simplidoc.usage", max_records: int = MAX_RECORDS) -> None:
        self.logger = logging.getLogger(logger_name)
        self._records: deque[ModelCallRecord] = deque(maxlen=max_records)

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Calculate cost in USD for a given model and token usage.

        Args:
            model: Model name (e.g., "gpt-4o-mini").
            input_tokens: Number of input/prompt tokens.
            output_tokens: Number of output/completion tokens.

        Returns:
            Cost in USD. Unknown models cost 0.
        """
        pricing = ModelPricing.get_pricing(model)
        input_cost = (input_tokens * pricing["input"]) / 1_000_000
        output_cost = (output_tokens * pricing["output"]) / 1_000_000
        return input_cost + output_cost

    def create_record(
        self,
        operation: str,
        reference: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
        latency_ms: int,
        status: str | CallStatus,
        extra_data: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> ModelCallRecord:
        """Create a call record with its cost filled in."""
        if isinstance(status, str):
            status = CallStatus(status)

        return ModelCallRecord(
            timestamp=datetime.now(timezone.utc),
            operation=operation,
            reference=reference,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency_ms=latency_ms,
            cost_usd=self.calculate_cost(model, input_tokens, output_tokens),
            status=status,
            extra_data=extra_data or {},
            error_message=error_message,
        )

    def log_call(self, record: ModelCallRecord) -> None:
        """Log a call record and keep it for the summary."""
        self._records.append(record)
        log_level = logging.INFO if record.status == CallStatus.SUCCESS else logging.WARNING
        self.logger.log(log_level, record.to_log_string())

    def get_summary(self) -> UsageSummary:
        """Aggregate the most recent calls still held in memory."""
        return UsageSummary(
            total_calls=len(self._records),
            failed_calls=sum(1 for r in self._records if r.status != CallStatus.SUCCESS),
            total_input_tokens=sum(r.input_tokens for r in self._records),
            total_output_tokens=sum(r.output_tokens for r in self._records),
            total_cost_usd=sum(r.cost_usd for r in self._records),
        )

    def get_all_records(self) -> list[ModelCallRecord]:
        return list(self._records)

    def reset(self) -> None:
        """Clear all accumulated records."""
        self._records.clear()


# Global usage tracker instance
usage_tracker = UsageTracker()
