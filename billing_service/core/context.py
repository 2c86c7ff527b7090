"""Per-message processing context, passed explicitly down the call chain."""
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ProcessingContext:
    """Correlation data for one delivery of one payment request."""

    correlation_id: str
    message_id: Optional[str] = None
    delivery_attempt: int = 1

    @classmethod
    def new(
        cls,
        correlation_id: Optional[str] = None,
        message_id: Optional[str] = None,
        delivery_attempt: int = 1,
    ) -> "ProcessingContext":
        return cls(
            correlation_id=correlation_id or str(uuid.uuid4()),
            message_id=message_id,
            delivery_attempt=delivery_attempt,
        )

    def log_fields(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "correlation_id": self.correlation_id,
            "delivery_attempt": self.delivery_attempt,
        }
        if self.message_id:
            fields["message_id"] = self.message_id
        return fields
