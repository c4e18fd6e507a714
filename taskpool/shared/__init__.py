"""Shared utilities: enums, telemetry, and cross-cutting helpers.

Used by domain, application, and infrastructure. No business logic.
"""

from taskpool.shared.enums import (
    RuleOutcome,
    SuppressionReason,
    TaskEventType,
    WorkSessionEndReason,
)
from taskpool.shared.utils import ensure_utc, generate_cuid, utc_now

__all__ = [
    "RuleOutcome",
    "SuppressionReason",
    "TaskEventType",
    "WorkSessionEndReason",
    "generate_cuid",
    "utc_now",
    "ensure_utc",
]
