"""Domain value objects and shared value types."""

from taskpool.domain.value_objects.core import Origin, Priority

__all__ = [
    "Origin",
    "Priority",
]
