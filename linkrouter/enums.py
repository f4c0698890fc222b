"""Shared enums for the link routing service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CacheStatus", "DispatchStep", "EvaluationState"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ERROR = "error"


class CacheStatus(StrEnum):
    """Cache status values for metrics."""

    HIT = "true"
    MISS = "false"


class DispatchStep(StrEnum):
    """Independent side effects issued for every click."""

    QUEUE = "queue"
    CLICK_TRACKER = "click_tracker"


class EvaluationState(StrEnum):
    """Lifecycle of one evaluation scheduler actor instance."""

    NEW = "new"
    ACCUMULATING = "accumulating"
    SCHEDULED = "scheduled"
