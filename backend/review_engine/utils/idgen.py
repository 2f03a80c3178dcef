"""ID Generation Utilities"""
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Examples:
        >>> generate_id('RWF')
        'RWF-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]

    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_review_workflow_id() -> str:
    """Generate review workflow ID"""
    return generate_id("RWF")


def generate_history_entry_id() -> str:
    """Generate review history entry ID"""
    return generate_id("RHE")


def generate_event_id() -> str:
    """Generate outbound transition event ID"""
    return generate_id("REV")


def generate_correlation_id() -> str:
    """Generate a correlation ID for request tracing, prefixed with a UTC timestamp"""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"COR-{timestamp}-{uuid.uuid4().hex[:8]}"
