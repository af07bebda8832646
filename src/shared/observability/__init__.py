"""Observability module for structured logging."""

from .logging import (
    PipelineContext,
    cluster_name_var,
    direction_var,
    get_logger,
    phase_var,
    provider_call,
    setup_logging,
)

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    # Context
    "PipelineContext",
    "cluster_name_var",
    "phase_var",
    "direction_var",
    # Provider calls
    "provider_call",
]
