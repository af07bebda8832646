"""Cluster lifecycle pipelines."""

from .config import ProviderConfig
from .executor import PipelineExecutor
from .init import initialize_cluster
from .phases import Collaborators, Phase, PhaseError, RunContext

__all__ = [
    "Collaborators",
    "Phase",
    "PhaseError",
    "PipelineExecutor",
    "ProviderConfig",
    "RunContext",
    "initialize_cluster",
]
