"""Kubefirst provisioner shared package.

This package contains shared components used by the provisioner service:
- models: Pydantic data models
- document_store: Kubernetes Secret backed document storage
- config: Configuration management
- observability: Structured logging
"""

__version__ = "0.1.0"
