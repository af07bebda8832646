"""Pytest configuration and shared fixtures."""

import os
from typing import Any

import pytest

# Set test environment before importing settings
os.environ["ENV"] = "development"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_FORMAT"] = "text"


@pytest.fixture
def sample_cluster_data() -> dict[str, Any]:
    """Sample persisted cluster record for testing."""
    return {
        "cluster_name": "kf-civo",
        "cluster_id": "a1b2c3",
        "cluster_type": "mgmt",
        "cloud_provider": "civo",
        "cloud_region": "NYC1",
        "domain_name": "example.com",
        "dns_provider": "civo",
        "git_provider": "github",
        "git_host": "github.com",
        "status": "provisioning",
        "in_progress": True,
        "civo_auth": {"token": "civo-token"},
        "git_auth": {"git_token": "ghp_token", "git_owner": "kubefirst-org"},
        "install_tools_check": True,
        "domain_liveness_check": True,
    }


@pytest.fixture
def sample_definition_data() -> dict[str, Any]:
    """Sample create request body for testing."""
    return {
        "cluster_name": "kf-civo",
        "admin_email": "admin@example.com",
        "cloud_provider": "civo",
        "cloud_region": "NYC1",
        "domain_name": "example.com",
        "dns_provider": "civo",
        "git_provider": "github",
        "node_type": "g4s.kube.large",
        "node_count": 3,
        "civo_auth": {"token": "civo-token"},
        "git_auth": {"git_token": "ghp_token", "git_owner": "kubefirst-org"},
    }
