"""Foundry Sync - reconciled application cache and deployment pipeline."""

__version__ = "0.1.0"
__author__ = "Foundry Sync Team"

from foundry_sync.core.config import Settings
from foundry_sync.core.models import ApplicationView, ClusterView, WorkloadEntity
from foundry_sync.deploy.pipeline import DeploymentPipeline
from foundry_sync.sync.applications import Applications

__all__ = [
    "Settings",
    "Applications",
    "ApplicationView",
    "ClusterView",
    "WorkloadEntity",
    "DeploymentPipeline",
    "__version__",
]
