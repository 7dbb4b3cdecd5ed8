"""
Deployment pipeline.

- DeploymentPipeline: one platform call per step, poll predicates for package
  and build readiness
- DeploymentRunner: caller-side driver with polling and a deadline
"""

from .models import DeploymentStep, PipelineState, PollStatus
from .pipeline import DeploymentPipeline
from .runner import DeploymentRunner

__all__ = [
    "DeploymentPipeline",
    "DeploymentRunner",
    "DeploymentStep",
    "PipelineState",
    "PollStatus",
]
