# src/atlas_pipeline/core/deploy/__init__.py
"""
Deploy de tags publicadas em deployment targets.

- targets    → interface DeploymentTarget e CommandDeploymentTarget
- controller → DeploymentController (rollout com exclusão mútua por target)
"""

from .targets import CommandDeploymentTarget, DeploymentTarget, RevisionStatus
from .controller import DeployOutcome, DeploymentController, RolloutState

__all__ = [
    "CommandDeploymentTarget",
    "DeploymentTarget",
    "RevisionStatus",
    "DeployOutcome",
    "DeploymentController",
    "RolloutState",
]
