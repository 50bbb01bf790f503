"""Entities, error variants and derived release state."""

from .models import (
    ActionRecord,
    Build,
    Distribution,
    DistributionStatus,
    Platform,
    ProviderType,
    RolloutAction,
    Severity,
    Submission,
    SubmissionStatus,
    UploadStatus,
    WorkflowStatus,
)

__all__ = [
    "ActionRecord",
    "Build",
    "Distribution",
    "DistributionStatus",
    "Platform",
    "ProviderType",
    "RolloutAction",
    "Severity",
    "Submission",
    "SubmissionStatus",
    "UploadStatus",
    "WorkflowStatus",
]
