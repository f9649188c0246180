"""GitHub issue and label management for specification audits."""

from specops.github.audit import (
    ASPECTS,
    Aspect,
    AuditTask,
    Endpoint,
    build_tasks,
    diff_labels,
    extract_resource_group,
    parse_endpoints,
)
from specops.github.client import GitHubCLI, IssueRef, is_rate_limited
from specops.github.sync import IssueSynchronizer, SyncError, TaskReport

__all__ = [
    "ASPECTS",
    "Aspect",
    "AuditTask",
    "Endpoint",
    "GitHubCLI",
    "IssueRef",
    "IssueSynchronizer",
    "SyncError",
    "TaskReport",
    "build_tasks",
    "diff_labels",
    "extract_resource_group",
    "is_rate_limited",
    "parse_endpoints",
]
