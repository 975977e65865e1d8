"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Xray integration models.

This module provides Pydantic models for everything that crosses the engine
boundary:
- credentials and the cached bearer token
- test case records and the bulk import job they turn into
- link selections, the diff between two of them, and reconciliation results
- lookup results for test plans, executions, sets, preconditions and folders

Field aliases carry the camelCase names used by the Xray API and by the
persisted configuration file; Python code uses the snake_case names.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from xraylink.errors import ErrorKind

ROOT_FOLDER = "/"


class Credentials(BaseModel):
    """Xray Cloud API key pair. Owned and stored by the configuration layer."""

    client_id: str = Field(..., description="Xray API client ID", min_length=1)
    client_secret: str = Field(..., description="Xray API client secret", min_length=1)

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return f"Credentials(client_id={self.client_id!r}, client_secret='********')"


class CachedToken(BaseModel):
    """
    A bearer token together with the moment it was issued.

    Tokens are replaced wholesale on refresh and never mutated, hence frozen.
    Validity is judged by the AuthTokenManager, which owns the refresh policy.
    """

    token: str = Field(..., description="Bearer token returned by the authenticate endpoint", min_length=1)
    issued_at: datetime = Field(..., description="When the token was obtained (UTC)")
    expires_at: datetime = Field(..., description="When the remote API stops accepting the token (UTC)")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def issue(cls, token: str, issued_at: datetime, validity: timedelta) -> "CachedToken":
        """Create a token record for a freshly obtained token."""
        return cls(token=token, issued_at=issued_at, expires_at=issued_at + validity)

    def age(self, now: datetime) -> timedelta:
        """Time elapsed since the token was issued."""
        return now - self.issued_at

    def to_config_dict(self) -> dict[str, Any]:
        """Serialize in the shape stored under ``tokenData`` in the config file."""
        return {
            "token": self.token,
            "timestamp": int(self.issued_at.timestamp() * 1000),
            "expiresAt": self.expires_at.isoformat(),
        }

    @classmethod
    def from_config_dict(cls, data: dict[str, Any] | None) -> "CachedToken | None":
        """
        Load a token from its persisted shape.

        Returns None for missing or malformed entries; a token we cannot read is
        treated exactly like no token at all.
        """
        if not data or not data.get("token") or not data.get("timestamp"):
            return None
        try:
            issued_at = datetime.fromtimestamp(int(data["timestamp"]) / 1000, tz=UTC)
            expires_raw = data.get("expiresAt")
            expires_at = (
                datetime.fromisoformat(expires_raw.replace("Z", "+00:00"))
                if expires_raw
                else issued_at + timedelta(hours=24)
            )
        except (TypeError, ValueError):
            return None
        return cls(token=data["token"], issued_at=issued_at, expires_at=expires_at)


class TestStep(BaseModel):
    """A manual test step. Absent or null fields become empty strings."""

    __test__: ClassVar[bool] = False

    action: str = Field(default="", description="What the tester does")
    data: str = Field(default="", description="Input data for the step")
    result: str = Field(default="", description="Expected result")

    @field_validator("action", "data", "result", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value


class TestCaseRecord(BaseModel):
    """
    A locally authored test case ready for bulk import.

    The test type is optional here; the bulk import wire format defaults it to
    ``Manual``.
    """

    __test__: ClassVar[bool] = False

    summary: str = Field(..., description="Issue summary", min_length=1)
    description: str = Field(default="", description="Issue description")
    test_type: str | None = Field(None, alias="testType", description="Xray test type (Manual, Generic, Cucumber)")
    labels: list[str] = Field(default_factory=list, description="Jira labels")
    steps: list[TestStep] = Field(default_factory=list, description="Ordered test steps")
    project_key: str | None = Field(None, alias="projectKey", description="Target Jira project key")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("description", mode="before")
    @classmethod
    def none_description_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("labels", "steps", mode="before")
    @classmethod
    def none_list_to_empty(cls, value):
        return [] if value is None else value


class ImportStatus(str, Enum):
    """Status values reported by the bulk import job endpoint."""

    PENDING = "pending"
    WORKING = "working"
    SUCCESSFUL = "successful"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportStatus.SUCCESSFUL, ImportStatus.FAILED)


class CreatedIssue(BaseModel):
    """A Jira issue created by a bulk import job."""

    id: str = Field(..., description="Jira issue ID")
    key: str | None = Field(None, description="Jira issue key, e.g. PROJ-12")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return str(value) if value is not None else value


class ImportSubmission(BaseModel):
    """The accepted half of a bulk import: the job handle to poll."""

    job_id: str = Field(..., alias="jobId", description="Opaque job handle assigned by Xray")
    project_key: str = Field(..., description="Project the records were imported into")
    record_count: int = Field(..., description="Number of records submitted", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class ImportJob(BaseModel):
    """
    Observed state of a bulk import job.

    Only terminal states are returned by the poller; ``error`` and ``details``
    are set when the job failed.
    """

    job_id: str = Field(..., alias="jobId")
    status: ImportStatus
    created_issues: list[CreatedIssue] = Field(default_factory=list, alias="createdIssues")
    error: str | None = None
    details: Any = None
    attempts: int = Field(default=0, description="Number of status requests issued", ge=0)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def succeeded(self) -> bool:
        return self.status == ImportStatus.SUCCESSFUL

    @property
    def test_issue_ids(self) -> list[str]:
        return [issue.id for issue in self.created_issues]

    @property
    def test_keys(self) -> list[str | None]:
        return [issue.key for issue in self.created_issues]


class LinkCategory(str, Enum):
    """The four set-valued relationship categories of a test."""

    TEST_PLANS = "testPlans"
    TEST_EXECUTIONS = "testExecutions"
    TEST_SETS = "testSets"
    PRECONDITIONS = "preconditions"

    @property
    def label(self) -> str:
        """Human readable singular name used in warnings."""
        return _CATEGORY_LABELS[self]

    @property
    def attribute(self) -> str:
        """Snake case attribute name on LinkDiff and ReconciliationResult."""
        return _CATEGORY_ATTRIBUTES[self]


_CATEGORY_LABELS = {
    LinkCategory.TEST_PLANS: "Test Plan",
    LinkCategory.TEST_EXECUTIONS: "Test Execution",
    LinkCategory.TEST_SETS: "Test Set",
    LinkCategory.PRECONDITIONS: "Precondition",
}

_CATEGORY_ATTRIBUTES = {
    LinkCategory.TEST_PLANS: "test_plans",
    LinkCategory.TEST_EXECUTIONS: "test_executions",
    LinkCategory.TEST_SETS: "test_sets",
    LinkCategory.PRECONDITIONS: "preconditions",
}


def _normalize_folder(value):
    if value is None or value == "":
        return ROOT_FOLDER
    return value


class LinkSelection(BaseModel):
    """
    Snapshot of a test case's relationships.

    ``folder_path`` is single valued; ``/`` means the test has no explicit
    placement in the test repository.
    """

    test_plan_ids: list[str] = Field(default_factory=list, alias="testPlanIds")
    test_execution_ids: list[str] = Field(default_factory=list, alias="testExecutionIds")
    test_set_ids: list[str] = Field(default_factory=list, alias="testSetIds")
    precondition_ids: list[str] = Field(default_factory=list, alias="preconditionIds")
    folder_path: str = Field(default=ROOT_FOLDER, alias="folderPath")
    project_id: str | None = Field(None, alias="projectId")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator(
        "test_plan_ids", "test_execution_ids", "test_set_ids", "precondition_ids", mode="before"
    )
    @classmethod
    def none_to_empty_list(cls, value):
        if value is None:
            return []
        return [str(item) for item in value]

    @field_validator("folder_path", mode="before")
    @classmethod
    def default_folder(cls, value):
        return _normalize_folder(value)

    def ids_for(self, category: LinkCategory) -> list[str]:
        return {
            LinkCategory.TEST_PLANS: self.test_plan_ids,
            LinkCategory.TEST_EXECUTIONS: self.test_execution_ids,
            LinkCategory.TEST_SETS: self.test_set_ids,
            LinkCategory.PRECONDITIONS: self.precondition_ids,
        }[category]


class CategoryDiff(BaseModel):
    """Ids to add to and remove from one relationship category."""

    to_add: list[str] = Field(default_factory=list, alias="toAdd")
    to_remove: list[str] = Field(default_factory=list, alias="toRemove")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("to_add", "to_remove", mode="before")
    @classmethod
    def none_to_empty_list(cls, value):
        return [] if value is None else value

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


class FolderChange(BaseModel):
    """Original and current folder placement; the move decision is the reconciler's."""

    original: str = Field(default=ROOT_FOLDER)
    current: str = Field(default=ROOT_FOLDER)

    @field_validator("original", "current", mode="before")
    @classmethod
    def default_folder(cls, value):
        return _normalize_folder(value)

    @property
    def changed(self) -> bool:
        return self.original != self.current


class LinkDiff(BaseModel):
    """Derived difference between two LinkSelection snapshots. Never persisted."""

    test_plans: CategoryDiff = Field(default_factory=CategoryDiff, alias="testPlans")
    test_executions: CategoryDiff = Field(default_factory=CategoryDiff, alias="testExecutions")
    test_sets: CategoryDiff = Field(default_factory=CategoryDiff, alias="testSets")
    preconditions: CategoryDiff = Field(default_factory=CategoryDiff)
    folder: FolderChange = Field(default_factory=FolderChange)

    model_config = ConfigDict(populate_by_name=True)

    def for_category(self, category: LinkCategory) -> CategoryDiff:
        return getattr(self, category.attribute)

    @property
    def is_empty(self) -> bool:
        return all(self.for_category(c).is_empty for c in LinkCategory) and not self.folder.changed


class LinkOperationResult(BaseModel):
    """Outcome of one add or remove mutation against one target id."""

    id: str
    success: bool
    detail: dict[str, Any] | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @property
    def warning(self) -> str | None:
        """Advisory message the remote API attached to a successful mutation."""
        if not self.detail:
            return None
        return self.detail.get("warning")


class CategoryResult(BaseModel):
    """Per-id results for one relationship category."""

    added: list[LinkOperationResult] = Field(default_factory=list)
    removed: list[LinkOperationResult] = Field(default_factory=list)


class FolderResult(BaseModel):
    """
    Outcome of a folder move.

    ``removed`` or ``added`` is None when that half was skipped because the
    corresponding end of the move was the root folder.
    """

    original: str
    current: str
    removed: LinkOperationResult | None = None
    added: LinkOperationResult | None = None


class ReconciliationResult(BaseModel):
    """
    Aggregated outcome of one reconcile call.

    A reconciliation always completes; callers detect partial failure through
    ``warnings`` or the per-item ``success`` flags.
    """

    test_plans: CategoryResult = Field(default_factory=CategoryResult, alias="testPlans")
    test_executions: CategoryResult = Field(default_factory=CategoryResult, alias="testExecutions")
    test_sets: CategoryResult = Field(default_factory=CategoryResult, alias="testSets")
    preconditions: CategoryResult = Field(default_factory=CategoryResult)
    folder: FolderResult | None = None
    warnings: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def for_category(self, category: LinkCategory) -> CategoryResult:
        return getattr(self, category.attribute)

    def failed_operations(self) -> list[LinkOperationResult]:
        failed = []
        for category in LinkCategory:
            result = self.for_category(category)
            failed.extend(op for op in result.added + result.removed if not op.success)
        if self.folder:
            failed.extend(
                op for op in (self.folder.removed, self.folder.added) if op and not op.success
            )
        return failed

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_operations())


class LinkTarget(BaseModel):
    """A test plan, execution, set or precondition that a test can be linked to."""

    issue_id: str = Field(..., alias="issueId")
    key: str | None = None
    summary: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class TestFolder(BaseModel):
    """A folder in the Xray test repository."""

    __test__: ClassVar[bool] = False

    name: str | None = None
    path: str = ROOT_FOLDER
    tests_count: int | None = Field(None, alias="testsCount")
    folders: list[Any] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("folders", mode="before")
    @classmethod
    def none_to_empty_list(cls, value):
        return [] if value is None else value


class CredentialCheck(BaseModel):
    """Result of validating a client ID/secret pair without storing a token."""

    success: bool
    error: str | None = None
