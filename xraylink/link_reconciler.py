"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Application of a LinkDiff against Xray Cloud.

Every add or remove is an independent mutation for a single id. All of them,
plus the folder move, run concurrently; each one records its own outcome so a
failing mutation never cancels the others. A reconcile call always returns a
ReconciliationResult and never raises for link failures.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from xraylink.errors import ErrorKind, XrayLinkError
from xraylink.link_diff import compute_diff, empty_selection
from xraylink.models import (
    ROOT_FOLDER,
    CategoryResult,
    FolderResult,
    LinkCategory,
    LinkDiff,
    LinkOperationResult,
    LinkSelection,
    ReconciliationResult,
)
from xraylink.xray_api import XrayRelationshipApi

logger = logging.getLogger(__name__)

PROJECT_ID_UNRESOLVED_WARNING = "Could not resolve project ID for folder operations"
NO_PROJECT_ID_WARNING = "Folder move skipped: no project ID available"


def _error_kind(exc: Exception) -> ErrorKind:
    if isinstance(exc, XrayLinkError):
        return exc.kind
    return ErrorKind.LINK_OPERATION_FAILED


def _error_message(exc: Exception) -> str:
    if isinstance(exc, XrayLinkError):
        return exc.message
    return str(exc) or exc.__class__.__name__


async def _capture(target_id: str, operation: Callable[[], Awaitable[dict[str, Any]]]) -> LinkOperationResult:
    """Run one mutation and turn its outcome, including any exception, into a result."""
    try:
        detail = await operation()
    except Exception as e:  # every failure is reported per id
        logger.debug(f"Link operation for {target_id} failed: {e}")
        return LinkOperationResult(
            id=target_id, success=False, error=_error_message(e), error_kind=_error_kind(e)
        )
    return LinkOperationResult(id=target_id, success=True, detail=detail or {})


class LinkReconciler:
    """Turns a LinkDiff into concurrent relationship mutations."""

    def __init__(self, api: XrayRelationshipApi):
        self.api = api

    async def reconcile(
        self,
        test_issue_id: str,
        diff: LinkDiff,
        project_id: str | None = None,
        project_key: str | None = None,
    ) -> ReconciliationResult:
        """
        Apply ``diff`` to the test identified by ``test_issue_id``.

        Args:
            test_issue_id: Jira issue ID of the test
            diff: Add/remove sets per category plus the folder change
            project_id: Xray project ID, required for a folder move
            project_key: Used to look up the project ID when it is not given

        Returns:
            Per-id results and the ordered list of warnings
        """
        categories = list(LinkCategory)
        branches = [self._apply_category(test_issue_id, c, diff.for_category(c)) for c in categories]
        branches.append(self._apply_folder(test_issue_id, diff, project_id, project_key))

        outcomes = await asyncio.gather(*branches)

        result = ReconciliationResult()
        for category, (category_result, warnings) in zip(categories, outcomes[:-1]):
            setattr(result, category.attribute, category_result)
            result.warnings.extend(warnings)

        folder_result, folder_warnings = outcomes[-1]
        result.folder = folder_result
        result.warnings.extend(folder_warnings)

        if result.warnings:
            logger.warning(
                f"Reconciliation of {test_issue_id} finished with {len(result.warnings)} warning(s)"
            )
        else:
            logger.info(f"Reconciliation of {test_issue_id} finished cleanly")
        return result

    async def link(
        self,
        test_issue_id: str,
        selection: LinkSelection,
        project_key: str | None = None,
    ) -> ReconciliationResult:
        """Link a freshly created test to everything in ``selection``."""
        diff = compute_diff(empty_selection(), selection)
        return await self.reconcile(
            test_issue_id, diff, project_id=selection.project_id, project_key=project_key
        )

    async def _apply_category(self, test_issue_id: str, category: LinkCategory, category_diff):
        adds = [
            _capture(target_id, lambda t=target_id: self.api.add_link(category, t, test_issue_id))
            for target_id in category_diff.to_add
        ]
        removes = [
            _capture(target_id, lambda t=target_id: self.api.remove_link(category, t, test_issue_id))
            for target_id in category_diff.to_remove
        ]
        results = await asyncio.gather(*adds, *removes)
        added = list(results[: len(adds)])
        removed = list(results[len(adds):])

        warnings = []
        for verb, operations in (("add", added), ("remove", removed)):
            for op in operations:
                if not op.success:
                    warnings.append(f"{category.label} {op.id} {verb} failed: {op.error}")
                elif op.warning:
                    warnings.append(f"{category.label} {op.id} {verb}: {op.warning}")
        return CategoryResult(added=added, removed=removed), warnings

    async def _apply_folder(
        self,
        test_issue_id: str,
        diff: LinkDiff,
        project_id: str | None,
        project_key: str | None,
    ) -> tuple[FolderResult | None, list[str]]:
        folder = diff.folder
        if not folder.changed:
            return None, []

        if not project_id:
            if not project_key:
                return None, [NO_PROJECT_ID_WARNING]
            try:
                project_id = await self.api.resolve_project_id(project_key)
            except Exception as e:  # reported as a warning, links still apply
                logger.warning(f"Project ID lookup for {project_key} failed: {e}")
                return None, [PROJECT_ID_UNRESOLVED_WARNING]

        result = FolderResult(original=folder.original, current=folder.current)
        warnings = []

        # Remove before add so the test never sits in two folders
        if folder.original != ROOT_FOLDER:
            result.removed = await _capture(
                folder.original,
                lambda: self.api.remove_tests_from_folder(project_id, folder.original, [test_issue_id]),
            )
            warnings.extend(self._folder_warnings("remove from", result.removed))

        if folder.current != ROOT_FOLDER:
            result.added = await _capture(
                folder.current,
                lambda: self.api.add_tests_to_folder(project_id, folder.current, [test_issue_id]),
            )
            warnings.extend(self._folder_warnings("add to", result.added))

        return result, warnings

    @staticmethod
    def _folder_warnings(action: str, op: LinkOperationResult) -> list[str]:
        if not op.success:
            return [f"Folder {action} {op.id} failed: {op.error}"]
        remote_warnings = (op.detail or {}).get("warnings") or []
        if remote_warnings:
            return [f"Folder: {', '.join(str(w) for w in remote_warnings)}"]
        return []
