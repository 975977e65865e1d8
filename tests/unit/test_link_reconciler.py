"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Unit tests for link reconciliation.

The relationship API is replaced by a mock so each test controls exactly which
mutations succeed, warn or fail.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from xraylink.errors import ErrorKind, ProjectIdUnresolvedError, RemoteProtocolError
from xraylink.link_diff import compute_diff
from xraylink.link_reconciler import LinkReconciler
from xraylink.models import CategoryDiff, FolderChange, LinkCategory, LinkDiff, LinkSelection
from xraylink.xray_api import XrayRelationshipApi

pytestmark = pytest.mark.unit

TEST_ID = "10001"


@pytest.fixture()
def api():
    api = MagicMock(spec=XrayRelationshipApi)
    api.add_link = AsyncMock(return_value={"addedTests": [TEST_ID], "warning": None})
    api.remove_link = AsyncMock(return_value={"removedTests": [TEST_ID], "warning": None})
    api.add_tests_to_folder = AsyncMock(return_value={"folder": {"path": "/New"}, "warnings": None})
    api.remove_tests_from_folder = AsyncMock(return_value={"folder": {"path": "/Old"}, "warnings": None})
    api.resolve_project_id = AsyncMock(return_value="10000")
    return api


@pytest.fixture()
def reconciler(api):
    return LinkReconciler(api)


def plans_diff(to_add=(), to_remove=()) -> LinkDiff:
    return LinkDiff(test_plans=CategoryDiff(to_add=list(to_add), to_remove=list(to_remove)))


def folder_diff(original: str, current: str) -> LinkDiff:
    return LinkDiff(folder=FolderChange(original=original, current=current))


class TestCategories:
    @pytest.mark.asyncio
    async def test_all_operations_succeed(self, reconciler, api):
        diff = compute_diff(
            LinkSelection(test_plan_ids=["p0"], precondition_ids=["c0"]),
            LinkSelection(test_plan_ids=["p1"], test_set_ids=["s1"], precondition_ids=["c1"]),
        )

        result = await reconciler.reconcile(TEST_ID, diff)

        assert result.warnings == []
        assert not result.has_failures
        assert [op.id for op in result.test_plans.added] == ["p1"]
        assert [op.id for op in result.test_plans.removed] == ["p0"]
        assert [op.id for op in result.test_sets.added] == ["s1"]
        assert result.folder is None
        api.add_link.assert_any_await(LinkCategory.TEST_PLANS, "p1", TEST_ID)
        api.remove_link.assert_any_await(LinkCategory.TEST_PLANS, "p0", TEST_ID)
        api.add_link.assert_any_await(LinkCategory.PRECONDITIONS, "c1", TEST_ID)
        api.remove_link.assert_any_await(LinkCategory.PRECONDITIONS, "c0", TEST_ID)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_siblings(self, reconciler, api):
        async def add_link(category, target_id, test_issue_id):
            if target_id == "p1":
                raise RemoteProtocolError("boom")
            return {"addedTests": [test_issue_id]}

        api.add_link.side_effect = add_link

        result = await reconciler.reconcile(TEST_ID, plans_diff(to_add=["p1", "p2"]))

        p1, p2 = result.test_plans.added
        assert (p1.id, p1.success, p1.error, p1.error_kind) == ("p1", False, "boom", ErrorKind.REMOTE_PROTOCOL)
        assert (p2.id, p2.success) == ("p2", True)
        assert result.warnings == ["Test Plan p1 add failed: boom"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_captured(self, reconciler, api):
        api.remove_link.side_effect = RuntimeError("socket closed")

        result = await reconciler.reconcile(TEST_ID, plans_diff(to_remove=["p9"]))

        op = result.test_plans.removed[0]
        assert op.error_kind == ErrorKind.LINK_OPERATION_FAILED
        assert result.warnings == ["Test Plan p9 remove failed: socket closed"]

    @pytest.mark.asyncio
    async def test_remote_warning_is_advisory(self, reconciler, api):
        api.add_link.return_value = {"addedTests": [], "warning": "Test already linked"}
        diff = LinkDiff(test_executions=CategoryDiff(to_add=["e1"]))

        result = await reconciler.reconcile(TEST_ID, diff)

        assert result.test_executions.added[0].success is True
        assert result.warnings == ["Test Execution e1 add: Test already linked"]
        assert not result.has_failures

    @pytest.mark.asyncio
    async def test_results_keep_input_order(self, reconciler, api):
        async def add_link(category, target_id, test_issue_id):
            # Later ids finish first
            await asyncio.sleep(0.01 if target_id == "a" else 0)
            return {}

        api.add_link.side_effect = add_link

        result = await reconciler.reconcile(TEST_ID, plans_diff(to_add=["a", "b", "c"]))

        assert [op.id for op in result.test_plans.added] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_operations_run_concurrently(self, reconciler, api):
        in_flight = 0
        peak = 0

        async def add_link(category, target_id, test_issue_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return {}

        api.add_link.side_effect = add_link
        diff = LinkDiff(
            test_plans=CategoryDiff(to_add=["p1", "p2"]),
            test_sets=CategoryDiff(to_add=["s1"]),
        )

        await reconciler.reconcile(TEST_ID, diff)

        assert peak == 3

    @pytest.mark.asyncio
    async def test_empty_diff_issues_nothing(self, reconciler, api):
        result = await reconciler.reconcile(TEST_ID, LinkDiff())

        assert result.warnings == []
        api.add_link.assert_not_awaited()
        api.remove_link.assert_not_awaited()
        api.resolve_project_id.assert_not_awaited()


class TestFolder:
    @pytest.mark.asyncio
    async def test_move_removes_before_adding(self, reconciler, api):
        order = []

        def recorder(name):
            def side_effect(*args):
                order.append((name, *args))
                return {}

            return side_effect

        api.remove_tests_from_folder.side_effect = recorder("remove")
        api.add_tests_to_folder.side_effect = recorder("add")

        result = await reconciler.reconcile(TEST_ID, folder_diff("/Old", "/New"), project_id="10000")

        assert order == [
            ("remove", "10000", "/Old", [TEST_ID]),
            ("add", "10000", "/New", [TEST_ID]),
        ]
        assert result.folder.removed.success
        assert result.folder.added.success
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_remove_failure_still_adds(self, reconciler, api):
        api.remove_tests_from_folder.side_effect = RemoteProtocolError("Folder not found")

        result = await reconciler.reconcile(TEST_ID, folder_diff("/Old", "/New"), project_id="10000")

        api.add_tests_to_folder.assert_awaited_once_with("10000", "/New", [TEST_ID])
        assert result.folder.added.success
        assert result.warnings == ["Folder remove from /Old failed: Folder not found"]

    @pytest.mark.asyncio
    async def test_add_waits_for_slow_remove(self, reconciler, api):
        events = []

        async def slow_remove(*args):
            events.append("remove-start")
            await asyncio.sleep(0.01)
            events.append("remove-end")
            return {}

        async def add(*args):
            events.append("add-start")
            return {}

        api.remove_tests_from_folder.side_effect = slow_remove
        api.add_tests_to_folder.side_effect = add

        await reconciler.reconcile(TEST_ID, folder_diff("/Old", "/New"), project_id="10000")

        assert events == ["remove-start", "remove-end", "add-start"]

    @pytest.mark.asyncio
    async def test_add_runs_after_slow_remove_fails(self, reconciler, api):
        events = []

        async def failing_remove(*args):
            events.append("remove-start")
            await asyncio.sleep(0.01)
            events.append("remove-end")
            raise RemoteProtocolError("Folder not found")

        async def add(*args):
            events.append("add-start")
            return {}

        api.remove_tests_from_folder.side_effect = failing_remove
        api.add_tests_to_folder.side_effect = add

        result = await reconciler.reconcile(TEST_ID, folder_diff("/Old", "/New"), project_id="10000")

        assert events == ["remove-start", "remove-end", "add-start"]
        assert not result.folder.removed.success
        assert result.folder.added.success

    @pytest.mark.asyncio
    async def test_add_failure(self, reconciler, api):
        api.add_tests_to_folder.side_effect = RemoteProtocolError("Permission denied")

        result = await reconciler.reconcile(TEST_ID, folder_diff("/", "/New"), project_id="10000")

        assert result.warnings == ["Folder add to /New failed: Permission denied"]
        assert result.has_failures

    @pytest.mark.asyncio
    async def test_root_ends_are_skipped(self, reconciler, api):
        result = await reconciler.reconcile(TEST_ID, folder_diff("/Old", "/"), project_id="10000")

        api.remove_tests_from_folder.assert_awaited_once()
        api.add_tests_to_folder.assert_not_awaited()
        assert result.folder.added is None

    @pytest.mark.asyncio
    async def test_unchanged_folder_is_untouched(self, reconciler, api):
        result = await reconciler.reconcile(TEST_ID, folder_diff("/Same", "/Same"), project_id="10000")

        assert result.folder is None
        api.remove_tests_from_folder.assert_not_awaited()
        api.add_tests_to_folder.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remote_folder_warnings(self, reconciler, api):
        api.add_tests_to_folder.return_value = {"folder": {}, "warnings": ["w1", "w2"]}

        result = await reconciler.reconcile(TEST_ID, folder_diff("/", "/New"), project_id="10000")

        assert result.warnings == ["Folder: w1, w2"]

    @pytest.mark.asyncio
    async def test_project_id_resolved_from_key(self, reconciler, api):
        await reconciler.reconcile(TEST_ID, folder_diff("/", "/New"), project_key="PROJ")

        api.resolve_project_id.assert_awaited_once_with("PROJ")
        api.add_tests_to_folder.assert_awaited_once_with("10000", "/New", [TEST_ID])

    @pytest.mark.asyncio
    async def test_unresolved_project_skips_folder_only(self, reconciler, api):
        api.resolve_project_id.side_effect = ProjectIdUnresolvedError("PROJ")
        diff = folder_diff("/", "/New")
        diff.test_plans = CategoryDiff(to_add=["p1"])

        result = await reconciler.reconcile(TEST_ID, diff, project_key="PROJ")

        assert result.warnings == ["Could not resolve project ID for folder operations"]
        assert result.folder is None
        assert result.test_plans.added[0].success
        api.add_tests_to_folder.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_project_information(self, reconciler, api):
        result = await reconciler.reconcile(TEST_ID, folder_diff("/", "/New"))

        assert result.warnings == ["Folder move skipped: no project ID available"]
        api.resolve_project_id.assert_not_awaited()


class TestLink:
    @pytest.mark.asyncio
    async def test_links_everything_in_selection(self, reconciler, api):
        selection = LinkSelection(
            test_plan_ids=["p1"],
            test_execution_ids=["e1"],
            folder_path="/Imported",
            project_id="10000",
        )

        result = await reconciler.link(TEST_ID, selection)

        api.add_link.assert_any_await(LinkCategory.TEST_PLANS, "p1", TEST_ID)
        api.add_link.assert_any_await(LinkCategory.TEST_EXECUTIONS, "e1", TEST_ID)
        api.remove_link.assert_not_awaited()
        api.remove_tests_from_folder.assert_not_awaited()
        api.add_tests_to_folder.assert_awaited_once_with("10000", "/Imported", [TEST_ID])
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_each_call_builds_a_fresh_result(self, reconciler, api):
        api.add_link.side_effect = RemoteProtocolError("stale id")
        selection = LinkSelection(test_plan_ids=["p1"])

        first = await reconciler.link(TEST_ID, selection)
        second = await reconciler.link(TEST_ID, selection)

        assert first is not second
        assert first.warnings == second.warnings == ["Test Plan p1 add failed: stale id"]

    @pytest.mark.asyncio
    async def test_repeated_removal_only_warns(self, reconciler, api):
        api.remove_link.side_effect = [
            {"removedTests": [TEST_ID], "warning": None},
            {"removedTests": [], "warning": "Test is not in the test plan"},
        ]
        diff = LinkDiff(test_plans=CategoryDiff(to_remove=["p1"]))

        first = await reconciler.reconcile(TEST_ID, diff)
        second = await reconciler.reconcile(TEST_ID, diff)

        assert first.warnings == []
        assert second.test_plans.removed[0].success
        assert second.warnings == ["Test Plan p1 remove: Test is not in the test plan"]
        assert not second.has_failures
