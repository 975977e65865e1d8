"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Typed access to Xray relationship queries and mutations.

Each method fetches a bearer token from the token source, runs one GraphQL
document through the gateway and returns the payload of its root field.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from xraylink import graphql_queries as gq
from xraylink.errors import ProjectIdUnresolvedError, XrayLinkError
from xraylink.graphql_gateway import GraphQLGateway
from xraylink.models import LinkCategory, LinkTarget, TestFolder

logger = logging.getLogger(__name__)

TokenSource = Callable[[], Awaitable[str]]

LOOKUP_LIMIT = 100

_LOOKUPS = {
    LinkCategory.TEST_PLANS: (gq.GET_TEST_PLANS_QUERY, "getTestPlans"),
    LinkCategory.TEST_EXECUTIONS: (gq.GET_TEST_EXECUTIONS_QUERY, "getTestExecutions"),
    LinkCategory.TEST_SETS: (gq.GET_TEST_SETS_QUERY, "getTestSets"),
    LinkCategory.PRECONDITIONS: (gq.GET_PRECONDITIONS_QUERY, "getPreconditions"),
}


class XrayRelationshipApi:
    """Relationship mutations and lookups for tests in Xray Cloud."""

    def __init__(self, gateway: GraphQLGateway, token_source: TokenSource):
        self.gateway = gateway
        self.token_source = token_source

    async def _run(self, document: str, variables: dict[str, Any], root_field: str) -> Any:
        token = await self.token_source()
        data = await self.gateway.execute(token, document, variables)
        return data.get(root_field)

    async def _tests_mutation(
        self, document: str, root_field: str, issue_id: str, test_issue_ids: list[str]
    ) -> dict[str, Any]:
        payload = await self._run(
            document, {"issueId": issue_id, "testIssueIds": test_issue_ids}, root_field
        )
        return payload or {}

    # Test plans

    async def add_tests_to_test_plan(self, test_plan_id: str, test_issue_ids: list[str]) -> dict[str, Any]:
        return await self._tests_mutation(
            gq.ADD_TESTS_TO_TEST_PLAN, "addTestsToTestPlan", test_plan_id, test_issue_ids
        )

    async def remove_tests_from_test_plan(self, test_plan_id: str, test_issue_ids: list[str]) -> dict[str, Any]:
        return await self._tests_mutation(
            gq.REMOVE_TESTS_FROM_TEST_PLAN, "removeTestsFromTestPlan", test_plan_id, test_issue_ids
        )

    # Test executions

    async def add_tests_to_test_execution(self, test_execution_id: str, test_issue_ids: list[str]) -> dict[str, Any]:
        return await self._tests_mutation(
            gq.ADD_TESTS_TO_TEST_EXECUTION, "addTestsToTestExecution", test_execution_id, test_issue_ids
        )

    async def remove_tests_from_test_execution(self, test_execution_id: str, test_issue_ids: list[str]) -> dict[str, Any]:
        return await self._tests_mutation(
            gq.REMOVE_TESTS_FROM_TEST_EXECUTION,
            "removeTestsFromTestExecution",
            test_execution_id,
            test_issue_ids,
        )

    # Test sets

    async def add_tests_to_test_set(self, test_set_id: str, test_issue_ids: list[str]) -> dict[str, Any]:
        return await self._tests_mutation(
            gq.ADD_TESTS_TO_TEST_SET, "addTestsToTestSet", test_set_id, test_issue_ids
        )

    async def remove_tests_from_test_set(self, test_set_id: str, test_issue_ids: list[str]) -> dict[str, Any]:
        return await self._tests_mutation(
            gq.REMOVE_TESTS_FROM_TEST_SET, "removeTestsFromTestSet", test_set_id, test_issue_ids
        )

    # Preconditions

    async def add_preconditions_to_test(self, test_issue_id: str, precondition_issue_ids: list[str]) -> dict[str, Any]:
        payload = await self._run(
            gq.ADD_PRECONDITIONS_TO_TEST,
            {"issueId": test_issue_id, "preconditionIssueIds": precondition_issue_ids},
            "addPreconditionsToTest",
        )
        return payload or {}

    async def remove_preconditions_from_test(self, test_issue_id: str, precondition_issue_ids: list[str]) -> dict[str, Any]:
        payload = await self._run(
            gq.REMOVE_PRECONDITIONS_FROM_TEST,
            {"issueId": test_issue_id, "preconditionIssueIds": precondition_issue_ids},
            "removePreconditionsFromTest",
        )
        return payload or {}

    # Folders

    async def add_tests_to_folder(self, project_id: str, folder_path: str, test_issue_ids: list[str]) -> dict[str, Any]:
        payload = await self._run(
            gq.ADD_TESTS_TO_FOLDER,
            {"projectId": project_id, "path": folder_path, "testIssueIds": test_issue_ids},
            "addTestsToFolder",
        )
        return payload or {}

    async def remove_tests_from_folder(self, project_id: str, folder_path: str, test_issue_ids: list[str]) -> dict[str, Any]:
        payload = await self._run(
            gq.REMOVE_TESTS_FROM_FOLDER,
            {"projectId": project_id, "path": folder_path, "testIssueIds": test_issue_ids},
            "removeTestsFromFolder",
        )
        return payload or {}

    # Dispatch used by the reconciler

    async def add_link(self, category: LinkCategory, target_id: str, test_issue_id: str) -> dict[str, Any]:
        """Link one test to one target of the given category."""
        if category == LinkCategory.TEST_PLANS:
            return await self.add_tests_to_test_plan(target_id, [test_issue_id])
        if category == LinkCategory.TEST_EXECUTIONS:
            return await self.add_tests_to_test_execution(target_id, [test_issue_id])
        if category == LinkCategory.TEST_SETS:
            return await self.add_tests_to_test_set(target_id, [test_issue_id])
        return await self.add_preconditions_to_test(test_issue_id, [target_id])

    async def remove_link(self, category: LinkCategory, target_id: str, test_issue_id: str) -> dict[str, Any]:
        """Unlink one test from one target of the given category."""
        if category == LinkCategory.TEST_PLANS:
            return await self.remove_tests_from_test_plan(target_id, [test_issue_id])
        if category == LinkCategory.TEST_EXECUTIONS:
            return await self.remove_tests_from_test_execution(target_id, [test_issue_id])
        if category == LinkCategory.TEST_SETS:
            return await self.remove_tests_from_test_set(target_id, [test_issue_id])
        return await self.remove_preconditions_from_test(test_issue_id, [target_id])

    # Lookups

    async def list_targets(self, category: LinkCategory, project_key: str) -> list[LinkTarget]:
        """List the link targets of one category in a project."""
        document, root_field = _LOOKUPS[category]
        payload = await self._run(
            document, {"jql": f"project = '{project_key}'", "limit": LOOKUP_LIMIT}, root_field
        )
        results = (payload or {}).get("results") or []
        targets = []
        for item in results:
            jira = item.get("jira") or {}
            targets.append(
                LinkTarget(issue_id=item["issueId"], key=jira.get("key"), summary=jira.get("summary"))
            )
        logger.debug(f"Fetched {len(targets)} {category.value} for project {project_key}")
        return targets

    async def get_test_plans(self, project_key: str) -> list[LinkTarget]:
        return await self.list_targets(LinkCategory.TEST_PLANS, project_key)

    async def get_test_executions(self, project_key: str) -> list[LinkTarget]:
        return await self.list_targets(LinkCategory.TEST_EXECUTIONS, project_key)

    async def get_test_sets(self, project_key: str) -> list[LinkTarget]:
        return await self.list_targets(LinkCategory.TEST_SETS, project_key)

    async def get_preconditions(self, project_key: str) -> list[LinkTarget]:
        return await self.list_targets(LinkCategory.PRECONDITIONS, project_key)

    async def get_folder(self, project_id: str, path: str = "/") -> TestFolder:
        payload = await self._run(gq.GET_FOLDER_QUERY, {"projectId": project_id, "path": path}, "getFolder")
        return TestFolder.model_validate(payload or {"path": path})

    async def resolve_project_id(self, project_key: str) -> str:
        """
        Map a Jira project key to the project ID that folder operations require.

        Raises:
            ProjectIdUnresolvedError: the lookup failed or returned no ID
        """
        try:
            payload = await self._run(
                gq.GET_PROJECT_SETTINGS_QUERY, {"projectIdOrKey": project_key}, "getProjectSettings"
            )
        except XrayLinkError as e:
            raise ProjectIdUnresolvedError(project_key, str(e)) from e

        project_id = (payload or {}).get("projectId")
        if not project_id:
            raise ProjectIdUnresolvedError(project_key)
        return str(project_id)
