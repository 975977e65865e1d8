"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
GraphQL documents for the Xray Cloud relationship API.

Every mutation takes a single target and a list of issue ids; the reconciler
always sends one-element lists so failures can be attributed per id.
"""

# Lookups

LIST_QUERY_TEMPLATE = """
query {operation_name}($jql: String!, $limit: Int!) {{
  {field}(jql: $jql, limit: $limit) {{
    total
    results {{
      issueId
      jira(fields: ["key", "summary"])
    }}
  }}
}}
"""

GET_TEST_PLANS_QUERY = LIST_QUERY_TEMPLATE.format(operation_name="GetTestPlans", field="getTestPlans")
GET_TEST_EXECUTIONS_QUERY = LIST_QUERY_TEMPLATE.format(
    operation_name="GetTestExecutions", field="getTestExecutions"
)
GET_TEST_SETS_QUERY = LIST_QUERY_TEMPLATE.format(operation_name="GetTestSets", field="getTestSets")
GET_PRECONDITIONS_QUERY = LIST_QUERY_TEMPLATE.format(
    operation_name="GetPreconditions", field="getPreconditions"
)

GET_FOLDER_QUERY = """
query GetFolder($projectId: String!, $path: String!) {
  getFolder(projectId: $projectId, path: $path) {
    name
    path
    testsCount
    folders
  }
}
"""

GET_PROJECT_SETTINGS_QUERY = """
query GetProjectSettings($projectIdOrKey: String!) {
  getProjectSettings(projectIdOrKey: $projectIdOrKey) {
    projectId
  }
}
"""

# Test plan / execution / set membership. The container is $issueId.

TESTS_MUTATION_TEMPLATE = """
mutation {operation_name}($issueId: String!, $testIssueIds: [String]!) {{
  {field}(issueId: $issueId, testIssueIds: $testIssueIds) {{
    {result_field}
    warning
  }}
}}
"""


def _tests_mutation(field: str, result_field: str) -> str:
    return TESTS_MUTATION_TEMPLATE.format(
        operation_name=field[0].upper() + field[1:], field=field, result_field=result_field
    )


ADD_TESTS_TO_TEST_PLAN = _tests_mutation("addTestsToTestPlan", "addedTests")
REMOVE_TESTS_FROM_TEST_PLAN = _tests_mutation("removeTestsFromTestPlan", "removedTests")
ADD_TESTS_TO_TEST_EXECUTION = _tests_mutation("addTestsToTestExecution", "addedTests")
REMOVE_TESTS_FROM_TEST_EXECUTION = _tests_mutation("removeTestsFromTestExecution", "removedTests")
ADD_TESTS_TO_TEST_SET = _tests_mutation("addTestsToTestSet", "addedTests")
REMOVE_TESTS_FROM_TEST_SET = _tests_mutation("removeTestsFromTestSet", "removedTests")

# Preconditions. Here the test itself is $issueId.

ADD_PRECONDITIONS_TO_TEST = """
mutation AddPreconditionsToTest($issueId: String!, $preconditionIssueIds: [String]!) {
  addPreconditionsToTest(issueId: $issueId, preconditionIssueIds: $preconditionIssueIds) {
    addedPreconditions
    warning
  }
}
"""

REMOVE_PRECONDITIONS_FROM_TEST = """
mutation RemovePreconditionsFromTest($issueId: String!, $preconditionIssueIds: [String]!) {
  removePreconditionsFromTest(issueId: $issueId, preconditionIssueIds: $preconditionIssueIds) {
    removedPreconditions
    warning
  }
}
"""

# Test repository folders

ADD_TESTS_TO_FOLDER = """
mutation AddTestsToFolder($projectId: String!, $path: String!, $testIssueIds: [String]!) {
  addTestsToFolder(projectId: $projectId, path: $path, testIssueIds: $testIssueIds) {
    folder {
      name
      path
      testsCount
    }
    warnings
  }
}
"""

REMOVE_TESTS_FROM_FOLDER = """
mutation RemoveTestsFromFolder($projectId: String!, $path: String!, $testIssueIds: [String]!) {
  removeTestsFromFolder(projectId: $projectId, path: $path, testIssueIds: $testIssueIds) {
    folder {
      name
      path
      testsCount
    }
    warnings
  }
}
"""
