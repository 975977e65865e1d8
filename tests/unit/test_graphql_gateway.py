"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

import httpx
import pytest

from tests.fixtures.mock_xray import BASE_URL
from xraylink.errors import ErrorKind, RemoteProtocolError, TransportError
from xraylink.graphql_gateway import GraphQLGateway
from xraylink.transport import XrayTransport

QUERY = "query GetThing($id: String!) { getThing(id: $id) { id } }"


@pytest.mark.unit()
class TestGraphQLGateway:
    @pytest.fixture()
    def gateway(self, transport):
        return GraphQLGateway(transport)

    @pytest.mark.asyncio
    async def test_returns_data(self, gateway, harness):
        harness.add_graphql_response("GetThing", data={"getThing": {"id": "1"}})

        data = await gateway.execute("tok", QUERY, {"id": "1"})

        assert data == {"getThing": {"id": "1"}}
        request = harness.graphql_requests("GetThing")[0]
        assert request["headers"]["authorization"] == "Bearer tok"
        assert request["json"] == {"query": QUERY, "variables": {"id": "1"}}

    @pytest.mark.asyncio
    async def test_null_data_becomes_empty_dict(self, gateway, harness):
        harness.add_graphql_response("GetThing", data=None)

        assert await gateway.execute("tok", QUERY) == {}

    @pytest.mark.asyncio
    async def test_first_error_message_is_raised(self, gateway, harness):
        harness.add_graphql_response(
            "GetThing", errors=[{"message": "Issue not found"}, {"message": "second"}]
        )

        with pytest.raises(RemoteProtocolError) as exc_info:
            await gateway.execute("tok", QUERY)

        assert exc_info.value.message == "Issue not found"
        assert exc_info.value.kind == ErrorKind.REMOTE_PROTOCOL
        assert len(exc_info.value.errors) == 2

    @pytest.mark.asyncio
    async def test_error_without_message_uses_fallback(self, gateway, harness):
        harness.add_graphql_response("GetThing", errors=[{}])

        with pytest.raises(RemoteProtocolError, match="GraphQL error"):
            await gateway.execute("tok", QUERY)

    @pytest.mark.asyncio
    async def test_empty_errors_array_is_not_an_error(self, gateway, harness):
        harness.add_graphql_response("GetThing", data={"getThing": None}, errors=[])

        assert await gateway.execute("tok", QUERY) == {"getThing": None}

    @pytest.mark.asyncio
    async def test_http_failure_is_a_transport_error(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(401, json={"error": "Unauthorized"})
            )
        )
        gateway = GraphQLGateway(XrayTransport(BASE_URL, client=client))

        with pytest.raises(TransportError) as exc_info:
            await gateway.execute("tok", QUERY)

        assert exc_info.value.status_code == 401
        assert exc_info.value.remote_message == "Unauthorized"
