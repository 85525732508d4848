"""
Tests for MCP tools - typed Portainer tools, generated argument models,
and dispatcher hardening (registration filtering, arg validation,
retry on transient, timeout, concurrency).
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from portainer_mcp.mcp_tools.environment_tools import EnvironmentTools, accesses_to_map
from portainer_mcp.mcp_tools.executor import (
    MCPToolDispatcher, _is_tool_transient, serialize_result,
)
from portainer_mcp.mcp_tools.group_tools import AccessGroupTools
from portainer_mcp.mcp_tools.team_tools import UserTools
from portainer_mcp.mcp_tools.tool_schemas import (
    build_args_model, to_snake, validate_arguments,
)
from portainer_mcp.shared.errors import (
    DuplicateToolError, InvalidArgumentsError, SchemaError, UpstreamUnreachableError,
)
from portainer_mcp.shared.models import CallRequest, EnvironmentTag, ErrorKind, ToolDefinition
from portainer_mcp.shared.tool_registry import ToolRegistry


# ═══════════════════════════════════════════════════════════════
# ARGUMENT MODELS
# ═══════════════════════════════════════════════════════════════

class TestToolSchemas:
    def test_to_snake(self):
        assert to_snake("tagIds") == "tag_ids"
        assert to_snake("environmentGroupIds") == "environment_group_ids"
        assert to_snake("id") == "id"

    def test_valid_args_become_snake_case(self, catalog):
        model = build_args_model("updateEnvironmentTags", catalog["updateEnvironmentTags"].input_schema)
        assert validate_arguments(model, {"id": 3, "tagIds": [1, 2]}) == {"id": 3, "tag_ids": [1, 2]}

    def test_missing_required(self, catalog):
        model = build_args_model("updateEnvironmentTags", catalog["updateEnvironmentTags"].input_schema)
        with pytest.raises(InvalidArgumentsError) as exc:
            validate_arguments(model, {"id": 3})
        assert exc.value.field == "tagIds"

    def test_wrong_type_is_not_coerced(self, catalog):
        model = build_args_model("getStackFile", catalog["getStackFile"].input_schema)
        with pytest.raises(InvalidArgumentsError) as exc:
            validate_arguments(model, {"id": "3"})
        assert exc.value.field == "id"

    def test_unknown_field_rejected(self, catalog):
        model = build_args_model("createTeam", catalog["createTeam"].input_schema)
        with pytest.raises(InvalidArgumentsError) as exc:
            validate_arguments(model, {"name": "devs", "color": "blue"})
        assert exc.value.field == "color"

    def test_enum_enforced(self, catalog):
        model = build_args_model("updateUserRole", catalog["updateUserRole"].input_schema)
        with pytest.raises(InvalidArgumentsError):
            validate_arguments(model, {"id": 1, "role": "superuser"})
        assert validate_arguments(model, {"id": 1, "role": "edge_admin"})["role"] == "edge_admin"

    def test_nested_access_objects(self, catalog):
        schema = catalog["updateEnvironmentUserAccesses"].input_schema
        model = build_args_model("updateEnvironmentUserAccesses", schema)
        args = validate_arguments(model, {"id": 1, "userAccesses": [{"id": 7, "access": "readonly_user"}]})
        assert args == {"id": 1, "user_accesses": [{"id": 7, "access": "readonly_user"}]}
        with pytest.raises(InvalidArgumentsError) as exc:
            validate_arguments(model, {"id": 1, "userAccesses": [{"id": 7, "access": "root"}]})
        assert exc.value.field.startswith("userAccesses.0")

    def test_optional_omitted_is_not_returned(self, catalog):
        model = build_args_model("createAccessGroup", catalog["createAccessGroup"].input_schema)
        assert validate_arguments(model, {"name": "ops"}) == {"name": "ops"}

    def test_none_arguments_means_empty(self, catalog):
        model = build_args_model("listUsers", catalog["listUsers"].input_schema)
        assert validate_arguments(model, None) == {}

    def test_every_catalog_schema_builds(self, catalog):
        for name, definition in catalog.items():
            build_args_model(name, definition.input_schema)


# ═══════════════════════════════════════════════════════════════
# TYPED TOOLS
# ═══════════════════════════════════════════════════════════════

class TestTypedTools:
    @pytest.mark.asyncio
    async def test_create_tag_reports_id(self, mock_client):
        mock_client.create_environment_tag.return_value = 42
        result = await EnvironmentTools(mock_client).create_environment_tag(name="prod")
        assert result == "Environment tag created successfully with ID: 42"
        mock_client.create_environment_tag.assert_awaited_once_with("prod")

    @pytest.mark.asyncio
    async def test_user_accesses_become_map(self, mock_client):
        tools = EnvironmentTools(mock_client)
        await tools.update_environment_user_accesses(
            id=3, user_accesses=[{"id": 7, "access": "readonly_user"}, {"id": 8, "access": "operator_user"}],
        )
        mock_client.update_environment_user_accesses.assert_awaited_once_with(
            3, {7: "readonly_user", 8: "operator_user"},
        )

    def test_accesses_to_map(self):
        assert accesses_to_map([]) == {}

    @pytest.mark.asyncio
    async def test_create_access_group_defaults_to_no_environments(self, mock_client):
        mock_client.create_access_group.return_value = 9
        await AccessGroupTools(mock_client).create_access_group(name="ops")
        mock_client.create_access_group.assert_awaited_once_with("ops", [])

    @pytest.mark.asyncio
    async def test_update_user_role(self, mock_client):
        assert await UserTools(mock_client).update_user_role(id=2, role="admin") == "User role updated successfully"
        mock_client.update_user_role.assert_awaited_once_with(2, "admin")


class TestSerializeResult:
    def test_none_is_empty(self):
        assert serialize_result(None) == []

    def test_empty_list(self):
        assert serialize_result([]) == ["[]"]

    def test_list_one_block_per_item(self):
        blocks = serialize_result([EnvironmentTag(id=1, name="a"), EnvironmentTag(id=2, name="b")])
        assert [json.loads(b)["id"] for b in blocks] == [1, 2]

    def test_string_passthrough(self):
        assert serialize_result("done") == ["done"]

    def test_dict_single_block(self):
        assert json.loads(serialize_result({"statusCode": 200})[0]) == {"statusCode": 200}


# ═══════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════

class TestToolRegistry:
    def test_register_and_lookup(self, small_catalog):
        registry = ToolRegistry()
        handler = AsyncMock()
        registry.register(small_catalog["listThings"], handler)
        assert "listThings" in registry
        assert registry.get("listThings").handler is handler
        assert registry.get("nope") is None
        assert len(registry) == 1

    def test_duplicate_rejected(self, small_catalog):
        registry = ToolRegistry()
        registry.register(small_catalog["listThings"], AsyncMock())
        with pytest.raises(DuplicateToolError):
            registry.register(small_catalog["listThings"], AsyncMock())

    def test_definitions_sorted(self, small_catalog):
        registry = ToolRegistry()
        registry.register(small_catalog["listThings"], AsyncMock())
        registry.register(small_catalog["createThing"], AsyncMock())
        assert [d.name for d in registry.definitions()] == ["createThing", "listThings"]


# ═══════════════════════════════════════════════════════════════
# DISPATCHER
# ═══════════════════════════════════════════════════════════════

def _dispatcher(catalog, guard, **handlers):
    dispatcher = MCPToolDispatcher(catalog, guard, tool_timeout_seconds=1, proxy_timeout_seconds=1)
    for name, handler in handlers.items():
        dispatcher.register_if_present(name, handler)
    return dispatcher


class TestRegistration:
    def test_registers_declared_tools(self, small_catalog, guard):
        dispatcher = _dispatcher(small_catalog, guard, listThings=AsyncMock(), createThing=AsyncMock())
        assert [d.name for d in dispatcher.get_tool_definitions()] == ["createThing", "listThings"]

    def test_skips_tool_missing_from_catalog(self, small_catalog, guard):
        dispatcher = MCPToolDispatcher(small_catalog, guard)
        assert dispatcher.register_if_present("deleteEverything", AsyncMock()) is False
        assert len(dispatcher.registry) == 0

    def test_read_only_hides_mutating_tools(self, small_catalog, read_only_guard):
        dispatcher = _dispatcher(small_catalog, read_only_guard, listThings=AsyncMock(), createThing=AsyncMock())
        assert [d.name for d in dispatcher.get_tool_definitions()] == ["listThings"]

    def test_catalog_entry_without_handler_is_not_listed(self, small_catalog, guard):
        dispatcher = _dispatcher(small_catalog, guard, listThings=AsyncMock())
        assert "createThing" not in dispatcher.registry

    def test_unusable_schema_is_schema_error(self, guard):
        catalog = {"bad": ToolDefinition(
            name="bad", description="",
            input_schema={"type": "object", "properties": {"x": {"type": "string", "enum": []}}},
        )}
        with pytest.raises(SchemaError):
            MCPToolDispatcher(catalog, guard).register_if_present("bad", AsyncMock())

    def test_listing_is_idempotent(self, small_catalog, guard):
        dispatcher = _dispatcher(small_catalog, guard, listThings=AsyncMock(), createThing=AsyncMock())
        assert dispatcher.get_tool_definitions() == dispatcher.get_tool_definitions()


class TestDispatch:
    @pytest.mark.asyncio
    async def test_success(self, small_catalog, guard):
        handler = AsyncMock(return_value="Thing created successfully with ID: 1")
        dispatcher = _dispatcher(small_catalog, guard, createThing=handler)
        result = await dispatcher.dispatch(CallRequest("createThing", {"name": "a", "tagIds": [1]}))
        assert result.success is True
        assert result.content == ["Thing created successfully with ID: 1"]
        handler.assert_awaited_once_with(name="a", tag_ids=[1])

    @pytest.mark.asyncio
    async def test_unknown_tool(self, small_catalog, guard):
        dispatcher = _dispatcher(small_catalog, guard, listThings=AsyncMock())
        result = await dispatcher.dispatch(CallRequest("dropDatabase", {}))
        assert result.error.kind == ErrorKind.UNKNOWN_TOOL
        assert "dropDatabase" in result.error.message

    @pytest.mark.asyncio
    async def test_filtered_tool_is_unknown_in_read_only(self, small_catalog, read_only_guard):
        handler = AsyncMock()
        dispatcher = _dispatcher(small_catalog, read_only_guard, listThings=AsyncMock(), createThing=handler)
        result = await dispatcher.dispatch(CallRequest("createThing", {"name": "a"}))
        assert result.error.kind == ErrorKind.UNKNOWN_TOOL
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_arguments_never_reach_handler(self, small_catalog, guard):
        handler = AsyncMock()
        dispatcher = _dispatcher(small_catalog, guard, createThing=handler)
        result = await dispatcher.dispatch(CallRequest("createThing", {"name": 7}))
        assert result.error.kind == ErrorKind.INVALID_ARGUMENTS
        assert result.error.field == "name"
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_failure(self, small_catalog, guard):
        handler = AsyncMock(side_effect=RuntimeError("Portainer API error (HTTP 404): not found"))
        dispatcher = _dispatcher(small_catalog, guard, createThing=handler)
        result = await dispatcher.dispatch(CallRequest("createThing", {"name": "a"}))
        assert result.error.kind == ErrorKind.HANDLER_FAILURE
        assert "not found" in result.error.message

    @pytest.mark.asyncio
    async def test_dispatch_error_keeps_its_kind(self, small_catalog, guard):
        handler = AsyncMock(side_effect=UpstreamUnreachableError("down"))
        dispatcher = _dispatcher(small_catalog, guard, listThings=handler)
        result = await dispatcher.dispatch(CallRequest("listThings", {}))
        assert result.error.kind == ErrorKind.UPSTREAM_UNREACHABLE

    @pytest.mark.asyncio
    async def test_retries_transient_failure_for_read_tools(self, small_catalog, guard):
        handler = AsyncMock(side_effect=[ConnectionError("connection reset"), ["ok"]])
        dispatcher = _dispatcher(small_catalog, guard, listThings=handler)
        with patch("portainer_mcp.mcp_tools.executor.TOOL_BACKOFF_SECONDS", 0):
            result = await dispatcher.dispatch(CallRequest("listThings", {}))
        assert result.success is True
        assert handler.await_count == 2

    @pytest.mark.asyncio
    async def test_mutating_tools_are_not_retried(self, small_catalog, guard):
        handler = AsyncMock(side_effect=ConnectionError("connection reset"))
        dispatcher = _dispatcher(small_catalog, guard, createThing=handler)
        result = await dispatcher.dispatch(CallRequest("createThing", {"name": "a"}))
        assert result.error.kind == ErrorKind.HANDLER_FAILURE
        assert handler.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout(self, small_catalog, guard):
        async def slow():
            await asyncio.sleep(10)

        dispatcher = MCPToolDispatcher(small_catalog, guard, tool_timeout_seconds=0.05)
        dispatcher.register_if_present("listThings", slow)
        with patch("portainer_mcp.mcp_tools.executor.TOOL_BACKOFF_SECONDS", 0):
            result = await dispatcher.dispatch(CallRequest("listThings", {}))
        assert result.error.kind == ErrorKind.HANDLER_FAILURE
        assert "timed out" in result.error.message

    @pytest.mark.asyncio
    async def test_backend_timeout_is_not_reported_as_dispatch_timeout(self, small_catalog, guard):
        handler = AsyncMock(side_effect=asyncio.TimeoutError())
        dispatcher = _dispatcher(small_catalog, guard, listThings=handler)
        with patch("portainer_mcp.mcp_tools.executor.TOOL_BACKOFF_SECONDS", 0):
            result = await dispatcher.dispatch(CallRequest("listThings", {}))
        assert result.error.kind == ErrorKind.HANDLER_FAILURE
        assert result.error.message == "backend request timed out"
        assert handler.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_calls_do_not_interfere(self, small_catalog, guard):
        async def create(name, tag_ids=None):
            await asyncio.sleep(0.01)
            return f"created {name}"

        dispatcher = _dispatcher(small_catalog, guard, createThing=create)
        results = await asyncio.gather(*[
            dispatcher.dispatch(CallRequest("createThing", {"name": f"t{i}"})) for i in range(20)
        ])
        assert [r.content for r in results] == [[f"created t{i}"] for i in range(20)]


class TestTransientDetection:
    def test_transient(self):
        assert _is_tool_transient("Connection reset by peer") is True
        assert _is_tool_transient("HTTP 503") is True

    def test_not_transient(self):
        assert _is_tool_transient("Portainer API error (HTTP 404): not found") is False
