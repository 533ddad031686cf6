"""
Tests for the in-process action registry.
"""

import pytest

from oja.assistant.actions import ActionRegistry
from oja.assistant.adapters import ActionExecutor, ExecutionResult


@pytest.fixture
def registry():
    return ActionRegistry()


class TestActionRegistry:
    """Tests for ActionRegistry."""

    def test_satisfies_protocol(self, registry):
        assert isinstance(registry, ActionExecutor)

    def test_register_and_names(self, registry):
        registry.register("b_action", lambda: "b")
        registry.register("a_action", lambda: "a", "First")
        assert registry.names() == ["a_action", "b_action"]
        assert registry.get("a_action").description == "First"
        assert registry.get("missing") is None

    def test_decorator_returns_function(self, registry):
        @registry.action("ping")
        def ping():
            return "pong"

        assert ping() == "pong"
        assert registry.get("ping").function is ping

    @pytest.mark.asyncio
    async def test_sync_handler(self, registry):
        registry.register("add_pantry_item", lambda name: f"Added {name}")
        result = await registry.execute("add_pantry_item", {"name": "rice"})
        assert result == ExecutionResult.ok("Added rice")

    @pytest.mark.asyncio
    async def test_async_handler(self, registry):
        async def create(name):
            return ExecutionResult.ok(f"Created {name}")

        registry.register("create_shopping_list", create)
        result = await registry.execute("create_shopping_list", {"name": "Party"})
        assert result.message == "Created Party"

    @pytest.mark.asyncio
    async def test_none_result(self, registry):
        registry.register("noop", lambda: None)
        result = await registry.execute("noop", {})
        assert result.success
        assert result.message == ""

    @pytest.mark.asyncio
    async def test_unknown_action(self, registry):
        result = await registry.execute("launch_rocket", {})
        assert not result.success
        assert result.reason == "Unknown action: launch_rocket"

    @pytest.mark.asyncio
    async def test_handler_exception(self, registry):
        def broken(**_):
            raise LookupError("List not found")

        registry.register("add_items_to_list", broken)
        result = await registry.execute("add_items_to_list", {"listName": "Nope"})
        assert not result.success
        assert result.reason == "List not found"

    @pytest.mark.asyncio
    async def test_bad_params(self, registry):
        registry.register("add_pantry_item", lambda name: name)
        result = await registry.execute("add_pantry_item", {"colour": "red"})
        assert not result.success
