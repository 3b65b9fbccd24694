import pytest

from jobflow.v1.core.registries import JobRegistry, Registry


class EchoHandler:
    async def handle(self, job):
        return {"echo": job}


def test_registry_basic_operations():
    """Test basic registry register, get, list operations."""
    registry = Registry[str]("Test")

    assert registry.list() == []

    registry.register("test_impl", "test_value")
    assert registry.get("test_impl") == "test_value"
    assert registry.list() == ["test_impl"]
    assert "test_impl" in registry
    assert "other" not in registry

    with pytest.raises(KeyError, match="No test implementation registered"):
        registry.get("nonexistent")


def test_registry_last_write_wins():
    registry = Registry[str]("Test")

    registry.register("impl", "first")
    registry.register("impl", "second")

    assert registry.get("impl") == "second"
    assert registry.items() == [("impl", "second")]


def test_registry_freeze():
    registry = Registry[str]("Test")
    registry.register("impl1", "value1")

    assert not registry.is_frozen()
    registry.freeze()
    assert registry.is_frozen()

    with pytest.raises(RuntimeError, match="registry is frozen"):
        registry.register("impl2", "value2")

    # Reads still work
    assert registry.get("impl1") == "value1"


def test_job_registry_keys_handlers_by_queue_and_kind():
    registry = JobRegistry()
    handler = EchoHandler()

    registry.register_handler("shopify-orders", "order-created", handler)

    assert registry.get_handler("shopify-orders", "order-created") is handler
    assert registry.list() == ["shopify-orders:order-created"]

    with pytest.raises(KeyError):
        registry.get_handler("shopify-orders", "refund-created")


def test_registry_items_and_names_keep_registration_order():
    registry = Registry[int]("Test")
    registry.register("b", 2)
    registry.register("a", 1)

    assert registry.items() == [("b", 2), ("a", 1)]
    assert registry.list() == ["b", "a"]
    assert isinstance(registry.list(), list)
