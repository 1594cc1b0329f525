"""
DI container unit tests
"""

import pytest

from escrowmail.core.di import Container


class TestContainer:
    def setup_method(self):
        Container.reset()

    def test_singleton_instance(self):
        assert Container.instance() is Container.instance()

    def test_reset_drops_instance(self):
        c1 = Container.instance()
        Container.reset()
        assert Container.instance() is not c1

    def test_register_and_resolve(self):
        container = Container()

        class MyService:
            pass

        container.register(MyService, lambda: MyService())
        assert isinstance(container.resolve(MyService), MyService)
        assert container.resolve(MyService) is not container.resolve(MyService)

    def test_singleton_returns_same_instance(self):
        container = Container()

        class MySingleton:
            pass

        container.register(MySingleton, lambda: MySingleton(), singleton=True)
        assert container.resolve(MySingleton) is container.resolve(MySingleton)

    def test_register_instance(self):
        container = Container()
        marker = object()
        container.register_instance(object, marker)
        assert container.has(object)
        assert container.resolve(object) is marker

    def test_reregister_replaces_cached_singleton(self):
        container = Container()
        container.register(dict, lambda: {"v": 1}, singleton=True)
        assert container.resolve(dict) == {"v": 1}
        container.register(dict, lambda: {"v": 2}, singleton=True)
        assert container.resolve(dict) == {"v": 2}

    def test_resolve_unregistered_raises(self):
        with pytest.raises(ValueError):
            Container().resolve(int)
