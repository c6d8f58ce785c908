# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest
import pytest_asyncio

from statemodel.core.registry import BindingRegistry
from statemodel.runtime.executor import ModelExecutor
from tests.fakes import (
    PLAYWRIGHT_DEV_BINDINGS,
    FakeSurface,
    ServiceMachine,
    SnapshotMachine,
    playwright_dev_definition,
)


def pytest_configure(config):
    """Register custom marks."""
    config.addinivalue_line("markers", "property: mark test as a property-based test")


@pytest.fixture
def surface():
    """A surface sitting on the home page."""
    return FakeSurface("/")


@pytest.fixture
def definition():
    """The playwright.dev navigation machine."""
    return playwright_dev_definition()


@pytest.fixture
def registry(surface):
    """A registry with every playwright.dev binding registered."""
    reg = BindingRegistry(surface)
    reg.register_many(PLAYWRIGHT_DEV_BINDINGS)
    return reg


@pytest.fixture(params=["snapshot", "service"])
def machine(request, definition):
    """The machine descriptor, in each supported runtime shape."""
    if request.param == "snapshot":
        return SnapshotMachine(definition)
    return ServiceMachine(definition)


@pytest_asyncio.fixture
async def executor(surface, machine, registry):
    """An executor over the playwright.dev machine, disposed after the test."""
    ex = ModelExecutor(surface, machine, registry)
    yield ex
    ex.dispose()
