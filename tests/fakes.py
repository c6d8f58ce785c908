# tests/fakes.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""In-memory machine runtimes, surface and bindings used across the test suite."""

import asyncio
from typing import Any, Dict, List, Mapping, Optional

from statemodel.core.bindings import BindingObject, on_event
from statemodel.core.paths import flatten_state_value, state_value_from_key

# -----------------------------------------------------------------------------
# MACHINE DEFINITIONS
# -----------------------------------------------------------------------------


class MachineDefinition:
    """
    Minimal hierarchical machine: transitions are looked up from the leaf key
    upward, compound targets descend into their initial child.
    """

    def __init__(
        self,
        initial: str,
        transitions: Dict[str, Dict[str, str]],
        initials: Optional[Dict[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.initial = initial
        self.transitions = transitions
        self.initials = initials or {}
        self.context = context or {}

    def resolve(self, key: str) -> str:
        while key in self.initials:
            key = f"{key}.{self.initials[key]}"
        return key

    def next_key(self, current: str, event: str) -> Optional[str]:
        key = current
        while key:
            target = self.transitions.get(key, {}).get(event)
            if target is not None:
                return self.resolve(target)
            key = key.rpartition(".")[0]
        return None


def playwright_dev_definition(**kwargs) -> MachineDefinition:
    return MachineDefinition(
        initial="home",
        initials={"docs": "overview"},
        transitions={
            "home": {"NAVIGATE_TO_DOCS": "docs", "NAVIGATE_TO_API": "api"},
            "docs": {"NAVIGATE_TO_API": "api", "NAVIGATE_TO_HOME": "home"},
            "docs.overview": {"NAVIGATE_TO_GETTING_STARTED": "docs.gettingStarted"},
            "docs.gettingStarted": {"NAVIGATE_TO_OVERVIEW": "docs.overview"},
            "api": {"NAVIGATE_TO_DOCS": "docs", "NAVIGATE_TO_HOME": "home"},
        },
        **kwargs,
    )


# -----------------------------------------------------------------------------
# SNAPSHOT / ACTOR SHAPE
# -----------------------------------------------------------------------------


class FakeSnapshot:
    def __init__(self, value, context):
        self.value = value
        self.context = context


class FakeDryRunSnapshot(FakeSnapshot):
    def __init__(self, value, context, definition: MachineDefinition):
        super().__init__(value, context)
        self._definition = definition

    def can(self, event) -> bool:
        target = self._definition.next_key(flatten_state_value(self.value), event["type"])
        return target is not None and target != flatten_state_value(self.value)


class FakeActor:
    def __init__(self, definition: MachineDefinition, dry_run: bool = True):
        self.definition = definition
        self.dry_run = dry_run
        self.key = definition.resolve(definition.initial)
        self.context = dict(definition.context)
        self.started = False
        self.stopped = 0
        self.sent: List[Dict[str, Any]] = []

    def start(self):
        self.started = True
        return self

    def get_snapshot(self):
        value = state_value_from_key(self.key)
        if self.dry_run:
            return FakeDryRunSnapshot(value, self.context, self.definition)
        return FakeSnapshot(value, self.context)

    def send(self, event):
        self.sent.append(event)
        target = self.definition.next_key(self.key, event["type"])
        if target is not None:
            self.key = target

    def stop(self):
        self.stopped += 1


class SnapshotMachine:
    """Descriptor building actors, the newer runtime shape."""

    def __init__(self, definition: MachineDefinition, dry_run: bool = True):
        self.definition = definition
        self.dry_run = dry_run
        self.actors: List[FakeActor] = []

    def create_actor(self) -> FakeActor:
        actor = FakeActor(self.definition, dry_run=self.dry_run)
        self.actors.append(actor)
        return actor


# -----------------------------------------------------------------------------
# SERVICE SHAPE
# -----------------------------------------------------------------------------


class FakeState:
    def __init__(self, value, context, changed: bool = False):
        self.value = value
        self.context = context
        self.changed = changed


class FakeService:
    def __init__(self, definition: MachineDefinition):
        self.definition = definition
        self.key = definition.resolve(definition.initial)
        self.context = dict(definition.context)
        self.started = False
        self.stopped = 0
        self.sent: List[tuple] = []

    def start(self):
        self.started = True
        return self

    @property
    def state(self) -> FakeState:
        return FakeState(state_value_from_key(self.key), self.context)

    def next_state(self, event) -> FakeState:
        if isinstance(event, Mapping):
            event = event["type"]
        target = self.definition.next_key(self.key, event)
        if target is None:
            return FakeState(state_value_from_key(self.key), self.context, changed=False)
        return FakeState(state_value_from_key(target), self.context, changed=target != self.key)

    def send(self, event, payload=None):
        self.sent.append((event, payload))
        target = self.definition.next_key(self.key, event)
        if target is not None:
            self.key = target
        return self.state

    def stop(self):
        self.stopped += 1


class ServiceMachine:
    """Descriptor building services, the older runtime shape."""

    def __init__(self, definition: MachineDefinition):
        self.definition = definition
        self.services: List[FakeService] = []

    def interpret(self) -> FakeService:
        service = FakeService(self.definition)
        self.services.append(service)
        return service


# -----------------------------------------------------------------------------
# SURFACE AND BINDINGS
# -----------------------------------------------------------------------------


class FakeSurface:
    """Stands in for a browser page: a location, a trace log and screenshots."""

    def __init__(self, location: str = "/"):
        self.location = location
        self.log: List[tuple] = []
        self.screenshots: List[str] = []

    async def navigate(self, location: str, delay: float = 0) -> None:
        if delay:
            await asyncio.sleep(delay)
        self.location = location

    async def screenshot(self, path: str) -> None:
        self.screenshots.append(path)


class PageBinding(BindingObject):
    key = ""
    expected_location = ""

    async def validate(self) -> None:
        self.surface.log.append(("validate", self.key))
        if not self._matches(self.surface.location):
            raise AssertionError(f"expected {self.expected_location}, found {self.surface.location}")

    def _matches(self, location: str) -> bool:
        return location == self.expected_location

    async def goto(self) -> None:
        self.surface.log.append(("goto", self.key))
        await self.surface.navigate(self.expected_location)

    async def _go(self, event: str, location: str) -> None:
        self.surface.log.append(("handle", self.key, event))
        await self.surface.navigate(location, delay=(self.payload or {}).get("delay", 0))


class HomePage(PageBinding):
    key = "home"
    expected_location = "/"

    @on_event("NAVIGATE_TO_DOCS")
    async def open_docs(self):
        await self._go("NAVIGATE_TO_DOCS", "/docs")

    @on_event("NAVIGATE_TO_API")
    async def open_api(self):
        await self._go("NAVIGATE_TO_API", "/api")


class DocsPage(PageBinding):
    key = "docs"
    expected_location = "/docs"

    def _matches(self, location: str) -> bool:
        return location.startswith("/docs")

    @on_event("NAVIGATE_TO_API")
    async def open_api(self):
        await self._go("NAVIGATE_TO_API", "/api")

    @on_event("NAVIGATE_TO_HOME")
    async def open_home(self):
        await self._go("NAVIGATE_TO_HOME", "/")


class DocsOverviewPage(PageBinding):
    key = "docs.overview"
    expected_location = "/docs"

    @on_event("NAVIGATE_TO_GETTING_STARTED")
    async def open_getting_started(self):
        await self._go("NAVIGATE_TO_GETTING_STARTED", "/docs/intro")


class GettingStartedPage(PageBinding):
    key = "docs.gettingStarted"
    expected_location = "/docs/intro"

    @on_event("NAVIGATE_TO_OVERVIEW")
    async def open_overview(self):
        await self._go("NAVIGATE_TO_OVERVIEW", "/docs")


class ApiPage(PageBinding):
    key = "api"
    expected_location = "/api"

    @on_event("NAVIGATE_TO_DOCS")
    async def open_docs(self):
        await self._go("NAVIGATE_TO_DOCS", "/docs")

    @on_event("NAVIGATE_TO_HOME")
    async def open_home(self):
        await self._go("NAVIGATE_TO_HOME", "/")


PLAYWRIGHT_DEV_BINDINGS = {
    "home": HomePage,
    "docs": DocsPage,
    "docs.overview": DocsOverviewPage,
    "docs.gettingStarted": GettingStartedPage,
    "api": ApiPage,
}
