import pytest

from catch2adapter.runtime.emitter import EventEmitter

from catch2_fakes import EventRecorder, FakeFileSystem, FakeSpawner


@pytest.fixture
def fake_fs() -> FakeFileSystem:
    return FakeFileSystem()


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def emitter() -> EventEmitter:
    return EventEmitter()


@pytest.fixture
def recorder(emitter: EventEmitter) -> EventRecorder:
    return EventRecorder().attach(emitter)
