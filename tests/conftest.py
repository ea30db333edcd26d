"""Test configuration and fixtures."""

from pathlib import Path
from typing import Dict, Union

import pytest
import pytest_asyncio

from folio.config import Config
from folio.events import EventBus
from folio.host.base import DirectoryHandle
from folio.host.local import LocalAdapter
from folio.host.memory import MemoryAdapter
from folio.workspace import Workspace

TreeSpec = Dict[str, Union[str, bytes, "TreeSpec"]]


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config, sessions and recents out of the real home directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(home / ".local" / "share"))
    return home


@pytest.fixture
def fast_config(tmp_path) -> Config:
    """Config with short debounce windows and a private data directory."""
    return Config(auto_save_delay_ms=20, auto_rename_delay_ms=30, data_dir=tmp_path / "data")


@pytest.fixture
def memory_adapter() -> MemoryAdapter:
    return MemoryAdapter()


@pytest.fixture
def populate():
    """Return an async helper that builds a nested tree from a dict.

    String and bytes values become files, dict values become directories.
    """

    async def _populate(adapter, directory: DirectoryHandle, spec: TreeSpec) -> None:
        for name, value in spec.items():
            if isinstance(value, dict):
                child = await adapter.get_or_create_child_dir(directory, name, create=True)
                await _populate(adapter, child, value)
            else:
                handle = await adapter.get_or_create_child_file(directory, name, create=True)
                await adapter.write(handle, value)

    return _populate


class RecordingBus(EventBus):
    """EventBus that remembers everything emitted through it."""

    def __init__(self):
        super().__init__()
        self.received = []
        self.subscribe(self.received.append)

    def of(self, event_type) -> list:
        return [e for e in self.received if isinstance(e, event_type)]


@pytest.fixture
def events() -> RecordingBus:
    return RecordingBus()


@pytest_asyncio.fixture
async def memory_workspace(memory_adapter, fast_config, events):
    workspace = Workspace(memory_adapter, config=fast_config, bus=events)
    yield workspace
    await workspace.aclose()


@pytest.fixture
def disk_root(tmp_path) -> Path:
    root = tmp_path / "notes"
    root.mkdir()
    return root


@pytest.fixture
def local_adapter() -> LocalAdapter:
    return LocalAdapter()


@pytest.fixture
def cli_runner():
    """Create a CLI runner for testing."""
    from typer.testing import CliRunner

    return CliRunner()

