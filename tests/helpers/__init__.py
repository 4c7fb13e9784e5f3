"""Test helpers for DriveChat."""

from tests.helpers.fake_drive import FakeDrive
from tests.helpers.fakes import (
    FakeKeyringStore,
    InMemoryPersistence,
    ScriptedChatModel,
    StaticProviders,
)

__all__ = [
    "FakeDrive",
    "FakeKeyringStore",
    "InMemoryPersistence",
    "ScriptedChatModel",
    "StaticProviders",
]
