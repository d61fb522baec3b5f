"""Shared fixtures for the engine tests."""
import os

import pytest

from fsm_engine import FSM, FSMSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep FSM_* variables from the host out of the tests."""
    for key in list(os.environ):
        if key.startswith("FSM_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fsm():
    return FSM("test", settings=FSMSettings())


@pytest.fixture
def started(fsm):
    """An initialized machine with the default initial and final states."""
    return fsm.initialize()
