"""Shared test fixtures."""

import pytest

from helpers import ScriptedScorer
from reflection.controller import TurnController
from tasks.task_list import TaskList


@pytest.fixture()
def scorer():
    return ScriptedScorer()


@pytest.fixture()
def task_list():
    return TaskList()


@pytest.fixture()
def controller(scorer, task_list):
    return TurnController(scorer=scorer, task_list=task_list)
