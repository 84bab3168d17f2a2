from datetime import date

import pytest

from study_progression.models.profile import Profile
from study_progression.progression.engine import ProgressionEngine


class StubRandom:
    """Returns queued values from random(), then repeats the last one."""

    def __init__(self, *values: float):
        self.values = list(values)
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        if len(self.values) > 1:
            return self.values.pop(0)
        return self.values[0]


@pytest.fixture
def engine():
    return ProgressionEngine()


@pytest.fixture
def profile():
    return Profile.new("student_1")


@pytest.fixture
def day1():
    return date(2026, 3, 2)
