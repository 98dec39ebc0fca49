"""Shared fixtures for pairtok tests."""

import pytest

from pairtok import disable_progress, enable_progress


SAMPLE_TEXT = (
    "The quick brown fox jumps over the lazy dog. "
    "The dog sleeps while the fox runs through the forest. "
    "Foxes and dogs, dogs and foxes: the story repeats itself. "
) * 4


@pytest.fixture(autouse=True)
def quiet_progress():
    """Keep periodic training progress logs out of test output."""
    disable_progress()
    yield
    enable_progress()


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_TEXT
