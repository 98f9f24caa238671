import random
from pathlib import Path

import pytest

from typing_tutor import JsonErrorStore, MemoryErrorStore, PromptGenerator


class RepeatingRandom:
    """Stands in for random.Random; every draw returns the same character."""

    def __init__(self, char: str = "a") -> None:
        self.char = char

    def choices(self, population, weights=None, k=1):
        return [self.char] * k


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def generator(rng: random.Random) -> PromptGenerator:
    return PromptGenerator(rng)


@pytest.fixture
def a_generator() -> PromptGenerator:
    """Generator whose prompts are all 'a'."""
    return PromptGenerator(RepeatingRandom("a"))


@pytest.fixture
def memory_store() -> MemoryErrorStore:
    return MemoryErrorStore()


@pytest.fixture
def json_store(tmp_path: Path) -> JsonErrorStore:
    return JsonErrorStore.in_dir(tmp_path)
