"""
Tests for weighted prompt generation.
"""

import random
from collections import Counter

from typing_tutor import ALPHABET, PROMPT_LENGTH, ErrorModel, PromptGenerator


def test_alphabet_is_printable_ascii_without_space() -> None:
    assert len(ALPHABET) == 94
    assert ALPHABET[0] == "!"
    assert ALPHABET[-1] == "~"
    assert " " not in ALPHABET


def test_prompt_length_and_alphabet(generator: PromptGenerator) -> None:
    for _ in range(20):
        prompt = generator.generate(ErrorModel())
        assert len(prompt) == PROMPT_LENGTH == 50
        assert set(prompt) <= set(ALPHABET)


def test_weights_baseline_is_one() -> None:
    generator = PromptGenerator()
    assert generator.weights(ErrorModel()) == [1] * len(ALPHABET)


def test_weight_uses_error_tier() -> None:
    model = ErrorModel({"a": 100, "b": 1, "c": 10, "d": 11})
    assert PromptGenerator.weight_for(model, "a") == 11
    assert PromptGenerator.weight_for(model, "b") == 2
    assert PromptGenerator.weight_for(model, "c") == 2
    assert PromptGenerator.weight_for(model, "d") == 3
    assert PromptGenerator.weight_for(model, "e") == 1


def test_same_seed_same_prompt() -> None:
    model = ErrorModel({"q": 40})
    first = PromptGenerator(random.Random(7)).generate(model)
    second = PromptGenerator(random.Random(7)).generate(model)
    assert first == second


def test_high_score_character_sampled_more(rng: random.Random) -> None:
    model = ErrorModel({"a": 100})
    generator = PromptGenerator(rng)
    counts: Counter = Counter()
    rounds = 200
    for _ in range(rounds):
        counts.update(generator.generate(model))

    total = rounds * PROMPT_LENGTH
    # weight 11 against 93 characters of weight 1
    expected_share = 11 / (11 + 93)
    assert abs(counts["a"] / total - expected_share) < 0.02
    assert counts["a"] > 5 * counts["b"]
