"""
Seedable permutations for question ordering.

Shuffles are reproducible from a seed so a resumed attempt gets the same
order it was first shown.
"""
import random
from typing import Hashable, Optional, Sequence, TypeVar

T = TypeVar("T")


def shuffled(items: Sequence[T], seed: Optional[Hashable] = None) -> list[T]:
    """
    Return a new list holding a permutation of items.

    The input is left untouched. With a seed the permutation is deterministic
    (same seed and input produce the same output); without one it draws from
    a fresh generator.

    Args:
        items: Items to permute
        seed: Optional seed (int or str)

    Returns:
        Permuted copy of items
    """
    result = list(items)
    rng = random.Random(seed) if seed is not None else random.Random()
    rng.shuffle(result)
    return result


def attempt_seed(test_id: int, attempt_id: int) -> str:
    """Seed identifying the question order of one attempt."""
    return f"{test_id}:{attempt_id}"
