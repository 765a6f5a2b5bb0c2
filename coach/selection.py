"""Random selection from a pool while honouring exclusion rules."""

import random
from collections.abc import Callable, Collection, Hashable, Sequence
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

import config

T = TypeVar("T")


class SelectionExhausted(Exception):
    """Raised when no acceptable item was drawn within the attempt budget."""

    pass


def _never(item) -> bool:
    return False


def _identity(item):
    return item


@dataclass(frozen=True)
class SelectionPool(Generic[T]):
    """Candidates plus the rule that rejects some of them."""

    items: Sequence[T]
    is_excluded: Callable[[T], bool] = _never
    max_attempts: int = config.SELECTION_MAX_ATTEMPTS

    @classmethod
    def excluding(
        cls,
        items: Sequence[T],
        exclusions: Collection[Hashable],
        key: Callable[[T], Hashable] = _identity,
        max_attempts: int = config.SELECTION_MAX_ATTEMPTS,
    ) -> "SelectionPool[T]":
        """Pool whose exclusion rule is membership of ``key(item)`` in ``exclusions``."""
        excluded = frozenset(exclusions)
        return cls(
            items=items,
            is_excluded=lambda item: key(item) in excluded,
            max_attempts=max_attempts,
        )


def select(pool: SelectionPool[T], rng: Optional[random.Random] = None) -> T:
    """
    Draw random items until one is not excluded.

    Draws are independent, so the same item can come up more than once.

    Args:
        pool: Candidates, exclusion rule and attempt budget
        rng: Random source (defaults to a freshly seeded generator)

    Returns:
        The first accepted item

    Raises:
        SelectionExhausted: If the pool is empty or every draw was excluded
    """
    rng = rng or random.Random()
    if not pool.items:
        raise SelectionExhausted("Selection pool is empty")

    for _ in range(pool.max_attempts):
        candidate = rng.choice(pool.items)
        if not pool.is_excluded(candidate):
            return candidate

    raise SelectionExhausted(
        f"Could not find a valid item after {pool.max_attempts} attempts "
        "(all picked were excluded)"
    )


def sample_distinct(
    pool: SelectionPool[T],
    k: int,
    rng: Optional[random.Random] = None,
    key: Callable[[T], Hashable] = _identity,
) -> list[T]:
    """
    Pick up to ``k`` different items in random order.

    Excluded items are skipped and items sharing a ``key`` are only taken once.
    Fewer than ``k`` items are returned when the pool runs out.
    """
    rng = rng or random.Random()
    shuffled = list(pool.items)
    rng.shuffle(shuffled)

    chosen: list[T] = []
    seen: set = set()
    for item in shuffled:
        if len(chosen) >= k:
            break
        item_key = key(item)
        if item_key in seen or pool.is_excluded(item):
            continue
        seen.add(item_key)
        chosen.append(item)
    return chosen
