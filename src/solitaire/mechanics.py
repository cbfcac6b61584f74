from typing import Callable, Optional, Sequence, Union

from solitaire import common as C

PairValidator = Callable[[C.Card, C.Card], bool]
PileTop = Union[None, C.Card, Sequence[C.Card]]


def same_color(a: C.Card, b: C.Card) -> bool:
    return C.is_red(a.suit) == C.is_red(b.suit)


def alternating_colors(a: C.Card, b: C.Card) -> bool:
    return not same_color(a, b)


def _top_of(pile: PileTop) -> Optional[C.Card]:
    if pile is None or isinstance(pile, C.Card):
        return pile
    return pile[-1] if len(pile) else None


def can_stack_descending(
    candidate: C.Card,
    target: PileTop,
    *,
    require_alternating_colors: bool = True,
    allow_empty_target: bool = True,
) -> bool:
    """
    True when ``candidate`` may be placed on ``target`` in a tableau column.
    ``target`` is the column's top card, the column itself, or None when empty.
    """
    top = _top_of(target)
    if top is None:
        return allow_empty_target
    if candidate.rank != top.rank - 1:
        return False
    return alternating_colors(candidate, top) or not require_alternating_colors


def can_stack_on_foundation(
    candidate: C.Card,
    pile: PileTop,
    *,
    require_same_suit: bool = True,
) -> bool:
    top = _top_of(pile)
    if top is None:
        return candidate.rank == 1
    if candidate.rank != top.rank + 1:
        return False
    return candidate.suit == top.suit or not require_same_suit


def is_valid_sequence(cards: Sequence[C.Card], pair_validator: PairValidator) -> bool:
    """Each card must satisfy ``pair_validator(card, card_below_it)``."""
    return all(pair_validator(cards[i + 1], cards[i]) for i in range(len(cards) - 1))


def is_valid_tableau_sequence(cards: Sequence[C.Card]) -> bool:
    return is_valid_sequence(cards, can_stack_descending)


def is_valid_foundation(pile: Sequence[C.Card]) -> bool:
    """Ace first, then one suit building up by one."""
    return all(can_stack_on_foundation(card, pile[:i]) for i, card in enumerate(pile))


def movable_run_length(column: Sequence[C.Card], limit: Optional[int] = None) -> int:
    """Length of the longest legal tableau run at the top of ``column``.

    ``limit`` caps how far down the column is inspected (e.g. face-up cards only).
    """
    available = len(column) if limit is None else min(limit, len(column))
    if available == 0:
        return 0
    n = 1
    while n < available and can_stack_descending(column[-n], column[-n - 1]):
        n += 1
    return n


def max_movable(empty_free_cells: int, empty_columns: int) -> int:
    """
    Number of cards that can move as one unit.
    ``empty_columns`` must already exclude the destination column.
    """
    if empty_free_cells < 0 or empty_columns < 0:
        raise ValueError(
            f"Resource counts must be >= 0 (free cells={empty_free_cells}, columns={empty_columns})"
        )
    return (empty_free_cells + 1) * (2 ** empty_columns)
