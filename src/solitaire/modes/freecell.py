"""FreeCell: eight open columns, four free cells, four foundations.

Every function here takes a :class:`FreeCellState` and returns a new one
(or ``None`` when the move is not legal); states are never changed in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from solitaire import common as C
from solitaire import mechanics as M
from solitaire.modes.base_game import GameActions, GameLayout, GameMetadata, Occupant, replace_at

logger = logging.getLogger(__name__)

TABLEAU_COLUMNS = 8
FREE_CELLS = 4
FOUNDATIONS = 4
# First four columns get seven cards, the rest six
DEAL_PATTERN = (7, 7, 7, 7, 6, 6, 6, 6)

Column = Tuple[C.Card, ...]
Move = Tuple[C.Location, C.Location]


@dataclass(frozen=True)
class FreeCellState:
    tableau: Tuple[Column, ...]
    free_cells: Tuple[Optional[C.Card], ...]
    foundations: Tuple[Column, ...]
    seed: int
    moves: int = 0

    def all_cards(self) -> List[C.Card]:
        out: List[C.Card] = [card for col in self.tableau for card in col]
        out.extend(card for card in self.free_cells if card is not None)
        out.extend(card for pile in self.foundations for card in pile)
        return out


def deal(seed: Optional[int] = None) -> FreeCellState:
    if seed is None:
        seed = C.new_seed()
    deck = C.shuffle_with_seed(C.make_deck(), seed)
    columns = []
    pos = 0
    for size in DEAL_PATTERN:
        columns.append(tuple(deck[pos:pos + size]))
        pos += size
    logger.info("Dealt FreeCell game #%s", seed)
    return FreeCellState(
        tableau=tuple(columns),
        free_cells=(None,) * FREE_CELLS,
        foundations=((),) * FOUNDATIONS,
        seed=seed,
    )


# ----- Rules -----

def _can_stack_tableau(card: C.Card, column: Sequence[C.Card]) -> bool:
    return M.can_stack_descending(card, column)


def _can_move_to_foundation(card: C.Card, pile: Sequence[C.Card]) -> bool:
    return M.can_stack_on_foundation(card, pile)


def _check_index(index: int, count: int, what: str) -> None:
    if not 0 <= index < count:
        raise IndexError(f"{what} index {index} out of range (0..{count - 1})")


def _advance(state: FreeCellState, **changes: Any) -> FreeCellState:
    return replace(state, moves=state.moves + 1, **changes)


def empty_free_cells(state: FreeCellState) -> int:
    return sum(1 for card in state.free_cells if card is None)


def empty_columns(state: FreeCellState, exclude: Optional[int] = None) -> int:
    return sum(1 for i, col in enumerate(state.tableau) if not col and i != exclude)


def max_movable_for(state: FreeCellState, target_index: int) -> int:
    """Run size that may move onto column ``target_index`` (never counted as spare)."""
    _check_index(target_index, TABLEAU_COLUMNS, "Tableau")
    return M.max_movable(empty_free_cells(state), empty_columns(state, exclude=target_index))


# ----- Moves -----

def move_to_free_cell(state: FreeCellState, column: int, cell: int) -> Optional[FreeCellState]:
    _check_index(column, TABLEAU_COLUMNS, "Tableau")
    _check_index(cell, FREE_CELLS, "Free cell")
    src = state.tableau[column]
    if not src or state.free_cells[cell] is not None:
        return None
    return _advance(
        state,
        tableau=replace_at(state.tableau, column, src[:-1]),
        free_cells=replace_at(state.free_cells, cell, src[-1]),
    )


def move_from_free_cell(state: FreeCellState, cell: int, column: int) -> Optional[FreeCellState]:
    _check_index(cell, FREE_CELLS, "Free cell")
    _check_index(column, TABLEAU_COLUMNS, "Tableau")
    card = state.free_cells[cell]
    dst = state.tableau[column]
    if card is None or not _can_stack_tableau(card, dst):
        return None
    return _advance(
        state,
        tableau=replace_at(state.tableau, column, dst + (card,)),
        free_cells=replace_at(state.free_cells, cell, None),
    )


def move_tableau_to_foundation(state: FreeCellState, column: int, foundation: int) -> Optional[FreeCellState]:
    _check_index(column, TABLEAU_COLUMNS, "Tableau")
    _check_index(foundation, FOUNDATIONS, "Foundation")
    src = state.tableau[column]
    pile = state.foundations[foundation]
    if not src or not _can_move_to_foundation(src[-1], pile):
        return None
    return _advance(
        state,
        tableau=replace_at(state.tableau, column, src[:-1]),
        foundations=replace_at(state.foundations, foundation, pile + (src[-1],)),
    )


def move_free_cell_to_foundation(state: FreeCellState, cell: int, foundation: int) -> Optional[FreeCellState]:
    _check_index(cell, FREE_CELLS, "Free cell")
    _check_index(foundation, FOUNDATIONS, "Foundation")
    card = state.free_cells[cell]
    pile = state.foundations[foundation]
    if card is None or not _can_move_to_foundation(card, pile):
        return None
    return _advance(
        state,
        free_cells=replace_at(state.free_cells, cell, None),
        foundations=replace_at(state.foundations, foundation, pile + (card,)),
    )


def move_foundation_to_tableau(state: FreeCellState, foundation: int, column: int) -> Optional[FreeCellState]:
    _check_index(foundation, FOUNDATIONS, "Foundation")
    _check_index(column, TABLEAU_COLUMNS, "Tableau")
    pile = state.foundations[foundation]
    dst = state.tableau[column]
    if not pile or not _can_stack_tableau(pile[-1], dst):
        return None
    return _advance(
        state,
        tableau=replace_at(state.tableau, column, dst + (pile[-1],)),
        foundations=replace_at(state.foundations, foundation, pile[:-1]),
    )


def move_foundation_to_free_cell(state: FreeCellState, foundation: int, cell: int) -> Optional[FreeCellState]:
    _check_index(foundation, FOUNDATIONS, "Foundation")
    _check_index(cell, FREE_CELLS, "Free cell")
    pile = state.foundations[foundation]
    if not pile or state.free_cells[cell] is not None:
        return None
    return _advance(
        state,
        free_cells=replace_at(state.free_cells, cell, pile[-1]),
        foundations=replace_at(state.foundations, foundation, pile[:-1]),
    )


def move_cards_to_tableau(state: FreeCellState, src: int, count: int, dst: int) -> Optional[FreeCellState]:
    """Move the top ``count`` cards of column ``src`` onto column ``dst`` as one run."""
    _check_index(src, TABLEAU_COLUMNS, "Tableau")
    _check_index(dst, TABLEAU_COLUMNS, "Tableau")
    column = state.tableau[src]
    if count < 1 or count > len(column):
        raise ValueError(f"Cannot take {count} cards from a column of {len(column)}")
    if src == dst:
        return None
    run = column[-count:]
    if not M.is_valid_tableau_sequence(run):
        return None
    if count > max_movable_for(state, dst):
        return None
    target = state.tableau[dst]
    if not _can_stack_tableau(run[0], target):
        return None
    tableau = replace_at(state.tableau, src, column[:-count])
    return _advance(state, tableau=replace_at(tableau, dst, target + run))


def _run_lengths(state: FreeCellState, column: int) -> range:
    # Longest legal run first, down to the single top card
    return range(M.movable_run_length(state.tableau[column]), 0, -1)


def execute_move(state: FreeCellState, src: C.Location, dst: C.Location) -> Optional[FreeCellState]:
    """
    Apply the move described by two Locations.
    An unqualified tableau source moving to another column takes the longest
    run that is legal there; every other unqualified source moves one card.
    """
    _LAYOUT.check(src)
    _LAYOUT.check(dst)
    if src.kind == C.TABLEAU:
        column = state.tableau[src.index]
        if not column:
            return None
        count = src.count_for(len(column))
        if dst.kind == C.TABLEAU:
            if count is not None:
                return move_cards_to_tableau(state, src.index, count, dst.index)
            for n in _run_lengths(state, src.index):
                new_state = move_cards_to_tableau(state, src.index, n, dst.index)
                if new_state is not None:
                    return new_state
            return None
        if count not in (None, 1):
            return None
        if dst.kind == C.FOUNDATION:
            return move_tableau_to_foundation(state, src.index, dst.index)
        if dst.kind == C.FREE_CELL:
            return move_to_free_cell(state, src.index, dst.index)
        return None

    if src.kind == C.FREE_CELL:
        if state.free_cells[src.index] is None or src.count_for(1) not in (None, 1):
            return None
        if dst.kind == C.TABLEAU:
            return move_from_free_cell(state, src.index, dst.index)
        if dst.kind == C.FOUNDATION:
            return move_free_cell_to_foundation(state, src.index, dst.index)
        return None

    if src.kind == C.FOUNDATION:
        pile = state.foundations[src.index]
        if not pile or src.count_for(len(pile)) not in (None, 1):
            return None
        if dst.kind == C.TABLEAU:
            return move_foundation_to_tableau(state, src.index, dst.index)
        if dst.kind == C.FREE_CELL:
            return move_foundation_to_free_cell(state, src.index, dst.index)
        return None

    return None


def _single_card_source(state: FreeCellState, src: C.Location) -> bool:
    if src.kind == C.TABLEAU:
        column = state.tableau[src.index]
        return bool(column) and src.count_for(len(column)) in (None, 1)
    return True


def get_valid_moves(state: FreeCellState, src: C.Location) -> List[C.Location]:
    """Destinations reachable from ``src``: columns, then foundations, then free cells."""
    _LAYOUT.check(src)
    out: List[C.Location] = []
    for i in range(TABLEAU_COLUMNS):
        if src.kind == C.TABLEAU and src.index == i:
            continue
        dst = C.Location(C.TABLEAU, i)
        if execute_move(state, src, dst) is not None:
            out.append(dst)
    if not _single_card_source(state, src):
        return out
    for i in range(FOUNDATIONS):
        if src.kind == C.FOUNDATION and src.index == i:
            continue
        dst = C.Location(C.FOUNDATION, i)
        if execute_move(state, src, dst) is not None:
            out.append(dst)
    if src.kind != C.FREE_CELL:
        for i in range(FREE_CELLS):
            dst = C.Location(C.FREE_CELL, i)
            if execute_move(state, src, dst) is not None:
                out.append(dst)
    return out


# ----- Auto moves, hints, win -----

def _foundation_for(state: FreeCellState, card: C.Card) -> Optional[int]:
    home = C.SUITS.index(card.suit)
    order = [home] + [i for i in range(FOUNDATIONS) if i != home]
    for i in order:
        if _can_move_to_foundation(card, state.foundations[i]):
            return i
    return None


def _is_safe_for_foundation(state: FreeCellState, card: C.Card) -> bool:
    lowest = min(pile[-1].rank if pile else 0 for pile in state.foundations)
    return card.rank <= lowest + 2


def find_safe_auto_move(state: FreeCellState) -> Optional[Move]:
    """First card (free cells before columns) that can go home without being needed later."""
    sources: List[Tuple[C.Location, Optional[C.Card]]] = [
        (C.Location(C.FREE_CELL, i), card) for i, card in enumerate(state.free_cells)
    ]
    sources.extend(
        (C.Location(C.TABLEAU, i), col[-1] if col else None) for i, col in enumerate(state.tableau)
    )
    for loc, card in sources:
        if card is None or not _is_safe_for_foundation(state, card):
            continue
        target = _foundation_for(state, card)
        if target is not None:
            return loc, C.Location(C.FOUNDATION, target)
    return None


def auto_to_foundations(state: FreeCellState) -> Tuple[FreeCellState, List[Move]]:
    applied: List[Move] = []
    while True:
        move = find_safe_auto_move(state)
        if move is None:
            return state, applied
        new_state = execute_move(state, *move)
        if new_state is None:
            return state, applied
        state = new_state
        applied.append(move)


def lowest_playable_cards(state: FreeCellState) -> List[str]:
    """Ids of the next card each suit needs on the foundations, wherever they sit."""
    needed = {suit: 1 for suit in C.SUITS}
    for pile in state.foundations:
        if pile:
            needed[pile[-1].suit] = pile[-1].rank + 1
    wanted = {C.Card(suit, rank).id for suit, rank in needed.items() if rank <= 13}
    found = [card.id for card in state.free_cells if card is not None and card.id in wanted]
    found.extend(card.id for col in state.tableau for card in col if card.id in wanted)
    return found


def hint(state: FreeCellState) -> Optional[Move]:
    """Suggest a foundation move if one exists, else the first column-to-column move."""
    sources = [C.Location(C.FREE_CELL, i) for i in range(FREE_CELLS) if state.free_cells[i] is not None]
    sources.extend(C.Location(C.TABLEAU, i) for i in range(TABLEAU_COLUMNS) if state.tableau[i])
    fallback: Optional[Move] = None
    for src in sources:
        for dst in get_valid_moves(state, src):
            if dst.kind == C.FOUNDATION:
                return src, dst
            if fallback is None and dst.kind == C.TABLEAU and src.kind == C.TABLEAU:
                column = state.tableau[src.index]
                # Moving a whole column into an empty one gains nothing
                if state.tableau[dst.index] or M.movable_run_length(column) < len(column):
                    fallback = (src, dst)
    return fallback


def is_won(state: FreeCellState) -> bool:
    return all(len(pile) == 13 for pile in state.foundations)


# ----- Plain data -----

def to_dict(state: FreeCellState) -> Dict[str, Any]:
    return {
        "game": "freecell",
        "seed": state.seed,
        "moves": state.moves,
        "tableau": [[c.id for c in col] for col in state.tableau],
        "free_cells": [c.id if c is not None else None for c in state.free_cells],
        "foundations": [[c.id for c in pile] for pile in state.foundations],
    }


def from_dict(data: Dict[str, Any]) -> FreeCellState:
    state = FreeCellState(
        tableau=tuple(tuple(C.Card.parse(i) for i in col) for col in data["tableau"]),
        free_cells=tuple(C.Card.parse(i) if i is not None else None for i in data["free_cells"]),
        foundations=tuple(tuple(C.Card.parse(i) for i in pile) for pile in data["foundations"]),
        seed=int(data["seed"]),
        moves=int(data.get("moves", 0)),
    )
    if len(state.tableau) != TABLEAU_COLUMNS or len(state.free_cells) != FREE_CELLS or len(state.foundations) != FOUNDATIONS:
        raise ValueError("FreeCell data does not match the board layout")
    if sorted(c.id for c in state.all_cards()) != sorted(c.id for c in C.make_deck()):
        raise ValueError("FreeCell data must hold exactly one 52-card deck")
    if not all(M.is_valid_foundation(pile) for pile in state.foundations):
        raise ValueError("FreeCell foundations must build up by suit from the Ace")
    return state


_LAYOUT = GameLayout(tableau=TABLEAU_COLUMNS, foundations=FOUNDATIONS, free_cells=FREE_CELLS)


class FreeCellGame(GameActions[FreeCellState]):
    metadata = GameMetadata(
        key="freecell",
        label="FreeCell",
        section="Packers",
        module=__name__,
        factory="FreeCellGame",
    )
    layout = _LAYOUT

    def initialize(self, seed: Optional[int] = None) -> FreeCellState:
        return deal(seed)

    def execute_move(self, state, src, dst):
        return execute_move(state, src, dst)

    def occupant_at(self, state: FreeCellState, location: C.Location) -> Occupant:
        self.layout.check(location)
        if location.kind == C.FREE_CELL:
            return state.free_cells[location.index]
        pile = state.tableau[location.index] if location.kind == C.TABLEAU else state.foundations[location.index]
        if not pile:
            return None
        count = location.count_for(len(pile))
        if count is None:
            return pile[-1]
        return tuple(pile[-count:])

    def is_face_up(self, state: FreeCellState, location: C.Location, index: int) -> bool:
        # Every dealt card is face up in FreeCell
        self.layout.check(location)
        return True

    def is_won(self, state: FreeCellState) -> bool:
        return is_won(state)

    def enumerate_moves(self, state, src):
        return get_valid_moves(state, src)

    def hint(self, state):
        return hint(state)

    def auto_moves(self, state):
        return auto_to_foundations(state)[1]

    def to_dict(self, state):
        return to_dict(state)

    def from_dict(self, data):
        return from_dict(data)
