"""Klondike: seven columns with hidden cards, a stock, a waste and four foundations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from solitaire import common as C
from solitaire import mechanics as M
from solitaire.modes.base_game import GameActions, GameLayout, GameMetadata, Occupant, replace_at

logger = logging.getLogger(__name__)

TABLEAU_COLUMNS = 7
FOUNDATIONS = 4
DRAW_COUNTS = (1, 3)
# Difficulty presets: unlimited, two, or one pass through the stock
KLONDIKE_STOCK_CYCLE_LIMITS = [None, 2, 1]

Move = Tuple[C.Location, C.Location]
STOCK_LOC = C.Location(C.STOCK)
WASTE_LOC = C.Location(C.WASTE)


@dataclass(frozen=True)
class TableauColumn:
    cards: Tuple[C.Card, ...] = ()
    face_up_count: int = 0

    @property
    def face_down_count(self) -> int:
        return len(self.cards) - self.face_up_count

    def face_up_cards(self) -> Tuple[C.Card, ...]:
        return self.cards[self.face_down_count:]


@dataclass(frozen=True)
class KlondikeState:
    tableau: Tuple[TableauColumn, ...]
    stock: Tuple[C.Card, ...]   # top of stock is the last card
    waste: Tuple[C.Card, ...]   # top of waste is the last card
    foundations: Tuple[Tuple[C.Card, ...], ...]
    seed: int
    moves: int = 0
    draw_count: int = 1
    stock_cycles_allowed: Optional[int] = None
    stock_cycles_used: int = 0

    def all_cards(self) -> List[C.Card]:
        out: List[C.Card] = [card for col in self.tableau for card in col.cards]
        out.extend(self.stock)
        out.extend(self.waste)
        out.extend(card for pile in self.foundations for card in pile)
        return out


def deal(seed: Optional[int] = None, draw_count: int = 1, stock_cycles: Optional[int] = None) -> KlondikeState:
    if draw_count not in DRAW_COUNTS:
        raise ValueError(f"draw_count must be one of {DRAW_COUNTS}, got {draw_count}")
    if stock_cycles is not None and stock_cycles < 0:
        raise ValueError(f"stock_cycles must be None or >= 0, got {stock_cycles}")
    if seed is None:
        seed = C.new_seed()
    deck = C.shuffle_with_seed(C.make_deck(), seed)
    columns = []
    pos = 0
    for i in range(TABLEAU_COLUMNS):
        columns.append(TableauColumn(tuple(deck[pos:pos + i + 1]), face_up_count=1))
        pos += i + 1
    logger.info("Dealt Klondike game #%s (draw %d)", seed, draw_count)
    return KlondikeState(
        tableau=tuple(columns),
        stock=tuple(deck[pos:]),
        waste=(),
        foundations=((),) * FOUNDATIONS,
        seed=seed,
        draw_count=draw_count,
        stock_cycles_allowed=stock_cycles,
    )


# ----- Rules -----

def can_move_to_empty_tableau(card: C.Card) -> bool:
    return card.rank == 13  # King


def _can_place_on_column(card: C.Card, column: TableauColumn) -> bool:
    if not column.cards:
        return can_move_to_empty_tableau(card)
    if column.face_up_count == 0:
        return False
    return M.can_stack_descending(card, column.cards[-1], allow_empty_target=False)


def _can_move_to_foundation(card: C.Card, pile: Tuple[C.Card, ...]) -> bool:
    return M.can_stack_on_foundation(card, pile)


def _check_index(index: int, count: int, what: str) -> None:
    if not 0 <= index < count:
        raise IndexError(f"{what} index {index} out of range (0..{count - 1})")


def _advance(state: KlondikeState, **changes: Any) -> KlondikeState:
    return replace(state, moves=state.moves + 1, **changes)


def _remove_from_column(column: TableauColumn, count: int) -> TableauColumn:
    remaining = column.cards[:-count]
    face_up = max(0, column.face_up_count - count)
    # Flip the newly exposed card
    if remaining and face_up == 0:
        face_up = 1
    return TableauColumn(remaining, face_up)


def _add_to_column(column: TableauColumn, cards: Tuple[C.Card, ...]) -> TableauColumn:
    return TableauColumn(column.cards + cards, column.face_up_count + len(cards))


def is_face_up(state: KlondikeState, location: C.Location, index: int) -> bool:
    pile = cards_at(state, location)
    if not 0 <= index < len(pile):
        raise IndexError(f"Card index {index} outside {location.kind} pile of {len(pile)}")
    if location.kind == C.STOCK:
        return False
    if location.kind == C.TABLEAU:
        return index >= state.tableau[location.index].face_down_count
    return True


def cards_at(state: KlondikeState, location: C.Location) -> Tuple[C.Card, ...]:
    _LAYOUT.check(location)
    if location.kind == C.TABLEAU:
        return state.tableau[location.index].cards
    if location.kind == C.FOUNDATION:
        return state.foundations[location.index]
    if location.kind == C.STOCK:
        return state.stock
    return state.waste


# ----- Stock -----

def can_draw(state: KlondikeState) -> bool:
    if state.stock:
        return True
    if not state.waste:
        return False
    return state.stock_cycles_allowed is None or state.stock_cycles_used < state.stock_cycles_allowed


def draw_from_stock(state: KlondikeState) -> Optional[KlondikeState]:
    """
    Turn ``draw_count`` cards from the stock onto the waste. An empty stock is
    refilled from the waste first, which uses up one stock cycle.
    """
    stock, waste, cycles = state.stock, state.waste, state.stock_cycles_used
    if not stock:
        if not waste:
            return None
        if state.stock_cycles_allowed is not None and cycles >= state.stock_cycles_allowed:
            logger.debug("No more stock cycles (%d used)", cycles)
            return None
        stock, waste = tuple(reversed(waste)), ()
        cycles += 1
    n = min(state.draw_count, len(stock))
    drawn = tuple(reversed(stock[-n:]))
    return _advance(state, stock=stock[:-n], waste=waste + drawn, stock_cycles_used=cycles)


# ----- Moves -----

def move_tableau_run(state: KlondikeState, src: int, count: int, dst: int) -> Optional[KlondikeState]:
    """Move the top ``count`` face-up cards of column ``src`` onto column ``dst``."""
    _check_index(src, TABLEAU_COLUMNS, "Tableau")
    _check_index(dst, TABLEAU_COLUMNS, "Tableau")
    column = state.tableau[src]
    if count < 1 or count > len(column.cards):
        raise ValueError(f"Cannot take {count} cards from a column of {len(column.cards)}")
    if src == dst or count > column.face_up_count:
        return None
    run = column.cards[-count:]
    if not M.is_valid_tableau_sequence(run):
        return None
    target = state.tableau[dst]
    if not _can_place_on_column(run[0], target):
        return None
    tableau = replace_at(state.tableau, src, _remove_from_column(column, count))
    return _advance(state, tableau=replace_at(tableau, dst, _add_to_column(target, run)))


def move_tableau_to_foundation(state: KlondikeState, column: int, foundation: int) -> Optional[KlondikeState]:
    _check_index(column, TABLEAU_COLUMNS, "Tableau")
    _check_index(foundation, FOUNDATIONS, "Foundation")
    src = state.tableau[column]
    pile = state.foundations[foundation]
    if not src.cards or src.face_up_count == 0 or not _can_move_to_foundation(src.cards[-1], pile):
        return None
    return _advance(
        state,
        tableau=replace_at(state.tableau, column, _remove_from_column(src, 1)),
        foundations=replace_at(state.foundations, foundation, pile + src.cards[-1:]),
    )


def move_waste_to_tableau(state: KlondikeState, column: int) -> Optional[KlondikeState]:
    _check_index(column, TABLEAU_COLUMNS, "Tableau")
    target = state.tableau[column]
    if not state.waste or not _can_place_on_column(state.waste[-1], target):
        return None
    return _advance(
        state,
        waste=state.waste[:-1],
        tableau=replace_at(state.tableau, column, _add_to_column(target, state.waste[-1:])),
    )


def move_waste_to_foundation(state: KlondikeState, foundation: int) -> Optional[KlondikeState]:
    _check_index(foundation, FOUNDATIONS, "Foundation")
    pile = state.foundations[foundation]
    if not state.waste or not _can_move_to_foundation(state.waste[-1], pile):
        return None
    return _advance(
        state,
        waste=state.waste[:-1],
        foundations=replace_at(state.foundations, foundation, pile + state.waste[-1:]),
    )


def move_foundation_to_tableau(state: KlondikeState, foundation: int, column: int) -> Optional[KlondikeState]:
    _check_index(foundation, FOUNDATIONS, "Foundation")
    _check_index(column, TABLEAU_COLUMNS, "Tableau")
    pile = state.foundations[foundation]
    target = state.tableau[column]
    if not pile or not _can_place_on_column(pile[-1], target):
        return None
    return _advance(
        state,
        foundations=replace_at(state.foundations, foundation, pile[:-1]),
        tableau=replace_at(state.tableau, column, _add_to_column(target, pile[-1:])),
    )


def execute_move(state: KlondikeState, src: C.Location, dst: C.Location) -> Optional[KlondikeState]:
    """
    Apply the move described by two Locations.
    ``stock -> waste`` draws. An unqualified tableau source moving to another
    column takes the longest face-up run that fits there.
    """
    _LAYOUT.check(src)
    _LAYOUT.check(dst)
    if src.kind == C.STOCK:
        return draw_from_stock(state) if dst.kind == C.WASTE else None

    if src.kind == C.TABLEAU:
        column = state.tableau[src.index]
        if not column.cards:
            return None
        count = src.count_for(len(column.cards))
        if dst.kind == C.TABLEAU:
            if count is not None:
                return move_tableau_run(state, src.index, count, dst.index)
            longest = M.movable_run_length(column.cards, limit=column.face_up_count)
            for n in range(longest, 0, -1):
                new_state = move_tableau_run(state, src.index, n, dst.index)
                if new_state is not None:
                    return new_state
            return None
        if dst.kind == C.FOUNDATION and count in (None, 1):
            return move_tableau_to_foundation(state, src.index, dst.index)
        return None

    if src.kind == C.WASTE:
        if not state.waste or src.count_for(len(state.waste)) not in (None, 1):
            return None
        if dst.kind == C.TABLEAU:
            return move_waste_to_tableau(state, dst.index)
        if dst.kind == C.FOUNDATION:
            return move_waste_to_foundation(state, dst.index)
        return None

    if src.kind == C.FOUNDATION:
        pile = state.foundations[src.index]
        if not pile or src.count_for(len(pile)) not in (None, 1):
            return None
        if dst.kind == C.TABLEAU:
            return move_foundation_to_tableau(state, src.index, dst.index)
        return None

    return None


def get_valid_moves(state: KlondikeState, src: C.Location) -> List[C.Location]:
    """Destinations reachable from ``src``; tableau columns first, then foundations."""
    _LAYOUT.check(src)
    if src.kind == C.STOCK:
        return [WASTE_LOC] if can_draw(state) else []
    out: List[C.Location] = []
    for i in range(TABLEAU_COLUMNS):
        if src.kind == C.TABLEAU and src.index == i:
            continue
        dst = C.Location(C.TABLEAU, i)
        if execute_move(state, src, dst) is not None:
            out.append(dst)
    for i in range(FOUNDATIONS):
        dst = C.Location(C.FOUNDATION, i)
        if execute_move(state, src, dst) is not None:
            out.append(dst)
    return out


# ----- Auto finish, hints, win -----

def _foundation_for(state: KlondikeState, card: C.Card) -> Optional[int]:
    home = C.SUITS.index(card.suit)
    for i in [home] + [i for i in range(FOUNDATIONS) if i != home]:
        if _can_move_to_foundation(card, state.foundations[i]):
            return i
    return None


def _find_next_auto_move(state: KlondikeState) -> Optional[Move]:
    """Waste first, then each column's top card. Return (source, foundation) or None."""
    if state.waste:
        target = _foundation_for(state, state.waste[-1])
        if target is not None:
            return WASTE_LOC, C.Location(C.FOUNDATION, target)
    for i, column in enumerate(state.tableau):
        if not column.cards or column.face_up_count == 0:
            continue
        target = _foundation_for(state, column.cards[-1])
        if target is not None:
            return C.Location(C.TABLEAU, i), C.Location(C.FOUNDATION, target)
    return None


def auto_to_foundations(state: KlondikeState) -> Tuple[KlondikeState, List[Move]]:
    applied: List[Move] = []
    while True:
        move = _find_next_auto_move(state)
        if move is None:
            return state, applied
        new_state = execute_move(state, *move)
        if new_state is None:
            return state, applied
        state = new_state
        applied.append(move)


def can_autofinish(state: KlondikeState) -> bool:
    """Eligible when stock and waste are empty and all tableau cards are face-up."""
    if state.stock or state.waste:
        return False
    return all(col.face_down_count == 0 for col in state.tableau)


def hint(state: KlondikeState) -> Optional[Move]:
    """
    Suggest a move: anything to a foundation first, then a play from the
    waste or one that uncovers a hidden card, then a draw.
    """
    move = _find_next_auto_move(state)
    if move is not None:
        return move
    if state.waste:
        for dst in get_valid_moves(state, WASTE_LOC):
            if dst.kind == C.TABLEAU:
                return WASTE_LOC, dst
    for i, column in enumerate(state.tableau):
        if not column.face_down_count or not column.face_up_count:
            continue
        src = C.Location(C.TABLEAU, i, card_count=column.face_up_count)
        for dst in get_valid_moves(state, src):
            if dst.kind == C.TABLEAU:
                return src, dst
    if can_draw(state):
        return STOCK_LOC, WASTE_LOC
    return None


def is_won(state: KlondikeState) -> bool:
    return all(len(pile) == 13 for pile in state.foundations)


# ----- Plain data -----

def to_dict(state: KlondikeState) -> Dict[str, Any]:
    return {
        "game": "klondike",
        "seed": state.seed,
        "moves": state.moves,
        "draw_count": state.draw_count,
        "stock_cycles_allowed": state.stock_cycles_allowed,
        "stock_cycles_used": state.stock_cycles_used,
        "tableau": [
            {"cards": [c.id for c in col.cards], "face_up_count": col.face_up_count}
            for col in state.tableau
        ],
        "stock": [c.id for c in state.stock],
        "waste": [c.id for c in state.waste],
        "foundations": [[c.id for c in pile] for pile in state.foundations],
    }


def from_dict(data: Dict[str, Any]) -> KlondikeState:
    def parse(ids):
        return tuple(C.Card.parse(i) for i in ids)

    tableau = []
    for col in data["tableau"]:
        column = TableauColumn(parse(col["cards"]), int(col["face_up_count"]))
        if not 0 <= column.face_up_count <= len(column.cards):
            raise ValueError(f"face_up_count {column.face_up_count} outside column of {len(column.cards)}")
        tableau.append(column)
    draw_count = int(data.get("draw_count", 1))
    if draw_count not in DRAW_COUNTS:
        raise ValueError(f"draw_count must be one of {DRAW_COUNTS}, got {draw_count}")
    cycles_allowed = data.get("stock_cycles_allowed")
    if cycles_allowed is not None and int(cycles_allowed) < 0:
        raise ValueError(f"stock_cycles must be None or >= 0, got {cycles_allowed}")
    if int(data.get("stock_cycles_used", 0)) < 0:
        raise ValueError("stock_cycles_used must be >= 0")
    state = KlondikeState(
        tableau=tuple(tableau),
        stock=parse(data["stock"]),
        waste=parse(data["waste"]),
        foundations=tuple(parse(pile) for pile in data["foundations"]),
        seed=int(data["seed"]),
        moves=int(data.get("moves", 0)),
        draw_count=draw_count,
        stock_cycles_allowed=None if cycles_allowed is None else int(cycles_allowed),
        stock_cycles_used=int(data.get("stock_cycles_used", 0)),
    )
    if len(state.tableau) != TABLEAU_COLUMNS or len(state.foundations) != FOUNDATIONS:
        raise ValueError("Klondike data does not match the board layout")
    if sorted(c.id for c in state.all_cards()) != sorted(c.id for c in C.make_deck()):
        raise ValueError("Klondike data must hold exactly one 52-card deck")
    if not all(M.is_valid_foundation(pile) for pile in state.foundations):
        raise ValueError("Klondike foundations must build up by suit from the Ace")
    return state


_LAYOUT = GameLayout(tableau=TABLEAU_COLUMNS, foundations=FOUNDATIONS, stock=True, waste=True)


class KlondikeGame(GameActions[KlondikeState]):
    metadata = GameMetadata(
        key="klondike",
        label="Klondike",
        section="Packers",
        module=__name__,
        factory="KlondikeGame",
    )
    layout = _LAYOUT

    def __init__(self, draw_count: int = 1, stock_cycles: Optional[int] = None):
        if draw_count not in DRAW_COUNTS:
            raise ValueError(f"draw_count must be one of {DRAW_COUNTS}, got {draw_count}")
        self.draw_count = draw_count
        self.stock_cycles = stock_cycles

    def initialize(self, seed: Optional[int] = None) -> KlondikeState:
        return deal(seed, self.draw_count, self.stock_cycles)

    def execute_move(self, state, src, dst):
        return execute_move(state, src, dst)

    def occupant_at(self, state: KlondikeState, location: C.Location) -> Occupant:
        pile = cards_at(state, location)
        if not pile:
            return None
        count = location.count_for(len(pile))
        if count is None:
            return pile[-1]
        return tuple(pile[-count:])

    def is_face_up(self, state, location, index):
        return is_face_up(state, location, index)

    def is_won(self, state):
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
