"""Random walks over real deals checking rules that hold for every position."""

import random
from typing import Iterator, List, Tuple

import pytest

from solitaire import common as C
from solitaire.modes.base_game import GameActions
from solitaire.modes.freecell import FreeCellGame
from solitaire.modes.klondike import KlondikeGame

STEPS = 40
DECK_IDS = sorted(c.id for c in C.make_deck())


def base_locations(game: GameActions) -> List[C.Location]:
    return [
        C.Location(kind, i)
        for kind in C.LOCATION_KINDS
        for i in range(game.layout.pile_count(kind))
    ]


def tableau_length(state, index: int) -> int:
    column = state.tableau[index]
    return len(getattr(column, "cards", column))


def sources(game: GameActions, state) -> Iterator[C.Location]:
    for loc in base_locations(game):
        yield loc
        if loc.kind == C.TABLEAU:
            for count in range(1, tableau_length(state, loc.index) + 1):
                yield C.Location(C.TABLEAU, loc.index, card_count=count)


def check_position(game: GameActions, state) -> None:
    assert sorted(c.id for c in state.all_cards()) == DECK_IDS
    for pile in state.foundations:
        assert [c.rank for c in pile] == list(range(1, len(pile) + 1))
        assert len({c.suit for c in pile}) <= 1


def legal_moves(game: GameActions, state) -> List[Tuple[C.Location, C.Location]]:
    return [(src, dst) for src in base_locations(game) for dst in game.enumerate_moves(state, src)]


@pytest.mark.parametrize("game", [FreeCellGame(), KlondikeGame(draw_count=3)], ids=["freecell", "klondike"])
@pytest.mark.parametrize("seed", [1, 17, 2024])
def test_random_walk(game: GameActions, seed: int) -> None:
    rng = random.Random(seed)
    state = game.initialize(seed)
    destinations = base_locations(game)
    for _ in range(STEPS):
        check_position(game, state)
        for src in sources(game, state):
            for dst in destinations:
                result = game.execute_move(state, src, dst)
                assert game.validate_move(state, src, dst) == (result is not None)
                if result is not None:
                    assert result.moves == state.moves + 1
                    check_position(game, result)
        for src in base_locations(game):
            enumerated = game.enumerate_moves(state, src)
            executable = {dst for dst in destinations if game.execute_move(state, src, dst) is not None}
            assert set(enumerated) == executable
            assert len(enumerated) == len(executable)

        moves = legal_moves(game, state)
        if not moves:
            break
        src, dst = rng.choice(moves)
        state = game.execute_move(state, src, dst)
        assert state is not None


@pytest.mark.parametrize("game", [FreeCellGame(), KlondikeGame()], ids=["freecell", "klondike"])
def test_hint_is_always_playable(game: GameActions) -> None:
    rng = random.Random(5)
    state = game.initialize(5)
    for _ in range(STEPS):
        suggestion = game.hint(state)
        if suggestion is not None:
            assert game.validate_move(state, *suggestion)
        moves = legal_moves(game, state)
        if not moves:
            break
        state = game.execute_move(state, *rng.choice(moves))


@pytest.mark.parametrize("game", [FreeCellGame(), KlondikeGame()], ids=["freecell", "klondike"])
def test_auto_moves_play_out(game: GameActions) -> None:
    state = game.initialize(11)
    for src, dst in game.auto_moves(state):
        state = game.execute_move(state, src, dst)
        assert state is not None
    check_position(game, state)
