from dataclasses import replace
from typing import Optional, Sequence, Tuple

import pytest

from solitaire import common as C
from solitaire.modes import klondike as K

T = lambda i, **kw: C.Location(C.TABLEAU, i, **kw)  # noqa: E731
FD = lambda i: C.Location(C.FOUNDATION, i)  # noqa: E731
STOCK = C.Location(C.STOCK)
WASTE = C.Location(C.WASTE)


def parse(cards: Sequence[str]) -> Tuple[C.Card, ...]:
    return tuple(C.Card.parse(c) for c in cards)


def make_state(
    tableau: Sequence[Tuple[Sequence[str], int]] = (),
    stock: Sequence[str] = (),
    waste: Sequence[str] = (),
    foundations: Sequence[Sequence[str]] = ((), (), (), ()),
    draw_count: int = 1,
    stock_cycles: Optional[int] = None,
) -> K.KlondikeState:
    columns = [K.TableauColumn(parse(cards), face_up) for cards, face_up in tableau]
    columns += [K.TableauColumn()] * (K.TABLEAU_COLUMNS - len(columns))
    return K.KlondikeState(
        tableau=tuple(columns),
        stock=parse(stock),
        waste=parse(waste),
        foundations=tuple(parse(pile) for pile in foundations),
        seed=0,
        draw_count=draw_count,
        stock_cycles_allowed=stock_cycles,
    )


def ids(cards) -> list:
    return [c.id for c in cards]


def test_deal_layout() -> None:
    state = K.deal(21)
    assert [len(col.cards) for col in state.tableau] == [1, 2, 3, 4, 5, 6, 7]
    assert all(col.face_up_count == 1 for col in state.tableau)
    assert len(state.stock) == 24
    assert state.waste == ()
    assert state.moves == 0
    assert sorted(c.id for c in state.all_cards()) == sorted(c.id for c in C.make_deck())
    assert K.deal(21) == state


@pytest.mark.parametrize("draw_count, cycles", [(2, None), (1, -1)])
def test_deal_rejects_bad_options(draw_count: int, cycles: Optional[int]) -> None:
    with pytest.raises(ValueError):
        K.deal(1, draw_count=draw_count, stock_cycles=cycles)


def test_is_face_up() -> None:
    state = K.deal(4)
    assert not K.is_face_up(state, T(6), 5)
    assert K.is_face_up(state, T(6), 6)
    assert not K.is_face_up(state, STOCK, 0)
    drawn = K.draw_from_stock(state)
    assert K.is_face_up(drawn, WASTE, 0)
    with pytest.raises(IndexError):
        K.is_face_up(state, T(0), 1)


def test_draw_one() -> None:
    state = K.deal(8)
    drawn = K.draw_from_stock(state)
    assert drawn.waste == (state.stock[-1],)
    assert drawn.stock == state.stock[:-1]
    assert drawn.moves == 1


def test_draw_three_turns_cards_one_at_a_time() -> None:
    state = K.deal(8, draw_count=3)
    drawn = K.draw_from_stock(state)
    assert drawn.waste == (state.stock[-1], state.stock[-2], state.stock[-3])
    assert len(drawn.stock) == 21


def test_draw_three_with_short_stock() -> None:
    state = make_state(stock=["5♠", "6♠"], draw_count=3)
    drawn = K.draw_from_stock(state)
    assert ids(drawn.waste) == ["6♠", "5♠"]
    assert drawn.stock == ()


def test_empty_stock_recycles_waste_and_keeps_drawing() -> None:
    state = make_state(waste=["2♠", "3♠", "4♠"])
    drawn = K.draw_from_stock(state)
    # waste turned over: 2♠ is the first card back off the stock
    assert ids(drawn.waste) == ["2♠"]
    assert ids(drawn.stock) == ["4♠", "3♠"]
    assert drawn.stock_cycles_used == 1
    assert drawn.moves == 1


def test_stock_cycle_limit() -> None:
    state = replace(make_state(waste=["2♠"], stock_cycles=1), stock_cycles_used=1)
    assert not K.can_draw(state)
    assert K.draw_from_stock(state) is None
    assert K.get_valid_moves(state, STOCK) == []
    assert K.draw_from_stock(make_state()) is None


def test_stock_to_waste_is_a_draw() -> None:
    state = make_state(stock=["9♣"])
    assert K.get_valid_moves(state, STOCK) == [WASTE]
    drawn = K.execute_move(state, STOCK, WASTE)
    assert ids(drawn.waste) == ["9♣"]
    assert K.execute_move(state, STOCK, T(0)) is None


def test_only_kings_fill_empty_columns() -> None:
    state = make_state(waste=["K♥", "Q♠"])
    assert K.move_waste_to_tableau(state, 0) is None
    king = K.move_waste_to_tableau(replace(state, waste=state.waste[:1]), 0)
    assert ids(king.tableau[0].cards) == ["K♥"]
    assert king.tableau[0].face_up_count == 1


def test_run_move_flips_the_exposed_card() -> None:
    state = make_state([(["2♣", "9♠", "8♥"], 2), (["10♦"], 1)])
    moved = K.move_tableau_run(state, 0, 2, 1)
    assert ids(moved.tableau[1].cards) == ["10♦", "9♠", "8♥"]
    assert moved.tableau[1].face_up_count == 3
    assert ids(moved.tableau[0].cards) == ["2♣"]
    assert moved.tableau[0].face_up_count == 1


def test_face_down_cards_cannot_move() -> None:
    state = make_state([(["J♥", "9♠", "8♥"], 2), (["10♦"], 1), (["Q♣"], 1)])
    assert K.move_tableau_run(state, 0, 3, 2) is None
    assert K.execute_move(state, T(0, card_count=3), T(2)) is None
    with pytest.raises(ValueError):
        K.move_tableau_run(state, 0, 4, 1)


def test_destination_with_hidden_top_is_rejected() -> None:
    state = make_state([(["9♠"], 1), (["10♦"], 0)])
    assert K.move_tableau_run(state, 0, 1, 1) is None


def test_execute_move_takes_the_longest_face_up_run() -> None:
    state = make_state([(["4♦", "K♠", "Q♥", "J♣"], 3), (["K♦"], 1), (["Q♦"], 1)])
    onto_queen = K.execute_move(state, T(0), T(2))
    assert ids(onto_queen.tableau[2].cards) == ["Q♦", "J♣"]
    onto_empty = K.execute_move(state, T(0), T(3))
    assert ids(onto_empty.tableau[3].cards) == ["K♠", "Q♥", "J♣"]
    assert ids(onto_empty.tableau[0].cards) == ["4♦"]
    assert onto_empty.tableau[0].face_up_count == 1
    assert K.execute_move(state, T(0), T(1)) is None


def test_waste_and_foundation_moves() -> None:
    state = make_state(
        [(["5♠"], 1)],
        waste=["3♥", "4♥"],
        foundations=[["A♥", "2♥"], [], [], []],
    )
    assert K.move_waste_to_foundation(state, 0) is None  # 4♥ needs 3♥
    onto_five = K.move_waste_to_tableau(state, 0)
    assert ids(onto_five.tableau[0].cards) == ["5♠", "4♥"]
    home = K.move_waste_to_foundation(onto_five, 0)
    assert ids(home.foundations[0]) == ["A♥", "2♥", "3♥"]
    assert home.waste == ()
    back = K.move_foundation_to_tableau(home, 0, 0)
    assert back is None  # 3♥ on 4♥
    assert K.execute_move(onto_five, WASTE, FD(1)) is None


def test_foundation_to_tableau() -> None:
    state = make_state([(["5♠"], 1)], foundations=[["A♥", "2♥", "3♥", "4♥"], [], [], []])
    moved = K.execute_move(state, FD(0), T(0))
    assert ids(moved.tableau[0].cards) == ["5♠", "4♥"]
    assert moved.tableau[0].face_up_count == 2
    assert K.execute_move(state, FD(0), FD(1)) is None


def test_get_valid_moves_lists_columns_then_foundations() -> None:
    state = make_state([(["A♠"], 1), (["2♥"], 1), (["2♦"], 1)])
    assert K.get_valid_moves(state, T(0)) == [T(1), T(2), FD(0), FD(1), FD(2), FD(3)]
    assert K.get_valid_moves(state, T(1)) == []
    assert K.get_valid_moves(state, T(5)) == []


def test_auto_to_foundations_prefers_waste() -> None:
    state = make_state([(["2♠"], 1), (["A♠"], 1)], waste=["A♦"])
    final, applied = K.auto_to_foundations(state)
    assert applied[0] == (WASTE, FD(2))
    assert len(applied) == 3
    assert ids(final.foundations[0]) == ["A♠", "2♠"]
    assert ids(final.foundations[2]) == ["A♦"]


def test_can_autofinish() -> None:
    assert not K.can_autofinish(K.deal(2))
    open_board = make_state([(["K♠", "Q♥"], 2)])
    assert K.can_autofinish(open_board)
    assert not K.can_autofinish(replace(open_board, waste=parse(["A♣"])))


def test_hint_order() -> None:
    to_foundation = make_state([(["A♠"], 1)], stock=["5♣"])
    assert K.hint(to_foundation) == (T(0), FD(0))
    from_waste = make_state([(["9♠"], 1)], waste=["8♦"], stock=["5♣"])
    assert K.hint(from_waste) == (WASTE, T(0))
    reveal = make_state([(["3♣", "7♠"], 1), (["8♥"], 1)], stock=["5♣"])
    assert K.hint(reveal) == (T(0, card_count=1), T(1))
    just_draw = make_state([(["9♠"], 1)], stock=["5♣"])
    assert K.hint(just_draw) == (STOCK, WASTE)
    assert K.hint(make_state([(["9♠"], 1)])) is None


def test_dict_round_trip_and_validation() -> None:
    state = K.draw_from_stock(K.deal(6, draw_count=3, stock_cycles=2))
    data = K.to_dict(state)
    assert data["stock_cycles_allowed"] == 2
    assert K.from_dict(data) == state
    data["tableau"][0]["face_up_count"] = 5
    with pytest.raises(ValueError):
        K.from_dict(data)


@pytest.mark.parametrize(
    "field, value",
    [("draw_count", 0), ("draw_count", 2), ("stock_cycles_allowed", -1), ("stock_cycles_used", -1)],
)
def test_from_dict_rejects_bad_options(field: str, value: int) -> None:
    data = K.to_dict(K.deal(6))
    data[field] = value
    with pytest.raises(ValueError):
        K.from_dict(data)


def test_from_dict_rejects_broken_foundations() -> None:
    data = K.to_dict(K.deal(6))
    card = next(c for c in data["stock"] if not c.startswith("A"))
    data["stock"].remove(card)
    data["foundations"][0].append(card)
    with pytest.raises(ValueError, match="foundations"):
        K.from_dict(data)


def test_game_capabilities() -> None:
    game = K.KlondikeGame(draw_count=3, stock_cycles=1)
    state = game.initialize(12)
    assert state.draw_count == 3
    assert state.stock_cycles_allowed == 1
    assert game.occupant_at(state, T(0)) == state.tableau[0].cards[-1]
    assert game.occupant_at(state, WASTE) is None
    assert game.occupant_at(state, STOCK) == state.stock[-1]
    assert game.occupant_at(state, T(6, card_count=2)) == state.tableau[6].cards[-2:]
    assert not game.is_face_up(state, T(6), 0)
    assert game.validate_move(state, STOCK, WASTE)
    assert not game.validate_move(state, WASTE, T(0))
    with pytest.raises(ValueError):
        K.KlondikeGame(draw_count=2)
