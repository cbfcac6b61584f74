"""Shared contract for solitaire games.

This module defines the capability interface every game implements, the
board layout description each game declares, and the registry that maps a
game identifier to its single capability instance.  Drivers (sessions, the
interaction state machine) only ever talk to games through this interface.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

from solitaire import common as C

logger = logging.getLogger(__name__)

StateT = TypeVar("StateT")
Occupant = Union[None, C.Card, Tuple[C.Card, ...]]


@dataclass(frozen=True)
class GameMetadata:
    """Description metadata for a solitaire game."""

    key: str
    label: str
    section: str
    module: str
    factory: str


@dataclass(frozen=True)
class GameLayout:
    """Fixed pile counts of a game's board."""

    tableau: int
    foundations: int = 4
    free_cells: int = 0
    stock: bool = False
    waste: bool = False

    def pile_count(self, kind: str) -> int:
        if kind == C.TABLEAU:
            return self.tableau
        if kind == C.FOUNDATION:
            return self.foundations
        if kind == C.FREE_CELL:
            return self.free_cells
        if kind == C.STOCK:
            return 1 if self.stock else 0
        if kind == C.WASTE:
            return 1 if self.waste else 0
        raise ValueError(f"Unknown location kind: {kind!r}")

    def check(self, location: C.Location) -> C.Location:
        """Raise IndexError when ``location`` names a pile this board does not have."""
        count = self.pile_count(location.kind)
        if not 0 <= location.index < count:
            raise IndexError(
                f"{location.kind} index {location.index} outside layout ({count} piles)"
            )
        return location


T = TypeVar("T")


def replace_at(items: Sequence[T], index: int, value: T) -> Tuple[T, ...]:
    """Copy of ``items`` as a tuple with position ``index`` swapped for ``value``."""
    return tuple(value if i == index else item for i, item in enumerate(items))


_GAME_METADATA: Tuple[GameMetadata, ...] = (
    GameMetadata(
        key="klondike",
        label="Klondike",
        section="Packers",
        module="solitaire.modes.klondike",
        factory="KlondikeGame",
    ),
    GameMetadata(
        key="freecell",
        label="FreeCell",
        section="Packers",
        module="solitaire.modes.freecell",
        factory="FreeCellGame",
    ),
)

_OPTIONAL_CAPABILITIES = ("enumerate_moves", "hint", "auto_moves")


class GameActions(Generic[StateT]):
    """Capabilities a game exposes to drivers.

    Subclasses must implement ``initialize``, ``execute_move``,
    ``occupant_at``, ``is_face_up`` and ``is_won``.  ``enumerate_moves``,
    ``hint`` and ``auto_moves`` are optional; use ``supports`` to ask.
    ``validate_move`` is defined in terms of ``execute_move`` so the two
    can never disagree.
    """

    metadata: GameMetadata
    layout: GameLayout

    @property
    def key(self) -> str:
        return self.metadata.key

    def initialize(self, seed: Optional[int] = None) -> StateT:
        raise NotImplementedError

    def execute_move(self, state: StateT, src: C.Location, dst: C.Location) -> Optional[StateT]:
        raise NotImplementedError

    def validate_move(self, state: StateT, src: C.Location, dst: C.Location) -> bool:
        return self.execute_move(state, src, dst) is not None

    def occupant_at(self, state: StateT, location: C.Location) -> Occupant:
        raise NotImplementedError

    def is_face_up(self, state: StateT, location: C.Location, index: int) -> bool:
        raise NotImplementedError

    def is_won(self, state: StateT) -> bool:
        raise NotImplementedError

    # Optional capabilities
    def enumerate_moves(self, state: StateT, src: C.Location) -> List[C.Location]:
        raise NotImplementedError

    def hint(self, state: StateT) -> Optional[Tuple[C.Location, C.Location]]:
        raise NotImplementedError

    def auto_moves(self, state: StateT) -> List[Tuple[C.Location, C.Location]]:
        raise NotImplementedError

    def supports(self, capability: str) -> bool:
        if capability not in _OPTIONAL_CAPABILITIES:
            return callable(getattr(self, capability, None))
        return getattr(type(self), capability) is not getattr(GameActions, capability)

    # Persistence helpers
    def to_dict(self, state: StateT) -> Dict[str, Any]:
        raise NotImplementedError

    def from_dict(self, data: Dict[str, Any]) -> StateT:
        raise NotImplementedError

    def __repr__(self):
        return f"<{type(self).__name__} {self.metadata.key!r}>"


GAME_REGISTRY: Dict[str, GameActions] = {}
_BUILTINS_LOADED = False


def register_game(game: GameActions, *, replace: bool = False) -> GameActions:
    key = game.metadata.key
    if key in GAME_REGISTRY and not replace:
        raise ValueError(f"Solitaire game id already registered: {key}")
    GAME_REGISTRY[key] = game
    logger.debug("Registered game %s", key)
    return game


def unregister_game(game_id: str) -> None:
    global _BUILTINS_LOADED
    GAME_REGISTRY.pop(game_id, None)
    if any(meta.key == game_id for meta in _GAME_METADATA):
        # A removed builtin is registered again on next lookup
        _BUILTINS_LOADED = False


def _load_builtin_games() -> None:
    global _BUILTINS_LOADED
    if _BUILTINS_LOADED:
        return
    for meta in _GAME_METADATA:
        if meta.key in GAME_REGISTRY:
            continue
        module = importlib.import_module(meta.module)
        register_game(getattr(module, meta.factory)())
    # Only after every import succeeded, so a failure is retried next call
    _BUILTINS_LOADED = True


def get_game(game_id: str) -> GameActions:
    _load_builtin_games()
    try:
        return GAME_REGISTRY[game_id]
    except KeyError as exc:
        raise KeyError(f"Unknown solitaire game id: {game_id}") from exc


def list_games() -> List[GameMetadata]:
    _load_builtin_games()
    return [game.metadata for game in GAME_REGISTRY.values()]


def iter_game_metadata(section: Optional[str] = None) -> Sequence[GameMetadata]:
    _load_builtin_games()
    return tuple(m for m in list_games() if section is None or m.section == section)


__all__ = [
    "GAME_REGISTRY",
    "GameActions",
    "GameLayout",
    "GameMetadata",
    "Occupant",
    "get_game",
    "iter_game_metadata",
    "list_games",
    "register_game",
    "replace_at",
    "unregister_game",
]
