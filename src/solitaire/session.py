"""One running game: a registered game, its current state and move history."""

from __future__ import annotations

import logging
from typing import Generic, List, Optional, Tuple, TypeVar, Union

from solitaire import common as C
from solitaire.modes.base_game import GameActions, Occupant, get_game

logger = logging.getLogger(__name__)

StateT = TypeVar("StateT")
Move = Tuple[C.Location, C.Location]


class GameSession(Generic[StateT]):
    """Drives any registered game without knowing which one it is.

    The session only ever swaps whole state values; each successful move
    pushes the previous state onto the undo history.
    """

    def __init__(self, game: Union[str, GameActions], seed: Optional[int] = None,
                 history_limit: int = C.HISTORY_LIMIT):
        self.game: GameActions = get_game(game) if isinstance(game, str) else game
        self.history: C.UndoManager = C.UndoManager(history_limit)
        self.state: StateT = self.game.initialize(seed)
        self._won_logged = False

    @property
    def seed(self) -> int:
        return self.state.seed

    @property
    def moves(self) -> int:
        return self.state.moves

    def new_game(self, seed: Optional[int] = None) -> StateT:
        self.state = self.game.initialize(seed)
        self.history.clear()
        self._won_logged = False
        return self.state

    def restart(self) -> StateT:
        """Deal the same seed again."""
        return self.new_game(self.seed)

    def load(self, data: dict) -> StateT:
        self.state = self.game.from_dict(data)
        self.history.clear()
        self._won_logged = False
        return self.state

    def snapshot(self) -> dict:
        return self.game.to_dict(self.state)

    # ----- Moves -----
    def validate_move(self, src: C.Location, dst: C.Location) -> bool:
        return self.game.validate_move(self.state, src, dst)

    def execute_move(self, src: C.Location, dst: C.Location) -> bool:
        new_state = self.game.execute_move(self.state, src, dst)
        if new_state is None:
            logger.debug("Rejected %r -> %r", src, dst)
            return False
        self.history.push(self.state)
        self.state = new_state
        logger.debug("Moved %r -> %r (move %d)", src, dst, self.state.moves)
        self._check_won()
        return True

    def valid_moves(self, src: C.Location) -> List[C.Location]:
        if not self.game.supports("enumerate_moves"):
            return []
        return self.game.enumerate_moves(self.state, src)

    def occupant_at(self, location: C.Location) -> Occupant:
        return self.game.occupant_at(self.state, location)

    def is_face_up(self, location: C.Location, index: int) -> bool:
        return self.game.is_face_up(self.state, location, index)

    def is_won(self) -> bool:
        return self.game.is_won(self.state)

    def _check_won(self) -> None:
        if not self._won_logged and self.is_won():
            self._won_logged = True
            logger.info("Game #%s won in %d moves", self.seed, self.state.moves)

    # ----- History -----
    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    def undo(self) -> bool:
        previous = self.history.undo(self.state)
        if previous is None:
            return False
        self.state = previous
        return True

    def redo(self) -> bool:
        following = self.history.redo(self.state)
        if following is None:
            return False
        self.state = following
        return True

    # ----- Assistance -----
    def hint(self) -> Optional[Move]:
        if not self.game.supports("hint"):
            return None
        return self.game.hint(self.state)

    def auto_complete(self) -> int:
        """Play every auto move the game offers; returns how many were applied."""
        if not self.game.supports("auto_moves"):
            return 0
        applied = 0
        for src, dst in self.game.auto_moves(self.state):
            if not self.execute_move(src, dst):
                break
            applied += 1
        return applied

    def __repr__(self) -> str:
        return f"<GameSession {self.game.key} seed={self.seed} moves={self.moves}>"
