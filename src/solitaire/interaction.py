"""Pointer and touch interaction for card games.

:class:`CardInteraction` turns clicks, mouse drags and touch gestures into
move requests against a game.  It knows nothing about pixels except the
distance a finger travels before a tap becomes a drag; translating screen
positions into :class:`~solitaire.common.Location` values is the job of the
input adapter (see :mod:`solitaire.pointer`).

States::

    idle  --click-->  selected  --click same / move done-->  idle
    idle/selected --drag_start / touch past threshold-->  dragging
    dragging --drop / drag_end / touch_end / touch_cancel-->  idle

Invalid attempts raise a short-lived :class:`InvalidMoveAttempt` the
renderer can shake or annotate; it clears itself after
``INVALID_MOVE_FEEDBACK_MS``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple, Union

import pygame

from solitaire import common as C

if TYPE_CHECKING:
    from solitaire.session import GameSession

logger = logging.getLogger(__name__)

DRAG_THRESHOLD_PX = 10
INVALID_MOVE_FEEDBACK_MS = 600

REASON_NO_MOVES = "No valid moves for this card"
REASON_INVALID = "Invalid move"
REASON_BAD_DROP = "Cannot drop card here"
REASON_BAD_TOUCH_DROP = "Cannot move card here"

IDLE = "idle"
SELECTED = "selected"
DRAGGING = "dragging"

Clock = Callable[[], int]
MoveFn = Callable[[C.Location, C.Location], bool]
MovesFn = Callable[[C.Location], Sequence[C.Location]]
Point = Tuple[float, float]


@dataclass(frozen=True)
class InvalidMoveAttempt:
    location: C.Location
    reason: Optional[str]
    timestamp: int


class InvalidMoveFeedback:
    """
    Single-slot invalid-move record that clears itself after ``duration_ms``.
    A new trigger replaces the old record and restarts the delay.
    Scenes call ``update(now_ms)`` each frame so ``on_expire`` fires once.
    """

    def __init__(self, duration_ms: int = INVALID_MOVE_FEEDBACK_MS, clock: Optional[Clock] = None,
                 on_expire: Optional[Callable[[InvalidMoveAttempt], None]] = None):
        self.duration_ms = duration_ms
        if clock is None:
            # get_ticks() stays at 0 until pygame is initialised
            if not pygame.get_init():
                pygame.init()
            clock = pygame.time.get_ticks
        self._clock = clock
        self.on_expire = on_expire
        self._attempt: Optional[InvalidMoveAttempt] = None
        self._deadline: Optional[int] = None

    def trigger(self, location: C.Location, reason: Optional[str] = None) -> InvalidMoveAttempt:
        self.cancel()
        now = self._clock()
        self._attempt = InvalidMoveAttempt(location, reason, now)
        self._deadline = now + self.duration_ms
        logger.debug("Invalid move at %r: %s", location, reason)
        return self._attempt

    def cancel(self) -> None:
        self._attempt = None
        self._deadline = None

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    def update(self, now_ms: Optional[int] = None) -> bool:
        """Clear the record once its delay has passed. True when it expired on this call."""
        if self._deadline is None:
            return False
        now = self._clock() if now_ms is None else now_ms
        if now < self._deadline:
            return False
        expired = self._attempt
        self.cancel()
        if self.on_expire is not None and expired is not None:
            self.on_expire(expired)
        return True

    def current(self, now_ms: Optional[int] = None) -> Optional[InvalidMoveAttempt]:
        self.update(now_ms)
        return self._attempt


@dataclass(frozen=True)
class InteractionSnapshot:
    """What the renderer needs to draw selection, drag and feedback cues."""

    phase: str
    selected: Optional[C.Location]
    dragging: Optional[C.Location]
    touch_dragging: bool
    touch_position: Optional[Point]
    highlighted: Tuple[C.Location, ...]
    invalid_move: Optional[InvalidMoveAttempt]


class CardInteraction:
    """Selection / drag / touch state machine over a move-validating game.

    ``validate_move`` and ``execute_move`` take a source and destination
    Location; ``execute_move`` returns True when the move was applied.
    ``get_valid_moves`` is optional; without it smart tap is unavailable and
    nothing is pre-highlighted.  ``smart_tap`` may be a bool or a callable
    read on every click; by default the ``smart_tap`` setting is used.
    """

    def __init__(
        self,
        validate_move: MoveFn,
        execute_move: MoveFn,
        get_valid_moves: Optional[MovesFn] = None,
        *,
        smart_tap: Union[bool, Callable[[], bool], None] = None,
        clock: Optional[Clock] = None,
        reselect_same_kind: bool = True,
        drag_threshold: float = DRAG_THRESHOLD_PX,
        feedback_ms: int = INVALID_MOVE_FEEDBACK_MS,
    ):
        self.validate_move = validate_move
        self.execute_move = execute_move
        self.get_valid_moves = get_valid_moves
        self._smart_tap = smart_tap
        self.reselect_same_kind = reselect_same_kind
        self.drag_threshold = drag_threshold
        self.feedback = InvalidMoveFeedback(feedback_ms, clock)

        self.selected: Optional[C.Location] = None
        self.dragging: Optional[C.Location] = None
        self.highlighted: List[C.Location] = []
        self.touch_dragging = False
        self.touch_position: Optional[Point] = None
        self._touch_start_location: Optional[C.Location] = None
        self._touch_start_position: Optional[Point] = None
        self._drop_allowed = False

    @classmethod
    def for_session(cls, session: "GameSession", **kwargs) -> "CardInteraction":
        moves = session.valid_moves if session.game.supports("enumerate_moves") else None
        return cls(session.validate_move, session.execute_move, moves, **kwargs)

    # ----- State queries -----
    @property
    def phase(self) -> str:
        if self.dragging is not None:
            return DRAGGING
        if self.selected is not None:
            return SELECTED
        return IDLE

    @property
    def invalid_move(self) -> Optional[InvalidMoveAttempt]:
        return self.feedback.current()

    def smart_tap_enabled(self) -> bool:
        if self.get_valid_moves is None:
            return False
        if self._smart_tap is None:
            return C.smart_tap_enabled()
        if callable(self._smart_tap):
            return bool(self._smart_tap())
        return bool(self._smart_tap)

    def is_highlighted(self, location: C.Location) -> bool:
        return C.contains_location(self.highlighted, location)

    def snapshot(self) -> InteractionSnapshot:
        return InteractionSnapshot(
            phase=self.phase,
            selected=self.selected,
            dragging=self.dragging,
            touch_dragging=self.touch_dragging,
            touch_position=self.touch_position,
            highlighted=tuple(self.highlighted),
            invalid_move=self.invalid_move,
        )

    # ----- Helpers -----
    def _clear_selection(self) -> None:
        self.selected = None
        self.highlighted = []

    def _select(self, location: C.Location, highlighted: Optional[Sequence[C.Location]] = None) -> None:
        self.selected = location
        if highlighted is None:
            highlighted = self.get_valid_moves(location) if self.get_valid_moves is not None else []
        self.highlighted = list(highlighted)

    def _move_and_clear(self, src: C.Location, dst: C.Location) -> bool:
        try:
            return bool(self.execute_move(src, dst))
        finally:
            self._clear_selection()

    def _clear_touch(self) -> None:
        self.touch_dragging = False
        self.touch_position = None
        self._touch_start_location = None
        self._touch_start_position = None

    def _clear_drag(self) -> None:
        self.dragging = None
        self._drop_allowed = False

    def _begin_drag(self, location: C.Location) -> None:
        self._clear_selection()
        self.dragging = location
        self._drop_allowed = False

    # ----- Click / tap -----
    def click(self, location: Optional[C.Location]) -> bool:
        """Handle a click or tap on ``location``. True when a move was applied."""
        if self.dragging is not None or location is None:
            return False

        if self.selected is not None and self.is_highlighted(location):
            src = self.selected
            if self._move_and_clear(src, location):
                return True
            self.feedback.trigger(location, REASON_INVALID)
            return False

        if self.selected is not None and self.selected.matches(location):
            self._clear_selection()
            return False

        if self.smart_tap_enabled():
            return self._smart_tap_click(location)
        return self._traditional_click(location)

    def _smart_tap_click(self, location: C.Location) -> bool:
        if self.selected is not None:
            # A second tap off the offered destinations only cancels
            self._clear_selection()
            self.feedback.trigger(location, REASON_INVALID)
            return False
        moves = list(self.get_valid_moves(location))
        if not moves:
            self._clear_selection()
            self.feedback.trigger(location, REASON_NO_MOVES)
            return False
        if len(moves) == 1:
            if self._move_and_clear(location, moves[0]):
                return True
            self.feedback.trigger(location, REASON_INVALID)
            return False
        self._select(location, moves)
        return False

    def _traditional_click(self, location: C.Location) -> bool:
        if self.selected is None:
            self._select(location)
            return False
        src = self.selected
        if self.validate_move(src, location):
            return self._move_and_clear(src, location)
        self.feedback.trigger(location, REASON_INVALID)
        # Same pile kind is more likely a new source than a destination
        if self.reselect_same_kind and src.kind == location.kind:
            self._select(location)
        return False

    # ----- Mouse drag -----
    def drag_start(self, location: C.Location) -> None:
        self._clear_touch()
        self._begin_drag(location)

    def drag_over(self, location: Optional[C.Location] = None) -> bool:
        """Acknowledge the pointer is over a drop target; a drop needs this first."""
        if self.dragging is None:
            return False
        self._drop_allowed = True
        return True

    def drop(self, location: Optional[C.Location]) -> bool:
        """Finish a drag on ``location``. The drag always ends, legal or not."""
        src, allowed = self.dragging, self._drop_allowed
        self._clear_drag()
        if src is None or location is None or not allowed:
            return False
        if self.validate_move(src, location):
            return bool(self.execute_move(src, location))
        self.feedback.trigger(location, REASON_BAD_DROP)
        return False

    def drag_end(self) -> None:
        self._clear_drag()

    # ----- Touch -----
    def touch_start(self, location: Optional[C.Location], position: Point) -> None:
        self._clear_drag()
        self._clear_touch()
        if location is None:
            return
        self._touch_start_location = location
        self._touch_start_position = position
        self.touch_position = position

    def touch_move(self, position: Point) -> bool:
        """Track the finger; True once movement has turned the touch into a drag."""
        if self._touch_start_location is None or self._touch_start_position is None:
            return False
        sx, sy = self._touch_start_position
        distance = math.hypot(position[0] - sx, position[1] - sy)
        if not self.touch_dragging and distance > self.drag_threshold:
            self._begin_drag(self._touch_start_location)
            self.touch_dragging = True
        self.touch_position = position
        return self.touch_dragging

    def touch_end(self, drop_location: Optional[C.Location] = None) -> bool:
        """
        Finish a touch. A touch that never became a drag is a tap on its start
        location; a drag drops on ``drop_location`` (resolved by the adapter).
        """
        start, src = self._touch_start_location, self.dragging
        was_dragging = self.touch_dragging
        self._clear_touch()
        self._clear_drag()
        if start is None:
            return False
        if not was_dragging:
            return self.click(start)
        if src is None or drop_location is None:
            return False
        if self.validate_move(src, drop_location):
            return bool(self.execute_move(src, drop_location))
        self.feedback.trigger(drop_location, REASON_BAD_TOUCH_DROP)
        return False

    def touch_cancel(self) -> None:
        self._clear_touch()
        self._clear_drag()

    # ----- Teardown -----
    def reset(self) -> None:
        """Drop every gesture and highlight (e.g. after undo or a new deal)."""
        self._clear_selection()
        self._clear_drag()
        self._clear_touch()

    def close(self) -> None:
        self.reset()
        self.feedback.cancel()
