"""pygame event adapter for :class:`~solitaire.interaction.CardInteraction`.

The renderer registers one drop target per pile (or per card in a fanned
pile) each frame; :class:`PointerInput` hit-tests mouse and finger events
against them and forwards the resulting Locations to the state machine.
"""

from __future__ import annotations

import math
from typing import List, Optional, Tuple, Union

import pygame

from solitaire import common as C
from solitaire.interaction import CardInteraction

RectLike = Union[pygame.Rect, Tuple[int, int, int, int]]


class DropTargets:
    """Screen rectangles mapped to board Locations. Later entries sit on top."""

    def __init__(self):
        self._targets: List[Tuple[pygame.Rect, C.Location]] = []

    def clear(self) -> None:
        self._targets.clear()

    def add(self, rect: RectLike, location: C.Location) -> None:
        self._targets.append((pygame.Rect(rect), location))

    def hit(self, pos: Tuple[float, float]) -> Optional[C.Location]:
        x, y = int(pos[0]), int(pos[1])
        for rect, location in reversed(self._targets):
            if rect.collidepoint(x, y):
                return location
        return None

    def __len__(self):
        return len(self._targets)


class PointerInput:
    """
    Translate pygame mouse and finger events into interaction calls.
    Mouse: press + move past the drag threshold starts a drag, release drops;
    press + release on the same target is a click.
    Touch: the first finger down is tracked until it lifts.
    """

    def __init__(self, interaction: CardInteraction, targets: Optional[DropTargets] = None,
                 screen_size: Tuple[int, int] = (C.SCREEN_W, C.SCREEN_H)):
        self.interaction = interaction
        self.targets = targets if targets is not None else DropTargets()
        self.screen_size = screen_size
        self._press: Optional[Tuple[C.Location, Tuple[int, int]]] = None
        self._mouse_dragging = False
        self._finger_id: Optional[int] = None

    def _finger_pos(self, e) -> Tuple[float, float]:
        w, h = self.screen_size
        return e.x * w, e.y * h

    def handle_event(self, e) -> bool:
        """Return True when the event was consumed."""
        if e.type in (pygame.MOUSEBUTTONDOWN, pygame.MOUSEMOTION, pygame.MOUSEBUTTONUP):
            # SDL mirrors touches as mouse events; the finger handlers own those
            if getattr(e, "touch", False):
                return False
            return self._handle_mouse(e)
        if e.type in (pygame.FINGERDOWN, pygame.FINGERMOTION, pygame.FINGERUP):
            return self._handle_finger(e)
        if e.type == pygame.WINDOWFOCUSLOST:
            self.cancel()
            return True
        return False

    def _handle_mouse(self, e) -> bool:
        if e.type == pygame.MOUSEBUTTONDOWN and e.button == 1:
            loc = self.targets.hit(e.pos)
            self._press = (loc, e.pos) if loc is not None else None
            self._mouse_dragging = False
            return loc is not None

        if e.type == pygame.MOUSEMOTION:
            if self._press is None:
                return False
            if not self._mouse_dragging:
                loc, (sx, sy) = self._press
                if math.hypot(e.pos[0] - sx, e.pos[1] - sy) <= self.interaction.drag_threshold:
                    return False
                self.interaction.drag_start(loc)
                self._mouse_dragging = True
            self.interaction.drag_over(self.targets.hit(e.pos))
            return True

        if e.type == pygame.MOUSEBUTTONUP and e.button == 1:
            press, dragging = self._press, self._mouse_dragging
            self._press = None
            self._mouse_dragging = False
            if dragging:
                target = self.targets.hit(e.pos)
                if target is None:
                    self.interaction.drag_end()
                else:
                    self.interaction.drag_over(target)
                    self.interaction.drop(target)
                return True
            if press is None:
                return False
            target = self.targets.hit(e.pos)
            if target is not None and target.matches(press[0]):
                self.interaction.click(press[0])
                return True
            return False

        return False

    def _handle_finger(self, e) -> bool:
        pos = self._finger_pos(e)
        if e.type == pygame.FINGERDOWN:
            if self._finger_id is not None:
                return False
            loc = self.targets.hit(pos)
            if loc is None:
                return False
            self._finger_id = e.finger_id
            self.interaction.touch_start(loc, pos)
            return True

        if e.finger_id != self._finger_id:
            return False

        if e.type == pygame.FINGERMOTION:
            self.interaction.touch_move(pos)
            return True

        # FINGERUP
        self._finger_id = None
        drop = self.targets.hit(pos) if self.interaction.touch_dragging else None
        self.interaction.touch_end(drop)
        return True

    def cancel(self) -> None:
        self._press = None
        self._finger_id = None
        if self._mouse_dragging:
            self.interaction.drag_end()
        self._mouse_dragging = False
        self.interaction.touch_cancel()
