from typing import List, Tuple

import pygame
import pytest

from solitaire import common as C
from solitaire import interaction as I
from solitaire.pointer import DropTargets, PointerInput

T = lambda i: C.Location(C.TABLEAU, i)  # noqa: E731


class FakeClock:
    def __call__(self) -> int:
        return 0


@pytest.fixture
def rig():
    executed: List[Tuple[C.Location, C.Location]] = []
    legal = {T(0): [T(1)]}

    def validate(src, dst):
        return C.contains_location(legal.get(src.base(), []), dst)

    def execute(src, dst):
        if not validate(src, dst):
            return False
        executed.append((src, dst))
        return True

    machine = I.CardInteraction(
        validate, execute, lambda src: legal.get(src.base(), []), smart_tap=False, clock=FakeClock()
    )
    targets = DropTargets()
    targets.add((0, 0, 100, 140), T(0))
    targets.add((120, 0, 100, 140), T(1))
    pointer = PointerInput(machine, targets, screen_size=(1000, 500))
    return pointer, machine, executed


def mouse(kind, pos, **extra):
    return pygame.event.Event(kind, pos=pos, button=1, **extra)


def finger(kind, x, y, finger_id=0):
    return pygame.event.Event(kind, x=x, y=y, dx=0.0, dy=0.0, finger_id=finger_id, touch_id=0)


def test_drop_targets_prefer_the_latest_entry() -> None:
    targets = DropTargets()
    targets.add(pygame.Rect(0, 0, 100, 400), T(0))
    targets.add((0, 100, 100, 140), C.Location(C.TABLEAU, 0, card_count=3))
    assert targets.hit((10, 10)) == T(0)
    assert targets.hit((10, 150)).card_count == 3
    assert targets.hit((500, 500)) is None
    assert len(targets) == 2
    targets.clear()
    assert targets.hit((10, 10)) is None


def test_mouse_click_selects_then_moves(rig) -> None:
    pointer, machine, executed = rig
    assert pointer.handle_event(mouse(pygame.MOUSEBUTTONDOWN, (50, 50)))
    assert pointer.handle_event(mouse(pygame.MOUSEBUTTONUP, (52, 51)))
    assert machine.selected == T(0)
    pointer.handle_event(mouse(pygame.MOUSEBUTTONDOWN, (150, 50)))
    pointer.handle_event(mouse(pygame.MOUSEBUTTONUP, (150, 50)))
    assert executed == [(T(0), T(1))]


def test_mouse_drag_drops_on_target(rig) -> None:
    pointer, machine, executed = rig
    pointer.handle_event(mouse(pygame.MOUSEBUTTONDOWN, (50, 50)))
    assert not pointer.handle_event(pygame.event.Event(pygame.MOUSEMOTION, pos=(55, 50), rel=(5, 0), buttons=(1, 0, 0)))
    assert machine.phase == I.IDLE
    assert pointer.handle_event(pygame.event.Event(pygame.MOUSEMOTION, pos=(150, 60), rel=(95, 10), buttons=(1, 0, 0)))
    assert machine.dragging == T(0)
    assert pointer.handle_event(mouse(pygame.MOUSEBUTTONUP, (150, 60)))
    assert executed == [(T(0), T(1))]
    assert machine.dragging is None


def test_mouse_drag_released_off_target_cancels(rig) -> None:
    pointer, machine, executed = rig
    pointer.handle_event(mouse(pygame.MOUSEBUTTONDOWN, (50, 50)))
    pointer.handle_event(pygame.event.Event(pygame.MOUSEMOTION, pos=(400, 400), rel=(0, 0), buttons=(1, 0, 0)))
    pointer.handle_event(mouse(pygame.MOUSEBUTTONUP, (400, 400)))
    assert executed == []
    assert machine.phase == I.IDLE
    assert machine.invalid_move is None


def test_press_on_empty_space_is_not_consumed(rig) -> None:
    pointer, machine, _ = rig
    assert not pointer.handle_event(mouse(pygame.MOUSEBUTTONDOWN, (600, 400)))
    assert not pointer.handle_event(mouse(pygame.MOUSEBUTTONUP, (600, 400)))
    assert machine.phase == I.IDLE


def test_touch_generated_mouse_events_are_ignored(rig) -> None:
    pointer, machine, _ = rig
    assert not pointer.handle_event(mouse(pygame.MOUSEBUTTONDOWN, (50, 50), touch=True))
    assert not pointer.handle_event(mouse(pygame.MOUSEBUTTONUP, (50, 50), touch=True))
    assert machine.selected is None


def test_finger_tap_and_drag(rig) -> None:
    pointer, machine, executed = rig
    # (0.05, 0.1) scales to (50, 50)
    assert pointer.handle_event(finger(pygame.FINGERDOWN, 0.05, 0.1))
    assert pointer.handle_event(finger(pygame.FINGERUP, 0.05, 0.1))
    assert machine.selected == T(0)
    machine.reset()

    pointer.handle_event(finger(pygame.FINGERDOWN, 0.05, 0.1))
    pointer.handle_event(finger(pygame.FINGERMOTION, 0.15, 0.1))
    assert machine.touch_dragging
    assert machine.touch_position == pytest.approx((150, 50))
    # a second finger is not tracked
    assert not pointer.handle_event(finger(pygame.FINGERDOWN, 0.5, 0.5, finger_id=1))
    assert not pointer.handle_event(finger(pygame.FINGERUP, 0.5, 0.5, finger_id=1))
    pointer.handle_event(finger(pygame.FINGERUP, 0.15, 0.1))
    assert executed == [(T(0), T(1))]
    assert machine.phase == I.IDLE


def test_focus_loss_cancels_gestures(rig) -> None:
    pointer, machine, executed = rig
    pointer.handle_event(finger(pygame.FINGERDOWN, 0.05, 0.1))
    pointer.handle_event(finger(pygame.FINGERMOTION, 0.3, 0.3))
    assert pointer.handle_event(pygame.event.Event(pygame.WINDOWFOCUSLOST))
    assert machine.phase == I.IDLE
    assert not pointer.handle_event(finger(pygame.FINGERUP, 0.15, 0.1))
    assert executed == []


def test_unrelated_events_pass_through(rig) -> None:
    pointer, _, _ = rig
    assert not pointer.handle_event(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_h))
    assert not pointer.handle_event(pygame.event.Event(pygame.MOUSEBUTTONDOWN, pos=(50, 50), button=3))
