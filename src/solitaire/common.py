# common.py - shared card model, locations, settings and history for the solitaire engine
import json
import logging
import os
import random
from collections import deque
from dataclasses import dataclass, replace
from typing import Any, Deque, Dict, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

# --- Settings ---

# Defaults (may be overridden by persisted settings or SOLI_* environment variables)
_DEFAULT_SETTINGS = {
    "smart_tap": False,      # auto-resolve a single legal destination on click
    "log_level": "WARNING",  # DEBUG | INFO | WARNING | ERROR
}

_CURRENT_SETTINGS = dict(_DEFAULT_SETTINGS)

_TRUE_STRINGS = ("1", "true", "yes", "on")


def _settings_dir() -> str:
    override = os.environ.get("SOLI_SETTINGS_DIR")
    if override:
        return override
    # Prefer %APPDATA% on Windows, else ~/.random_red_mage_solitaire
    base = os.environ.get("APPDATA")
    if base:
        return os.path.join(base, "RandomRedMageSolitaire")
    return os.path.join(os.path.expanduser("~"), ".random_red_mage_solitaire")


def _settings_path() -> str:
    return os.path.join(_settings_dir(), "settings.json")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def get_current_settings() -> Dict[str, Any]:
    return dict(_CURRENT_SETTINGS)


def reset_settings() -> None:
    global _CURRENT_SETTINGS
    _CURRENT_SETTINGS = dict(_DEFAULT_SETTINGS)


def load_settings() -> Dict[str, Any]:
    """Read persisted settings, then apply environment overrides.

    A missing file leaves the defaults in place. An unreadable or malformed
    file is reported and ignored.
    """
    try:
        with open(_settings_path(), "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            _CURRENT_SETTINGS.update({
                "smart_tap": _as_bool(data.get("smart_tap", _CURRENT_SETTINGS["smart_tap"])),
                "log_level": str(data.get("log_level", _CURRENT_SETTINGS["log_level"])).upper(),
            })
        else:
            logger.warning("Ignoring settings file %s: expected a JSON object", _settings_path())
    except FileNotFoundError:
        pass
    except (OSError, ValueError) as exc:
        logger.warning("Could not read settings from %s: %s", _settings_path(), exc)

    env_tap = os.environ.get("SOLI_SMART_TAP")
    if env_tap is not None:
        _CURRENT_SETTINGS["smart_tap"] = _as_bool(env_tap)
    env_level = os.environ.get("SOLI_LOG_LEVEL")
    if env_level:
        _CURRENT_SETTINGS["log_level"] = env_level.upper()
    return get_current_settings()


def save_settings(new_values: dict) -> bool:
    # Merge and write to disk
    if "smart_tap" in new_values:
        _CURRENT_SETTINGS["smart_tap"] = _as_bool(new_values["smart_tap"])
    if "log_level" in new_values:
        _CURRENT_SETTINGS["log_level"] = str(new_values["log_level"]).upper()
    try:
        os.makedirs(_settings_dir(), exist_ok=True)
        with open(_settings_path(), "w", encoding="utf-8") as f:
            json.dump(_CURRENT_SETTINGS, f, indent=2)
    except OSError as exc:
        logger.warning("Could not save settings to %s: %s", _settings_path(), exc)
        return False
    return True


def smart_tap_enabled() -> bool:
    return bool(_CURRENT_SETTINGS.get("smart_tap", False))


# Load any persisted settings now
load_settings()


# ---------- Configuration ----------
# Touch events report normalized coordinates; these scale them to pixels.
SCREEN_W, SCREEN_H = 1280, 800

HISTORY_LIMIT = 200

SUITS = ["♠", "♥", "♦", "♣"]  # 0..3
RED_SUITS = ("♥", "♦")
RANK_TO_TEXT = {1: "A", 11: "J", 12: "Q", 13: "K"}
for _r in range(2, 11):
    RANK_TO_TEXT[_r] = str(_r)
TEXT_TO_RANK = {text: rank for rank, text in RANK_TO_TEXT.items()}


def is_red(suit: str) -> bool:
    return suit in RED_SUITS  # hearts, diamonds


# ---------- Cards ----------
@dataclass(frozen=True)
class Card:
    suit: str  # one of SUITS
    rank: int  # 1..13

    def __post_init__(self):
        if self.suit not in SUITS:
            raise ValueError(f"Unknown suit: {self.suit!r}")
        if not isinstance(self.rank, int) or not 1 <= self.rank <= 13:
            raise ValueError(f"Rank must be an integer in 1..13, got {self.rank!r}")

    @property
    def value(self) -> str:
        return RANK_TO_TEXT[self.rank]

    @property
    def id(self) -> str:
        return f"{self.value}{self.suit}"

    def color(self) -> str:
        return "red" if is_red(self.suit) else "black"

    @classmethod
    def parse(cls, text: str) -> "Card":
        """Build a card from its id, e.g. ``"10♥"`` or ``"Q♠"``."""
        text = text.strip()
        if len(text) < 2:
            raise ValueError(f"Not a card id: {text!r}")
        value, suit = text[:-1], text[-1]
        if value not in TEXT_TO_RANK:
            raise ValueError(f"Unknown card value: {value!r}")
        return cls(suit, TEXT_TO_RANK[value])

    def to_dict(self) -> Dict[str, Any]:
        return {"suit": self.suit, "rank": self.rank, "value": self.value, "id": self.id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        return cls(data["suit"], int(data["rank"]))

    def __repr__(self):
        return self.id


def cards(*ids: str) -> List[Card]:
    return [Card.parse(i) for i in ids]


def make_deck() -> List[Card]:
    return [Card(suit, rank) for suit in SUITS for rank in range(1, 14)]


def new_seed() -> int:
    return random.randrange(1, 2 ** 31)


def shuffle_with_seed(deck: Sequence[Card], seed: int) -> List[Card]:
    """Return a shuffled copy of ``deck``; the same seed always gives the same order."""
    shuffled = list(deck)
    random.Random(seed).shuffle(shuffled)
    return shuffled


# ---------- Locations ----------
TABLEAU = "tableau"
FOUNDATION = "foundation"
FREE_CELL = "free_cell"
STOCK = "stock"
WASTE = "waste"
LOCATION_KINDS = (TABLEAU, FOUNDATION, FREE_CELL, STOCK, WASTE)


def card_index_to_count(length: int, index: int) -> int:
    if not 0 <= index < length:
        raise ValueError(f"card_index {index} outside a pile of {length} cards")
    return length - index


def card_count_to_index(length: int, count: int) -> int:
    if not 1 <= count <= length:
        raise ValueError(f"card_count {count} outside a pile of {length} cards")
    return length - count


@dataclass(frozen=True)
class Location:
    """A place on the board plus an optional selection qualifier.

    ``card_count`` counts cards from the top of the pile; ``card_index`` is
    the position of the first selected card. Callers set at most one of them.
    """

    kind: str
    index: int = 0
    card_count: Optional[int] = None
    card_index: Optional[int] = None

    def __post_init__(self):
        if self.kind not in LOCATION_KINDS:
            raise ValueError(f"Unknown location kind: {self.kind!r}")
        if self.index < 0:
            raise ValueError(f"Location index must be >= 0, got {self.index}")
        if self.card_count is not None and self.card_index is not None:
            raise ValueError("Location takes card_count or card_index, not both")
        if self.card_count is not None and self.card_count < 1:
            raise ValueError(f"card_count must be >= 1, got {self.card_count}")
        if self.card_index is not None and self.card_index < 0:
            raise ValueError(f"card_index must be >= 0, got {self.card_index}")

    @property
    def qualified(self) -> bool:
        return self.card_count is not None or self.card_index is not None

    def base(self) -> "Location":
        return replace(self, card_count=None, card_index=None)

    def count_for(self, length: int) -> Optional[int]:
        """Number of selected cards in a pile of ``length``, or None when unqualified."""
        if self.card_count is not None:
            card_count_to_index(length, self.card_count)
            return self.card_count
        if self.card_index is not None:
            return card_index_to_count(length, self.card_index)
        return None

    def matches(self, other: "Location") -> bool:
        # Each qualifier only compared when both sides carry it
        if self.kind != other.kind or self.index != other.index:
            return False
        if self.card_count is not None and other.card_count is not None:
            if self.card_count != other.card_count:
                return False
        if self.card_index is not None and other.card_index is not None:
            if self.card_index != other.card_index:
                return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind, "index": self.index}
        if self.card_count is not None:
            data["card_count"] = self.card_count
        if self.card_index is not None:
            data["card_index"] = self.card_index
        return data

    def __repr__(self):
        extra = ""
        if self.card_count is not None:
            extra = f" x{self.card_count}"
        elif self.card_index is not None:
            extra = f" @{self.card_index}"
        return f"<{self.kind}[{self.index}]{extra}>"


def contains_location(locations: Sequence[Location], target: Location) -> bool:
    return any(loc.matches(target) for loc in locations)


# ---------- History ----------
S = TypeVar("S")


class UndoManager(Generic[S]):
    """
    Store prior game states. After each successful move, push the state the
    move started from; undo hands it back and remembers the current one for redo.
    """

    def __init__(self, limit: int = HISTORY_LIMIT):
        self._past: Deque[S] = deque(maxlen=limit)
        self._future: List[S] = []

    def push(self, state: S) -> None:
        self._past.append(state)
        self._future.clear()

    def can_undo(self) -> bool:
        return len(self._past) > 0

    def can_redo(self) -> bool:
        return len(self._future) > 0

    def undo(self, current: S) -> Optional[S]:
        if not self._past:
            return None
        self._future.append(current)
        return self._past.pop()

    def redo(self, current: S) -> Optional[S]:
        if not self._future:
            return None
        self._past.append(current)
        return self._future.pop()

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()

    def __len__(self):
        return len(self._past)
