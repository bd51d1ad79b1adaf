import math
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from .catalog import Course

SCORE_RANGE = (0.0, 100.0)
GPA_RANGE = (0.0, 4.0)

# ASCII digits only; no exponents, underscores or other numeric scripts.
DECIMAL_RE = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)\Z', re.ASCII)


# --- Conversation states ---
# A chat is idle when it has no entry in the store.

@dataclass
class Selecting:
    year: Optional[str] = None
    semester: Optional[str] = None


@dataclass
class ScoreEntry:
    year: str
    semester: str
    program: str
    courses: List[Course]
    index: int = 0
    scores: List[float] = field(default_factory=list)

    @property
    def current_course(self) -> Course:
        return self.courses[self.index]

    @property
    def done(self) -> bool:
        return self.index >= len(self.courses)


@dataclass
class CgpaEntry:
    step: int = 0
    gpas: List[float] = field(default_factory=list)


@dataclass
class AwaitingBroadcast:
    pass


@dataclass
class AwaitingVerification:
    pass


State = Union[Selecting, ScoreEntry, CgpaEntry, AwaitingBroadcast, AwaitingVerification]


class SessionStore:
    """Per-chat conversation state with a time-to-live.

    Entries untouched for ``ttl`` seconds are dropped the next time the store
    is read.
    """

    def __init__(self, ttl: float = 1800, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[int, Tuple[float, State]] = {}

    def get(self, chat_id: int) -> Optional[State]:
        entry = self._entries.get(chat_id)
        if entry is None:
            return None
        touched, state = entry
        if self._clock() - touched > self.ttl:
            del self._entries[chat_id]
            return None
        return state

    def set(self, chat_id: int, state: State) -> None:
        self._entries[chat_id] = (self._clock(), state)

    def pop(self, chat_id: int) -> Optional[State]:
        state = self.get(chat_id)
        self._entries.pop(chat_id, None)
        return state

    def purge(self) -> int:
        now = self._clock()
        expired = [cid for cid, (touched, _) in self._entries.items() if now - touched > self.ttl]
        for chat_id in expired:
            del self._entries[chat_id]
        return len(expired)

    def __contains__(self, chat_id: int) -> bool:
        return self.get(chat_id) is not None

    def __len__(self) -> int:
        self.purge()
        return len(self._entries)


def parse_number(text: str, low: float, high: float) -> Optional[float]:
    """Parse ``text`` as a plain decimal number in [low, high], or return None."""
    text = (text or '').strip()
    if not DECIMAL_RE.match(text):
        return None
    value = float(text)
    if not math.isfinite(value) or value < low or value > high:
        return None
    return value
