from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .config import DB_PATH
from .models import Course
from .playback import PlaybackStateMachine
from .store import JsonCourseStore


@dataclass
class EditingSession:
    """
    One admin editing one course.
    Scenes whose natural size is known are held in pixel space; unsized scenes stay as loaded
    until their background is captured.
    """

    course: Course
    user_id: str
    dirty: bool = False


@dataclass
class PlaybackSession:
    """A live attempt. Events on one session run one at a time under `lock`."""

    machine: PlaybackStateMachine
    user_id: str
    lock: threading.Lock = field(default_factory=threading.Lock)


@dataclass
class AppState:
    store: JsonCourseStore
    # course id -> session
    editing: dict[str, EditingSession] = field(default_factory=dict)
    # progress id -> session
    playback: dict[str, PlaybackSession] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock)


STATE = AppState(store=JsonCourseStore(DB_PATH))


def reset_state(store: JsonCourseStore | None = None) -> AppState:
    """Drop every session and (optionally) point the app at another store. Used by tests."""
    with STATE.lock:
        if store is not None:
            STATE.store = store
        STATE.editing.clear()
        STATE.playback.clear()
    return STATE
