"""
Playback Errors - Domain-specific error types.

Error hierarchy:
    PlaybackError (base)
    ├── AssignmentError
    ├── DecodeError
    ├── GraphError
    └── InvalidTransitionError

Propagation:
    Errors raised inside media-clock handlers are logged and converted to
    state-preserving no-ops by the scheduler. Errors raised by explicit
    commands (initialize, advance) reach the caller; the engine turns them
    into failed CommandResults.
"""

from __future__ import annotations

from typing import Any


class PlaybackError(Exception):
    """Base error for all playback-related errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AssignmentError(PlaybackError):
    """
    Raised when a track assignment has the wrong shape.

    Examples:
    - Fewer or more sources than emitters x tracks
    - Two sources claiming the same (emitter, slot)
    - Emitter or slot index out of range

    Fatal to that assignment attempt; the caller may re-prompt.
    """

    def __init__(
        self,
        message: str,
        expected: int | None = None,
        received: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.expected = expected
        self.received = received


class DecodeError(PlaybackError):
    """
    Raised when a media resource cannot be decoded or loaded.

    Fatal during initialize(). During an asynchronous pre-load it is
    logged and retried on the end trigger.
    """

    def __init__(
        self,
        source: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message or f"Cannot decode {source!r}", details)
        self.source = source


class GraphError(PlaybackError):
    """
    Raised when connecting or disconnecting an emitter chain fails.

    The emitter stays silent until the next successful transition;
    other emitters are unaffected.
    """

    def __init__(
        self,
        emitter_index: int,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(f"[emitter {emitter_index}] {message}", details)
        self.emitter_index = emitter_index


class InvalidTransitionError(PlaybackError):
    """
    Raised for invalid session state transitions.

    Examples:
    - IDLE → READY (nothing is playing yet)
    - TRANSITIONING → TRANSITIONING (a swap is already in progress)
    - DESTROYED → anything
    """

    def __init__(
        self,
        from_state: str,
        to_state: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        msg = message or f"Invalid transition: {from_state} → {to_state}"
        super().__init__(msg, details)
        self.from_state = from_state
        self.to_state = to_state
