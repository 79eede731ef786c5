"""Renderer protocol and simple in-process renderers."""

from __future__ import annotations

from typing import Protocol, TextIO, runtime_checkable

from avatartrack.models import RigState


@runtime_checkable
class Renderer(Protocol):
    """Consumer of published rig states.

    ``publish`` is called at most once per frame with a complete state and
    must not block the frame loop.
    """

    def publish(self, state: RigState) -> None: ...


class RecordingRenderer:
    """Keeps every published state in memory."""

    def __init__(self, limit: int | None = None) -> None:
        self.limit = limit
        self.states: list[RigState] = []

    def publish(self, state: RigState) -> None:
        self.states.append(state)
        if self.limit is not None and len(self.states) > self.limit:
            del self.states[: len(self.states) - self.limit]

    @property
    def last(self) -> RigState | None:
        return self.states[-1] if self.states else None

    def clear(self) -> None:
        self.states.clear()


class JsonLinesRenderer:
    """Writes one JSON document per published state to a text stream."""

    def __init__(self, stream: TextIO, *, flush: bool = True) -> None:
        self.stream = stream
        self.flush = flush
        self.count = 0

    def publish(self, state: RigState) -> None:
        self.stream.write(state.model_dump_json())
        self.stream.write("\n")
        if self.flush:
            self.stream.flush()
        self.count += 1
