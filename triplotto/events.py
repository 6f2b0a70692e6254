"""Append-only notification log for game state changes."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Game, GameEvent
from .providers.interfaces import Clock

logger = logging.getLogger(__name__)

EventSubscriber = Callable[[GameEvent], None]


class EventLog:
    """Writes a :class:`GameEvent` row per state change and notifies subscribers.

    Subscribers are called synchronously after the row is added to the
    session. An exception raised by a subscriber propagates to the operation
    that emitted the event. Events are stamped with ``clock`` when one is
    given, otherwise with the wall clock.
    """

    def __init__(self, session: Session, *, clock: Optional[Clock] = None) -> None:
        self._session = session
        self._clock = clock
        self._subscribers: list[EventSubscriber] = []

    def subscribe(self, subscriber: EventSubscriber) -> Callable[[], None]:
        """Register ``subscriber`` and return a function that removes it."""
        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    def record(
        self,
        game: Game,
        event_type: str,
        *,
        occurred_at: Optional[datetime] = None,
        **payload,
    ) -> GameEvent:
        """Append an event of ``event_type`` for ``game`` with a JSON ``payload``."""
        event = GameEvent(game_id=game.id, event_type=event_type, payload=payload)
        if occurred_at is None and self._clock is not None:
            occurred_at = self._clock.now()
        if occurred_at is not None:
            event.occurred_at = occurred_at
        self._session.add(event)
        self._session.flush()
        logger.info(f"game {game.id}: {event_type} {payload}")

        for subscriber in list(self._subscribers):
            subscriber(event)
        return event

    def events_for(self, game_id: int, event_type: Optional[str] = None) -> list[GameEvent]:
        """Return the events of ``game_id`` in the order they were written."""
        stmt = select(GameEvent).where(GameEvent.game_id == game_id)
        if event_type is not None:
            stmt = stmt.where(GameEvent.event_type == event_type)
        return list(self._session.scalars(stmt.order_by(GameEvent.id.asc())).all())


__all__ = ["EventLog", "EventSubscriber"]
