from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..constants import CHANGE_FEED_TABLES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    action: str
    election_id: Optional[int]
    entity_id: Optional[int] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


ChangeHandler = Callable[[Session, ChangeEvent], None]


class ChangeFeed:
    """In-process change notifications keyed by table name.

    Publishers call :meth:`publish` after their transaction committed; every
    handler subscribed to the event's table runs synchronously with the
    publisher's session. A failing handler is logged and does not affect the
    publisher or the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[ChangeHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, table: str, handler: ChangeHandler) -> None:
        if table not in CHANGE_FEED_TABLES:
            raise ValueError(f"Table {table!r} does not publish change events")
        with self._lock:
            if handler not in self._handlers[table]:
                self._handlers[table].append(handler)

    def unsubscribe(self, table: str, handler: ChangeHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(table)
            if handlers and handler in handlers:
                handlers.remove(handler)

    def publish(self, session: Session, event: ChangeEvent) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event.table, ()))
        logger.debug("Change event %s.%s for election %s (%d handlers)", event.table, event.action, event.election_id, len(handlers))
        for handler in handlers:
            try:
                handler(session, event)
            except Exception:
                logger.exception("Change handler %r failed for %s.%s", handler, event.table, event.action)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


change_feed = ChangeFeed()
