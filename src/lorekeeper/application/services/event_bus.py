from collections import defaultdict
import logging
from typing import Callable, DefaultDict, List, Type


Handler = Callable[[object], None]


class EventBus:
    """Synchronous in-process dispatcher.

    Handlers run in ascending priority, then registration order. A failing
    handler is logged and isolated so later handlers for the same event still
    run; the collected errors are available from ``last_publish_errors``.
    """

    def __init__(self) -> None:
        self._subscribers: DefaultDict[Type[object], List[tuple[int, int, Handler]]] = defaultdict(list)
        self._next_order = 0
        self._last_publish_errors: List[Exception] = []
        self._unread_errors: List[Exception] = []
        self._logger = logging.getLogger(__name__)

    def subscribe(self, event_type: Type[object], handler: Handler, *, priority: int = 100) -> None:
        self._subscribers[event_type].append((int(priority), self._next_order, handler))
        self._next_order += 1
        self._subscribers[event_type].sort(key=lambda row: (row[0], row[1]))

    def unsubscribe(self, event_type: Type[object], handler: Handler) -> bool:
        rows = self._subscribers.get(event_type, [])
        kept = [row for row in rows if row[2] is not handler]
        self._subscribers[event_type] = kept
        return len(kept) != len(rows)

    def publish(self, event: object) -> List[Exception]:
        errors: List[Exception] = []
        event_type = type(event)
        for priority, _, handler in list(self._subscribers.get(event_type, [])):
            try:
                handler(event)
            except Exception as exc:
                errors.append(exc)
                handler_name = getattr(handler, "__qualname__", getattr(handler, "__name__", repr(handler)))
                self._logger.exception(
                    "Event handler failed and was isolated",
                    extra={
                        "event_type": event_type.__name__,
                        "handler": handler_name,
                        "priority": priority,
                    },
                )
        self._last_publish_errors = errors
        self._unread_errors.extend(errors)
        return list(errors)

    def last_publish_errors(self) -> List[Exception]:
        return list(self._last_publish_errors)

    def drain_errors(self) -> List[Exception]:
        """Every isolated handler error since the previous drain, oldest first."""
        errors = self._unread_errors
        self._unread_errors = []
        return errors
