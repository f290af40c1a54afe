"""
HalRest — Controller Event Bus
================================

What:  Typed pre/post hooks fired around every controller operation.
How:   RestEvent is a closed enum of ``<operation>.pre`` / ``<operation>.post``
       names. Listeners register per event on an EventBus and are called
       synchronously, in registration order, with an Event value.
Who:   RestController triggers; application code registers listeners (audit
       logging, cache invalidation, notifications).

Listener exceptions propagate to the caller. The controller does not consume
listener return values.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping

logger = logging.getLogger(__name__)


class RestEvent(str, Enum):
    """Event names triggered by RestController."""

    CREATE_PRE = "create.pre"
    CREATE_POST = "create.post"
    GET_PRE = "get.pre"
    GET_POST = "get.post"
    GET_LIST_PRE = "getList.pre"
    GET_LIST_POST = "getList.post"
    UPDATE_PRE = "update.pre"
    UPDATE_POST = "update.post"
    REPLACE_LIST_PRE = "replaceList.pre"
    REPLACE_LIST_POST = "replaceList.post"
    PATCH_PRE = "patch.pre"
    PATCH_POST = "patch.post"
    PATCH_LIST_PRE = "patchList.pre"
    PATCH_LIST_POST = "patchList.post"
    DELETE_PRE = "delete.pre"
    DELETE_POST = "delete.post"
    DELETE_LIST_PRE = "deleteList.pre"
    DELETE_LIST_POST = "deleteList.post"
    OPTIONS_PRE = "options.pre"
    OPTIONS_POST = "options.post"


@dataclass(frozen=True)
class Event:
    """What a listener receives: the event name, the triggering object and its params."""

    name: RestEvent
    target: Any
    params: Mapping[str, Any] = field(default_factory=dict)


Listener = Callable[[Event], Any]


class EventBus:
    """Synchronous publish/subscribe keyed by RestEvent."""

    def __init__(self) -> None:
        self._listeners: Dict[RestEvent, List[Listener]] = defaultdict(list)

    def on(self, event: RestEvent, listener: Listener) -> Listener:
        """Register ``listener`` for ``event``; returns it so it can be used as a decorator target."""
        event = RestEvent(event)
        self._listeners[event].append(listener)
        logger.debug("Registered %r for %s", listener, event.value)
        return listener

    def off(self, event: RestEvent, listener: Listener) -> None:
        listeners = self._listeners.get(RestEvent(event), [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, event: RestEvent) -> List[Listener]:
        return list(self._listeners.get(RestEvent(event), []))

    def trigger(
        self,
        event: RestEvent,
        target: Any,
        params: Mapping[str, Any] | None = None,
    ) -> Event:
        """Call every listener of ``event`` in order and return the Event they saw."""
        evt = Event(name=RestEvent(event), target=target, params=dict(params or {}))
        for listener in self.listeners(evt.name):
            listener(evt)
        return evt
