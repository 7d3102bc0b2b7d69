# spin_harvester/domain/events/event_dispatcher.py
import logging
from enum import Enum
from typing import Dict, List, Callable

from spin_harvester.domain.events.harvest_events import HarvestEvent


class EventDispatcher:
    """
    Dispatches domain events to registered handlers.
    """
    def __init__(self):
        """Initialize the event dispatcher."""
        self.logger = logging.getLogger("domain.events.dispatcher")
        self.handlers: Dict[Enum, List[Callable[[HarvestEvent], None]]] = {}

    def register(self, event_type: Enum, handler: Callable[[HarvestEvent], None]):
        """
        Register a handler for a specific event type.

        Args:
            event_type: Type of event to handle
            handler: Function to call when event occurs
        """
        self.handlers.setdefault(event_type, []).append(handler)
        self.logger.debug(f"Registered handler for event type: {event_type.name}")

    def dispatch(self, event: HarvestEvent):
        """
        Dispatch an event to all registered handlers.

        A failing handler is logged and never interrupts the publisher.

        Args:
            event: Event to dispatch
        """
        handlers = list(self.handlers.get(event.type, []))

        if not handlers:
            self.logger.debug(f"No handlers registered for event: {event}")
            return

        self.logger.debug(f"Dispatching event {event} to {len(handlers)} handlers")

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self.logger.error(f"Error in event handler: {str(e)}")

    def unregister(self, event_type: Enum, handler: Callable[[HarvestEvent], None]) -> bool:
        """
        Unregister a handler for a specific event type.

        Returns:
            True if handler was removed, False if not found
        """
        if handler in self.handlers.get(event_type, []):
            self.handlers[event_type].remove(handler)
            self.logger.debug(f"Unregistered handler for event type: {event_type.name}")
            return True
        return False
