"""
Lightweight Event System

The core exposes plain query/command functions; anything that wants to
react to model changes (a UI refresh, reminder scheduling) subscribes
here instead of polling.
"""
import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

# Event registry: event_name -> list of handlers
_event_handlers: Dict[str, List[Callable]] = {}


def subscribe(event_name: str, handler: Callable):
    """
    Subscribe a handler function to an event.

    Args:
        event_name: Name of the event (e.g., 'daily_tasks.generated')
        handler: Function called with the event's keyword arguments

    Example:
        def on_generated(date: str, created: int, **_):
            ...
        subscribe(EVENT_DAILY_TASKS_GENERATED, on_generated)
    """
    if event_name not in _event_handlers:
        _event_handlers[event_name] = []

    _event_handlers[event_name].append(handler)
    logger.debug(f"Subscribed handler to event: {event_name}")


def unsubscribe(event_name: str, handler: Callable):
    """Remove a previously subscribed handler; unknown handlers are ignored."""
    handlers = _event_handlers.get(event_name, [])
    if handler in handlers:
        handlers.remove(handler)


def emit(event_name: str, **kwargs):
    """
    Emit an event, calling all subscribed handlers.

    Handler failures are logged and never propagate into the command that
    emitted the event; by the time events fire the data is committed.
    """
    if event_name not in _event_handlers:
        return

    for handler in list(_event_handlers[event_name]):
        try:
            handler(**kwargs)
        except Exception as e:
            logger.error(f"Error in event handler for {event_name}: {e}", exc_info=True)


# Event names
EVENT_CHALLENGE_CREATED = 'challenge.created'
EVENT_CHALLENGE_STATUS_CHANGED = 'challenge.status_changed'
EVENT_CHALLENGE_PROGRESS_UPDATED = 'challenge.progress_updated'
EVENT_DAILY_TASKS_GENERATED = 'daily_tasks.generated'
EVENT_DAILY_TASK_UPDATED = 'daily_task.updated'
