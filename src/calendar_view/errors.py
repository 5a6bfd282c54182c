"""Exceptions raised by the store, the event form and the interaction controller."""


class EventNotFoundError(KeyError):
    """No event with the given id exists in the store."""

    def __init__(self, event_id: str):
        super().__init__(event_id)
        self.event_id = event_id

    def __str__(self) -> str:
        return f"Event not found: {self.event_id}"


class EventValidationError(ValueError):
    """Event form data cannot be turned into a well-formed event."""


class InteractionError(RuntimeError):
    """A pointer gesture arrived in a state that cannot handle it."""


class SupersededError(Exception):
    """A pending store operation was replaced by a newer one before it finished."""


class SaveSupersededError(SupersededError):
    """A newer edit of the same event cancelled this save."""
