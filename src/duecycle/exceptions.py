"""Domain-specific exceptions"""


class DuecycleError(Exception):
    """Base exception for the obligation engine"""


class InvalidStateError(DuecycleError):
    """An obligation was asked to make a transition its current state forbids"""

    def __init__(self, current: object, target: object) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition obligation from {current} to {target}")


class DuplicateOccurrenceError(DuecycleError):
    """An occurrence already exists for the same (obligation id, date) pair"""

    def __init__(self, obligation_id: str, on: object) -> None:
        self.obligation_id = obligation_id
        self.date = on
        super().__init__(f"Occurrence for {obligation_id} on {on} already exists")


class NotFoundError(DuecycleError):
    """A referenced obligation or loan plan does not exist in the store"""
