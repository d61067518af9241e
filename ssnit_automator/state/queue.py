"""Per-phase work queues

A WorkQueue wraps a persisted list of items and its cursor. Status changes go
through the phase's transition table so an item that reached a terminal
status is never revisited in that phase.
"""

from ssnit_automator.state.model import ItemStatus

P = ItemStatus

# Valid transitions: {from_status: {valid_to_statuses}}
CAPTURE_TRANSITIONS = {
    P.PENDING: {P.IN_PROGRESS, P.DONE, P.DUPLICATE, P.FAILED, P.SKIPPED},
    P.IN_PROGRESS: {P.DONE, P.DUPLICATE, P.FAILED, P.SKIPPED},
    P.DONE: set(),
    P.DUPLICATE: set(),
    P.FAILED: set(),
    P.SKIPPED: set(),
}

VALIDATION_TRANSITIONS = {
    P.PENDING: {P.IN_PROGRESS, P.DONE, P.FAILED, P.SKIPPED},
    P.IN_PROGRESS: {P.PENDING, P.DONE, P.FAILED, P.SKIPPED},
    P.DONE: set(),
    P.FAILED: set(),
    P.SKIPPED: set(),
}

WAGE_EDIT_TRANSITIONS = {
    P.PENDING: {P.IN_PROGRESS, P.DONE, P.FAILED, P.SKIPPED},
    P.IN_PROGRESS: {P.PENDING, P.DONE, P.FAILED, P.SKIPPED},
    P.DONE: set(),
    P.FAILED: set(),
    P.SKIPPED: set(),
}


class IllegalStatusTransition(Exception):
    """Raised when an item status change is not allowed in its phase."""

    def __init__(self, er, from_status, to_status):
        self.er = er
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Illegal status transition for {er}: {from_status.value} -> {to_status.value}"
        )


class WorkQueue:
    """Ordered items plus cursor. Mutates the list it was given."""

    def __init__(self, items, index, transitions):
        self.items = items
        self.index = max(0, index)
        self.transitions = transitions

    def __len__(self):
        return len(self.items)

    def current(self):
        """Current non-terminal item, advancing the cursor past finished ones"""
        while self.index < len(self.items) and self.items[self.index].is_terminal:
            self.index += 1
        if self.index >= len(self.items):
            return None
        return self.items[self.index]

    def is_exhausted(self):
        return self.current() is None

    def set_status(self, item, status):
        if status == item.status:
            return
        allowed = self.transitions.get(item.status, set())
        if status not in allowed:
            raise IllegalStatusTransition(item.er, item.status, status)
        item.status = status

    def mark(self, status, result="", message="", now=None):
        """Record an outcome on the current item without moving the cursor"""
        item = self.current()
        if item is None:
            return None
        self.set_status(item, status)
        item.result = result or status.value
        item.message = message
        item.timestamp = now
        return item

    def advance(self):
        self.index += 1

    def finish(self, status, result="", message="", now=None):
        """Mark the current item and move to the next one"""
        item = self.mark(status, result, message, now)
        if item is not None:
            self.advance()
        return item

    def append(self, item):
        self.items.append(item)

    def requeue_current(self):
        """Move the current item to the back; the next item slides into place"""
        item = self.current()
        if item is None:
            return None
        self.items.pop(self.index)
        self.items.append(item)
        return item

    def remove_current(self):
        item = self.current()
        if item is None:
            return None
        return self.items.pop(self.index)

    def rebuild(self, items):
        self.items[:] = list(items)
        self.index = 0

    def remaining(self):
        return [item for item in self.items if not item.is_terminal]

    def counts(self):
        counts = {status.value: 0 for status in self.transitions}
        for item in self.items:
            counts[item.status.value] = counts.get(item.status.value, 0) + 1
        return counts


def capture_queue(state):
    return WorkQueue(state.capture_queue, state.capture_index, CAPTURE_TRANSITIONS)


def validation_queue(state):
    return WorkQueue(state.validation_queue, state.validation_index, VALIDATION_TRANSITIONS)


def wage_edit_queue(state):
    return WorkQueue(state.wage_edit_queue, state.wage_edit_index, WAGE_EDIT_TRANSITIONS)
