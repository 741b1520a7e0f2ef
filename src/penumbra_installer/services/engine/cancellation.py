"""Cooperative cancellation for installation runs."""

import threading


class CancellationToken:
    """
    Thread-safe cancellation flag.

    A run checks the token between units of work; ``cancel()`` may be called
    from any thread or task. Cancellation stops new work from being issued and
    never rolls back what already ran.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
