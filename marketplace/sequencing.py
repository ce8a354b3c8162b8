"""
Request Sequencer
Version: 1.0

Monotonic tickets for loads issued by one view model.
Only the response of the latest-issued ticket is applied; a slower,
older response that completes afterwards is dropped.
"""

import itertools
import logging

logger = logging.getLogger(__name__)


class RequestSequencer:
    """
    Usage:
        ticket = sequencer.issue()
        data = await fetch()
        if sequencer.is_current(ticket):
            apply(data)
    """

    def __init__(self, name: str = "requests"):
        self.name = name
        self._counter = itertools.count(1)
        self._latest = 0

    def issue(self) -> int:
        self._latest = next(self._counter)
        return self._latest

    def is_current(self, ticket: int) -> bool:
        if ticket != self._latest:
            logger.debug(f"{self.name}: dropping stale response #{ticket} (latest #{self._latest})")
            return False
        return True

    def invalidate(self) -> None:
        """Make every outstanding ticket stale."""
        self._latest = next(self._counter)

    @property
    def latest(self) -> int:
        return self._latest
