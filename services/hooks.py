"""
Post-commit Hooks

Side effects (audit entries, notification emails) that run after a
primary write has committed. A failing hook is logged and skipped; it
never affects the caller's result or the other hooks.
"""

import logging
from collections import defaultdict

logger = logging.getLogger(__name__)


class PostCommitHooks:
    """Ordered callbacks per event name."""

    def __init__(self):
        self._hooks = defaultdict(list)

    def register(self, event: str, func):
        self._hooks[event].append(func)
        return func

    def clear(self, event: str = None):
        if event is None:
            self._hooks.clear()
        else:
            self._hooks.pop(event, None)

    def hooks_for(self, event: str):
        return list(self._hooks.get(event, []))

    def run(self, event: str, **payload) -> int:
        """
        Run every hook for an event.

        Returns:
            Number of hooks that completed without raising
        """
        completed = 0
        for func in self.hooks_for(event):
            try:
                func(**payload)
                completed += 1
            except Exception as e:
                logger.exception(f"Hook {getattr(func, '__name__', func)} failed for {event}: {e}")
        return completed
