"""
events.py — Plain Callback Signals
===================================
The solver never looks up a global relay to learn about resets. Whoever
builds it passes a Signal in, and the solver connects its handler:

    reset = Signal()
    solver = FluidSolver(32, 32, reset_signal=reset)
    reset.emit()            # → solver.request_reset()
"""

from typing import Callable


class Signal:
    """An ordered list of zero-argument callbacks."""

    def __init__(self):
        self._callbacks: list[Callable[[], None]] = []

    def connect(self, callback: Callable[[], None]):
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def disconnect(self, callback: Callable[[], None]):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def emit(self):
        # Iterate a copy: callbacks may disconnect themselves
        for callback in list(self._callbacks):
            callback()

    def __len__(self):
        return len(self._callbacks)
