"""Pure domain helpers shared by all transfer packages."""

from transfer_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "DeterministicClock", "SystemClock"]
