"""Pure domain helpers for the bilanz kernel."""

from bilanz_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "SystemClock", "DeterministicClock"]
