"""Fallbacks and bounded recovery for systemic failures.

Local geometry failures are handled where they happen (a broken light
shape falls back to the radius test, cover detection degrades to none).
This module covers the other case: a whole capability, visibility or
cover computation, raising on every call. Then:

  1. The capability is marked unavailable and the error is recorded.
  2. A ``FallbackChain`` produces a value. Tiers run in order (basic
     geometric approximation, then the stored manual value, then a
     hard-coded conservative constant) and the first tier that returns a
     value wins. A tier that raises or returns None passes to the next.
     Every result carries the strategy, the source and a human-readable
     explanation for diagnostics.
  3. A recovery probe is scheduled with exponential backoff
     (``base_delay * 2**attempt``: 1 s, 2 s, 4 s by default) up to
     ``max_attempts``. A passing probe marks the capability available
     again. Once the cap is hit, retrying stops and the fallback stays in
     effect until ``reset`` is called by the next explicit recalculation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, TypeVar

from .scheduler import Scheduler, TaskHandle

logger = logging.getLogger(__name__)

S = TypeVar("S")


class Strategy(Enum):
    BASIC_CALCULATION = "basic-calculation"
    MANUAL_OVERRIDE = "manual-override"
    GRACEFUL_DEGRADATION = "graceful-degradation"


class SystemType(Enum):
    VISIBILITY = "visibility"
    COVER = "cover"


@dataclass
class FallbackResult(Generic[S]):
    state: S
    strategy: Strategy
    source: str
    explanation: str
    can_recover: bool = True
    success: bool = True


@dataclass
class FallbackTier(Generic[S]):
    strategy: Strategy
    source: str
    explanation: str
    compute: Callable[[], S | None]


class FallbackChain(Generic[S]):
    def __init__(
        self,
        tiers: list[FallbackTier[S]],
        constant: S,
        constant_explanation: str,
    ):
        self.tiers = tiers
        self.constant = constant
        self.constant_explanation = constant_explanation

    def resolve(self) -> FallbackResult[S]:
        for tier in self.tiers:
            try:
                value = tier.compute()
            except Exception as e:
                logger.debug("fallback tier %s failed: %s", tier.source, e)
                continue
            if value is not None:
                return FallbackResult(
                    state=value,
                    strategy=tier.strategy,
                    source=tier.source,
                    explanation=tier.explanation,
                )
        return FallbackResult(
            state=self.constant,
            strategy=Strategy.GRACEFUL_DEGRADATION,
            source="conservative-fallback",
            explanation=self.constant_explanation,
        )


@dataclass
class ErrorRecord:
    system: SystemType
    message: str
    timestamp: float


@dataclass
class SystemStatus:
    available: bool = True
    last_error: str | None = None
    failures: int = 0
    recovery_attempts: int = 0
    recovery_pending: bool = False

    def to_dict(self) -> dict:
        return {
            "available": self.available,
            "last_error": self.last_error,
            "failures": self.failures,
            "recovery_attempts": self.recovery_attempts,
            "recovery_pending": self.recovery_pending,
        }


class ErrorHandler:
    def __init__(
        self,
        scheduler: Scheduler,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        history_limit: int = 50,
    ):
        self.scheduler = scheduler
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._history_limit = history_limit
        self.status: dict[SystemType, SystemStatus] = {
            s: SystemStatus() for s in SystemType
        }
        self.history: list[ErrorRecord] = []
        self._timers: dict[SystemType, TaskHandle] = {}

    def is_available(self, system: SystemType) -> bool:
        return self.status[system].available

    def handle_failure(
        self,
        system: SystemType,
        error: Exception,
        chain: FallbackChain[S],
        probe: Callable[[], bool] | None = None,
    ) -> FallbackResult[S]:
        status = self.status[system]
        status.available = False
        status.failures += 1
        status.last_error = str(error)
        self.history.append(
            ErrorRecord(system, str(error), self.scheduler.now())
        )
        if len(self.history) > self._history_limit:
            self.history = self.history[-self._history_limit :]
        logger.warning(
            "%s unavailable (%s), using fallback", system.value, error
        )
        result = self.fallback(system, chain)
        if probe is not None:
            self.schedule_recovery(system, probe)
        return result

    def fallback(
        self, system: SystemType, chain: FallbackChain[S]
    ) -> FallbackResult[S]:
        result = chain.resolve()
        status = self.status[system]
        result.can_recover = status.recovery_attempts < self.max_attempts
        return result

    def schedule_recovery(
        self, system: SystemType, probe: Callable[[], bool]
    ) -> bool:
        """Queue a probe; False when the cap is hit or one is pending."""
        status = self.status[system]
        if status.recovery_pending:
            return False
        if status.recovery_attempts >= self.max_attempts:
            logger.warning("max recovery attempts reached for %s", system.value)
            return False
        delay = self.base_delay * (2 ** status.recovery_attempts)
        status.recovery_pending = True
        self._timers[system] = self.scheduler.call_later(
            delay, lambda: self._attempt_recovery(system, probe)
        )
        return True

    def _attempt_recovery(
        self, system: SystemType, probe: Callable[[], bool]
    ) -> None:
        status = self.status[system]
        status.recovery_pending = False
        status.recovery_attempts += 1
        self._timers.pop(system, None)
        try:
            ok = bool(probe())
        except Exception as e:
            logger.debug("recovery probe for %s raised: %s", system.value, e)
            ok = False
        if ok:
            status.available = True
            status.last_error = None
            logger.info("recovered %s", system.value)
            return
        logger.warning(
            "recovery attempt %d for %s failed",
            status.recovery_attempts,
            system.value,
        )
        self.schedule_recovery(system, probe)

    def reset(self, system: SystemType | None = None) -> None:
        """Make the primary path eligible again and clear the retry budget."""
        systems = [system] if system is not None else list(SystemType)
        for s in systems:
            timer = self._timers.pop(s, None)
            if timer is not None:
                timer.cancel()
            self.status[s] = SystemStatus()

    def cancel_all(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        for status in self.status.values():
            status.recovery_pending = False

    def status_dict(self) -> dict:
        return {s.value: st.to_dict() for s, st in self.status.items()}
