"""Runtime-toggleable latency and crash injection for the reservation path.

``ChaosConfig`` is shared by the chaos API routes (writers) and every
reservation attempt (readers). ``FaultInjector`` reads a snapshot of it at
call time, so a toggle takes effect on the next attempt.
"""
import logging
import random
import threading
import time
from dataclasses import dataclass

from valerix import config

logger = logging.getLogger("inventory.chaos")


class InjectedCrash(RuntimeError):
    """Processing aborted after its effect committed, before any reply."""


@dataclass(frozen=True)
class ChaosSettings:
    latency_enabled: bool = False
    min_latency_ms: int = 2000
    max_latency_ms: int = 5000
    crash_enabled: bool = False
    crash_probability: float = 0.5

    def to_dict(self) -> dict:
        return {
            "gremlinEnabled": self.latency_enabled,
            "minLatencyMs": self.min_latency_ms,
            "maxLatencyMs": self.max_latency_ms,
            "schrodingerEnabled": self.crash_enabled,
            # dashboard spelling
            "schrödingerEnabled": self.crash_enabled,
            "crashProbability": self.crash_probability,
        }


class ChaosConfig:
    def __init__(self, settings: ChaosSettings | None = None):
        self._lock = threading.Lock()
        self._settings = settings or ChaosSettings()

    @classmethod
    def from_env(cls) -> "ChaosConfig":
        return cls(ChaosSettings(
            latency_enabled=config.GREMLIN_MODE,
            min_latency_ms=config.GREMLIN_MIN_LATENCY_MS,
            max_latency_ms=config.GREMLIN_MAX_LATENCY_MS,
            crash_enabled=config.SCHRODINGER_MODE,
            crash_probability=config.SCHRODINGER_PROBABILITY,
        ))

    def snapshot(self) -> ChaosSettings:
        with self._lock:
            return self._settings

    def set_latency(self, enabled: bool, min_ms: int | None = None,
                    max_ms: int | None = None) -> ChaosSettings:
        with self._lock:
            lo = self._settings.min_latency_ms if min_ms is None else min_ms
            hi = self._settings.max_latency_ms if max_ms is None else max_ms
            if lo < 0 or hi < lo:
                raise ValueError(f"invalid latency bounds: [{lo}, {hi}]")
            self._settings = ChaosSettings(
                latency_enabled=enabled,
                min_latency_ms=lo,
                max_latency_ms=hi,
                crash_enabled=self._settings.crash_enabled,
                crash_probability=self._settings.crash_probability,
            )
            settings = self._settings
        logger.info("Gremlin latency %s [%d, %d] ms", "ON" if enabled else "OFF", lo, hi)
        return settings

    def set_crash(self, enabled: bool, probability: float | None = None) -> ChaosSettings:
        with self._lock:
            p = self._settings.crash_probability if probability is None else probability
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"crash probability must be within [0, 1], got {p}")
            self._settings = ChaosSettings(
                latency_enabled=self._settings.latency_enabled,
                min_latency_ms=self._settings.min_latency_ms,
                max_latency_ms=self._settings.max_latency_ms,
                crash_enabled=enabled,
                crash_probability=p,
            )
            settings = self._settings
        logger.info("Schrodinger crash %s p=%.2f", "ON" if enabled else "OFF", p)
        return settings


class FaultInjector:
    def __init__(self, chaos: ChaosConfig, rng: random.Random | None = None, sleep=time.sleep):
        self.chaos = chaos
        self._rng = rng or random.Random()
        self._sleep = sleep

    def delay(self) -> float:
        """Sleep before dispatch when latency is enabled; returns the delay in ms."""
        settings = self.chaos.snapshot()
        if not settings.latency_enabled:
            return 0.0
        latency_ms = self._rng.uniform(settings.min_latency_ms, settings.max_latency_ms)
        logger.info("Gremlin: adding %.0fms latency", latency_ms)
        self._sleep(latency_ms / 1000)
        return latency_ms

    def crash_after_commit(self, order_id: str) -> None:
        settings = self.chaos.snapshot()
        if settings.crash_enabled and self._rng.random() < settings.crash_probability:
            logger.warning("Schrodinger: crashing after commit of %s", order_id)
            raise InjectedCrash(f"injected crash after commit of {order_id}")
