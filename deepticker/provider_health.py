from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from deepticker.errors import ProviderErrorKind

logger = logging.getLogger(__name__)

_DISABLING_KINDS = {ProviderErrorKind.RATE_LIMITED, ProviderErrorKind.AUTH_ERROR}


@dataclass
class ProviderHealthState:
    enabled: bool = True
    disabled_until: float | None = None
    failure_count: int = 0
    success_count: int = 0
    last_failure_kind: ProviderErrorKind | None = None
    last_failure_timestamp: float | None = None


class ProviderHealthTracker:
    """
    Temporarily suppresses providers that signalled a rate limit or a bad credential.

    Re-enabling is lazy: ``check_and_maybe_reenable`` flips a provider back once
    its cooldown has passed, and callers run it right before ``is_enabled``.
    """

    def __init__(self, cooldown_seconds: float = 600, clock: Callable[[], float] = time.time):
        self.cooldown_seconds = cooldown_seconds
        self._state: dict[str, ProviderHealthState] = {}
        self._lock = Lock()
        self._clock = clock

    def _get(self, provider_id: str) -> ProviderHealthState:
        if provider_id not in self._state:
            self._state[provider_id] = ProviderHealthState()
        return self._state[provider_id]

    def is_enabled(self, provider_id: str) -> bool:
        with self._lock:
            return self._get(provider_id).enabled

    def check_and_maybe_reenable(self, provider_id: str, now: float | None = None) -> bool:
        now = self._clock() if now is None else now
        with self._lock:
            status = self._get(provider_id)
            if status.enabled:
                return True
            if status.disabled_until is not None and now >= status.disabled_until:
                status.enabled = True
                status.disabled_until = None
                logger.info("Provider re-enabled after cooldown", extra={"provider": provider_id})
                return True
            return False

    def record_failure(self, provider_id: str, kind: ProviderErrorKind):
        now = self._clock()
        with self._lock:
            status = self._get(provider_id)
            status.failure_count += 1
            status.last_failure_kind = kind
            status.last_failure_timestamp = now
            if kind not in _DISABLING_KINDS:
                return
            status.enabled = False
            status.disabled_until = now + self.cooldown_seconds
        logger.warning(
            "Provider disabled",
            extra={"provider": provider_id, "reason": kind.value, "cooldown_seconds": self.cooldown_seconds},
        )

    def record_success(self, provider_id: str):
        with self._lock:
            self._get(provider_id).success_count += 1

    def snapshot(self) -> dict[str, dict[str, int | float | str | bool | None]]:
        with self._lock:
            output = {}
            for provider_id, status in self._state.items():
                output[provider_id] = {
                    "enabled": status.enabled,
                    "disabled_until": status.disabled_until,
                    "failure_count": status.failure_count,
                    "success_count": status.success_count,
                    "last_failure_kind": status.last_failure_kind.value if status.last_failure_kind else None,
                    "last_failure_timestamp": status.last_failure_timestamp,
                }
            return output
