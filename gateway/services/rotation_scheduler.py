"""
Background timers that keep provider credentials fresh.

One timer checks every provider's access-token age on a fixed tick; each
provider with secret rotation enabled gets a second timer of its own. A failed
run is logged and retried on the next tick; nothing stops a timer except
``stop()``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional

from gateway.core.errors import TokenRotationError
from gateway.services.credential_store import CredentialStore
from gateway.services.provider_registry import ProviderRegistry
from gateway.services.secret_rotation import SecretRotationEngine
from gateway.services.token_rotation import RotationEngine

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Await ``callback`` every ``interval`` seconds until stopped."""

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[object]],
    ) -> None:
        self.name = name
        self.interval = interval
        self._callback = callback
        self._stopped: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopped = asyncio.Event()
        self._task = asyncio.create_task(
            self._run(self._stopped), name=f"periodic:{self.name}"
        )

    async def stop(self) -> None:
        if self._task is None or self._stopped is None:
            return
        self._stopped.set()
        try:
            await self._task
        finally:
            self._task = None

    async def fire(self) -> None:
        """Run the callback once, logging instead of propagating failures."""
        try:
            await self._callback()
        except Exception:
            logger.exception("Periodic task %s failed", self.name)

    async def _run(self, stopped: asyncio.Event) -> None:
        while not stopped.is_set():
            try:
                await asyncio.wait_for(stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.fire()


class RotationScheduler:
    """Drive ``RotationEngine`` and ``SecretRotationEngine`` from timers."""

    def __init__(
        self,
        registry: ProviderRegistry,
        credential_store: CredentialStore,
        rotation_engine: RotationEngine,
        secret_engine: SecretRotationEngine,
        *,
        check_interval_seconds: float = 60.0,
    ) -> None:
        self._registry = registry
        self._store = credential_store
        self._rotation = rotation_engine
        self._secrets = secret_engine
        self._check_interval = check_interval_seconds
        self._tasks: List[PeriodicTask] = []

    @property
    def tasks(self) -> List[PeriodicTask]:
        return list(self._tasks)

    @property
    def running(self) -> bool:
        return any(task.running for task in self._tasks)

    async def check_access_tokens(self) -> Dict[str, bool]:
        """One tick: rotate every provider whose token is older than its interval."""
        outcomes: Dict[str, bool] = {}
        for provider in self._registry:
            if not provider.rotation_enabled:
                continue
            interval = timedelta(seconds=provider.rotation_interval_seconds)
            if self._store.age_since_rotation(provider.name) < interval:
                continue
            try:
                outcomes[provider.name] = await self._rotation.rotate(provider.name)
            except TokenRotationError as exc:
                logger.warning(
                    "Automatic rotation failed for %s (%s): %s",
                    provider.name,
                    exc.code,
                    exc.message,
                )
                outcomes[provider.name] = False
            except Exception:
                logger.exception("Automatic rotation crashed for %s", provider.name)
                outcomes[provider.name] = False
        return outcomes

    async def rotate_secret(self, provider_name: str) -> bool:
        """One secret-rotation tick for a single provider."""
        try:
            return await self._secrets.rotate_secret(provider_name)
        except TokenRotationError as exc:
            logger.warning(
                "Automatic secret rotation failed for %s (%s): %s",
                provider_name,
                exc.code,
                exc.message,
            )
        except Exception:
            logger.exception("Automatic secret rotation crashed for %s", provider_name)
        return False

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            PeriodicTask("access-token-rotation", self._check_interval, self.check_access_tokens)
        ]
        for provider in self._registry:
            if provider.secret_rotation.enabled:
                self._tasks.append(
                    PeriodicTask(
                        f"secret-rotation:{provider.name}",
                        provider.secret_rotation.interval_seconds,
                        partial(self.rotate_secret, provider.name),
                    )
                )
        for task in self._tasks:
            task.start()
        logger.info("Rotation scheduler started with %s timer(s)", len(self._tasks))

    async def stop(self) -> None:
        for task in self._tasks:
            await task.stop()
        if self._tasks:
            logger.info("Rotation scheduler stopped")
        self._tasks = []


__all__ = ["PeriodicTask", "RotationScheduler"]
