"""Single in-flight installation runner for the HTTP API."""

import asyncio
import json
import typing
from collections.abc import Awaitable, Callable

from penumbra_installer.exceptions import InstallationInProgressError, InstallerError
from penumbra_installer.logger import get_logger
from penumbra_installer.models.api import InstallRequest
from penumbra_installer.models.install_config import InstallConfig
from penumbra_installer.models.settings import InstallerSettings
from penumbra_installer.services.config import ConfigLoader, filter_repositories, materialize

from .cancellation import CancellationToken
from .installation import InstallationEngine, ProgressSink

logger = get_logger(__name__)

EngineFactory = Callable[[InstallConfig, InstallerSettings, ProgressSink], Awaitable[InstallationEngine]]


async def _default_engine_factory(
    config: InstallConfig, settings: InstallerSettings, progress: ProgressSink
) -> InstallationEngine:
    return await InstallationEngine.create(config, settings, progress=progress)


def _event(payload: dict[str, typing.Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


class InstallationRunner:
    """
    Owns the cancellation token of the current run and refuses a second one.

    Progress is delivered as server-sent event frames, one JSON object per
    frame: ``{"message": ...}`` lines followed by a final
    ``{"status": "done" | "cancelled" | "error", ...}``.
    """

    def __init__(self, engine_factory: EngineFactory | None = None) -> None:
        self._engine_factory = engine_factory or _default_engine_factory
        self._token: CancellationToken | None = None

    @property
    def is_running(self) -> bool:
        return self._token is not None

    def cancel(self) -> bool:
        """Request cancellation of the current run. Returns False if nothing is running."""
        if self._token is None:
            return False
        logger.info("Cancellation requested")
        self._token.cancel()
        return True

    def start_installation(
        self,
        request: InstallRequest,
        settings: InstallerSettings,
    ) -> typing.AsyncGenerator[str, None]:
        """
        Claim the runner and return the progress stream of a new installation.

        Raises:
            InstallationInProgressError: If a run is already in flight
        """
        if self._token is not None:
            raise InstallationInProgressError()

        token = CancellationToken()
        self._token = token
        return self._stream(request, settings, token)

    async def _stream(
        self,
        request: InstallRequest,
        settings: InstallerSettings,
        token: CancellationToken,
    ) -> typing.AsyncGenerator[str, None]:
        queue: asyncio.Queue[str | None] = asyncio.Queue()

        def progress(message: str) -> None:
            queue.put_nowait(_event({"message": message}))

        async def run_install() -> None:
            try:
                config = materialize(ConfigLoader.load_builtin(), request.variables)
                repositories = filter_repositories(config, request.repos or None)

                async with await self._engine_factory(config, settings, progress) as engine:
                    await engine.install(repositories, cancel=token)

                status = "cancelled" if token.is_cancelled else "done"
                await queue.put(_event({"status": status}))
            except InstallerError as e:
                logger.error(f"Installation failed: {e}")
                await queue.put(_event({"status": "error", "message": str(e)}))
            except Exception as e:
                logger.exception("Unexpected installation failure")
                await queue.put(_event({"status": "error", "message": str(e)}))
            finally:
                self._token = None
                await queue.put(None)

        task = asyncio.create_task(run_install())

        try:
            while True:
                data = await queue.get()
                if data is None:
                    break
                yield data
        finally:
            # Client went away before the run finished
            if not task.done():
                token.cancel()
