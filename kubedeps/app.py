"""Application bootstrap for kubedeps.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → REST

Shutdown is fully graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single component failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from kubedeps.config import load_config
from kubedeps.models.config import KubeDepsConfig
from kubedeps.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from kubedeps.cluster.kubernetes import KubernetesClusterClient

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


async def load_kubernetes_config() -> str:
    """Load in-cluster config, falling back to kubeconfig. Returns the source used."""
    # Imported lazily; kubernetes-asyncio inspects the environment on import.
    import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]

    try:
        # load_incluster_config() is synchronous in kubernetes-asyncio
        k8s_config.load_incluster_config()
        return "in-cluster"
    except k8s_config.ConfigException:
        # load_kube_config() is async in kubernetes-asyncio
        await k8s_config.load_kube_config()
        return "kubeconfig"


class KubeDepsApp:
    """Application root. Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self) -> None:
        self.config: KubeDepsConfig | None = None
        self._cluster_client: KubernetesClusterClient | None = None
        self._rest_server: object | None = None
        self._background_tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kubedeps starting", version=_kubedeps_version())

        # --- 3. Kubernetes client ----------------------------------------
        await self._start_cluster_client()

        # --- 4. REST API ------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("kubedeps started", port=self.config.api.port)

    async def _start_cluster_client(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            source = await load_kubernetes_config()
            from kubedeps.cluster.kubernetes import KubernetesClusterClient

            self._cluster_client = KubernetesClusterClient()
            self._log.info("k8s client configured", source=source)
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        assert self._cluster_client is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from kubedeps.api.app import create_app

            fastapi_app = create_app(client=self._cluster_client, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubedeps shutting down")
        self._running = False

        if self._rest_server is not None:
            # uvicorn exits its serve() loop once should_exit is set
            self._rest_server.should_exit = True  # type: ignore[attr-defined]
        if self._background_tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._background_tasks, return_exceptions=True),
                    timeout=_SHUTDOWN_GRACE_SECONDS,
                )
            except TimeoutError:
                log.warning("rest api stop timed out", timeout=_SHUTDOWN_GRACE_SECONDS)
                for task in self._background_tasks:
                    task.cancel()
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_cluster_client()
        log.info("kubedeps stopped")

    async def _stop_cluster_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._cluster_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._cluster_client.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._cluster_client = None


def _kubedeps_version() -> str:
    from kubedeps import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeDepsApp()
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        # Block until shutdown is triggered (the REST server runs concurrently)
        while app.running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()
