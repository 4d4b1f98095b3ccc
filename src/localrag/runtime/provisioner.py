"""
Runtime provisioner.

Decides whether to reuse an already running inference runtime or to bring up
the bundled one, and owns the lifetime of the runtime it started.

Resolution happens at most once per provisioner instance:

    1. Probe ``GET /api/tags``; a recognizable answer means an external
       runtime, which is used as-is and never stopped.
    2. Otherwise copy the bundled executable and default models into the data
       directory, export the runtime's environment, launch ``<exe> serve``
       (unless already running) and poll until it answers.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional
from urllib.parse import urlparse

from ..core.exceptions import RagProvisioningError
from ..core.types import DEFAULT_BASE_URL, ModelProgress, ProvisioningState, RuntimeSource
from ..providers.ollama_client import OllamaClient
from ..utils.retry import RetryPolicy, poll_until
from .assets import BundledAssets
from .process import ProcessControl, get_process_control


logger = logging.getLogger(__name__)


DEFAULT_RUNTIME_HOST = "127.0.0.1"
DEFAULT_SCHEME_PORTS = {"http": 80, "https": 443}

ProgressCallback = Callable[[ModelProgress], None]


class RuntimeProvisioner:
    """
    Resolves the inference runtime for this process.

    Example:
        >>> provisioner = RuntimeProvisioner(client, assets, default_models=["nomic-embed-text"])
        >>> state = provisioner.initialize()
        >>> state.source
        <RuntimeSource.EXTERNAL: 'external'>
        >>> provisioner.shutdown()
    """

    def __init__(
        self,
        client: OllamaClient,
        assets: BundledAssets,
        default_models: Iterable[str] = (),
        process_control: Optional[ProcessControl] = None,
        detection_timeout_seconds: float = 2.0,
        startup_policy: Optional[RetryPolicy] = None,
        environ: Optional[Dict[str, str]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Args:
            client: HTTP client pointed at the runtime base URL
            assets: Bundled binaries and models
            default_models: Models copied into the self-managed runtime
            process_control: OS process operations (detected when omitted)
            detection_timeout_seconds: Timeout of the initial probe
            startup_policy: Readiness polling policy (30 x 1s by default)
            environ: Environment mapping to populate (``os.environ`` by default)
            sleep: Sleep function for polling (injectable for tests)
        """
        self.client = client
        self.assets = assets
        self.default_models = list(default_models)
        self.process_control = process_control or get_process_control()
        self.detection_timeout = detection_timeout_seconds
        self.startup_policy = startup_policy or RetryPolicy.fixed(30, 1000)
        self.environ = os.environ if environ is None else environ
        self._sleep = sleep

        self._state = ProvisioningState(base_url=client.base_url or DEFAULT_BASE_URL)
        self._lock = threading.Lock()

    @property
    def state(self) -> ProvisioningState:
        return self._state

    def initialize(self, on_progress: Optional[ProgressCallback] = None) -> ProvisioningState:
        """
        Resolve the runtime, starting the bundled one if needed.

        Calling this again after a successful resolution returns the same
        state without probing.

        Raises:
            RagProvisioningError: Bundled assets are missing or the runtime
                did not become reachable
        """
        with self._lock:
            if self._state.resolved:
                return self._state

            if self.client.probe(timeout_seconds=self.detection_timeout):
                logger.info(f"Using external runtime at {self.client.base_url}")
                self._state = ProvisioningState(
                    source=RuntimeSource.EXTERNAL,
                    base_url=self.client.base_url,
                )
                return self._state

            logger.info("No runtime detected, starting bundled runtime")
            try:
                executable = self._start_bundled(on_progress)
            except RagProvisioningError:
                self._state = ProvisioningState(base_url=self.client.base_url)
                raise

            self._state = ProvisioningState(
                source=RuntimeSource.SELF_MANAGED,
                base_url=self.client.base_url,
                executable_path=str(executable),
            )
            return self._state

    def shutdown(self) -> None:
        """Stop the runtime if, and only if, this provisioner started it."""
        with self._lock:
            if self._state.source is not RuntimeSource.SELF_MANAGED:
                logger.debug(f"Shutdown skipped, runtime source is {self._state.source.value}")
                return

            executable = Path(self._state.executable_path)
            stopped = self.process_control.terminate_matching(executable)
            logger.info(f"Stopped {stopped} self-managed runtime process(es)")
            self._state = ProvisioningState(base_url=self.client.base_url)

    def runtime_environment(self) -> Dict[str, str]:
        """Variables the self-managed runtime needs; user-set values win."""
        return {
            "OLLAMA_HOME": str(self.assets.data_path),
            "OLLAMA_MODELS": str(self.assets.models_path),
            "OLLAMA_TMPDIR": str(self.assets.tmp_path),
            "OLLAMA_HOST": self.bind_address(),
        }

    def bind_address(self) -> str:
        """``host:port`` the spawned runtime listens on, taken from the client URL."""
        parsed = urlparse(self.client.base_url or DEFAULT_BASE_URL)
        host = parsed.hostname or DEFAULT_RUNTIME_HOST
        port = parsed.port or DEFAULT_SCHEME_PORTS.get(parsed.scheme, 80)
        return f"{host}:{port}"

    def _start_bundled(self, on_progress: Optional[ProgressCallback]) -> Path:
        _emit(on_progress, ModelProgress("runtime-copy"))
        executable = self.assets.ensure_binary()
        self.process_control.clear_quarantine(executable)

        if self.default_models:
            _emit(on_progress, ModelProgress("bundled-copy"))
            self.assets.ensure_models(self.default_models)

        for key, value in self.runtime_environment().items():
            self.environ.setdefault(key, value)

        if self.process_control.find_pids(executable):
            logger.info(f"Bundled runtime already running from {executable}")
        else:
            _emit(on_progress, ModelProgress("runtime-start"))
            self.process_control.spawn(
                executable,
                env=dict(self.environ),
                log_path=self.assets.base_path / "logs" / "server.log",
            )

        poll_kwargs = {"sleep": self._sleep} if self._sleep else {}
        ready = poll_until(
            lambda: self.client.probe(timeout_seconds=self.detection_timeout),
            self.startup_policy,
            operation_name="runtime readiness",
            **poll_kwargs,
        )
        if not ready:
            raise RagProvisioningError(
                f"Bundled runtime did not become reachable at {self.client.base_url} "
                f"after {self.startup_policy.max_attempts} attempts"
            )

        _emit(on_progress, ModelProgress("ready", 100))
        logger.info(f"Bundled runtime ready at {self.client.base_url}")
        return executable


def _emit(callback: Optional[ProgressCallback], progress: ModelProgress) -> None:
    if callback is not None:
        callback(progress)
