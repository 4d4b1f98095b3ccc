"""
Bundled offline runtime assets.

The application ships one runtime executable per (OS, architecture) and one
directory per bundled model mirroring the runtime's on-disk model format:

    {resources}/binaries/{version}/{os}/{arch}/...
    {resources}/models/{model}/blobs/...
    {resources}/models/{model}/manifests/...

Assets are materialized into a writable base directory. Every copy is
idempotent: existing executables, blobs and manifests are left alone.
"""

import logging
import os
import platform as platform_module
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from ..core.exceptions import RagProvisioningError


logger = logging.getLogger(__name__)


MANIFEST_REGISTRY = Path("registry.ollama.ai") / "library"


@dataclass(frozen=True)
class EmbeddedPlatform:
    """Bundle coordinates of the current platform."""
    os: str
    arch: str
    executable_name: str
    binary_relative_path: str


def detect_platform(
    sys_platform: Optional[str] = None,
    machine: Optional[str] = None,
) -> EmbeddedPlatform:
    """
    Map the interpreter's platform onto bundle coordinates.

    Raises:
        RagProvisioningError: If the OS or architecture has no bundle
    """
    sys_platform = sys_platform or sys.platform
    machine = (machine or platform_module.machine()).lower()

    if sys_platform == "darwin":
        os_name = "darwin"
    elif sys_platform.startswith("linux"):
        os_name = "linux"
    elif sys_platform in ("win32", "cygwin"):
        os_name = "windows"
    else:
        raise RagProvisioningError(f"Unsupported platform for bundled runtime: {sys_platform}")

    if machine in ("arm64", "aarch64"):
        arch = "arm64"
    elif machine in ("x86_64", "amd64"):
        arch = "amd64"
    else:
        raise RagProvisioningError(f"Unsupported architecture for bundled runtime: {machine}")

    executable_name = "ollama.exe" if os_name == "windows" else "ollama"
    relative = str(Path("bin") / executable_name) if os_name == "linux" else executable_name

    return EmbeddedPlatform(
        os=os_name,
        arch=arch,
        executable_name=executable_name,
        binary_relative_path=relative,
    )


class BundledAssets:
    """
    Materializes bundled runtime binaries and model files.

    Example:
        >>> assets = BundledAssets(resources_root, base_path, version="v0.9.0")
        >>> exe = assets.ensure_binary()
        >>> assets.ensure_models(["nomic-embed-text"])
    """

    def __init__(
        self,
        resources_root: Path,
        base_path: Path,
        version: str,
        platform: Optional[EmbeddedPlatform] = None,
    ):
        """
        Args:
            resources_root: Read-only bundle directory
            base_path: Writable directory assets are copied into
            version: Runtime version directory name
            platform: Bundle coordinates (detected when omitted)
        """
        self.resources_root = Path(resources_root)
        self.base_path = Path(base_path)
        self.version = version
        self._platform = platform

    @property
    def platform(self) -> EmbeddedPlatform:
        if self._platform is None:
            self._platform = detect_platform()
        return self._platform

    @property
    def data_path(self) -> Path:
        return self.base_path / "data"

    @property
    def models_path(self) -> Path:
        return self.data_path / "models"

    @property
    def tmp_path(self) -> Path:
        return self.data_path / "tmp"

    @property
    def binary_root(self) -> Path:
        return self.base_path / "runtime" / self.version / self.platform.os / self.platform.arch

    @property
    def executable_path(self) -> Path:
        return self.binary_root / self.platform.binary_relative_path

    def bundled_binary_dir(self) -> Path:
        return (
            self.resources_root / "binaries" / self.version
            / self.platform.os / self.platform.arch
        )

    def bundled_model_dir(self, model: str) -> Path:
        return self.resources_root / "models" / model

    def manifest_marker(self, model: str) -> Path:
        """Path whose existence means the model is already installed."""
        name, _, tag = model.partition(":")
        return self.models_path / "manifests" / MANIFEST_REGISTRY / name / (tag or "latest")

    def ensure_binary(self) -> Path:
        """
        Copy the bundled executable into the base path.

        Returns:
            Path to the provisioned executable

        Raises:
            RagProvisioningError: If the bundle has no binary for this platform
        """
        source_dir = self.bundled_binary_dir()
        target = self.executable_path

        if not source_dir.is_dir():
            raise RagProvisioningError(
                f"Missing bundled runtime binary at {source_dir}. "
                "The offline bundle must include the runtime for "
                f"{self.platform.os}-{self.platform.arch}."
            )

        if target.exists():
            logger.info(f"Runtime binary already prepared at {target}, skipping copy")
            return target

        try:
            shutil.copytree(source_dir, self.binary_root, dirs_exist_ok=True)
            if self.platform.os != "windows":
                os.chmod(target, 0o755)
        except OSError as e:
            raise RagProvisioningError(f"Failed to copy runtime binary: {e}") from e

        if not target.exists():
            raise RagProvisioningError(
                f"Bundled runtime directory {source_dir} has no {self.platform.binary_relative_path}"
            )

        logger.info(f"Runtime binary copied to {target}")
        return target

    def ensure_models(self, models: Iterable[str]) -> None:
        """
        Merge bundled model blobs and manifests into the runtime model dir.

        Raises:
            RagProvisioningError: If a model is not in the bundle or the model
                directory cannot be written
        """
        try:
            self.models_path.mkdir(parents=True, exist_ok=True)
            self.tmp_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RagProvisioningError(f"Failed to prepare model directory {self.models_path}: {e}") from e

        for model in models:
            source_dir = self.bundled_model_dir(model)
            if not source_dir.is_dir():
                raise RagProvisioningError(
                    f"Missing bundled model data for {model} at {source_dir}"
                )

            if self.manifest_marker(model).exists():
                logger.info(f"Model {model} already present, skipping copy")
                continue

            try:
                blobs = _copy_missing(source_dir / "blobs", self.models_path / "blobs")
                manifests = _copy_missing(source_dir / "manifests", self.models_path / "manifests")
            except OSError as e:
                raise RagProvisioningError(f"Failed to copy model {model}: {e}") from e

            logger.info(f"Model {model} installed ({blobs} blobs, {manifests} manifest files)")

    def ensure_model_from_bundle(self, model: str) -> bool:
        """Provision one model; False instead of raising when it can't be done."""
        try:
            self.ensure_models([model])
            return True
        except RagProvisioningError as e:
            logger.warning(f"Failed to provision model {model} from bundle: {e}")
            return False


def _copy_missing(source: Path, target: Path) -> int:
    """Recursively copy files that don't exist in ``target``. Returns files copied."""
    if not source.is_dir():
        return 0

    copied = 0
    for path in source.rglob("*"):
        if not path.is_file():
            continue
        destination = target / path.relative_to(source)
        if destination.exists():
            continue
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, destination)
        copied += 1
    return copied
