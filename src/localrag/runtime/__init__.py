"""
Local inference runtime: bundled assets, process control, provisioning and
installed-model management.
"""

from .assets import BundledAssets, EmbeddedPlatform, detect_platform
from .models import ModelDeleteReason, ModelDeleteResult, ModelManager, ModelPullResult
from .process import (
    MacProcessControl,
    PosixProcessControl,
    ProcessControl,
    WindowsProcessControl,
    get_process_control,
)
from .provisioner import RuntimeProvisioner

__all__ = [
    "BundledAssets",
    "EmbeddedPlatform",
    "detect_platform",
    "ModelDeleteReason",
    "ModelDeleteResult",
    "ModelManager",
    "ModelPullResult",
    "MacProcessControl",
    "PosixProcessControl",
    "ProcessControl",
    "WindowsProcessControl",
    "get_process_control",
    "RuntimeProvisioner",
]
