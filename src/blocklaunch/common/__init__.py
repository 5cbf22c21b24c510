from blocklaunch.common.config import AppPaths, RuntimeConfig, initialize
from blocklaunch.common.events import EventBus, ProgressTracker
from blocklaunch.common.platform import PlatformInfo

__all__ = [
    "AppPaths",
    "RuntimeConfig",
    "initialize",
    "EventBus",
    "ProgressTracker",
    "PlatformInfo",
]
