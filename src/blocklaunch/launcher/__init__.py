from blocklaunch.launcher.orchestrator import LaunchOrchestrator, LaunchResult, LaunchState

__all__ = ["LaunchOrchestrator", "LaunchResult", "LaunchState"]
