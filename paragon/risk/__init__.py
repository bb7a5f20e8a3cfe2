# Paragon Risk Module
# ===================
# Daily loss limit and trading halt record

from .kill_switch import KillSwitch, KillSwitchState, KillSwitchTrigger, loss_limit_breached

__all__ = [
    "KillSwitch",
    "KillSwitchState",
    "KillSwitchTrigger",
    "loss_limit_breached",
]
