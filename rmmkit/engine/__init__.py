"""Actions: ordered steps with per-step outcome reporting."""

from .base_action import ActionReport, BaseAction, StepResult
from .killswitch_workflow import KillSwitchDisable, KillSwitchEnable
from .maintenance import (
    AdapterCleanup,
    AntivirusUpdateCheck,
    DnsEnforce,
    HardeningApply,
    NetworkReset,
    TaskCreate,
    TaskRemove,
)

__all__ = [
    "ActionReport",
    "BaseAction",
    "StepResult",
    "KillSwitchDisable",
    "KillSwitchEnable",
    "AdapterCleanup",
    "AntivirusUpdateCheck",
    "DnsEnforce",
    "HardeningApply",
    "NetworkReset",
    "TaskCreate",
    "TaskRemove",
]
