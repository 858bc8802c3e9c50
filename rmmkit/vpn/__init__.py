"""VPN client deployment and kill switch for Windows."""

from .adapter_cleanup import AdapterCleaner
from .config_writer import ConfigWriter
from .detector import VPNDetector
from .installer import VPNInstaller
from .kill_switch import KillSwitch, KillSwitchState
from .supervisor import ProcessSupervisor

__all__ = [
    "AdapterCleaner",
    "ConfigWriter",
    "VPNDetector",
    "VPNInstaller",
    "KillSwitch",
    "KillSwitchState",
    "ProcessSupervisor",
]
