"""Windows Firewall kill switch for VPN drop protection.

Uses netsh advfirewall to switch the default outbound action of every
firewall profile to block, and allow-lists only what the VPN client needs
to (re)connect: its own executable, DNS, DHCP and ICMP. Disabling restores
default-allow and removes every rule carrying the rule prefix.

Enable is not atomic. If the process dies between the policy change and the
last allow rule, the machine stays in default-block with a partial allow
list; running disable recovers from any such state.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..utils.input_validators import (
    validate_file_path,
    validate_network,
    validate_port,
    validate_protocol,
    validate_rule_name,
)
from ..utils.logging import get_logger
from ..utils.shell import run_netsh

logger = get_logger("vpn.kill_switch")

RULE_PREFIX = "RMM_KillSwitch"

# Local subnets allowed when LAN access is requested
LOCAL_SUBNETS = [
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "169.254.0.0/16",
]

POLICY_ENABLED = "blockinbound,blockoutbound"
POLICY_DISABLED = "blockinbound,allowoutbound"

_RULE_NAME_LINE = re.compile(r"^Rule Name:\s*(.+?)\s*$", re.MULTILINE)
_POLICY_LINE = re.compile(r"^Firewall Policy\s+(\S+)\s*$", re.MULTILINE | re.IGNORECASE)


@dataclass
class FirewallRule:
    """An allow rule in the kill switch allow-list."""
    name: str
    protocol: str = "any"
    program: Optional[str] = None
    local_ip: Optional[str] = None
    remote_ip: Optional[str] = None
    remote_port: Optional[int] = None
    local_port: Optional[int] = None
    direction: str = "out"

    def __post_init__(self):
        validate_rule_name(self.name)
        self.protocol = validate_protocol(self.protocol)
        for port in (self.local_port, self.remote_port):
            if port is not None:
                validate_port(port)

    def netsh_args(self) -> list[str]:
        args = [
            "advfirewall", "firewall", "add", "rule",
            f"name={self.name}",
            f"dir={self.direction}",
            "action=allow",
            "enable=yes",
            "profile=any",
            f"protocol={self.protocol}",
        ]
        if self.program:
            args.append(f"program={self.program}")
        if self.local_ip:
            args.append(f"localip={self.local_ip}")
        if self.remote_ip:
            args.append(f"remoteip={self.remote_ip}")
        if self.local_port:
            args.append(f"localport={self.local_port}")
        if self.remote_port:
            args.append(f"remoteport={self.remote_port}")
        return args


@dataclass
class KillSwitchState:
    """Current state of the kill switch as read back from the firewall."""
    active: bool = False
    profiles: dict[str, str] = field(default_factory=dict)
    rules: list[str] = field(default_factory=list)
    activated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "active": self.active,
            "profiles": self.profiles,
            "rules": self.rules,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
        }


class KillSwitch:
    """Windows Firewall-based VPN kill switch."""

    def __init__(
        self,
        vpn_exe_path: str,
        rule_prefix: str = RULE_PREFIX,
        allow_lan: bool = False,
        tunnel_subnet: Optional[str] = None,
        extra_programs: list[str] | None = None,
    ):
        self._vpn_exe_path = validate_file_path(vpn_exe_path)
        self._prefix = validate_rule_name(rule_prefix)
        self._allow_lan = allow_lan
        self._tunnel_subnet = validate_network(tunnel_subnet) if tunnel_subnet else None
        self._extra_programs = [validate_file_path(p) for p in (extra_programs or [])]
        self._state = KillSwitchState()

    @property
    def state(self) -> KillSwitchState:
        return self._state

    @property
    def rule_prefix(self) -> str:
        return self._prefix

    def allow_rules(self) -> list[FirewallRule]:
        """The allow-list applied while the kill switch is active."""
        p = self._prefix
        rules = [
            FirewallRule(f"{p}_Allow_VPN_Client", program=self._vpn_exe_path),
            FirewallRule(f"{p}_Allow_DNS_UDP", protocol="UDP", remote_port=53),
            FirewallRule(f"{p}_Allow_DNS_TCP", protocol="TCP", remote_port=53),
            FirewallRule(f"{p}_Allow_DHCP", protocol="UDP", local_port=68, remote_port=67),
            FirewallRule(f"{p}_Allow_ICMP", protocol="icmpv4"),
        ]
        for i, program in enumerate(self._extra_programs):
            rules.append(FirewallRule(f"{p}_Allow_Program_{i}", program=program))
        if self._allow_lan:
            for i, subnet in enumerate(LOCAL_SUBNETS):
                rules.append(FirewallRule(f"{p}_Allow_Local_{i}", remote_ip=subnet))
        if self._tunnel_subnet:
            rules.append(FirewallRule(f"{p}_Allow_Tunnel", local_ip=self._tunnel_subnet))
        return rules

    def _set_policy(self, policy: str) -> bool:
        result = run_netsh(["advfirewall", "set", "allprofiles", "firewallpolicy", policy])
        return result.ok

    def _delete_rule(self, rule_name: str) -> bool:
        """Delete a firewall rule by name. netsh fails when no rule matches."""
        result = run_netsh(["advfirewall", "firewall", "delete", "rule", f"name={rule_name}"])
        return result.ok

    def _add_rule(self, rule: FirewallRule) -> bool:
        # Delete-then-recreate keeps exactly one rule per name
        self._delete_rule(rule.name)
        return run_netsh(rule.netsh_args()).ok

    def list_rules(self) -> list[str]:
        """Names of all firewall rules starting with the prefix."""
        result = run_netsh(["advfirewall", "firewall", "show", "rule", "name=all"], timeout=60)
        if not result.ok:
            return []
        names = []
        for name in _RULE_NAME_LINE.findall(result.stdout):
            if name.startswith(self._prefix) and name not in names:
                names.append(name)
        return names

    def read_policies(self) -> dict[str, str]:
        """Per-profile firewall policy, e.g. {'domain': 'BlockInbound,BlockOutbound'}."""
        result = run_netsh(["advfirewall", "show", "allprofiles", "firewallpolicy"])
        if not result.ok:
            return {}
        profiles: dict[str, str] = {}
        current = None
        for line in result.stdout.splitlines():
            header = re.match(r"^(Domain|Private|Public) Profile Settings", line.strip(), re.IGNORECASE)
            if header:
                current = header.group(1).lower()
                continue
            match = _POLICY_LINE.match(line.strip())
            if match and current:
                profiles[current] = match.group(1)
        return profiles

    async def enable(self) -> bool:
        """Switch outbound default to block and apply the allow-list.

        Returns True only if the policy change and every allow rule succeeded.
        """
        rules = self.allow_rules()
        logger.warning("kill_switch_activating", prefix=self._prefix, rules=len(rules))

        # Allow rules first so the client can keep talking while the policy flips
        created = []
        failed = []
        for rule in rules:
            if self._add_rule(rule):
                created.append(rule.name)
            else:
                failed.append(rule.name)

        policy_ok = self._set_policy(POLICY_ENABLED)

        self._state.rules = created
        self._state.active = policy_ok
        self._state.activated_at = datetime.now(timezone.utc) if policy_ok else None

        if failed or not policy_ok:
            logger.error(
                "kill_switch_incomplete",
                policy_applied=policy_ok,
                failed_rules=failed,
                hint="manual removal of firewall rules may be required",
            )
            return False

        logger.warning("kill_switch_activated", rules_created=len(created))
        return True

    async def disable(self) -> bool:
        """Restore default-allow outbound and delete every prefixed rule.

        Safe to run in any state, including after an interrupted enable.
        """
        logger.info("kill_switch_deactivating", prefix=self._prefix)
        policy_ok = self._set_policy(POLICY_DISABLED)

        names = set(self.list_rules())
        names.update(rule.name for rule in self.allow_rules())
        removed = [name for name in sorted(names) if self._delete_rule(name)]

        self._state.active = False if policy_ok else self._state.active
        self._state.rules = []
        self._state.activated_at = None

        if not policy_ok:
            logger.error("kill_switch_policy_restore_failed")
            return False

        logger.info("kill_switch_deactivated", rules_removed=len(removed))
        return True

    def status(self) -> KillSwitchState:
        """Read the live firewall state into a KillSwitchState."""
        profiles = self.read_policies()
        self._state.profiles = profiles
        self._state.active = bool(profiles) and all(
            "blockoutbound" in policy.lower() for policy in profiles.values()
        )
        self._state.rules = self.list_rules()
        return self._state
