"""Input validation for values that end up on netsh / schtasks command lines.

Arguments are passed as lists, but netsh and schtasks re-parse their own
``key=value`` and quoted forms, so names are restricted to a safe alphabet.
"""

import ipaddress
import re

# Shell metacharacters that must never reach subprocess
_SHELL_META = re.compile(r'[;|&`$<>{}\n\r]')

# Valid interface name: Windows allows spaces, parentheses, '#' and '*' in aliases
_INTERFACE_RE = re.compile(r'^[a-zA-Z0-9 ._()#*-]{1,128}$')

# Valid firewall rule name: alphanumeric, underscores, hyphens
_RULE_NAME_RE = re.compile(r'^[a-zA-Z0-9_-]{1,200}$')

# Valid scheduled task name: optional folder path with backslashes
_TASK_NAME_RE = re.compile(r'^[a-zA-Z0-9 ._\\-]{1,230}$')

# schtasks /TR accepts at most 261 characters
MAX_TASK_COMMAND_LENGTH = 261

VALID_PROTOCOLS = {"TCP", "UDP", "ICMPV4", "ICMPV6", "ANY"}


def validate_ip_address(value: str) -> str:
    """Validate and return a normalized IP address string.

    Raises ValueError if the input is not a valid IPv4 or IPv6 address.
    """
    try:
        addr = ipaddress.ip_address(value.strip())
        return str(addr)
    except ValueError:
        raise ValueError(f"Invalid IP address: {value!r}")


def validate_network(value: str) -> str:
    """Validate an address or CIDR subnet, returning its normalized form."""
    try:
        return str(ipaddress.ip_network(value.strip(), strict=False))
    except ValueError:
        raise ValueError(f"Invalid network: {value!r}")


def validate_port(value: int) -> int:
    """Validate a port number is in range 1-65535."""
    if not isinstance(value, int) or value < 1 or value > 65535:
        raise ValueError(f"Port must be an integer between 1 and 65535, got: {value!r}")
    return value


def validate_protocol(value: str) -> str:
    upper = value.strip().upper()
    if upper not in VALID_PROTOCOLS:
        raise ValueError(f"Protocol must be one of {VALID_PROTOCOLS}, got: {value!r}")
    return upper


def validate_interface_name(value: str) -> str:
    """Validate a network interface alias (no shell metacharacters, max 128)."""
    if not _INTERFACE_RE.match(value):
        raise ValueError(
            f"Invalid interface name: must be alphanumeric with spaces/dots/hyphens/"
            f"underscores/parentheses, max 128 chars. Got: {value!r}"
        )
    return value


def validate_rule_name(value: str) -> str:
    if not _RULE_NAME_RE.match(value):
        raise ValueError(f"Invalid firewall rule name: {value!r}")
    return value


def validate_task_name(value: str) -> str:
    """Validate a Task Scheduler task name (folders separated by backslashes)."""
    if not _TASK_NAME_RE.match(value) or ".." in value:
        raise ValueError(
            f"Invalid task name: must be alphanumeric with spaces/dots/hyphens/"
            f"underscores/backslashes, max 230 chars. Got: {value!r}"
        )
    return value


def validate_task_command(value: str) -> str:
    """Validate a scheduled task command line for schtasks /TR."""
    if not value.strip():
        raise ValueError("Task command must not be empty")
    if len(value) > MAX_TASK_COMMAND_LENGTH:
        raise ValueError(
            f"Task command too long for schtasks (max {MAX_TASK_COMMAND_LENGTH} chars): {len(value)}"
        )
    if "\n" in value or "\r" in value:
        raise ValueError("Task command must be a single line")
    return value


def validate_file_path(value: str) -> str:
    """Validate a file path: no shell metacharacters, traversal or null bytes."""
    if _SHELL_META.search(value):
        raise ValueError(
            f"File path contains forbidden characters (shell metacharacters): {value!r}"
        )
    if len(value) > 500:
        raise ValueError(f"File path too long (max 500 chars): {len(value)}")
    if ".." in value:
        raise ValueError("Path traversal not allowed")
    if "\x00" in value:
        raise ValueError("Null bytes not allowed in file path")
    return value

