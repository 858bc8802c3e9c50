"""Subprocess helpers for netsh, schtasks, pnputil and PowerShell.

Commands are always passed as argument lists (never ``shell=True``). A
non-zero exit code is reported through :class:`CommandResult` rather than
raised, so callers decide whether a failure is fatal.
"""

import json
import subprocess
from dataclasses import dataclass, field
from typing import Any

from .logging import get_logger

logger = get_logger("utils.shell")

# CREATE_NO_WINDOW only exists on Windows builds of CPython
CREATE_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0)

TIMEOUT_RETURNCODE = -1
NOT_FOUND_RETURNCODE = -2

POWERSHELL = [
    "powershell.exe",
    "-NoProfile",
    "-NonInteractive",
    "-ExecutionPolicy", "Bypass",
    "-Command",
]


@dataclass
class CommandResult:
    """Outcome of one external command."""
    args: list[str] = field(default_factory=list)
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


def run_cmd(args: list[str], timeout: int = 30, ok_codes: tuple[int, ...] = (0,)) -> CommandResult:
    """Run a command and capture its output.

    Return codes listed in ``ok_codes`` are normalised to 0 (msiexec uses
    3010 for "success, reboot required").
    """
    try:
        proc = subprocess.run(
            args,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            creationflags=CREATE_NO_WINDOW,
        )
    except subprocess.TimeoutExpired:
        logger.error("command_timeout", cmd=" ".join(args), timeout=timeout)
        return CommandResult(args=args, returncode=TIMEOUT_RETURNCODE, stderr="timeout")
    except FileNotFoundError:
        logger.error("command_not_found", cmd=args[0])
        return CommandResult(args=args, returncode=NOT_FOUND_RETURNCODE, stderr=f"{args[0]} not found")

    returncode = 0 if proc.returncode in ok_codes else proc.returncode
    result = CommandResult(
        args=args,
        returncode=returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )
    if not result.ok:
        logger.warning(
            "command_failed",
            cmd=" ".join(args),
            returncode=proc.returncode,
            output=result.output.strip()[:500],
        )
    return result


def run_netsh(args: list[str], timeout: int = 15) -> CommandResult:
    """Execute a netsh command."""
    return run_cmd(["netsh"] + args, timeout=timeout)


def run_powershell(script: str, timeout: int = 60) -> CommandResult:
    """Execute an inline PowerShell script."""
    return run_cmd(POWERSHELL + [script], timeout=timeout)


def run_powershell_json(script: str, timeout: int = 60) -> Any:
    """Run a PowerShell script ending in ``ConvertTo-Json`` and decode it.

    Returns None when the command fails or prints nothing. ``ConvertTo-Json``
    emits a bare object for single results, so callers that expect a list
    should pass the value through :func:`as_list`.
    """
    result = run_powershell(script, timeout=timeout)
    if not result.ok or not result.stdout.strip():
        return None
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        logger.warning("powershell_json_invalid", error=str(e), output=result.stdout[:200])
        return None


def as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
