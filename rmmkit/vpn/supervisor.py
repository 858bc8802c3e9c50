"""VPN client process supervisor.

Starts and stops the VPN client as a detached process and confirms the
tunnel by polling: process present, adapter present, IPv4 assigned, ICMP
reply. Polling uses a fixed interval and a wall-clock timeout; there is no
backoff and no cancellation other than the timeout.
"""

import asyncio
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Optional

import psutil

from ..utils.input_validators import validate_ip_address
from ..utils.logging import get_logger
from ..utils.shell import run_cmd
from .detector import VPNDetector

logger = get_logger("vpn.supervisor")

DETACHED_PROCESS = getattr(subprocess, "DETACHED_PROCESS", 0)
CREATE_NEW_PROCESS_GROUP = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)


@dataclass
class ProbeResult:
    """One round of connectivity checks."""
    process_running: bool = False
    adapter_name: Optional[str] = None
    adapter_ip: Optional[str] = None
    ping_target: Optional[str] = None
    ping_ok: bool = False

    @property
    def connected(self) -> bool:
        return self.process_running and bool(self.adapter_ip) and self.ping_ok

    @property
    def stage(self) -> str:
        """First check that has not passed yet."""
        if not self.process_running:
            return "process"
        if not self.adapter_name:
            return "adapter"
        if not self.adapter_ip:
            return "ip"
        if not self.ping_ok:
            return "ping"
        return "connected"

    def to_dict(self) -> dict:
        return {
            "process_running": self.process_running,
            "adapter_name": self.adapter_name,
            "adapter_ip": self.adapter_ip,
            "ping_target": self.ping_target,
            "ping_ok": self.ping_ok,
            "stage": self.stage,
        }


def ping(host: str, timeout_ms: int = 1000) -> bool:
    """Send one ICMP echo. Windows ping exits 0 on 'unreachable' too, so require TTL=."""
    host = validate_ip_address(host)
    result = run_cmd(["ping", "-n", "1", "-w", str(timeout_ms), host], timeout=max(5, timeout_ms // 1000 + 5))
    return result.ok and "TTL=" in result.stdout.upper()


class ProcessSupervisor:
    """Starts the VPN client and waits for the tunnel to come up."""

    def __init__(
        self,
        exe_path: str,
        config_path: str,
        detector: VPNDetector | None = None,
        ping_target: Optional[str] = None,
        poll_interval: float = 2.0,
        timeout: float = 90.0,
    ):
        self._exe_path = exe_path
        self._config_path = config_path
        self._detector = detector or VPNDetector()
        self._ping_target = validate_ip_address(ping_target) if ping_target else None
        self._poll_interval = poll_interval
        self._timeout = timeout
        self.last_probe = ProbeResult()

    def is_running(self) -> bool:
        return self._detector.is_process_running(self._exe_path)

    def start(self) -> Optional[int]:
        """Start the client detached. Returns the PID, or the existing PID if already running."""
        existing = self._detector.find_processes(self._exe_path)
        if existing:
            logger.info("vpn_client_already_running", pid=existing[0].pid)
            return existing[0].pid

        if not os.path.exists(self._exe_path):
            logger.error("vpn_client_missing", exe=self._exe_path)
            return None

        cmd = [self._exe_path, "--config", self._config_path]
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=os.path.dirname(self._config_path) or None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                creationflags=DETACHED_PROCESS | CREATE_NEW_PROCESS_GROUP,
                close_fds=True,
            )
        except OSError as e:
            logger.error("vpn_client_start_failed", error=str(e))
            return None

        logger.info("vpn_client_started", pid=proc.pid, config=self._config_path)
        return proc.pid

    def stop(self, wait: float = 10.0) -> bool:
        """Terminate every running client process. True when none remain."""
        procs = self._detector.find_processes(self._exe_path)
        if not procs:
            logger.info("vpn_client_not_running")
            return True

        for proc in procs:
            try:
                proc.terminate()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        _, alive = psutil.wait_procs(procs, timeout=wait)
        for proc in alive:
            try:
                proc.kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        if alive:
            _, alive = psutil.wait_procs(alive, timeout=wait)

        logger.info("vpn_client_stopped", count=len(procs), still_alive=len(alive))
        return not alive

    def probe(self) -> ProbeResult:
        """Run the checks in order, stopping at the first one that fails."""
        result = ProbeResult(process_running=self.is_running())
        if not result.process_running:
            return result

        adapter = self._detector.find_adapter()
        if adapter is None:
            return result
        result.adapter_name = adapter.name
        if not adapter.is_up or not adapter.ipv4 or adapter.ipv4.startswith("169.254."):
            return result
        result.adapter_ip = adapter.ipv4

        target = self._ping_target or adapter.gateway_guess
        result.ping_target = target
        if target:
            result.ping_ok = ping(target)
        return result

    async def wait_for_connection(self) -> bool:
        """Poll until connected or the timeout elapses."""
        deadline = time.monotonic() + self._timeout
        attempts = 0
        logger.info("vpn_connect_wait", timeout=self._timeout, interval=self._poll_interval)

        while True:
            attempts += 1
            self.last_probe = self.probe()
            if self.last_probe.connected:
                logger.info("vpn_connected", attempts=attempts, **self.last_probe.to_dict())
                return True
            if time.monotonic() >= deadline:
                break
            logger.debug("vpn_connect_pending", attempt=attempts, stage=self.last_probe.stage)
            await asyncio.sleep(self._poll_interval)

        logger.warning("vpn_connect_timeout", attempts=attempts, **self.last_probe.to_dict())
        return False
