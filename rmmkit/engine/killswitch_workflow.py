"""Kill-switch deployment and teardown workflows.

Enable installs the client, writes its config, locks the firewall, starts
the client, waits for the tunnel and registers the startup task. Disable
undoes the same resources in reverse order and deletes the stored config
and credentials once outbound traffic is restored. Steps run strictly one after another.
"""

from ..config import RmmConfig
from ..tasks.scheduler import ScheduledTask, TaskRegistrar
from ..utils.privileges import require_admin
from ..vpn.adapter_cleanup import AdapterCleaner
from ..vpn.config_writer import ConfigWriter
from ..vpn.detector import VPNDetector
from ..vpn.installer import VPNInstaller
from ..vpn.kill_switch import KillSwitch
from ..vpn.supervisor import ProcessSupervisor
from .base_action import BaseAction


def build_kill_switch(config: RmmConfig) -> KillSwitch:
    return KillSwitch(
        vpn_exe_path=config.vpn_exe_path,
        rule_prefix=config.kill_switch_rule_prefix,
        allow_lan=config.kill_switch_allow_lan,
        tunnel_subnet=config.kill_switch_tunnel_subnet,
        extra_programs=config.kill_switch_extra_programs,
    )


def build_supervisor(config: RmmConfig) -> ProcessSupervisor:
    return ProcessSupervisor(
        exe_path=config.vpn_exe_path,
        config_path=str(config.vpn_config_path),
        detector=VPNDetector(adapter_patterns=config.vpn_adapter_patterns),
        ping_target=config.vpn_ping_target,
        poll_interval=config.vpn_poll_interval,
        timeout=config.vpn_connect_timeout,
    )


def build_writer(config: RmmConfig) -> ConfigWriter:
    return ConfigWriter(
        config_path=config.vpn_config_path,
        overrides=config.vpn_config_overrides,
        auth_path=config.vpn_auth_path,
    )


def startup_task(config: RmmConfig) -> ScheduledTask:
    """Task that relaunches the client at boot; the firewall policy persists on its own."""
    command = f'"{config.vpn_exe_path}" --config "{config.vpn_config_path}"'
    return ScheduledTask(name=config.task_name, command=command, delay=config.task_delay)


class KillSwitchEnable(BaseAction):
    """Deploys the VPN client and turns the kill switch on."""

    def __init__(self, config: RmmConfig | None = None):
        super().__init__(name="killswitch_enable", config=config)
        self.installer = VPNInstaller(
            installer_url=self.config.vpn_installer_url,
            exe_path=self.config.vpn_exe_path,
            sha256=self.config.vpn_installer_sha256,
            timeout=self.config.vpn_install_timeout,
        )
        self.writer = build_writer(self.config)
        self.kill_switch = build_kill_switch(self.config)
        self.supervisor = build_supervisor(self.config)
        self.registrar = TaskRegistrar()

    async def run(self) -> None:
        cfg = self.config
        await self.step("require_admin", require_admin, critical=True)
        await self.step("install_client", self.installer.install, critical=True)
        await self.step(
            "write_config",
            self.writer.write,
            cfg.vpn_config_blob,
            username=cfg.vpn_username,
            password=cfg.vpn_password,
            critical=True,
        )
        await self.step("enable_firewall", self.kill_switch.enable, critical=True)
        await self.step("start_client", lambda: self.supervisor.start() is not None, critical=True)
        connected = await self.step("wait_for_connection", self.supervisor.wait_for_connection)
        if not connected.ok:
            self.logger.warning(
                "vpn_not_confirmed",
                hint="kill switch is active; traffic stays blocked until the tunnel is up",
                **self.supervisor.last_probe.to_dict(),
            )
        await self.step("register_task", lambda: self.registrar.create(startup_task(cfg)))


class KillSwitchDisable(BaseAction):
    """Stops the client and restores default-allow outbound traffic."""

    def __init__(self, config: RmmConfig | None = None, cleanup_adapters: bool = False):
        super().__init__(name="killswitch_disable", config=config)
        self.kill_switch = build_kill_switch(self.config)
        self.supervisor = build_supervisor(self.config)
        self.writer = build_writer(self.config)
        self.registrar = TaskRegistrar()
        self.cleanup_adapters = cleanup_adapters
        self.cleaner = AdapterCleaner(self.config.adapter_description_patterns)

    async def run(self) -> None:
        await self.step("require_admin", require_admin, critical=True)
        await self.step("remove_task", self.registrar.remove, self.config.task_name)
        await self.step("stop_client", self.supervisor.stop)
        await self.step("disable_firewall", self.kill_switch.disable, critical=True)
        await self.step("remove_config", self.writer.remove)
        if self.cleanup_adapters:
            await self.step("cleanup_adapters", lambda: self.cleaner.cleanup().ok)
