"""Stand-alone maintenance actions: startup task, DNS, hardening, antivirus, adapters."""

from ..antivirus.defender import DefenderChecker
from ..config import RmmConfig
from ..dns.enforcer import DnsEnforcer
from ..hardening.baseline import HardeningBaseline, reset_network_stack
from ..tasks.scheduler import TaskRegistrar
from ..utils.privileges import require_admin
from ..vpn.adapter_cleanup import AdapterCleaner
from .base_action import BaseAction
from .killswitch_workflow import startup_task


class TaskCreate(BaseAction):
    def __init__(self, config: RmmConfig | None = None):
        super().__init__(name="task_create", config=config)
        self.registrar = TaskRegistrar()

    async def run(self) -> None:
        await self.step("require_admin", require_admin, critical=True)
        await self.step("register_task", lambda: self.registrar.create(startup_task(self.config)), critical=True)


class TaskRemove(BaseAction):
    def __init__(self, config: RmmConfig | None = None):
        super().__init__(name="task_remove", config=config)
        self.registrar = TaskRegistrar()

    async def run(self) -> None:
        await self.step("require_admin", require_admin, critical=True)
        await self.step("remove_task", self.registrar.remove, self.config.task_name, critical=True)


class DnsEnforce(BaseAction):
    """Pins the configured resolvers, or resets to DHCP with ``reset=True``."""

    def __init__(self, config: RmmConfig | None = None, reset: bool = False):
        super().__init__(name="dns_reset" if reset else "dns_enforce", config=config)
        self.reset = reset
        self.enforcer = DnsEnforcer(
            servers=self.config.dns_servers,
            vpn_patterns=self.config.vpn_adapter_patterns,
            include_vpn_adapters=self.config.dns_include_vpn_adapters,
        )

    async def run(self) -> None:
        await self.step("require_admin", require_admin, critical=True)
        apply = self.enforcer.reset if self.reset else self.enforcer.enforce
        await self.step("apply_dns", lambda: apply().ok, critical=True)


class HardeningApply(BaseAction):
    """Applies (or with ``reset=True`` reverts) the registry baseline."""

    def __init__(self, config: RmmConfig | None = None, reset: bool = False, baseline: HardeningBaseline | None = None):
        super().__init__(name="harden_reset" if reset else "harden_apply", config=config)
        self.reset = reset
        self.baseline = baseline or HardeningBaseline()
        self.reboot_required = False

    def _apply(self) -> bool:
        report = self.baseline.reset() if self.reset else self.baseline.apply()
        self.reboot_required = report.reboot_required
        return report.ok

    async def run(self) -> None:
        await self.step("require_admin", require_admin, critical=True)
        await self.step("registry_baseline", self._apply, critical=True)
        if self.reboot_required:
            self.logger.warning("reboot_required")


class NetworkReset(BaseAction):
    def __init__(self, config: RmmConfig | None = None):
        super().__init__(name="network_reset", config=config)

    async def run(self) -> None:
        await self.step("require_admin", require_admin, critical=True)
        await self.step("reset_network_stack", reset_network_stack, critical=True)
        self.logger.warning("reboot_required")


class AntivirusUpdateCheck(BaseAction):
    """Fails when Defender is unavailable, disabled or still stale after updating."""

    def __init__(self, config: RmmConfig | None = None, update: bool = True):
        super().__init__(name="av_check", config=config)
        self.update = update
        self.checker = DefenderChecker(max_signature_age_days=self.config.av_max_signature_age_days)
        self.result = None

    def _check(self) -> bool:
        self.result = self.checker.check(update=self.update)
        for product in self.result.products:
            self.logger.info(
                "antivirus_product",
                product=product.name,
                enabled=product.enabled,
                up_to_date=product.up_to_date,
            )
        return self.checker.is_healthy(self.result.current)

    async def run(self) -> None:
        # Reading status needs no elevation; updating signatures does
        if self.update:
            await self.step("require_admin", require_admin, critical=True)
        await self.step("defender_signatures", self._check, critical=True)


class AdapterCleanup(BaseAction):
    def __init__(self, config: RmmConfig | None = None):
        super().__init__(name="adapter_cleanup", config=config)
        self.cleaner = AdapterCleaner(self.config.adapter_description_patterns)

    async def run(self) -> None:
        await self.step("require_admin", require_admin, critical=True)
        await self.step("remove_duplicates", lambda: self.cleaner.cleanup().ok, critical=True)
