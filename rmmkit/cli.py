"""rmmkit command line.

Usage:
    rmmkit killswitch enable|disable|status
    rmmkit task create|remove|status
    rmmkit dns enforce|reset|show
    rmmkit harden apply|check|reset|network-reset
    rmmkit av check [--no-update]
    rmmkit adapters list|cleanup

Exit codes:
    0   success
    1   critical step failed, not elevated, bad configuration or unexpected error
    2   usage error (unknown command or option), reported by argparse
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from pydantic import ValidationError

from . import __version__
from .config import RmmConfig
from .dns.enforcer import DnsEnforcer
from .engine.base_action import ActionReport, BaseAction
from .engine.killswitch_workflow import KillSwitchDisable, KillSwitchEnable, build_kill_switch
from .engine.maintenance import (
    AdapterCleanup,
    AntivirusUpdateCheck,
    DnsEnforce,
    HardeningApply,
    NetworkReset,
    TaskCreate,
    TaskRemove,
)
from .hardening.baseline import HardeningBaseline
from .tasks.scheduler import TaskRegistrar
from .utils.logging import bind_run_context, get_logger, setup_logging
from .vpn.adapter_cleanup import AdapterCleaner

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rmmkit", description="Windows administration actions for RMM")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Human-readable debug logging")
    sub = parser.add_subparsers(dest="group", required=True)

    ks = sub.add_parser("killswitch", help="VPN kill switch deployment and teardown")
    ks.add_argument("command", choices=["enable", "disable", "status"])
    ks.add_argument("--cleanup-adapters", action="store_true", help="Remove duplicate VPN adapters on disable")

    task = sub.add_parser("task", help="Startup task registration")
    task.add_argument("command", choices=["create", "remove", "status"])

    dns = sub.add_parser("dns", help="DNS enforcement")
    dns.add_argument("command", choices=["enforce", "reset", "show"])

    harden = sub.add_parser("harden", help="Endpoint hardening and reset")
    harden.add_argument("command", choices=["apply", "check", "reset", "network-reset"])

    av = sub.add_parser("av", help="Antivirus update check")
    av.add_argument("command", choices=["check"])
    av.add_argument("--no-update", action="store_true", help="Report only, do not update signatures")

    adapters = sub.add_parser("adapters", help="Virtual adapter cleanup")
    adapters.add_argument("command", choices=["list", "cleanup"])

    return parser


def _print_report(report: ActionReport) -> None:
    for step in report.steps:
        marker = "+" if step.ok else ("-" if step.critical else "!")
        line = f"[{marker}] {step.name}"
        if step.error:
            line += f": {step.error}"
        print(line)
    status = "completed" if report.ok else ("aborted" if report.aborted else "failed")
    print(f"[*] {report.action} {status}")


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _make_action(args: argparse.Namespace, config: RmmConfig) -> Optional[BaseAction]:
    group, command = args.group, args.command
    if group == "killswitch":
        if command == "enable":
            return KillSwitchEnable(config)
        if command == "disable":
            return KillSwitchDisable(config, cleanup_adapters=args.cleanup_adapters)
    elif group == "task":
        if command == "create":
            return TaskCreate(config)
        if command == "remove":
            return TaskRemove(config)
    elif group == "dns" and command in ("enforce", "reset"):
        return DnsEnforce(config, reset=command == "reset")
    elif group == "harden":
        if command == "apply":
            return HardeningApply(config)
        if command == "reset":
            return HardeningApply(config, reset=True)
        if command == "network-reset":
            return NetworkReset(config)
    elif group == "av":
        return AntivirusUpdateCheck(config, update=not args.no_update)
    elif group == "adapters" and command == "cleanup":
        return AdapterCleanup(config)
    return None


def _run_query(args: argparse.Namespace, config: RmmConfig) -> int:
    """Read-only commands: print state as JSON."""
    if args.group == "killswitch":
        state = build_kill_switch(config).status()
        _print_json(state.to_dict())
        return 0
    if args.group == "task":
        details = TaskRegistrar().query(config.task_name)
        _print_json({"name": config.task_name, "registered": details is not None, "details": details})
        return 0
    if args.group == "dns":
        enforcer = DnsEnforcer(servers=config.dns_servers)
        servers = enforcer.show()
        _print_json({"servers": servers, "compliant": enforcer.is_compliant(servers)})
        return 0
    if args.group == "harden":
        report = HardeningBaseline().check()
        _print_json(report.to_dict())
        return 0 if report.ok else 1
    if args.group == "adapters":
        cleaner = AdapterCleaner(config.adapter_description_patterns)
        _print_json([a.__dict__ for a in cleaner.matching(cleaner.list_adapters())])
        return 0
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = RmmConfig()
    except ValidationError as e:
        print(f"[-] Invalid configuration: {e}")
        return 1

    setup_logging(
        debug=args.debug or config.debug,
        log_dir=config.log_dir,
        log_max_bytes=config.log_max_bytes,
        log_backup_count=config.log_backup_count,
    )
    bind_run_context(args.group, args.command)

    try:
        action = _make_action(args, config)
        if action is None:
            return _run_query(args, config)
        report = asyncio.run(action.execute())
        _print_report(report)
        return report.exit_code
    except Exception as e:
        logger.error("unhandled_exception", group=args.group, command=args.command, error=str(e), exc_info=True)
        print(f"[-] {args.group} {args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
