"""Task Scheduler registration through schtasks.exe.

Create is delete-then-register, so re-running it always leaves exactly one
task with the given name. Remove is a no-op when the task does not exist.
"""

import csv
import io
from dataclasses import dataclass
from typing import Optional

from ..utils.input_validators import validate_task_command, validate_task_name
from ..utils.logging import get_logger
from ..utils.shell import run_cmd

logger = get_logger("tasks.scheduler")

VALID_TRIGGERS = {"ONSTART", "ONLOGON", "ONIDLE", "DAILY", "HOURLY", "WEEKLY", "MINUTE"}


@dataclass
class ScheduledTask:
    """A startup task definition."""
    name: str
    command: str
    trigger: str = "ONSTART"
    run_as: str = "SYSTEM"
    highest: bool = True
    delay: Optional[str] = None  # mmmm:ss, only valid for ONSTART/ONLOGON

    def __post_init__(self):
        validate_task_name(self.name)
        validate_task_command(self.command)
        self.trigger = self.trigger.upper()
        if self.trigger not in VALID_TRIGGERS:
            raise ValueError(f"Trigger must be one of {VALID_TRIGGERS}, got: {self.trigger!r}")
        if self.delay and self.trigger not in {"ONSTART", "ONLOGON"}:
            raise ValueError("A delay is only supported for ONSTART and ONLOGON triggers")

    def create_args(self) -> list[str]:
        args = [
            "schtasks", "/Create",
            "/TN", self.name,
            "/TR", self.command,
            "/SC", self.trigger,
            "/RU", self.run_as,
        ]
        if self.highest:
            args += ["/RL", "HIGHEST"]
        if self.delay:
            args += ["/DELAY", self.delay]
        args.append("/F")
        return args


class TaskRegistrar:
    """Idempotent create/remove of a named scheduled task."""

    def exists(self, name: str) -> bool:
        validate_task_name(name)
        return run_cmd(["schtasks", "/Query", "/TN", name]).ok

    def query(self, name: str) -> Optional[dict]:
        """Return the task's verbose CSV row as a dict, or None if absent."""
        validate_task_name(name)
        result = run_cmd(["schtasks", "/Query", "/TN", name, "/FO", "CSV", "/V"])
        if not result.ok or not result.stdout.strip():
            return None
        rows = list(csv.DictReader(io.StringIO(result.stdout.strip())))
        return rows[0] if rows else None

    def delete(self, name: str) -> bool:
        validate_task_name(name)
        return run_cmd(["schtasks", "/Delete", "/TN", name, "/F"]).ok

    def create(self, task: ScheduledTask) -> bool:
        """Delete any task with the same name, then register this one."""
        if self.exists(task.name):
            logger.info("scheduled_task_replacing", task=task.name)
            if not self.delete(task.name):
                logger.error("scheduled_task_delete_failed", task=task.name)
                return False

        result = run_cmd(task.create_args())
        if not result.ok:
            logger.error("scheduled_task_create_failed", task=task.name, output=result.output.strip())
            return False

        logger.info("scheduled_task_created", task=task.name, trigger=task.trigger, run_as=task.run_as)
        return True

    def remove(self, name: str) -> bool:
        """Remove the task; succeeds without doing anything when it is absent."""
        if not self.exists(name):
            logger.info("scheduled_task_absent", task=name)
            return True
        if not self.delete(name):
            logger.error("scheduled_task_delete_failed", task=name)
            return False
        logger.info("scheduled_task_removed", task=name)
        return True
