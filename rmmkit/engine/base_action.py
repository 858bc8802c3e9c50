"""Abstract base class for all rmmkit actions."""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..config import RmmConfig
from ..errors import ActionAborted
from ..utils.logging import get_logger


@dataclass
class StepResult:
    """Outcome of a single step inside an action."""
    name: str
    ok: bool
    critical: bool = False
    value: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "ok": self.ok,
            "critical": self.critical,
            "error": self.error,
        }


@dataclass
class ActionReport:
    """Ordered record of the steps an action ran."""
    action: str
    steps: list[StepResult] = field(default_factory=list)
    aborted: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return not self.aborted and all(s.ok for s in self.steps if s.critical)

    @property
    def warnings(self) -> list[StepResult]:
        return [s for s in self.steps if not s.ok and not s.critical]

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def get(self, name: str) -> Optional[StepResult]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "ok": self.ok,
            "aborted": self.aborted,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "steps": [s.to_dict() for s in self.steps],
        }


class BaseAction(ABC):
    """Base class that all actions inherit from.

    An action is a linear list of steps. Each step runs through
    :meth:`step`, which records the outcome; a failed critical step raises
    :class:`ActionAborted`, which :meth:`execute` turns into an aborted
    report. Non-critical failures are logged as warnings and the action
    carries on. Nothing is rolled back.
    """

    def __init__(self, name: str, config: RmmConfig | None = None):
        self.name = name
        self.config = config or RmmConfig()
        self.logger = get_logger(f"action.{name}")
        self.report = ActionReport(action=name)

    @abstractmethod
    async def run(self) -> None:
        """Run the action's steps in order."""
        ...

    async def step(
        self,
        name: str,
        fn: Callable[..., Any],
        *args: Any,
        critical: bool = False,
        **kwargs: Any,
    ) -> StepResult:
        """Run one step. A falsy return value or an exception counts as failure."""
        self.logger.info("step_started", step=name, critical=critical)
        try:
            value = fn(*args, **kwargs)
            if inspect.isawaitable(value):
                value = await value
            # None means "done, nothing to report"
            result = StepResult(name=name, ok=value is None or bool(value), critical=critical, value=value)
        except ActionAborted:
            raise
        except Exception as e:
            result = StepResult(name=name, ok=False, critical=critical, error=str(e))

        self.report.steps.append(result)
        if result.ok:
            self.logger.info("step_completed", step=name)
        elif critical:
            self.logger.error("step_failed", step=name, error=result.error)
            raise ActionAborted(name, result.error)
        else:
            self.logger.warning("step_failed_continuing", step=name, error=result.error)
        return result

    async def execute(self) -> ActionReport:
        """Run the action and return its report; never raises ActionAborted."""
        self.report = ActionReport(action=self.name, started_at=datetime.now(timezone.utc))
        self.logger.info("action_started")
        try:
            await self.run()
        except ActionAborted as e:
            self.report.aborted = True
            self.logger.error("action_aborted", step=e.step, error=e.error)
        self.report.finished_at = datetime.now(timezone.utc)
        self.logger.info(
            "action_finished",
            ok=self.report.ok,
            warnings=len(self.report.warnings),
        )
        return self.report
