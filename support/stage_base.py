from __future__ import annotations

import abc
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import db
from config import EtlConfig
from logging_utils import get_logger
from utils.timing import timed_block

logger = get_logger(__name__)


@dataclass(frozen=True)
class StageResult:
    stage: str
    counts: dict[str, int] = field(default_factory=dict)
    skipped: bool = False


class StageError(Exception):
    """A stage's transaction failed and was rolled back."""

    def __init__(self, stage: str, phase: str | None, message: str) -> None:
        self.stage = stage
        self.phase = phase
        where = f"{stage}/{phase}" if phase else stage
        super().__init__(f"Stage '{where}' failed and was rolled back: {message}")


class EtlStageBase(abc.ABC):
    """Reusable base class for pipeline stages.

    Subclasses should implement:
    - `stage_name`: identifier used by the CLI (`--stages`) and in logs.
    - `run(session)`: the stage's bulk work; return affected-row counts.

    Optionally:
    - `preflight()`: read/validate inputs before any transaction starts;
      raise `ConfigurationError` for unusable settings or files.
    - `timeout_seconds`: per-stage command timeout (defaults to the generic
      command timeout).

    `execute()` runs the whole stage in one transaction. A database error in
    any phase rolls back everything the stage did and surfaces as StageError.
    """

    stage_name: str

    def __init__(self, config: EtlConfig, *, session_factory: Any = None) -> None:
        self.config = config
        self.session_factory = session_factory or db.SessionLocal
        self._phase: str | None = None

    @property
    def timeout_seconds(self) -> int:
        return self.config.timeouts.command

    @property
    def enabled(self) -> bool:
        return True

    def preflight(self) -> None:
        """Validate inputs; the default has nothing to check."""

    @abc.abstractmethod
    def run(self, session: Session) -> dict[str, int]:  # pragma: no cover
        raise NotImplementedError

    @contextmanager
    def phase(self, name: str) -> Iterator[None]:
        self._phase = name
        with timed_block(f"{self.stage_name}.{name}", logger_obj=logger):
            yield

    def log_count(self, phase: str, count: int, what: str) -> None:
        logger.info("[%s] %s: %s %s", self.stage_name, phase, count, what)

    def execute(self) -> StageResult:
        if not self.enabled:
            logger.info("Stage %s skipped (not configured)", self.stage_name)
            return StageResult(self.stage_name, skipped=True)
        self.preflight()
        self._phase = None
        with timed_block(f"stage {self.stage_name}", logger_obj=logger):
            with self.session_factory() as session:
                try:
                    with db.transaction(session):
                        db.apply_command_timeout(session, self.timeout_seconds)
                        counts = self.run(session)
                except SQLAlchemyError as e:
                    logger.error(
                        "Stage %s failed in phase %s: %s", self.stage_name, self._phase, e
                    )
                    detail = getattr(e, "orig", None) or e
                    raise StageError(self.stage_name, self._phase, str(detail)) from e
        logger.info("Stage %s committed: %s", self.stage_name, counts)
        return StageResult(self.stage_name, dict(counts))
