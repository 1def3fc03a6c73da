"""Per-run step log.

Each pipeline run owns one ``PipelineLog``; entries are appended in execution
order and returned with the result. Every entry is mirrored to the Python
logger so failed runs can be traced from the server log.
"""

import logging
import uuid
from typing import Any, Optional

from reel2canva.schemas.pipeline import StepLog, StepName, StepStatus

logger = logging.getLogger(__name__)


class PipelineLog:
    def __init__(self, run_id: Optional[str] = None) -> None:
        self.run_id = run_id or uuid.uuid4().hex[:8]
        self._entries: list[StepLog] = []

    def add(
        self,
        step: StepName,
        status: StepStatus,
        message: str,
        meta: Optional[dict[str, Any]] = None,
    ) -> StepLog:
        entry = StepLog(step=step, status=status, message=message, meta=meta)
        self._entries.append(entry)
        level = logging.ERROR if status == StepStatus.ERROR else logging.INFO
        logger.log(level, f"[{self.run_id}] {step.value}: {message}")
        return entry

    def success(self, step: StepName, message: str, meta: Optional[dict[str, Any]] = None) -> StepLog:
        return self.add(step, StepStatus.SUCCESS, message, meta)

    def error(self, step: StepName, message: str, meta: Optional[dict[str, Any]] = None) -> StepLog:
        return self.add(step, StepStatus.ERROR, message, meta)

    @property
    def entries(self) -> list[StepLog]:
        return list(self._entries)
