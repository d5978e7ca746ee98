"""Fan-out/fan-in helper for request-scoped concurrent I/O.

Every branch runs under its own timeout. A branch that raises or times out
contributes its default instead of aborting its siblings; the caller can see
which branches failed through ``FanoutResult.failed``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Iterable

log = logging.getLogger(__name__)


@dataclass
class Branch:
    name: str
    call: Awaitable[Any]
    default: Any = None


@dataclass
class FanoutResult:
    values: dict[str, Any] = field(default_factory=dict)
    failed: set[str] = field(default_factory=set)

    def __getitem__(self, name: str) -> Any:
        return self.values[name]


async def _run_branch(branch: Branch, timeout: float | None) -> Any:
    if timeout is None:
        return await branch.call
    return await asyncio.wait_for(branch.call, timeout)


async def gather_settled(
    branches: Iterable[Branch], *, timeout: float | None = None
) -> FanoutResult:
    branches = list(branches)
    outcomes = await asyncio.gather(
        *(_run_branch(b, timeout) for b in branches), return_exceptions=True
    )
    result = FanoutResult()
    for branch, outcome in zip(branches, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, asyncio.TimeoutError):
                log.warning("branch %s timed out after %ss", branch.name, timeout)
            else:
                log.warning("branch %s failed: %r", branch.name, outcome)
            result.values[branch.name] = branch.default
            result.failed.add(branch.name)
        else:
            result.values[branch.name] = outcome
    return result
