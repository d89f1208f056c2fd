# core/polling.py
import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union
import httpx
from config.settings import settings
from model.job import Job
from util.errors import JobFailedError, PollTimeoutError, TransientPollError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pending:
    progress: Optional[int] = None


@dataclass(frozen=True)
class Succeeded:
    result: Any = None


@dataclass(frozen=True)
class Failed:
    reason: Optional[str] = None


PollOutcome = Union[Pending, Succeeded, Failed]

StatusCheck = Callable[[str], Awaitable[Any]]
OutcomeMapper = Callable[[Any], PollOutcome]
UpdateHook = Callable[[Pending], Union[None, Awaitable[None]]]
Sleep = Callable[[float], Awaitable[Any]]

TRANSIENT_ERRORS = (TransientPollError, httpx.TransportError)


class StatusPoller:
    """
    Fixed-interval poller for one externally-owned job.

    Flow:
      - check immediately, then every job.poll_interval_ms, at most job.max_attempts checks
      - map each raw payload to Pending | Succeeded | Failed
      - first terminal outcome ends the loop; nothing is checked after it
      - transient check errors are tolerated up to `max_consecutive_errors` in a row
        (the attempt still counts); any other error is fatal at once
    """

    def __init__(
        self,
        *,
        sleep: Sleep = asyncio.sleep,
        max_consecutive_errors: Optional[int] = None,
        failure_message: str = "Job failed",
        timeout_message: Optional[str] = None,
    ) -> None:
        self._sleep = sleep
        self._max_errors = (
            settings.POLL_MAX_CONSECUTIVE_ERRORS
            if max_consecutive_errors is None
            else max_consecutive_errors
        )
        self._failure_message = failure_message
        self._timeout_message = timeout_message

    async def run(
        self,
        job: Job,
        check: StatusCheck,
        mapper: OutcomeMapper,
        on_update: Optional[UpdateHook] = None,
    ) -> Succeeded:
        streak = 0
        for attempt in range(1, job.max_attempts + 1):
            if attempt > 1:
                await self._sleep(job.poll_interval_ms / 1000)

            try:
                raw = await check(job.id)
            except TRANSIENT_ERRORS as e:
                streak += 1
                logger.warning(
                    "poll.transient kind=%s job=%s attempt=%d streak=%d err=%s",
                    job.kind.value,
                    job.id,
                    attempt,
                    streak,
                    e,
                )
                if streak > self._max_errors:
                    logger.error(
                        "poll.abort kind=%s job=%s attempt=%d", job.kind.value, job.id, attempt
                    )
                    raise
                continue

            streak = 0
            outcome = mapper(raw)

            if isinstance(outcome, Succeeded):
                logger.info(
                    "poll.succeeded kind=%s job=%s attempt=%d", job.kind.value, job.id, attempt
                )
                return outcome

            if isinstance(outcome, Failed):
                logger.warning(
                    "poll.failed kind=%s job=%s attempt=%d reason=%s",
                    job.kind.value,
                    job.id,
                    attempt,
                    outcome.reason,
                )
                raise JobFailedError(outcome.reason or self._failure_message)

            logger.debug(
                "poll.pending kind=%s job=%s attempt=%d progress=%s",
                job.kind.value,
                job.id,
                attempt,
                outcome.progress,
            )
            if on_update is not None:
                maybe = on_update(outcome)
                if inspect.isawaitable(maybe):
                    await maybe

        logger.warning(
            "poll.timeout kind=%s job=%s attempts=%d", job.kind.value, job.id, job.max_attempts
        )
        raise PollTimeoutError(
            self._timeout_message
            or f"{job.kind.value} job timed out after {job.max_attempts} attempts"
        )
