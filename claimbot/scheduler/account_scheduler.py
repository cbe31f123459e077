"""
Account scheduler.

Runs the increase-limit and claim decisions for every configured account,
one account at a time, and starts a new pass every check interval.
A pass that outlives the interval keeps running alongside the next one.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set
from dataclasses import dataclass, asdict
from enum import Enum

import structlog

from claimbot.core.config import settings, AccountConfig
from claimbot.services.claim_limit_service import ClaimLimitService
from claimbot.services.endpoint_pool import EndpointPool
from claimbot.utils.formatting import parse_remaining_time


logger = structlog.get_logger(__name__)


class SchedulerStatus(Enum):
    """Status of the account scheduler."""
    STOPPED = "stopped"
    WAITING = "waiting"
    PROCESSING = "processing"


@dataclass
class SchedulerStats:
    """Statistics for scheduler operations."""
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    total_passes: int = 0
    completed_passes: int = 0
    account_failures: int = 0
    uptime_start: Optional[datetime] = None


class AccountScheduler:
    """
    Drives ClaimLimitService over the configured accounts.

    Accounts run in configured order; per account the endpoint order is
    reshuffled once, then increase-limit runs before claim.
    """

    def __init__(
        self,
        accounts: List[AccountConfig],
        service: ClaimLimitService,
        pool: EndpointPool,
        interval_minutes: Optional[int] = None,
    ):
        self.logger = logger.bind(service="account_scheduler")
        self.accounts = list(accounts)
        self.service = service
        self.pool = pool
        self.interval_seconds = (interval_minutes or settings.check_interval) * 60

        self.status = SchedulerStatus.STOPPED
        self.stats = SchedulerStats(uptime_start=datetime.utcnow())
        self._should_stop = False
        self._scheduler_task: Optional[asyncio.Task] = None
        self._pass_tasks: Set[asyncio.Task] = set()

    async def run_tasks(self, account: AccountConfig) -> None:
        """Both decisions for one account, sharing one endpoint order."""
        self.pool.shuffle()
        endpoints = self.pool.order()

        await self.service.increase_limit(account, endpoints)
        await self.service.claim(account, endpoints)

    async def run_accounts(self) -> None:
        """One full pass over every account."""
        self.status = SchedulerStatus.PROCESSING
        self.stats.total_passes += 1
        self.stats.last_run = datetime.utcnow()

        for account in self.accounts:
            try:
                await self.run_tasks(account)
            except Exception as e:
                self.stats.account_failures += 1
                self.logger.error(
                    "Unexpected error while processing account",
                    account=account.name,
                    error=str(e),
                    exc_info=True
                )

        self.stats.completed_passes += 1
        # Another pass may still be running
        if len(self._pass_tasks) <= 1:
            self.status = SchedulerStatus.WAITING

        self.logger.debug("RPC statistics", stats=self.service.rpc_client.get_stats())

    def _start_pass(self) -> asyncio.Task:
        task = asyncio.create_task(self.run_accounts())
        self._pass_tasks.add(task)
        task.add_done_callback(self._pass_tasks.discard)
        return task

    async def start(self):
        """Start the scheduler: an immediate pass, then one per interval."""
        if self.status != SchedulerStatus.STOPPED:
            self.logger.warning("Scheduler already running", current_status=self.status.value)
            return

        self._should_stop = False
        self.status = SchedulerStatus.WAITING
        self._scheduler_task = asyncio.create_task(self._scheduler_loop())

        self.logger.info(
            f"Running every {self.interval_seconds // 60} minutes",
            accounts=[a.name for a in self.accounts]
        )

    async def stop(self):
        """Stop the loop and cancel passes still in flight."""
        if self.status == SchedulerStatus.STOPPED:
            return

        self.logger.info("Stopping account scheduler")
        self._should_stop = True

        tasks = list(self._pass_tasks)
        if self._scheduler_task and not self._scheduler_task.done():
            tasks.append(self._scheduler_task)

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self.status = SchedulerStatus.STOPPED
        self.logger.info("Account scheduler stopped")

    async def wait(self):
        """Block until the scheduler loop ends."""
        if self._scheduler_task:
            await asyncio.gather(self._scheduler_task, return_exceptions=True)

    async def _scheduler_loop(self):
        """Start a pass, sleep one interval, repeat; passes are not awaited."""
        while not self._should_stop:
            self._start_pass()

            self.stats.next_run = datetime.utcnow() + timedelta(seconds=self.interval_seconds)
            self.logger.info(f"Next pass in {parse_remaining_time(self.interval_seconds)}")

            try:
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                self.logger.info("Scheduler loop cancelled")
                break

    def health_check(self) -> Dict[str, Any]:
        return {
            "healthy": self.status != SchedulerStatus.STOPPED,
            "status": self.status.value,
            "running_passes": len(self._pass_tasks),
            "stats": asdict(self.stats),
        }
