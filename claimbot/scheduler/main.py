"""
Main entry point for the claim bot.
Loads accounts, wires the services and runs the account scheduler.
"""

import asyncio
import os
import signal
from typing import Dict, List, Optional, Set

from dotenv import dotenv_values
import structlog

from claimbot.core.config import settings, load_accounts, AccountConfig
from claimbot.core.logging import setup_logging
from claimbot.services.claim_limit_service import ClaimLimitService
from claimbot.services.collected_client import CollectedClient, close_collected_client, get_collected_client
from claimbot.services.endpoint_pool import EndpointPool
from claimbot.services.rpc_client import ResilientRpcClient, close_rpc_client, get_rpc_client
from claimbot.services.transaction_service import get_transaction_service
from .account_scheduler import AccountScheduler


logger = structlog.get_logger(__name__)


def read_environment(env_file: str = ".env") -> Dict[str, str]:
    """.env values overlaid by the real process environment."""
    values = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
    values.update(os.environ)
    return values


class ClaimBotMain:
    """Main service coordinator."""

    def __init__(self, accounts: List[AccountConfig]):
        self.accounts = accounts
        self.rpc_client: Optional[ResilientRpcClient] = None
        self.collected_client: Optional[CollectedClient] = None
        self.scheduler: Optional[AccountScheduler] = None
        self._shutdown_tasks: Set[asyncio.Task] = set()

    async def initialize(self):
        """Create the services for the configured accounts."""
        self.rpc_client = await get_rpc_client()
        self.collected_client = await get_collected_client()

        service = ClaimLimitService(
            rpc_client=self.rpc_client,
            collected_client=self.collected_client,
            transaction_service=await get_transaction_service(),
        )

        self.scheduler = AccountScheduler(
            accounts=self.accounts,
            service=service,
            pool=EndpointPool(settings.wax_endpoints),
        )

        if settings.dev_mode:
            logger.warning("DEV_MODE is enabled: transactions will not be pushed")

    async def start(self):
        await self.scheduler.start()
        await self.scheduler.wait()

    async def stop(self):
        if self.scheduler:
            await self.scheduler.stop()
        await close_collected_client()
        await close_rpc_client()

    def request_shutdown(self, signum: int) -> asyncio.Task:
        """Schedule stop() from a signal handler."""
        logger.info(f"Received signal {signum}, shutting down...")
        task = asyncio.create_task(self.stop())
        self._shutdown_tasks.add(task)
        task.add_done_callback(self._shutdown_tasks.discard)
        return task


async def main():
    """Run the bot until interrupted."""
    setup_logging()
    logger.info(f"{settings.app_name} initialization")

    accounts = load_accounts(read_environment())
    if not accounts:
        logger.error("No valid accounts configured; set ACCOUNT_NAME<n> and PRIVATE_KEY<n>")
        return

    logger.info(f"{settings.app_name} running for {', '.join(a.name for a in accounts)}")

    bot = ClaimBotMain(accounts)
    await bot.initialize()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, bot.request_shutdown, signum)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    try:
        await bot.start()
    finally:
        await bot.stop()


def run():
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    run()
