"""
Claim limit economics for R-Planet accounts.

This service provides:
- Time-decayed effective claim limit from on-chain state
- Closed-form AETHER cost of raising the limit
- The increase-limit decision (raise when collected exceeds the limit)
- The claim decision (claim when waste is within tolerance)

Each decision re-reads its own state from the chain and the game API;
nothing is carried between decisions or cycles.
"""

import asyncio
import math
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

import structlog

from claimbot.core.config import settings, GameConfig, AccountConfig
from claimbot.core.logging import log_task
from claimbot.services.actions import make_claim_action, make_increase_action
from claimbot.services.collected_client import CollectedClient
from claimbot.services.rpc_client import ResilientRpcClient
from claimbot.services.transaction_service import TransactionResult, TransactionService
from claimbot.utils.formatting import format_amount


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AccountLimitState:
    """Stored claim limit of an account."""
    limit: float
    extended_at: int
    found: bool = True

    @classmethod
    def default(cls) -> "AccountLimitState":
        """State of an account that never extended its limit."""
        return cls(limit=GameConfig.LIMIT_SCALE, extended_at=0, found=False)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AccountLimitState":
        return cls(limit=float(row["limit"]), extended_at=int(row["extended_at"]))


def hours_elapsed(extended_at: int, now: float) -> int:
    """Whole hours since the last extension, never negative."""
    return max(0, math.floor((now - extended_at) / 3600))


def effective_limit(state: AccountLimitState, now: float) -> float:
    """
    Current claim limit after hourly decay.

    The stored limit is scaled by LIMIT_SCALE and decays by 1% per whole
    hour since the last extension, floored at MIN_LIMIT.
    """
    hours = hours_elapsed(state.extended_at, now)
    decayed = (state.limit / GameConfig.LIMIT_SCALE) * GameConfig.HOURLY_DECAY ** hours
    return max(GameConfig.MIN_LIMIT, decayed)


def increase_cost(target_limit: float) -> int:
    """
    AETHER cost of raising the limit to target_limit.

    Raises:
        ValueError: target_limit at or above MAX_LIMIT, where cost is undefined
    """
    min_limit = GameConfig.MIN_LIMIT
    max_limit = GameConfig.MAX_LIMIT

    if target_limit >= max_limit:
        raise ValueError(f"Target limit must be below {max_limit}")

    return math.ceil(
        max_limit ** 2 * (min_limit - target_limit)
        / ((target_limit - max_limit) * (max_limit - min_limit))
    )


class DecisionOutcome(Enum):
    """How a decision concluded."""
    NO_DATA = "no_data"
    NOT_NEEDED = "not_needed"
    LIMIT_OUT_OF_RANGE = "limit_out_of_range"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    BELOW_MIN_CLAIM = "below_min_claim"
    WASTE_TOO_HIGH = "waste_too_high"
    SUBMITTED = "submitted"


@dataclass
class DecisionResult:
    """Outcome of one decision for one account."""
    account: str
    outcome: DecisionOutcome
    collected: float = math.nan
    current_limit: float = math.nan
    target_limit: Optional[float] = None
    cost: Optional[int] = None
    balance: Optional[float] = None
    waste: Optional[float] = None
    delay: Optional[float] = None
    transaction: Optional[TransactionResult] = None


class ClaimLimitService:
    """
    Runs the increase-limit and claim decisions for an account.
    """

    def __init__(
        self,
        rpc_client: ResilientRpcClient,
        collected_client: CollectedClient,
        transaction_service: TransactionService,
        delay_min: Optional[float] = None,
        delay_max: Optional[float] = None,
        min_claim: Optional[float] = None,
        max_waste: Optional[float] = None,
        max_claim_limit: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.logger = logger.bind(service="claim_limit_service")
        self.rpc_client = rpc_client
        self.collected_client = collected_client
        self.transaction_service = transaction_service

        self.delay_min = settings.delay_min if delay_min is None else delay_min
        self.delay_max = settings.delay_max if delay_max is None else delay_max
        self.min_claim = settings.min_claim if min_claim is None else min_claim
        self.max_waste = settings.max_waste if max_waste is None else max_waste
        self.max_claim_limit = settings.max_claim_limit if max_claim_limit is None else max_claim_limit

        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()

    def random_delay(self) -> float:
        """Jitter before pushing, in seconds with two decimals."""
        return round(self._rng.uniform(self.delay_min, self.delay_max), 2)

    async def fetch_limit_state(self, account: str, endpoints: Sequence[str]) -> AccountLimitState:
        """Read the account's claimlimits row, falling back to the never-extended default."""
        rows = await self.rpc_client.get_table_rows(
            endpoints,
            code=GameConfig.GAME_CONTRACT,
            table=GameConfig.LIMITS_TABLE,
            scope=GameConfig.GAME_CONTRACT,
            bounds=account,
            index_position=GameConfig.LIMITS_INDEX_POSITION,
            key_type=GameConfig.LIMITS_KEY_TYPE,
            limit=GameConfig.TABLE_ROW_LIMIT,
            on_failure=lambda: None,
        )

        if rows is None:
            self.logger.warning(
                f"Claim limit of {account} unavailable from every endpoint; using defaults",
                account=account,
                endpoints=len(endpoints)
            )
            return AccountLimitState.default()

        if rows:
            try:
                return AccountLimitState.from_row(rows[0])
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning("Malformed claim limit row", account=account, error=str(e))

        self.logger.warning(f"Account {account} not found", account=account)
        return AccountLimitState.default()

    async def increase_limit(self, account: AccountConfig, endpoints: Sequence[str]) -> DecisionResult:
        """
        Raise the claim limit when collected AETHER has caught up with it.

        Args:
            account: Account to act for
            endpoints: Endpoint order for this account's cycle

        Returns:
            DecisionResult describing what was decided
        """
        name = account.name
        log_task("Increasing Limit")
        self.logger.info(f"Fetching account {name}", account=name)

        state = await self.fetch_limit_state(name, endpoints)
        collected = await self.collected_client.fetch_collected(name)

        if math.isnan(collected):
            self.logger.warning(
                f"Collected amount for {name} is unavailable; aborting",
                account=name
            )
            return DecisionResult(account=name, outcome=DecisionOutcome.NO_DATA)

        current_limit = effective_limit(state, self._clock())
        result = DecisionResult(
            account=name,
            outcome=DecisionOutcome.NOT_NEEDED,
            collected=collected,
            current_limit=current_limit,
        )

        if current_limit > collected:
            self.logger.info(
                f"Account {name} doesn't need to increase limit "
                f"(collected {format_amount(collected)} / {format_amount(current_limit)})",
                account=name
            )
            return result

        target_limit = min(self.max_claim_limit, collected)
        result.target_limit = target_limit

        try:
            cost = increase_cost(target_limit)
        except ValueError as e:
            self.logger.warning(
                f"Cannot price limit increase for {name}: {e}",
                account=name,
                target_limit=target_limit
            )
            result.outcome = DecisionOutcome.LIMIT_OUT_OF_RANGE
            return result

        if cost <= 0:
            self.logger.warning(
                f"Target limit {format_amount(target_limit)} for {name} is not above the minimum limit",
                account=name,
                target_limit=target_limit,
                cost=cost
            )
            result.outcome = DecisionOutcome.LIMIT_OUT_OF_RANGE
            return result

        result.cost = cost

        balance = await self.rpc_client.get_currency_balance(
            endpoints,
            code=GameConfig.TOKEN_CONTRACT,
            account=name,
            symbol=GameConfig.SYMBOL,
        )
        result.balance = balance

        if math.isnan(balance):
            self.logger.warning(
                f"AETHER balance for {name} is unavailable; aborting",
                account=name
            )
            result.outcome = DecisionOutcome.NO_DATA
            return result

        if balance < cost:
            self.logger.warning(
                f"Account {name} doesn't have enough aether to increase the limit",
                account=name,
                balance=balance,
                cost=cost
            )
            result.outcome = DecisionOutcome.INSUFFICIENT_FUNDS
            return result

        delay = self.random_delay()
        result.delay = delay
        self.logger.info(
            f"Increasing limit to {format_amount(target_limit)} "
            f"by spending {format_amount(cost)} AETHER "
            f"(after a {round(delay)}s delay)",
            account=name
        )

        await self._sleep(delay)
        result.transaction = await self.transaction_service.submit(
            name, [account.private_key], [make_increase_action(name, cost)], endpoints
        )
        result.outcome = DecisionOutcome.SUBMITTED
        return result

    async def claim(self, account: AccountConfig, endpoints: Sequence[str]) -> DecisionResult:
        """
        Claim collected AETHER when enough has accumulated and the amount
        forfeited above the effective limit is tolerable.

        Args:
            account: Account to act for
            endpoints: Endpoint order for this account's cycle

        Returns:
            DecisionResult describing what was decided
        """
        name = account.name
        log_task("Claiming Aether")
        self.logger.info(f"Fetching account {name}", account=name)

        state = await self.fetch_limit_state(name, endpoints)
        collected = await self.collected_client.fetch_collected(name)

        if math.isnan(collected):
            self.logger.warning(
                f"Collected amount for {name} is unavailable; aborting",
                account=name
            )
            return DecisionResult(account=name, outcome=DecisionOutcome.NO_DATA)

        result = DecisionResult(account=name, outcome=DecisionOutcome.BELOW_MIN_CLAIM, collected=collected)

        if collected < self.min_claim:
            self.logger.warning(
                f"Account {name} doesn't have enough aether to claim; aborting",
                account=name,
                collected=collected,
                min_claim=self.min_claim
            )
            return result

        current_limit = effective_limit(state, self._clock())
        waste = max(0.0, collected - current_limit)
        result.current_limit = current_limit
        result.waste = waste

        if waste > self.max_waste:
            self.logger.warning(
                f"Waste {format_amount(waste)} exceeds max waste threshold {format_amount(self.max_waste)}",
                account=name
            )
            result.outcome = DecisionOutcome.WASTE_TOO_HIGH
            return result

        delay = self.random_delay()
        result.delay = delay
        self.logger.info(
            f"Claiming with ({format_amount(collected)} AETHER) "
            f"Wasting ({format_amount(waste)} AETHER) "
            f"(after a {round(delay)}s delay)",
            account=name
        )

        await self._sleep(delay)
        result.transaction = await self.transaction_service.submit(
            name, [account.private_key], [make_claim_action(name)], endpoints
        )
        result.outcome = DecisionOutcome.SUBMITTED
        return result
