"""
Shared fixtures and fakes for the claim bot tests.
"""

import math
from typing import Any, Dict, List, Optional

import pytest

from claimbot.core.config import AccountConfig
from claimbot.services.transaction_service import TransactionResult


# eosio development key pair
DEV_PRIVATE_KEY = "5KQwrPbwdL6PhXujxW37FSSQZ1JiwsST4cqQzDeyXtP79zkvFD3"
DEV_PUBLIC_KEY = "EOS6MRyAjQq8ud7hVNYcfnVPJqcVpscN5So8BhtHuGYqET5GDW5CV"

WAX_CHAIN_ID = "1064487b3cd1a897ce03ae5b6a865651747e2e152090f99c1d19d44e01aea5a4"

NOW = 1_700_000_000


class FakeRpcClient:
    """Stands in for ResilientRpcClient in decision tests."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, balance: float = math.nan,
                 table_unreachable: bool = False):
        self.rows = rows or []
        self.table_unreachable = table_unreachable
        self.balance = balance
        self.calls: List[tuple] = []

    async def get_table_rows(self, endpoints, **kwargs):
        self.calls.append(("get_table_rows", tuple(endpoints), kwargs))
        if self.table_unreachable:
            return kwargs.get("on_failure", list)()
        return list(self.rows)

    async def get_currency_balance(self, endpoints, **kwargs):
        self.calls.append(("get_currency_balance", tuple(endpoints), kwargs))
        return self.balance

    def get_stats(self):
        return {}


class FakeCollectedClient:

    def __init__(self, collected: float):
        self.collected = collected
        self.calls: List[str] = []

    async def fetch_collected(self, account: str) -> float:
        self.calls.append(account)
        return self.collected


class RecordingTransactionService:
    """Records submissions instead of pushing them."""

    def __init__(self):
        self.submissions: List[Dict[str, Any]] = []

    async def submit(self, account, private_keys, actions, endpoints):
        self.submissions.append({
            "account": account,
            "private_keys": list(private_keys),
            "actions": actions,
            "endpoints": tuple(endpoints),
        })
        return TransactionResult(success=True, transaction_id="ab" * 32)


class SleepRecorder:

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


def limit_row(effective: float, extended_at: int = NOW) -> Dict[str, Any]:
    """claimlimits row whose effective limit is `effective` at extension time."""
    return {"account": "tester.wam", "limit": int(effective * 10_000), "extended_at": extended_at}


@pytest.fixture
def account() -> AccountConfig:
    return AccountConfig(name="tester.wam", private_key=DEV_PRIVATE_KEY)


@pytest.fixture
def endpoints():
    return ("https://node-a.example", "https://node-b.example", "https://node-c.example")


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def transaction_recorder() -> RecordingTransactionService:
    return RecordingTransactionService()
