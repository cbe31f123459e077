"""
Transaction service for building, signing and pushing WAX transactions.
Submission is best effort: failures are logged and reported, never raised.
"""

import asyncio
import random
import struct
from typing import List, Optional, Sequence
from dataclasses import dataclass

import aiohttp
import structlog

from claimbot.core.config import settings, GameConfig
from claimbot.core.exceptions import ClaimBotException, ConfigurationError
from claimbot.eosio.keys import PrivateKey
from claimbot.eosio.serializer import serialize_transaction, signing_digest, transaction_id
from claimbot.eosio.types import Action, ChainHeadInfo, Transaction
from claimbot.services.rpc_client import ResilientRpcClient, get_rpc_client


logger = structlog.get_logger(__name__)


@dataclass
class TransactionResult:
    """Result of a submission attempt."""
    success: bool
    transaction_id: Optional[str] = None
    endpoint: Optional[str] = None
    error: Optional[str] = None
    dry_run: bool = False


class TransactionService:
    """
    Builds TaPoS-bound transactions, signs them locally and pushes them
    to one node picked at random from the current endpoint order.
    """

    def __init__(
        self,
        rpc_client: ResilientRpcClient,
        dry_run: Optional[bool] = None,
        expire_seconds: int = GameConfig.EXPIRATION_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        self.logger = logger.bind(service="transaction_service")
        self.rpc_client = rpc_client
        self.dry_run = settings.dev_mode if dry_run is None else dry_run
        self.expire_seconds = expire_seconds
        self._rng = rng or random.Random()

    def build_transaction(self, head: ChainHeadInfo, actions: List[Action]) -> Transaction:
        return Transaction.from_head(head, actions, self.expire_seconds)

    @staticmethod
    def sign_transaction(
        chain_id: str,
        packed_trx: bytes,
        private_keys: Sequence[str],
    ) -> List[str]:
        """
        Sign a packed transaction with every supplied key.

        The public keys required by the authorization are derived from the
        private keys and logged; nothing is fetched from the chain.

        Returns:
            One SIG_K1_ signature per key, in key order
        """
        if not private_keys:
            raise ConfigurationError("No private keys supplied for signing")

        keys = [PrivateKey.from_string(pk) for pk in private_keys]
        required_keys = [str(key.public_key()) for key in keys]
        logger.debug("Signing transaction", required_keys=required_keys)

        digest = signing_digest(chain_id, packed_trx)
        return [key.sign(digest) for key in keys]

    async def submit(
        self,
        account: str,
        private_keys: Sequence[str],
        actions: List[Action],
        endpoints: Sequence[str],
    ) -> TransactionResult:
        """
        Build, sign and push a transaction for an account.

        Args:
            account: Account the actions are authorized by
            private_keys: Keys to sign with
            actions: Logical actions to include
            endpoints: Current endpoint order; one node is sampled from it

        Returns:
            TransactionResult; success carries the transaction id
        """
        if self.dry_run:
            self.logger.info(
                "Dry run enabled, transaction not pushed",
                account=account,
                actions=[f"{a.account}::{a.name}" for a in actions]
            )
            return TransactionResult(success=False, dry_run=True)

        endpoint = None
        try:
            endpoint = self._rng.choice(list(endpoints))

            head = ChainHeadInfo.from_rpc(await self.rpc_client.get_info(endpoint))
            transaction = self.build_transaction(head, actions)
            packed_trx = serialize_transaction(transaction)

            signatures = self.sign_transaction(head.chain_id, packed_trx, private_keys)

            response = await self.rpc_client.push_transaction(endpoint, signatures, packed_trx)
            tx_id = (response or {}).get("transaction_id") or transaction_id(packed_trx)

            self.logger.info(
                f"✅ {tx_id}",
                account=account,
                endpoint=endpoint,
                transaction_id=tx_id
            )
            return TransactionResult(success=True, transaction_id=tx_id, endpoint=endpoint)

        except (ClaimBotException, asyncio.TimeoutError, aiohttp.ClientError,
                struct.error, ValueError, IndexError, TypeError, AttributeError) as e:
            error_msg = str(e) or type(e).__name__
            self.logger.error(
                f"❌ {error_msg}",
                account=account,
                endpoint=endpoint,
                error_type=type(e).__name__
            )
            return TransactionResult(success=False, endpoint=endpoint, error=error_msg)


# Global instance
_transaction_service: Optional[TransactionService] = None


async def get_transaction_service() -> TransactionService:
    """Get or create global TransactionService instance."""
    global _transaction_service
    if _transaction_service is None:
        _transaction_service = TransactionService(await get_rpc_client())
    return _transaction_service
