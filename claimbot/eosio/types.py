"""
Types for WAX transactions.
"""

import math
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List

from claimbot.core.exceptions import RpcError


@dataclass(frozen=True)
class Authorization:
    """Permission level an action is authorized with."""
    actor: str
    permission: str = "active"


@dataclass
class Action:
    """A contract action with its structured (not yet serialized) payload."""
    account: str
    name: str
    authorization: List[Authorization]
    data: Dict[str, Any] = field(default_factory=dict)


def parse_time_point_sec(value: str) -> int:
    """Parse a node timestamp ("2024-05-01T12:00:00.500", UTC) to whole seconds."""
    moment = datetime.fromisoformat(value.rstrip("Z"))
    return math.floor(moment.replace(tzinfo=timezone.utc).timestamp() + 0.5)


@dataclass(frozen=True)
class ChainHeadInfo:
    """Head block data needed for TaPoS fields."""
    head_block_id: str
    head_block_num: int
    head_block_time: int  # unix seconds
    chain_id: str

    @classmethod
    def from_rpc(cls, info: Dict[str, Any]) -> "ChainHeadInfo":
        """Build from a /v1/chain/get_info response."""
        try:
            return cls(
                head_block_id=info["head_block_id"],
                head_block_num=int(info["head_block_num"]),
                head_block_time=parse_time_point_sec(info["head_block_time"]),
                chain_id=info["chain_id"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(f"Malformed get_info response: {e}", {"info": info})

    @property
    def ref_block_num(self) -> int:
        return self.head_block_num & 0xFFFF

    @property
    def ref_block_prefix(self) -> int:
        # Bytes 8..11 of the block id, little-endian
        return int.from_bytes(bytes.fromhex(self.head_block_id[16:24]), "little")

    def expiration(self, seconds: int) -> int:
        return self.head_block_time + seconds


@dataclass
class Transaction:
    """Unsigned transaction, built fresh for every submission."""
    expiration: int
    ref_block_num: int
    ref_block_prefix: int
    actions: List[Action]
    max_net_usage_words: int = 0
    max_cpu_usage_ms: int = 0
    delay_sec: int = 0

    @classmethod
    def from_head(cls, head: ChainHeadInfo, actions: List[Action], expire_seconds: int) -> "Transaction":
        return cls(
            expiration=head.expiration(expire_seconds),
            ref_block_num=head.ref_block_num,
            ref_block_prefix=head.ref_block_prefix,
            actions=actions,
        )
