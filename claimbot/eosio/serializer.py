"""
Binary encoding of WAX transactions.

Covers only what the bot pushes: token transfers and game claims.
Layouts follow the EOSIO ABI for eosio.token::transfer and the
transaction header/action structures.
"""

import hashlib
import re
import struct
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List

from claimbot.core.exceptions import SerializationError
from .types import Action, Transaction


NAME_CHARS = ".12345abcdefghijklmnopqrstuvwxyz"
_SYMBOL_CODE_RE = re.compile(r"^[A-Z]{1,7}$")


def _char_to_symbol(char: str) -> int:
    if "a" <= char <= "z":
        return ord(char) - ord("a") + 6
    if "1" <= char <= "5":
        return ord(char) - ord("1") + 1
    if char == ".":
        return 0
    raise SerializationError(f"Invalid character in name: {char!r}")


def name_to_uint64(name: str) -> int:
    """Convert an account/action name to its 64-bit value."""
    if len(name) > 13:
        raise SerializationError(f"Name is longer than 13 characters: {name!r}")

    value = 0
    for i in range(13):
        symbol = _char_to_symbol(name[i]) if i < len(name) else 0
        if i < 12:
            value |= (symbol & 0x1F) << (64 - 5 * (i + 1))
        else:
            if symbol > 0x0F:
                raise SerializationError(f"Invalid 13th character in name: {name!r}")
            value |= symbol

    return value


def uint64_to_name(value: int) -> str:
    """Inverse of name_to_uint64, trailing dots stripped."""
    chars = []
    for i in range(13):
        if i == 0:
            symbol = value & 0x0F
        else:
            symbol = value & 0x1F
        chars.append(NAME_CHARS[symbol])
        value >>= 4 if i == 0 else 5
    return "".join(reversed(chars)).rstrip(".")


def encode_name(name: str) -> bytes:
    return struct.pack("<Q", name_to_uint64(name))


def encode_varuint32(value: int) -> bytes:
    if value < 0 or value > 0xFFFFFFFF:
        raise SerializationError(f"varuint32 out of range: {value}")

    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_bytes(data: bytes) -> bytes:
    return encode_varuint32(len(data)) + data


def encode_string(text: str) -> bytes:
    return encode_bytes(text.encode("utf-8"))


def encode_symbol(precision: int, code: str) -> bytes:
    if not _SYMBOL_CODE_RE.match(code):
        raise SerializationError(f"Invalid symbol code: {code!r}")
    if not 0 <= precision <= 18:
        raise SerializationError(f"Invalid symbol precision: {precision}")
    return bytes([precision]) + code.encode("ascii").ljust(7, b"\x00")


def encode_asset(quantity: str) -> bytes:
    """Encode an asset string such as "90199.0000 AETHER"."""
    try:
        amount_text, code = quantity.strip().split(" ")
        amount = Decimal(amount_text)
    except (ValueError, InvalidOperation):
        raise SerializationError(f"Invalid asset: {quantity!r}")

    precision = len(amount_text.split(".")[1]) if "." in amount_text else 0
    units = int(amount.scaleb(precision))

    if not -(2 ** 62) < units < 2 ** 62:
        raise SerializationError(f"Asset amount out of range: {quantity!r}")

    return struct.pack("<q", units) + encode_symbol(precision, code)


def _serialize_transfer(data: Dict[str, Any]) -> bytes:
    return (
        encode_name(data["from"])
        + encode_name(data["to"])
        + encode_asset(data["quantity"])
        + encode_string(data.get("memo", ""))
    )


def _serialize_claim(data: Dict[str, Any]) -> bytes:
    return encode_name(data["to"])


ACTION_DATA_SERIALIZERS: Dict[str, Callable[[Dict[str, Any]], bytes]] = {
    "transfer": _serialize_transfer,
    "claim": _serialize_claim,
}


def serialize_action_data(action: Action) -> bytes:
    serializer = ACTION_DATA_SERIALIZERS.get(action.name)
    if serializer is None:
        raise SerializationError(
            f"No serializer for action {action.account}::{action.name}",
            {"account": action.account, "name": action.name}
        )

    try:
        return serializer(action.data)
    except KeyError as e:
        raise SerializationError(
            f"Missing field {e} for action {action.account}::{action.name}",
            {"account": action.account, "name": action.name}
        )


def serialize_action(action: Action) -> bytes:
    out = encode_name(action.account) + encode_name(action.name)
    out += encode_varuint32(len(action.authorization))
    for auth in action.authorization:
        out += encode_name(auth.actor) + encode_name(auth.permission)
    return out + encode_bytes(serialize_action_data(action))


def serialize_actions(actions: List[Action]) -> bytes:
    return encode_varuint32(len(actions)) + b"".join(serialize_action(a) for a in actions)


def serialize_transaction(transaction: Transaction) -> bytes:
    """Pack a transaction header and its actions."""
    header = struct.pack(
        "<IHI",
        transaction.expiration,
        transaction.ref_block_num,
        transaction.ref_block_prefix,
    )
    return (
        header
        + encode_varuint32(transaction.max_net_usage_words)
        + struct.pack("<B", transaction.max_cpu_usage_ms)
        + encode_varuint32(transaction.delay_sec)
        + encode_varuint32(0)  # context_free_actions
        + serialize_actions(transaction.actions)
        + encode_varuint32(0)  # transaction_extensions
    )


def transaction_id(serialized_transaction: bytes) -> str:
    return hashlib.sha256(serialized_transaction).hexdigest()


def signing_digest(chain_id: str, serialized_transaction: bytes) -> bytes:
    """sha256(chain_id || packed_trx || 32 zero bytes for empty context-free data)."""
    return hashlib.sha256(
        bytes.fromhex(chain_id) + serialized_transaction + bytes(32)
    ).digest()
