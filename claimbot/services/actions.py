"""
Constructors for the two actions the bot pushes.
"""

from claimbot.core.config import GameConfig
from claimbot.eosio.types import Action, Authorization


def format_quantity(amount: float, precision: int = GameConfig.SYMBOL_PRECISION,
                    symbol: str = GameConfig.SYMBOL) -> str:
    """90199 -> "90199.0000 AETHER" (no digit grouping)."""
    return f"{amount:.{precision}f} {symbol}"


def make_increase_action(account: str, quantity: float) -> Action:
    """AETHER transfer to the game contract that raises the claim limit."""
    return Action(
        account=GameConfig.TOKEN_CONTRACT,
        name="transfer",
        authorization=[Authorization(actor=account, permission=GameConfig.PERMISSION)],
        data={
            "from": account,
            "to": GameConfig.GAME_CONTRACT,
            "quantity": format_quantity(quantity),
            "memo": GameConfig.INCREASE_MEMO,
        },
    )


def make_claim_action(account: str) -> Action:
    """Claim of collected AETHER to the account itself."""
    return Action(
        account=GameConfig.GAME_CONTRACT,
        name="claim",
        authorization=[Authorization(actor=account, permission=GameConfig.PERMISSION)],
        data={"to": account},
    )
