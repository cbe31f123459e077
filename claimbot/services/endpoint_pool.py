"""
Pool of interchangeable WAX RPC endpoints.
"""

import random
from typing import Iterable, Optional, Tuple

import structlog


logger = structlog.get_logger(__name__)


class EndpointPool:
    """
    Fixed set of RPC node URLs plus the traversal order currently in use.

    The order is an immutable tuple replaced wholesale by shuffle(), so a
    caller holding order() keeps a consistent snapshot.
    """

    def __init__(self, endpoints: Iterable[str], rng: Optional[random.Random] = None):
        self._endpoints: Tuple[str, ...] = tuple(endpoints)
        if not self._endpoints:
            raise ValueError("Endpoint pool cannot be empty")

        self._rng = rng or random.Random()
        self._order: Tuple[str, ...] = self._endpoints
        self.shuffle()

    @property
    def endpoints(self) -> Tuple[str, ...]:
        return self._endpoints

    def order(self) -> Tuple[str, ...]:
        """Current traversal order."""
        return self._order

    def shuffle(self) -> None:
        """Replace the traversal order with a new random permutation."""
        self._order = tuple(self._rng.sample(self._endpoints, len(self._endpoints)))
        logger.debug("Endpoint order shuffled", order=list(self._order))
