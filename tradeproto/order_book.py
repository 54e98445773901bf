"""Price-level order book keyed by price on each side."""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Optional


class OrderBookError(Exception):
    """Raised when an update is older than the level it would change."""


@dataclass
class Order:
    price: int
    size: int = 0
    buy: bool = True
    seq_num: int = 0


@dataclass
class Level:
    price: int
    size: int
    seq_num: int


class OrderBook:
    """Bid and ask levels, each side ordered by ascending price."""

    def __init__(self) -> None:
        self.clear()

    def clear(self) -> None:
        """Remove every level."""
        self._levels: dict[bool, dict[int, Level]] = {True: {}, False: {}}
        self._prices: dict[bool, list[int]] = {True: [], False: []}

    def lookup(self, order: Order) -> Optional[Level]:
        """The level at the order's price on the order's side, if any."""
        return self._levels[bool(order.buy)].get(order.price)

    def modify(self, order: Order) -> Level:
        """Create the level or update its size; stale updates raise."""
        buy = bool(order.buy)
        side = self._levels[buy]
        level = side.get(order.price)
        if level is None:
            level = Level(order.price, order.size, order.seq_num)
            side[order.price] = level
            bisect.insort(self._prices[buy], order.price)
            return level
        if level.seq_num >= order.seq_num:
            raise OrderBookError(
                f"update {order.seq_num} is not newer than level {level.seq_num}"
            )
        level.seq_num = order.seq_num
        level.size = order.size
        return level

    def delete(self, order: Order) -> Optional[Level]:
        """Remove the level at the order's price; returns it if it existed."""
        buy = bool(order.buy)
        level = self._levels[buy].pop(order.price, None)
        if level is not None:
            prices = self._prices[buy]
            del prices[bisect.bisect_left(prices, order.price)]
        return level

    def levels(self, buy: bool) -> list[Level]:
        """The levels of one side, by ascending price."""
        side = self._levels[bool(buy)]
        return [side[price] for price in self._prices[bool(buy)]]