import pytest

from tradeproto.order_book import Level, Order, OrderBook, OrderBookError


def test_modify_creates_level():
    book = OrderBook()
    level = book.modify(Order(price=100, size=5, buy=True, seq_num=1))
    assert level == Level(price=100, size=5, seq_num=1)
    assert book.lookup(Order(price=100, buy=True)) is level
    assert book.lookup(Order(price=100, buy=False)) is None


def test_modify_updates_newer():
    book = OrderBook()
    book.modify(Order(price=100, size=5, buy=False, seq_num=1))
    level = book.modify(Order(price=100, size=9, buy=False, seq_num=2))
    assert level.size == 9
    assert level.seq_num == 2
    assert len(book.levels(False)) == 1


@pytest.mark.parametrize("seq", [1, 0])
def test_modify_rejects_stale(seq):
    book = OrderBook()
    book.modify(Order(price=100, size=5, seq_num=1))
    with pytest.raises(OrderBookError):
        book.modify(Order(price=100, size=7, seq_num=seq))
    assert book.lookup(Order(price=100)).size == 5


def test_delete():
    book = OrderBook()
    book.modify(Order(price=100, size=5, seq_num=1))
    book.modify(Order(price=101, size=3, seq_num=1))
    removed = book.delete(Order(price=100))
    assert removed.price == 100
    assert book.lookup(Order(price=100)) is None
    assert [lvl.price for lvl in book.levels(True)] == [101]
    assert book.delete(Order(price=555)) is None


def test_levels_sorted_per_side():
    book = OrderBook()
    for price in (105, 101, 103):
        book.modify(Order(price=price, size=1, buy=True, seq_num=1))
    for price in (210, 200):
        book.modify(Order(price=price, size=1, buy=False, seq_num=1))
    assert [lvl.price for lvl in book.levels(True)] == [101, 103, 105]
    assert [lvl.price for lvl in book.levels(False)] == [200, 210]


def test_clear():
    book = OrderBook()
    book.modify(Order(price=1, size=1, seq_num=1))
    book.modify(Order(price=2, size=1, buy=False, seq_num=1))
    book.clear()
    assert book.levels(True) == []
    assert book.levels(False) == []
    # after clearing, the same sequence number is accepted again
    assert book.modify(Order(price=1, size=2, seq_num=1)).size == 2