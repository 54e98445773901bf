# tradeproto

A pure-Python toolkit for the FAST market-data protocol and related
trading plumbing:

- `tradeproto.fast_template`: load FAST message templates from XML
  (`parse_template`, `parse_template_string`).
- `tradeproto.fast_field`: the message model (`FastMessage`, `FastField`,
  `FastSequence`, `FastDecimal`, `FastPmap`) and the stop-bit primitives
  (`parse_uint`, `parse_int`, `parse_string`, `transfer_int`, ...).
- `tradeproto.fast_encode`: field operators and whole-message encoding
  (`encode_message`).
- `tradeproto.fast_decode`, `tradeproto.fast_decode_group`: field decoding
  for every type, including sequences, with resumption after partial input
  (`FastPartial`) and rejection of invalid input (`FastGarbled`).
- `tradeproto.fast_session`: `FastSession`, which frames and decodes
  messages arriving on a socket or file descriptor and sends encoded ones.
- `tradeproto.fast_feed`: `FastFeed`, a FAST channel read from a multicast
  group or a recorded file.
- `tradeproto.order_book`: `OrderBook`, bid and ask price levels kept in
  ascending price order.
- `tradeproto.buffer`: `Buffer`, a fixed-capacity byte buffer with read and
  write cursors, plus `mmap_buffer` for read-only file mappings.
- `tradeproto.itoa`: decimal formatting helpers (`uitoa`, `itoa`, `i64toa`,
  `checksumtoa`, `litoa10_zpad`).

No third-party libraries are needed.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Loading templates and encoding a message

```python
from tradeproto.buffer import Buffer
from tradeproto.fast_encode import encode_message
from tradeproto.fast_template import parse_template_string

messages = parse_template_string("""
<templates>
  <template id="1" name="Heartbeat">
    <uInt32 name="MsgSeqNum"><increment/></uInt32>
    <string name="Symbol"/>
  </template>
</templates>
""")
heartbeat = messages[0]
heartbeat.get_field("MsgSeqNum").value = 5
heartbeat.get_field("Symbol").value = "ABC"

pmap_buffer = Buffer(64)
message_buffer = Buffer(4096)
encode_message(heartbeat, pmap_buffer, message_buffer)
wire = pmap_buffer.data() + message_buffer.data()
```

## Decoding with a session

```python
from tradeproto.fast_session import FastSession

with FastSession(sock) as session:      # a socket object or a file descriptor
    session.load_templates("templates.xml")
    message = session.recv()             # None until a whole message is in
    if message is not None:
        symbol = message.get_field("Symbol").value
```

`FastSession.decode` raises `FastGarbled` on invalid input, after dropping
the message in progress; `FastSession.reset` returns every template's
fields to their initial values.

## Reading a feed

```python
from tradeproto.fast_feed import FastFeed

with FastFeed(xml="templates.xml", file="capture.bin") as feed:
    message = feed.recv()
```

Without `file`, the feed joins the multicast group `ip` on port `port`
through interface `lip`, restricted to source `sip` when it is given.
`FastFeed.recv` returns None when no message is complete or the next one
is garbled.

## Keeping an order book

```python
from tradeproto.order_book import Order, OrderBook, OrderBookError

book = OrderBook()
book.modify(Order(price=10050, size=7, buy=True, seq_num=1))
book.modify(Order(price=10050, size=3, buy=True, seq_num=2))
try:
    book.modify(Order(price=10050, size=9, buy=True, seq_num=2))
except OrderBookError:
    pass  # updates not newer than the level are rejected
for level in book.levels(buy=True):
    print(level.price, level.size)
```

## Formatting numbers

```python
from tradeproto.itoa import checksumtoa, litoa10_zpad

checksumtoa(7)          # "007"
litoa10_zpad(-42, 6)    # "-00042"
```

## What this package does not do

- It has no FIX support: FIX messages are neither parsed nor written.
- It does not build order books from FAST feeds on its own. `OrderBook`
  holds the levels it is given; applying incremental and snapshot messages
  to it, and recovering from sequence gaps, is left to the caller.
- It provides no command-line programs.