import os

import pytest

from tradeproto.fast_feed import FastFeed, FeedError
from tradeproto.fast_session import FastSession

TEMPLATES = """<templates>
  <template id="1" name="Tick">
    <uInt32 name="MsgSeqNum" id="34"/>
  </template>
</templates>"""


@pytest.fixture
def template_path(tmp_path):
    path = tmp_path / "templates.xml"
    path.write_text(TEMPLATES)
    return str(path)


def _recorded(tmp_path, data):
    path = tmp_path / "feed.bin"
    path.write_bytes(data)
    return str(path)


def test_open_recv_close(tmp_path, template_path):
    feed = FastFeed(xml=template_path, file=_recorded(tmp_path, b"\xc0\x81\x87"))
    feed.open()
    assert feed.active
    message = feed.recv()
    assert message.get_field("MsgSeqNum").value == 7
    assert feed.recv() is None
    feed.close()
    assert not feed.active
    assert feed.session is None


def test_recorded_messages_round_trip(tmp_path, template_path):
    path = tmp_path / "feed.bin"
    path.write_bytes(b"")
    fd = os.open(path, os.O_WRONLY)
    try:
        writer = FastSession(fd)
        writer.load_templates(template_path)
        tick = writer.messages[0]
        for number in (1, 2, 3):
            tick.get_field("MsgSeqNum").value = number
            writer.send(tick)
    finally:
        os.close(fd)

    with FastFeed(xml=template_path, file=str(path)) as feed:
        values = []
        while (message := feed.recv()) is not None:
            values.append(message.get_field("MsgSeqNum").value)
    assert values == [1, 2, 3]
    assert not feed.active


def test_open_twice_fails(tmp_path, template_path):
    feed = FastFeed(xml=template_path, file=_recorded(tmp_path, b""))
    feed.open()
    try:
        with pytest.raises(FeedError):
            feed.open()
    finally:
        feed.close()
    assert not feed.active


def test_missing_templates_fail(tmp_path):
    feed = FastFeed(
        xml=str(tmp_path / "absent.xml"), file=_recorded(tmp_path, b"")
    )
    with pytest.raises(FeedError):
        feed.open()
    assert not feed.active


def test_missing_data_file_fails(tmp_path, template_path):
    feed = FastFeed(xml=template_path, file=str(tmp_path / "absent.bin"))
    with pytest.raises(FeedError):
        feed.open()
    assert not feed.active


def test_recv_on_closed_feed_fails(template_path):
    feed = FastFeed(xml=template_path, file="unused.bin")
    with pytest.raises(FeedError):
        feed.recv()


def test_garbled_input_yields_none(tmp_path, template_path):
    with FastFeed(xml=template_path, file=_recorded(tmp_path, b"\xc0\x85\x87")) as feed:
        assert feed.recv() is None
        assert feed.active


def test_close_of_unopened_feed_keeps_state(template_path):
    feed = FastFeed(xml=template_path, file="unused.bin")
    feed.close()
    assert feed.active is False
    assert feed.session is None