import pytest

from wisp.client import GameClient
from wisp.codec import ConnectionState, Request
from wisp.packets import decode_client_packet, encode_join_game, encode_verification, encode_world

ADDR = ("127.0.0.1", 41000)
ORIGIN = [(0.0, 0.0, 0.0)] * 3


def test_connect_packet_moves_client_to_connecting():
    client = GameClient("ann")
    pkt = decode_client_packet(client.connect_packet())
    assert pkt.state is ConnectionState.CONNECTING
    assert pkt.name == "ann"
    assert client.state is ConnectionState.CONNECTING


def test_verification_reply_completes_client_handshake():
    client = GameClient("ann")
    client.connect_packet()
    reply = client.handle(encode_verification(10))
    assert client.connected
    assert decode_client_packet(reply).state is ConnectionState.VERIFICATION


def test_verification_reply_ignored_when_not_connecting():
    client = GameClient("ann")
    assert client.handle(encode_verification(10)) is None
    assert client.state is ConnectionState.DISCONNECTED


def test_world_snapshot_recorded_only_when_connected():
    client = GameClient("ann")
    client.connect_packet()
    client.handle(encode_world(5, ORIGIN, [("ann", 0)]))
    assert client.world is None
    client.handle(encode_verification(6))
    client.handle(encode_world(7, ORIGIN, [("ann", 0)]))
    assert client.world.server_time == 7


def test_stale_packets_are_discarded():
    client = GameClient("ann")
    client.connect_packet()
    client.handle(encode_verification(1))
    client.handle(encode_world(100, ORIGIN, [("ann", 0)]))
    client.handle(encode_world(50, [(9.0, 9.0, 9.0)] * 3, [("ann", 0)]))
    assert client.world.server_time == 100
    assert client.world.positions[0] == (0.0, 0.0, 0.0)
    assert client.server_time == 100


def test_join_reply_sets_slot():
    client = GameClient("ann")
    client.connect_packet()
    client.handle(encode_verification(1))
    client.handle(encode_join_game(2, 3))
    assert client.slot == 3
    assert client.joined


def test_garbage_from_server_is_dropped():
    client = GameClient("ann")
    client.connect_packet()
    assert client.handle(b"\x00\x01") is None
    assert client.state is ConnectionState.CONNECTING


def test_move_and_disconnect_packets():
    client = GameClient("ann")
    pkt = decode_client_packet(client.move_packet(up=True))
    assert pkt.request is Request.MOVE_POSITION
    assert (pkt.move_up, pkt.move_down) == (True, False)
    pkt = decode_client_packet(client.disconnect_packet())
    assert pkt.request is Request.DISCONNECT
    assert client.state is ConnectionState.DISCONNECTED


@pytest.mark.parametrize("survivor", [0, 4, 9])
def test_handshake_survives_losing_all_but_one_reply(dispatcher, state, survivor):
    client = GameClient("ann")
    [out] = dispatcher.handle(client.connect_packet(), ADDR)
    copies = [out.data] * out.repeat
    # only one of the redundant copies reaches the client
    reply = client.handle(copies[survivor])
    assert client.connected
    dispatcher.handle(reply, ADDR)
    assert state.sessions.get(ADDR).state is ConnectionState.CONNECTED


def test_handshake_recovers_when_client_verification_is_lost(dispatcher, state):
    client = GameClient("ann")
    [out] = dispatcher.handle(client.connect_packet(), ADDR)
    client.handle(out.data)  # answer lost in transit
    assert state.sessions.get(ADDR).state is ConnectionState.CONNECTING
    reply = client.handle(out.data)  # a later copy prompts another answer
    dispatcher.handle(reply, ADDR)
    assert state.sessions.get(ADDR).state is ConnectionState.CONNECTED
