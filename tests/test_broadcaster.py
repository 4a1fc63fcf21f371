from wisp.broadcaster import Broadcaster
from wisp.codec import ConnectionState, Request
from wisp.dispatcher import Dispatcher
from wisp.packets import RosterEntry, WorldSnapshot, decode_server_packet, encode_client_packet
from wisp.state import ServerState
from wisp.world import TICKS_PER_SECOND

A = ("127.0.0.1", 50001)
B = ("127.0.0.1", 50002)
C = ("127.0.0.1", 50003)


def test_only_connected_sessions_receive_the_world(connect, dispatcher, state, transport):
    connect(A, "ann", join=True)
    dispatcher.handle(encode_client_packet(ConnectionState.CONNECTING, "pending"), B)
    connect(C, "cat")
    delivered = Broadcaster(state, transport).tick()
    assert delivered == 2
    assert [addr for _, addr in transport.sent] == [A, C]


def test_one_encode_same_bytes_for_everyone(connect, state, transport):
    connect(A, "ann", join=True)
    connect(B, "bob")
    Broadcaster(state, transport).tick()
    (d1, _), (d2, _) = transport.sent
    assert d1 == d2


def test_world_payload_contents(connect, dispatcher, state, transport, clock):
    connect(A, "ann", join=True)
    connect(B, "bob")
    dispatcher.handle(
        encode_client_packet(ConnectionState.CONNECTED, "ann", Request.MOVE_POSITION, move_up=True), A
    )
    clock.advance(2.0)
    data, recipients = Broadcaster(state, transport).build()
    snap = decode_server_packet(data)
    assert isinstance(snap, WorldSnapshot)
    assert snap.server_time == 2 * TICKS_PER_SECOND
    assert snap.positions[0][1] == float(state.world.positions[0, 1])
    assert snap.positions[1] == (0.0, 0.0, 0.0)
    assert snap.roster == (RosterEntry("ann", 1), RosterEntry("bob", 0))
    assert recipients == [A, B]


def test_disconnected_session_leaves_roster(connect, dispatcher, state, transport):
    connect(A, "ann", join=True)
    connect(B, "bob", join=True)
    dispatcher.handle(encode_client_packet(ConnectionState.CONNECTED, "ann", Request.DISCONNECT), A)
    data, recipients = Broadcaster(state, transport).build()
    assert recipients == [B]
    assert decode_server_packet(data).roster == (RosterEntry("bob", 2),)


def test_send_failure_does_not_stop_the_broadcast(connect, state, transport):
    for addr, name in [(A, "ann"), (B, "bob"), (C, "cat")]:
        connect(addr, name)
    transport.failing.add(B)
    delivered = Broadcaster(state, transport).tick()
    assert delivered == 2
    assert [addr for _, addr in transport.sent] == [A, C]
    assert state.sessions.get(B).state is ConnectionState.CONNECTED


def test_server_time_refreshes_every_tick(connect, state, transport, clock):
    connect(A, "ann")
    b = Broadcaster(state, transport)
    b.tick()
    clock.advance(1 / 30)
    b.tick()
    t1 = decode_server_packet(transport.sent[0][0]).server_time
    t2 = decode_server_packet(transport.sent[1][0]).server_time
    assert t2 > t1


def test_identical_inputs_give_identical_bytes(config):
    def scenario():
        state = ServerState(config=config, clock=_Clock())
        d = Dispatcher(state)
        for addr, name in [(C, "cat"), (A, "ann"), (B, "bob")]:
            d.handle(encode_client_packet(ConnectionState.CONNECTING, name), addr)
            d.handle(encode_client_packet(ConnectionState.VERIFICATION, name), addr)
            d.handle(encode_client_packet(ConnectionState.CONNECTED, name, Request.JOIN_GAME), addr)
        d.handle(encode_client_packet(ConnectionState.CONNECTED, "ann", Request.MOVE_POSITION, move_up=True), A)
        d.handle(encode_client_packet(ConnectionState.CONNECTED, "bob", Request.MOVE_POSITION, move_down=True), B)
        state.clock.now += 0.5
        data, recipients = Broadcaster(state, None).build()
        return data, recipients, state.world.positions.tobytes()

    assert scenario() == scenario()


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now
