import asyncio

import pytest

from linenet import LineServer, ServerListener, LineBindError, LineIOError
from helpers import RecordingServerListener, open_raw, wait_until


async def read_lines(reader: asyncio.StreamReader, count: int) -> list[str]:
    return [(await asyncio.wait_for(reader.readline(), timeout=3.0)).decode().rstrip("\n") for _ in range(count)]


@pytest.mark.asyncio
async def test_open_reports_port_and_state(server):
    assert server.is_open()
    assert isinstance(server.port, int) and server.port > 0
    assert await server.sessions() == []


@pytest.mark.asyncio
async def test_port_in_use_is_a_bind_error(server):
    other = LineServer(RecordingServerListener(), host="127.0.0.1")
    with pytest.raises(LineBindError):
        await other.open(server.port)
    assert not other.is_open()
    assert other.port is None


@pytest.mark.asyncio
async def test_session_lifecycle(server):
    listener = server.listener
    reader, writer, sid = await open_raw(server.port)
    await wait_until(lambda: listener.connected == [sid])
    assert await server.sessions() == [sid]

    writer.write(b"hi\n")
    await writer.drain()
    assert await read_lines(reader, 1) == ["hihi"]

    writer.close()
    await wait_until(lambda: listener.disconnected == [sid])
    assert await server.sessions() == []


@pytest.mark.asyncio
async def test_lines_from_one_session_arrive_in_order(server):
    listener = server.listener
    reader, writer, sid = await open_raw(server.port)

    writer.write(b"1\n2\r\n3\n")
    await writer.drain()
    assert await read_lines(reader, 3) == ["11", "22", "33"]
    assert listener.messages_from(sid) == ["1", "2", "3"]
    writer.close()


@pytest.mark.asyncio
async def test_empty_reply_sends_nothing():
    listener = RecordingServerListener(reply=lambda message: "" if message == "quiet" else message)
    server = await LineServer.create(0, listener, host="127.0.0.1")
    async with server:
        reader, writer, sid = await open_raw(server.port)
        writer.write(b"quiet\nloud\n")
        await writer.drain()
        assert await read_lines(reader, 1) == ["loud"]
        assert listener.messages_from(sid) == ["quiet", "loud"]
        writer.close()


@pytest.mark.asyncio
async def test_listener_without_hooks():
    server = await LineServer.create(0, ServerListener(), host="127.0.0.1")
    async with server:
        reader, writer, sid = await open_raw(server.port)
        await wait_until(server.sessions)
        assert await server.send(sid, "from server")
        assert await read_lines(reader, 1) == ["from server"]
        writer.close()


@pytest.mark.asyncio
async def test_abort_by_client_removes_session_once(server):
    listener = server.listener
    reader, writer, sid = await open_raw(server.port)
    await wait_until(lambda: listener.connected == [sid])

    writer.transport.abort()
    await wait_until(lambda: listener.disconnected == [sid])
    await asyncio.sleep(0.05)

    assert listener.disconnected == [sid]
    assert await server.sessions() == []
    assert not await server.send(sid, "anyone?")
    assert not await server.disconnect(sid)


@pytest.mark.asyncio
async def test_disconnect(server):
    listener = server.listener
    reader, writer, sid = await open_raw(server.port)
    await wait_until(lambda: listener.connected == [sid])

    assert await server.disconnect(sid)
    assert await asyncio.wait_for(reader.readline(), timeout=3.0) == b""
    await asyncio.sleep(0.05)

    assert listener.disconnected == [sid]
    assert not await server.disconnect(sid)
    assert not await server.disconnect("10.0.0.1:1")
    writer.close()


@pytest.mark.asyncio
async def test_many_concurrent_clients(server):
    listener = server.listener
    clients = [await open_raw(server.port) for _ in range(50)]
    ids = {sid for _, _, sid in clients}
    assert len(ids) == 50
    await wait_until(lambda: len(listener.connected) == 50)
    assert set(await server.sessions()) == ids

    async def exchange(reader, writer, sid):
        writer.write(f"{sid}\n".encode())
        await writer.drain()
        return await read_lines(reader, 1)

    replies = await asyncio.gather(*(exchange(*client) for client in clients))

    for (_, _, sid), reply in zip(clients, replies):
        assert reply == [sid + sid]
        assert listener.messages_from(sid) == [sid]
    assert len(listener.messages) == 50

    for _, writer, _ in clients:
        writer.close()
    await wait_until(lambda: len(listener.disconnected) == 50)
    assert await server.sessions() == []


@pytest.mark.asyncio
async def test_broadcast(server):
    clients = [await open_raw(server.port) for _ in range(3)]
    await wait_until(lambda: len(server.listener.connected) == 3)

    assert await server.broadcast("news") == 3
    for reader, _, _ in clients:
        assert await read_lines(reader, 1) == ["news"]

    for _, writer, _ in clients:
        writer.close()


@pytest.mark.asyncio
async def test_concurrent_sends_to_one_session_do_not_interleave(server):
    reader, writer, sid = await open_raw(server.port)
    await wait_until(server.sessions)

    lines = [f"{i}:" + "x" * 4000 for i in range(30)]
    reading = asyncio.create_task(read_lines(reader, len(lines)))
    results = await asyncio.gather(*(server.send(sid, line) for line in lines))

    assert all(results)
    assert sorted(await reading) == sorted(lines)
    writer.close()


@pytest.mark.asyncio
async def test_hook_exception_keeps_session_alive(caplog):
    class Fragile(RecordingServerListener):
        async def message_received(self, session_id, message):
            if message == "boom":
                raise RuntimeError("application bug")
            return await super().message_received(session_id, message)

    server = await LineServer.create(0, Fragile(reply=lambda m: m.upper()), host="127.0.0.1")
    async with server:
        reader, writer, sid = await open_raw(server.port)
        writer.write(b"boom\nok\n")
        await writer.drain()

        assert await read_lines(reader, 1) == ["OK"]
        assert await server.sessions() == [sid]
        assert "application bug" in caplog.text
        writer.close()


@pytest.mark.asyncio
async def test_unsendable_reply_keeps_session_alive(caplog):
    def reply(message):
        if message == "multi":
            return "a\nb"
        if message == "number":
            return 42
        return message + message

    listener = RecordingServerListener(reply=reply)
    server = await LineServer.create(0, listener, host="127.0.0.1")
    async with server:
        reader, writer, sid = await open_raw(server.port)
        writer.write(b"multi\nnumber\nafter\n")
        await writer.drain()

        assert await read_lines(reader, 1) == ["afterafter"]
        assert listener.messages_from(sid) == ["multi", "number", "after"]
        assert await server.sessions() == [sid]
        assert listener.disconnected == []
        assert "Failed to reply" in caplog.text
        writer.close()


@pytest.mark.asyncio
async def test_send_failure_raises_and_keeps_session(server, monkeypatch):
    reader, writer, sid = await open_raw(server.port)
    await wait_until(server.sessions)
    session = server._sessions[sid]

    async def broken_drain():
        raise ConnectionResetError("connection reset")

    monkeypatch.setattr(session.connection._writer, "drain", broken_drain)
    with pytest.raises(LineIOError):
        await server.send(sid, "lost")

    assert await server.sessions() == [sid]
    assert server.listener.disconnected == []
    writer.close()


@pytest.mark.asyncio
async def test_disconnect_discards_pending_fragment(server):
    listener = server.listener
    reader, writer, sid = await open_raw(server.port)
    await wait_until(lambda: listener.connected == [sid])

    writer.write(b"partial")
    await writer.drain()
    await asyncio.sleep(0.05)

    assert await server.disconnect(sid)
    await asyncio.sleep(0.05)

    assert listener.messages == []
    assert listener.disconnected == [sid]
    writer.close()


@pytest.mark.asyncio
async def test_close_shuts_sessions_down_concurrently(server, monkeypatch):
    clients = [await open_raw(server.port) for _ in range(4)]
    await wait_until(lambda: len(server.listener.connected) == 4)

    for session in list(server._sessions.values()):
        async def slow_close(original=session.close):
            await asyncio.sleep(0.5)
            await original()
        monkeypatch.setattr(session, "close", slow_close)

    loop = asyncio.get_running_loop()
    started = loop.time()
    await server.close()

    assert loop.time() - started < 1.2
    assert len(server.listener.disconnected) == 4
    for _, writer, _ in clients:
        writer.close()


@pytest.mark.asyncio
async def test_close_disconnects_everyone(server):
    listener = server.listener
    clients = [await open_raw(server.port) for _ in range(3)]
    await wait_until(lambda: len(listener.connected) == 3)
    port = server.port

    await server.close()

    assert not server.is_open()
    assert server.port is None
    assert await server.sessions() == []
    assert sorted(listener.disconnected) == sorted(listener.connected)
    for reader, writer, _ in clients:
        assert await asyncio.wait_for(reader.readline(), timeout=3.0) == b""
        writer.close()

    with pytest.raises(OSError):
        await asyncio.open_connection("127.0.0.1", port)

    await server.close()
    assert len(listener.disconnected) == 3


@pytest.mark.asyncio
async def test_close_from_inside_hook():
    class Shutdown(RecordingServerListener):
        server = None

        async def message_received(self, session_id, message):
            await super().message_received(session_id, message)
            if message == "shutdown":
                await self.server.close()

    listener = Shutdown()
    server = await LineServer.create(0, listener, host="127.0.0.1")
    listener.server = server

    reader, writer, sid = await open_raw(server.port)
    writer.write(b"shutdown\n")
    await writer.drain()

    assert await asyncio.wait_for(reader.readline(), timeout=3.0) == b""
    await wait_until(lambda: not server.is_open())
    await asyncio.sleep(0.05)
    assert listener.disconnected == [sid]
    writer.close()


@pytest.mark.asyncio
async def test_reopen_replaces_listener_and_keeps_sessions(server):
    listener = server.listener
    reader, writer, sid = await open_raw(server.port)
    await wait_until(lambda: listener.connected == [sid])
    old_port = server.port

    await server.open(0)
    assert server.is_open()
    assert server.port != old_port

    # Existing session still served
    writer.write(b"still\n")
    await writer.drain()
    assert await read_lines(reader, 1) == ["stillstill"]

    # New connections arrive on the new port only
    reader2, writer2, sid2 = await open_raw(server.port)
    await wait_until(lambda: len(listener.connected) == 2)
    assert set(await server.sessions()) == {sid, sid2}
    with pytest.raises(OSError):
        await asyncio.open_connection("127.0.0.1", old_port)

    writer.close()
    writer2.close()


@pytest.mark.asyncio
async def test_sessions_tracks_live_set(server):
    listener = server.listener
    first = await open_raw(server.port)
    second = await open_raw(server.port)
    await wait_until(lambda: len(listener.connected) == 2)
    assert set(await server.sessions()) == {first[2], second[2]}

    first[1].close()
    await wait_until(lambda: listener.disconnected == [first[2]])
    assert await server.sessions() == [second[2]]
    second[1].close()


@pytest.mark.asyncio
async def test_from_config():
    from linenet import LineNetConfig

    config = LineNetConfig(listen_host="127.0.0.1", encoding="latin-1", print_traffic=True)
    server = LineServer.from_config(config)
    assert server.host == "127.0.0.1"
    assert server.encoding == "latin-1"
    assert server.print_traffic
    assert not server.is_open()
    await server.close()
