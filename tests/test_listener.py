import asyncio
import socket

import httpx
import pytest

from greeter.errors import ListenerBindError
from greeter.server.http import create_app
from greeter.server.listener import HttpListener


def test_real_listener_serves_greeting():
	async def scenario():
		listener = HttpListener(create_app(), host="127.0.0.1", port=0, log_level="warning")
		await listener.start()
		try:
			port = listener.bound_port
			async with httpx.AsyncClient(trust_env=False) as client:
				r = await client.get(f"http://127.0.0.1:{port}/anything?name=Luke")
		finally:
			await listener.stop()
		return r

	r = asyncio.run(scenario())
	assert r.status_code == 200
	body = r.json()
	assert body["name"] == "Luke"
	assert body["address"].startswith("127.0.0.1:")
	assert body["message"] == f"Hello Luke connected from {body['address']}"


def test_bind_conflict_raises_listener_bind_error():
	blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
	blocker.bind(("127.0.0.1", 0))
	blocker.listen(1)
	port = blocker.getsockname()[1]
	try:
		listener = HttpListener(create_app(), host="127.0.0.1", port=port)
		with pytest.raises(ListenerBindError) as ei:
			asyncio.run(listener.start())
	finally:
		blocker.close()
	assert ei.value.port == port
	assert listener.bound_port is None


def test_server_exit_during_startup_releases_socket():
	listener = HttpListener(create_app(), host="127.0.0.1", port=0)
	handed_over = []

	async def failing_serve(sockets=None):
		handed_over.extend(sockets)
		raise RuntimeError("event loop policy mismatch")

	listener._server.serve = failing_serve
	with pytest.raises(ListenerBindError) as ei:
		asyncio.run(listener.start())
	assert "event loop policy mismatch" in ei.value.message
	assert isinstance(ei.value.__cause__, RuntimeError)
	assert listener.bound_port is None
	assert handed_over[0].fileno() == -1
