"""
Server lifecycle tests against a real socket.

Each test binds 127.0.0.1 on an ephemeral port.
"""
import asyncio
import os
import signal
import socket
from unittest.mock import patch, AsyncMock, MagicMock

import httpx
import pytest

from app_v1.app import create_app
from app_v1.core import Config
from app_v1.server import AppServer, ServerState, run_server


def local_config(**kwargs):
    return Config(host="127.0.0.1", port=0, **kwargs)


async def wait_started(server: AppServer, timeout: float = 5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not server.started:
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("server did not start")
        await asyncio.sleep(0.01)


def error_messages(logger):
    return [call.args[0] for call in logger.error.call_args_list]


@pytest.mark.asyncio
class TestLifecycle:

    async def test_serves_then_stops_cleanly(self, mock_logger):
        server = AppServer(config=local_config(), logger=mock_logger)
        assert server.state is ServerState.INITIALIZING

        stop = asyncio.Event()
        serve_task = asyncio.create_task(server.serve(stop))
        await wait_started(server)
        assert server.state is ServerState.LISTENING

        base_url = f"http://127.0.0.1:{server.bound_port}"
        async with httpx.AsyncClient(base_url=base_url) as client:
            response = await client.get("/app-v1", headers={"Origin": "https://example.com"})

        assert response.status_code == 200
        assert response.json() == {"message": "app-v1"}
        assert response.headers["access-control-allow-origin"] == "https://example.com"

        stop.set()
        assert await asyncio.wait_for(serve_task, 10) is True
        assert server.state is ServerState.STOPPED

        info = [call.args[0] for call in mock_logger.info.call_args_list]
        assert any(m.startswith("start listening... address=127.0.0.1:") for m in info)
        assert "shutting down the http server" in info
        assert "http server stopped" in info
        assert error_messages(mock_logger) == []

    async def test_in_flight_request_completes_and_new_connections_refused(self, mock_logger):
        config = local_config()
        app = create_app(config, mock_logger)
        entered = asyncio.Event()
        release = asyncio.Event()

        @app.get("/slow")
        async def slow():
            entered.set()
            await release.wait()
            return {"done": True}

        server = AppServer(app=app, config=config, logger=mock_logger)
        stop = asyncio.Event()
        serve_task = asyncio.create_task(server.serve(stop))
        await wait_started(server)
        port = server.bound_port

        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}") as client:
            in_flight = asyncio.create_task(client.get("/slow"))
            await asyncio.wait_for(entered.wait(), 5)

            stop.set()
            # Let the shutdown start while the request is still running
            for _ in range(50):
                if server.state is ServerState.SHUTTING_DOWN:
                    break
                await asyncio.sleep(0.01)
            assert server.state is ServerState.SHUTTING_DOWN
            await asyncio.sleep(0.3)
            assert not serve_task.done()

            # The listener is closed while the slow request is still running
            async with httpx.AsyncClient() as late_client:
                with pytest.raises(httpx.ConnectError):
                    await late_client.get(f"http://127.0.0.1:{port}/app-v1")
            assert not in_flight.done()

            release.set()
            response = await asyncio.wait_for(in_flight, 5)

        assert response.status_code == 200
        assert response.json() == {"done": True}
        assert await asyncio.wait_for(serve_task, 10) is True

        async with httpx.AsyncClient() as client:
            with pytest.raises(httpx.ConnectError):
                await client.get(f"http://127.0.0.1:{port}/app-v1")

    async def test_bind_failure_is_logged_as_error(self, mock_logger):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen()
            port = blocker.getsockname()[1]

            server = AppServer(config=Config(host="127.0.0.1", port=port), logger=mock_logger)
            assert await server.serve() is False

        assert server.state is ServerState.STOPPED
        assert any(m.startswith("failed to listen and serve") for m in error_messages(mock_logger))

    async def test_shutdown_before_serve(self, mock_logger):
        server = AppServer(config=local_config(), logger=mock_logger)
        server.request_shutdown()

        assert await server.serve() is True
        assert server.state is ServerState.STOPPED
        assert server.bound_port is None

    async def test_request_shutdown_is_idempotent(self, mock_logger):
        server = AppServer(config=local_config(), logger=mock_logger)
        serve_task = asyncio.create_task(server.serve())
        await wait_started(server)

        server.request_shutdown()
        server.request_shutdown()

        assert await asyncio.wait_for(serve_task, 10) is True
        info = [call.args[0] for call in mock_logger.info.call_args_list]
        assert info.count("shutting down the http server") == 1

    async def test_drain_timeout_is_passed_to_uvicorn(self, mock_logger):
        server = AppServer(config=local_config(shutdown_timeout=3.0), logger=mock_logger)

        assert server._server.config.timeout_graceful_shutdown == 3.0

    async def test_drain_is_unbounded_by_default(self, mock_logger):
        server = AppServer(config=local_config(), logger=mock_logger)

        assert server._server.config.timeout_graceful_shutdown is None


@pytest.mark.asyncio
class TestRunServer:

    async def test_exit_status_follows_serve_result(self):
        for result, expected in [(True, 0), (False, 1)]:
            fake = MagicMock()
            fake.serve = AsyncMock(return_value=result)
            with patch("app_v1.server.AppServer", return_value=fake):
                assert await run_server(local_config()) == expected

            stop_event = fake.serve.call_args.args[0]
            assert isinstance(stop_event, asyncio.Event)

    async def test_sigterm_drains_and_exits_zero(self, mock_logger):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            port = s.getsockname()[1]

        run_task = asyncio.create_task(run_server(Config(host="127.0.0.1", port=port), mock_logger))

        response = None
        async with httpx.AsyncClient() as client:
            for _ in range(500):
                try:
                    response = await client.get(f"http://127.0.0.1:{port}/app-v1")
                    break
                except httpx.ConnectError:
                    await asyncio.sleep(0.01)

        assert response is not None and response.status_code == 200
        assert response.json() == {"message": "app-v1"}

        os.kill(os.getpid(), signal.SIGTERM)

        assert await asyncio.wait_for(run_task, 10) == 0
        info = [call.args[0] for call in mock_logger.info.call_args_list]
        assert "shutting down the http server" in info
        assert "http server stopped" in info

    async def test_fallback_signal_handlers_are_restored(self):
        before = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
        during = {}

        async def serve(stop_event):
            for sig in before:
                during[sig] = signal.getsignal(sig)
            return True

        fake = MagicMock()
        fake.serve = serve
        loop = asyncio.get_running_loop()
        with patch.object(loop, "add_signal_handler", side_effect=NotImplementedError), \
             patch("app_v1.server.AppServer", return_value=fake):
            assert await run_server(local_config()) == 0

        for sig, handler in before.items():
            assert during[sig] is not handler
            assert signal.getsignal(sig) is handler
