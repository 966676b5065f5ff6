"""
Tests for the RelayServer shutdown sequence.

uvicorn is replaced by a fake server object so the tests can control whether
the listener closes promptly, hangs, or fails.
"""

import asyncio
import os
import signal
from unittest.mock import MagicMock, patch

import pytest

from agent_relay.agent.states import AgentState
from agent_relay.config.constants import EXIT_FAILURE, EXIT_OK
from agent_relay.coordinator import SessionCoordinator
from agent_relay.server import RelayServer


class FakeUvicornServer:
    """Mimics the should_exit/force_exit contract of uvicorn.Server."""

    def __init__(self, hang=False, fail=False):
        self.should_exit = False
        self.force_exit = False
        self.hang = hang
        self.fail = fail

    async def serve(self):
        while not self.should_exit or self.hang:
            await asyncio.sleep(0.001)
        if self.fail:
            raise RuntimeError("listener close failed")


def _relay_server(coordinator, fake, timeout=1.0):
    server = RelayServer(MagicMock(), coordinator, host="127.0.0.1", port=0, shutdown_timeout=timeout)
    server._build_server = lambda: fake
    return server


async def _open_clients(coordinator_factory, make_agent, agent_socket_factory, browser_socket_factory, eventually, count):
    agent_sockets = [agent_socket_factory() for _ in range(count)]
    browser_sockets = [browser_socket_factory() for _ in range(count)]
    agents = []

    def factory(connection_id):
        agent = make_agent(agent_sockets[len(agents)], session_id=connection_id)
        agents.append(agent)
        return agent

    coordinator = coordinator_factory(factory)
    tasks = []
    for index, browser_socket in enumerate(browser_sockets):
        tasks.append(asyncio.create_task(coordinator.handle_browser(browser_socket)))
        await eventually(lambda: len(agents) > index and agents[index].state is AgentState.CONFIGURED)
    return coordinator, browser_sockets, agents, tasks


@pytest.mark.asyncio
async def test_signal_closes_all_clients_and_exits_cleanly(
    relay_settings, make_agent, agent_socket_factory, browser_socket_factory, eventually
):
    """Test that SIGTERM closes every open browser and reports a clean exit"""
    coordinator, browser_sockets, agents, tasks = await _open_clients(
        lambda factory: SessionCoordinator(relay_settings, agent_factory=factory),
        make_agent, agent_socket_factory, browser_socket_factory, eventually, count=4,
    )
    fake = FakeUvicornServer()
    server = _relay_server(coordinator, fake)

    serve_task = asyncio.create_task(server.serve())
    await eventually(lambda: server._serve_task is not None)
    os.kill(os.getpid(), signal.SIGTERM)
    exit_code = await asyncio.wait_for(serve_task, 2)

    assert exit_code == EXIT_OK
    assert fake.should_exit
    assert not fake.force_exit
    assert not coordinator.accepting
    assert len(coordinator.registry) == 0
    assert [s.close_code for s in browser_sockets] == [1001] * 4
    await asyncio.wait_for(asyncio.gather(*tasks), 1)
    await eventually(lambda: all(a.state is AgentState.CLOSED for a in agents))


@pytest.mark.asyncio
async def test_shutdown_timeout_forces_exit(relay_settings):
    """Test that a listener that never closes is forced down with a failure code"""
    coordinator = SessionCoordinator(relay_settings)
    fake = FakeUvicornServer(hang=True)
    server = _relay_server(coordinator, fake, timeout=0.05)

    serve_task = asyncio.create_task(server.serve())
    await asyncio.sleep(0.01)
    server.request_shutdown(signal.SIGINT)
    exit_code = await asyncio.wait_for(serve_task, 2)

    assert exit_code == EXIT_FAILURE
    assert fake.force_exit
    await asyncio.gather(server._serve_task, return_exceptions=True)
    assert server._serve_task.cancelled()


@pytest.mark.asyncio
async def test_browser_that_never_closes_forces_exit(relay_settings):
    """Test that a browser connection that never finishes closing triggers the forced exit"""
    coordinator = SessionCoordinator(relay_settings)
    stuck_pair = MagicMock()
    stuck_pair.connection_id = "stuck"
    stuck_pair.browser.close = MagicMock(return_value=asyncio.sleep(0))
    coordinator.registry.add(stuck_pair)
    fake = FakeUvicornServer()
    server = _relay_server(coordinator, fake, timeout=0.05)

    serve_task = asyncio.create_task(server.serve())
    await asyncio.sleep(0.01)
    server.request_shutdown(signal.SIGTERM)

    assert await asyncio.wait_for(serve_task, 2) == EXIT_FAILURE


@pytest.mark.asyncio
async def test_partial_failure_still_resolves(relay_settings):
    """Test that an error closing the listener resolves to a failure code without hanging"""
    coordinator = SessionCoordinator(relay_settings)
    fake = FakeUvicornServer(fail=True)
    server = _relay_server(coordinator, fake, timeout=1.0)

    serve_task = asyncio.create_task(server.serve())
    await asyncio.sleep(0.01)
    server.request_shutdown(signal.SIGTERM)

    assert await asyncio.wait_for(serve_task, 2) == EXIT_FAILURE


@pytest.mark.asyncio
async def test_shutdown_resolves_exactly_once(relay_settings):
    """Test that repeated shutdown requests share a single outcome"""
    coordinator = SessionCoordinator(relay_settings)
    fake = FakeUvicornServer()
    server = _relay_server(coordinator, fake)

    serve_task = asyncio.create_task(server.serve())
    await asyncio.sleep(0.01)
    server.request_shutdown(signal.SIGTERM)
    server.request_shutdown(signal.SIGTERM)
    first, second = await asyncio.gather(server.shutdown(), server.shutdown())

    assert await asyncio.wait_for(serve_task, 2) == EXIT_OK
    assert first == second == EXIT_OK
    assert await server.shutdown() == EXIT_OK


@pytest.mark.asyncio
async def test_unexpected_server_stop_is_failure(relay_settings):
    """Test that uvicorn exiting on its own is reported as a failure"""
    coordinator = SessionCoordinator(relay_settings)
    fake = FakeUvicornServer(fail=True)
    fake.should_exit = True
    server = _relay_server(coordinator, fake)

    assert await asyncio.wait_for(server.serve(), 2) == EXIT_FAILURE


def test_build_server_disables_uvicorn_signal_capture(relay_settings):
    """Test the uvicorn server is configured for the relay and leaves signals alone"""
    server = RelayServer(MagicMock(), SessionCoordinator(relay_settings), host="127.0.0.1", port=3001)

    uvicorn_server = server._build_server()

    assert uvicorn_server.config.port == 3001
    assert uvicorn_server.config.http == "h11"
    with patch("signal.signal") as mock_signal:
        with uvicorn_server.capture_signals():
            pass
    mock_signal.assert_not_called()
