import asyncio
import unittest

from services.api.app.engine.liveness import LivenessMonitor
from services.api.app.engine.session_engine import SessionEngine
from services.api.app.engine.ws import Connection
from services.api.app.tests.support import FakeSocket, flush


class LivenessMonitorTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.engine = SessionEngine()
        self.monitor = LivenessMonitor(self.engine, interval=3600)

    async def open(self) -> tuple:
        socket = FakeSocket()
        connection = Connection(socket)
        connection.start()
        await self.engine.connect(connection)
        await flush()
        return connection, socket

    async def test_first_sweep_probes_every_connection(self) -> None:
        connection, socket = await self.open()
        socket.clear()

        evicted = await self.monitor.sweep()
        await flush()

        self.assertEqual(evicted, [])
        self.assertFalse(connection.alive)
        self.assertEqual(socket.sent, [{"type": "ping"}])

    async def test_silent_connection_is_evicted_on_next_sweep(self) -> None:
        watcher_connection, watcher = await self.open()
        silent, silent_socket = await self.open()
        await self.engine.handle_raw(silent, '{"type": "register_client", "alias": "Zed"}')
        await flush()
        await self.monitor.sweep()

        # only the watcher answers
        await self.engine.handle_raw(watcher_connection, '{"type": "pong"}')
        evicted = await self.monitor.sweep()
        await flush()

        self.assertEqual(evicted, [silent])
        self.assertEqual(silent_socket.closed_with, 1001)
        self.assertEqual(len(self.engine.session.registry), 0)
        self.assertNotIn(silent, self.engine.broadcaster.connections())
        self.assertEqual(watcher.last_state["participants"], {})

    async def test_heartbeat_counts_as_confirmation(self) -> None:
        connection, _ = await self.open()
        await self.monitor.sweep()
        await self.engine.handle_raw(connection, '{"type": "heartbeat"}')

        self.assertEqual(await self.monitor.sweep(), [])

    async def test_start_twice_is_rejected_and_stop_cancels(self) -> None:
        self.monitor.start()
        self.assertTrue(self.monitor.running)
        with self.assertRaises(RuntimeError):
            self.monitor.start()

        await self.monitor.stop()
        self.assertFalse(self.monitor.running)
        await self.monitor.stop()

    async def test_background_task_sweeps_on_interval(self) -> None:
        _, socket = await self.open()
        socket.clear()
        monitor = LivenessMonitor(self.engine, interval=0.01)
        monitor.start()
        await asyncio.sleep(0.05)
        await monitor.stop()
        await flush()

        self.assertIn({"type": "ping"}, socket.sent)
        sent = len(socket.sent)
        await asyncio.sleep(0.03)
        self.assertEqual(len(socket.sent), sent)


if __name__ == "__main__":
    unittest.main()
