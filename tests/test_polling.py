import threading
import unittest

from kiosk.config import KioskConfig
from kiosk.polling import PairingPoller, PollResult, PollStatus, interpret_status_response
from kiosk.session import SessionStore
from kiosk.state import PairingState

from tests.fakes import FakeClient, FakeResponse, connection_error


class TestInterpretStatus(unittest.TestCase):
    def test_connected_with_user(self):
        result = interpret_status_response(FakeResponse(200, {"status": "connected", "user": "Alice"}))
        self.assertIs(result.status, PollStatus.CONNECTED)
        self.assertEqual(result.user, "Alice")
        self.assertTrue(result.terminal)

    def test_connected_without_user_keeps_waiting(self):
        result = interpret_status_response(FakeResponse(200, {"status": "connected"}))
        self.assertIs(result.status, PollStatus.PENDING)

    def test_connected_result_without_user_is_not_terminal(self):
        self.assertFalse(PollResult(PollStatus.CONNECTED).terminal)
        self.assertFalse(PollResult(PollStatus.CONNECTED, user="").terminal)

    def test_not_found(self):
        self.assertIs(interpret_status_response(FakeResponse(404)).status, PollStatus.NOT_FOUND)

    def test_other_statuses_are_transient(self):
        self.assertIs(interpret_status_response(FakeResponse(500)).status, PollStatus.TRANSIENT)
        self.assertIs(interpret_status_response(FakeResponse(200)).status, PollStatus.TRANSIENT)
        self.assertIs(interpret_status_response(FakeResponse(200, ["x"])).status, PollStatus.TRANSIENT)


class TestPairingPoller(unittest.TestCase):
    def setUp(self):
        self.client = FakeClient()
        self.store = SessionStore(self.client, background_polling=False)
        self.session = self.store.create_session("t1")
        self.context = self.store.get_context("t1")
        self.poller = self.store.poller
        self.token = self.context.poll_token

    def status_calls(self):
        return len(self.client.calls_named("session_status"))

    def test_pending_then_connected(self):
        self.client.status_outcomes.extend([
            FakeResponse(200, {"status": "pending"}),
            FakeResponse(200, {"status": "connected", "user": "Alice"}),
        ])
        self.assertTrue(self.poller.poll_once(self.context, self.token))
        self.assertIs(self.session.pairing_state, PairingState.UNPAIRED)
        self.assertIsNone(self.session.paired_user)

        self.assertFalse(self.poller.poll_once(self.context, self.token))
        self.assertIs(self.session.pairing_state, PairingState.PAIRED)
        self.assertEqual(self.session.paired_user, "Alice")
        self.assertEqual(self.session.welcome_message, "Welcome Alice")
        self.assertTrue(self.token.cancelled)
        self.assertIsNone(self.context.poll_token)

    def test_connected_without_user_does_not_pair(self):
        self.assertTrue(self.poller._apply(self.context, self.token, PollResult(PollStatus.CONNECTED)))
        self.assertIs(self.session.pairing_state, PairingState.UNPAIRED)
        self.assertFalse(self.token.cancelled)
        self.assertIs(self.context.poll_token, self.token)

    def test_no_request_after_terminal_response(self):
        self.client.status_outcomes.append(FakeResponse(200, {"status": "connected", "user": "Alice"}))
        self.poller.poll_once(self.context, self.token)
        calls = self.status_calls()
        self.assertFalse(self.poller.poll_once(self.context, self.token))
        self.assertEqual(self.status_calls(), calls)

    def test_not_found_stops_and_surfaces(self):
        seen = []
        self.poller.on_not_found = lambda ctx, sid: seen.append(sid)
        self.client.status_outcomes.append(FakeResponse(404))
        self.assertFalse(self.poller.poll_once(self.context, self.token))
        self.assertIs(self.session.pairing_state, PairingState.NOT_FOUND)
        self.assertEqual(self.context.last_error, "Session not found")
        self.assertEqual(seen, [self.session.id])
        self.assertTrue(self.token.cancelled)

    def test_transient_failures_keep_polling(self):
        self.client.status_outcomes.extend([FakeResponse(503), connection_error(), FakeResponse(200, {"status": "waiting"})])
        for _ in range(3):
            self.assertTrue(self.poller.poll_once(self.context, self.token))
        self.assertIs(self.session.pairing_state, PairingState.UNPAIRED)
        self.assertFalse(self.token.cancelled)

    def test_on_paired_callback(self):
        seen = []
        self.poller.on_paired = lambda ctx, user: seen.append((ctx.terminal_id, user))
        self.client.status_outcomes.append(FakeResponse(200, {"status": "connected", "user": "Bob"}))
        self.poller.poll_once(self.context, self.token)
        self.assertEqual(seen, [("t1", "Bob")])

    def test_start_polling_same_session_is_noop(self):
        again = self.poller.start_polling(self.context, background=False)
        self.assertIs(again, self.token)
        self.assertFalse(self.token.cancelled)

    def test_stop_polling_is_idempotent(self):
        self.poller.stop_polling(self.token)
        self.poller.stop_polling(self.token)
        self.poller.stop_polling(None)
        self.assertTrue(self.token.cancelled)
        self.assertFalse(self.poller.poll_once(self.context, self.token))
        self.assertEqual(self.status_calls(), 0)

    def test_late_response_after_reset_is_discarded(self):
        old_token = self.token
        release = threading.Event()
        entered = threading.Event()

        class SlowClient(FakeClient):
            def session_status(inner, session_id):
                if session_id == old_token.session_id:
                    entered.set()
                    release.wait(5)
                    return FakeResponse(200, {"status": "connected", "user": "Mallory"})
                return super().session_status(session_id)

        client = SlowClient()
        store = SessionStore(client, background_polling=False)
        store.create_session("t1")
        context = store.get_context("t1")
        old_token = context.poll_token
        worker = threading.Thread(target=store.poller.poll_once, args=(context, old_token))
        worker.start()
        self.assertTrue(entered.wait(5))

        new_session = store.reset_session("t1")
        release.set()
        worker.join(5)

        self.assertTrue(old_token.cancelled)
        self.assertIs(context.session, new_session)
        self.assertIs(new_session.pairing_state, PairingState.UNPAIRED)
        self.assertIsNone(new_session.paired_user)
        self.assertEqual(context.poll_token.session_id, new_session.id)


class TestBackgroundPolling(unittest.TestCase):
    def test_thread_stops_after_connected(self):
        client = FakeClient(KioskConfig(poll_interval=0.01))
        client.status_outcomes.extend([
            FakeResponse(200, {"status": "pending"}),
            FakeResponse(200, {"status": "connected", "user": "Alice"}),
        ])
        paired = threading.Event()
        poller = PairingPoller(client, on_paired=lambda ctx, user: paired.set())
        store = SessionStore(client, poller=poller)
        session = store.create_session("t1")
        token = store.get_context("t1").poll_token

        self.assertTrue(paired.wait(5))
        token.join(5)
        self.assertFalse(token.thread.is_alive())
        self.assertEqual(session.paired_user, "Alice")
        self.assertEqual(len(client.calls_named("session_status")), 2)

    def test_stop_cancels_running_thread(self):
        client = FakeClient(KioskConfig(poll_interval=0.01))
        store = SessionStore(client)
        store.create_session("t1")
        token = store.get_context("t1").poll_token
        store.stop("t1")
        token.join(5)
        self.assertFalse(token.thread.is_alive())
        calls = len(client.calls_named("session_status"))
        token.wait(0.05)
        self.assertEqual(len(client.calls_named("session_status")), calls)


if __name__ == "__main__":
    unittest.main()
