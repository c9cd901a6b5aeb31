import unittest
import uuid

from kiosk.errors import SessionCreationError, UnknownTerminalError
from kiosk.session import SessionStore
from kiosk.state import OrderingStage, PairingState, Role

from tests.fakes import FakeClient, FakeResponse, connection_error, paired_context


class TestSessionStore(unittest.TestCase):
    def setUp(self):
        self.client = FakeClient()
        self.store = SessionStore(self.client, background_polling=False)

    def test_create_session_registers_and_starts_polling(self):
        session = self.store.create_session("t1")
        self.assertEqual(uuid.UUID(session.id).version, 4)
        self.assertIs(session.pairing_state, PairingState.UNPAIRED)
        self.assertEqual(self.client.calls_named("create_session"), [{"session_id": session.id}])
        context = self.store.get_context("t1")
        self.assertIs(context.session, session)
        self.assertEqual(context.poll_token.session_id, session.id)
        self.assertIs(context.stage, OrderingStage.UNPAIRED)

    def test_failed_registration_does_not_poll(self):
        self.client.create_outcomes.append(FakeResponse(500, text="boom"))
        with self.assertRaises(SessionCreationError) as ctx:
            self.store.create_session("t1")
        self.assertIn("boom", str(ctx.exception))
        context = self.store.get_context("t1")
        self.assertIsNone(context.poll_token)
        self.assertEqual(context.last_error, "Failed to create session: boom")

    def test_unreachable_backend(self):
        self.client.create_outcomes.append(connection_error())
        with self.assertRaises(SessionCreationError):
            self.store.create_session("t1")
        self.assertIsNone(self.store.get_context("t1").poll_token)

    def test_reset_clears_everything_in_lockstep(self):
        store, context = paired_context(self.client)
        old = context.session
        context.append_turn(Role.USER, "hi")
        context.cart.ready_to_finalize = True
        self.assertIs(context.stage, OrderingStage.READY_TO_FINALIZE)

        new = store.reset_session("t1")
        self.assertNotEqual(new.id, old.id)
        self.assertIs(context.session, new)
        self.assertEqual(context.turns, [])
        self.assertTrue(context.cart.is_empty())
        self.assertFalse(context.cart.ready_to_finalize)
        self.assertIs(context.stage, OrderingStage.UNPAIRED)
        self.assertEqual(old.paired_user, "Alice")
        self.assertIsNone(new.paired_user)

    def test_reset_cancels_previous_poll_before_swapping(self):
        self.store.create_session("t1")
        context = self.store.get_context("t1")
        old_token = context.poll_token
        self.store.reset_session("t1")
        self.assertTrue(old_token.cancelled)
        self.assertIsNot(context.poll_token, old_token)
        self.assertFalse(context.poll_token.cancelled)

    def test_terminals_are_independent(self):
        a = self.store.create_session("a")
        b = self.store.create_session("b")
        self.assertNotEqual(a.id, b.id)
        self.store.reset_session("a")
        self.assertIs(self.store.get_session("b"), b)
        self.assertEqual(len(self.store.contexts()), 2)

    def test_paired_user_is_set_once(self):
        _, context = paired_context(self.client, user="Alice")
        self.assertFalse(context.session.mark_paired("Eve"))
        self.assertEqual(context.session.paired_user, "Alice")

    def test_stage_moves_to_conversing(self):
        _, context = paired_context(self.client)
        self.assertIs(context.stage, OrderingStage.PAIRED)
        context.append_turn(Role.USER, "hello")
        self.assertIs(context.stage, OrderingStage.CONVERSING)

    def test_close_stops_all_polls(self):
        self.store.create_session("a")
        self.store.create_session("b")
        tokens = [c.poll_token for c in self.store.contexts()]
        self.store.close()
        self.assertTrue(all(t.cancelled for t in tokens))

    def test_lookups_do_not_create_terminals(self):
        self.assertIsNone(self.store.find_context("ghost"))
        self.assertIsNone(self.store.get_session("ghost"))
        self.store.stop("ghost")
        with self.assertRaises(UnknownTerminalError):
            self.store.require_context("ghost")
        self.assertEqual(self.store.contexts(), [])

        self.store.create_session("t1")
        self.assertIs(self.store.require_context("t1"), self.store.find_context("t1"))

    def test_discard_forgets_terminal(self):
        self.store.create_session("a")
        token = self.store.get_context("a").poll_token
        self.store.discard("a")
        self.assertTrue(token.cancelled)
        self.assertEqual(self.store.contexts(), [])


if __name__ == "__main__":
    unittest.main()
