import threading
import unittest
from decimal import Decimal

from kiosk.cart import AssistantAction, Cart, CartReconciler
from kiosk.config import KioskConfig
from kiosk.errors import OrderNotReadyError, OrderSubmissionError, SessionNotPairedError
from kiosk.menus import MenuCatalog
from kiosk.orders import OrderSubmitter, build_order
from kiosk.state import KioskContext, OrderingStage

from tests.fakes import FakeClient, FakeResponse, connection_error, paired_context


def fill(cart, *actions):
    reconciler = CartReconciler(MenuCatalog.default())
    for action in actions:
        reconciler.apply_action(action, cart)
    return cart


class TestBuildOrder(unittest.TestCase):
    def test_payload_shape(self):
        cart = fill(Cart(), AssistantAction(add_item_id="b2"), AssistantAction(add_item_id="d1"), AssistantAction(add_item_id="d1"))
        order = build_order(cart, "Alice", 100, 607)
        self.assertEqual(
            order.model_dump(),
            {
                "userName": "Alice",
                "restaurantId": 100,
                "tenantId": 607,
                "status": "PENDING",
                "itemDetails": [
                    {"itemId": "b2", "itemName": "Chicken Burger", "quantity": 1, "price": 6.99},
                    {"itemId": "d1", "itemName": "Coke", "quantity": 2, "price": 1.99},
                ],
            },
        )


class TestOrderSubmitter(unittest.TestCase):
    def setUp(self):
        self.client = FakeClient()
        self.store, self.context = paired_context(self.client, user="Alice")
        self.submitter = OrderSubmitter(self.client)

    def make_ready(self):
        fill(self.context.cart, AssistantAction(add_item_id="b2"), AssistantAction(add_item_id="p1", finalize_order=True))

    def test_place_order_success(self):
        self.make_ready()
        result = self.submitter.place_order(self.context)

        payload = self.client.calls_named("place_order")[0]["payload"]
        self.assertEqual(payload["userName"], "Alice")
        self.assertEqual(len(payload["itemDetails"]), 2)
        self.assertTrue(result.submitted_remotely)
        self.assertEqual(result.total, Decimal("15.98"))
        self.assertEqual(result.formatted_total(), "$15.98")
        self.assertEqual(result.summary_lines(), [("1 x Chicken Burger", "$6.99"), ("1 x Margherita", "$8.99")])
        self.assertIs(self.context.stage, OrderingStage.SUBMITTED)

    def test_second_submission_is_refused(self):
        self.make_ready()
        self.submitter.place_order(self.context)
        with self.assertRaises(OrderNotReadyError):
            self.submitter.place_order(self.context)
        self.assertEqual(len(self.client.calls_named("place_order")), 1)

    def test_overlapping_placement_posts_once(self):
        release = threading.Event()
        entered = threading.Event()

        class SlowClient(FakeClient):
            def place_order(inner, payload):
                entered.set()
                release.wait(5)
                return super().place_order(payload)

        client = SlowClient()
        _, context = paired_context(client, user="Alice")
        submitter = OrderSubmitter(client)
        fill(context.cart, AssistantAction(add_item_id="b2", finalize_order=True))

        errors = []

        def first():
            try:
                submitter.place_order(context)
            except Exception as exc:
                errors.append(exc)

        worker = threading.Thread(target=first)
        worker.start()
        self.assertTrue(entered.wait(5))
        with self.assertRaises(OrderNotReadyError) as ctx:
            submitter.place_order(context)
        self.assertIn("in progress", str(ctx.exception))
        release.set()
        worker.join(5)

        self.assertEqual(errors, [])
        self.assertEqual(len(client.calls_named("place_order")), 1)
        self.assertTrue(context.submitted)
        self.assertFalse(context.submitting)

    def test_failed_placement_clears_in_progress_flag(self):
        self.make_ready()
        self.client.order_outcomes.append(FakeResponse(500, text="boom"))
        with self.assertRaises(OrderSubmissionError):
            self.submitter.place_order(self.context)
        self.assertFalse(self.context.submitting)

    def test_failure_preserves_cart(self):
        self.make_ready()
        self.client.order_outcomes.extend([FakeResponse(502, text="bad gateway"), connection_error()])
        before = self.context.cart.as_state()
        for _ in range(2):
            with self.assertRaises(OrderSubmissionError):
                self.submitter.place_order(self.context)
        self.assertEqual(self.context.cart.as_state(), before)
        self.assertIs(self.context.stage, OrderingStage.READY_TO_FINALIZE)
        # retry succeeds
        self.submitter.place_order(self.context)
        self.assertIs(self.context.stage, OrderingStage.SUBMITTED)

    def test_not_ready(self):
        with self.assertRaises(OrderNotReadyError):
            self.submitter.place_order(self.context)
        fill(self.context.cart, AssistantAction(add_item_id="b1"))
        with self.assertRaises(OrderNotReadyError):
            self.submitter.place_order(self.context)
        self.assertEqual(self.client.calls_named("place_order"), [])

    def test_unpaired(self):
        with self.assertRaises(SessionNotPairedError):
            self.submitter.place_order(KioskContext("t9"))

    def test_short_circuit_skips_request(self):
        self.make_ready()
        submitter = OrderSubmitter(self.client, submit=False)
        result = submitter.place_order(self.context)
        self.assertFalse(result.submitted_remotely)
        self.assertEqual(self.client.calls_named("place_order"), [])
        self.assertIs(self.context.stage, OrderingStage.SUBMITTED)

    def test_ids_come_from_config(self):
        client = FakeClient(KioskConfig(restaurant_id=5, tenant_id=9, submit_orders=False))
        submitter = OrderSubmitter(client)
        result = submitter.submit(fill(Cart(), AssistantAction(add_item_id="d2")), "Bob")
        self.assertEqual((result.order.restaurantId, result.order.tenantId), (5, 9))
        self.assertFalse(submitter.submit_enabled)


if __name__ == "__main__":
    unittest.main()
