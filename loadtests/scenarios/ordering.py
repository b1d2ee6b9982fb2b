"""Ordering load test scenarios.

Two stateful journeys over a shared pool of well-stocked products, and a
contention user that hammers a single scarce product to check that stock
never oversells under concurrent placement.
"""

import uuid

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import ADMIN_HEADERS, client_headers, order_data, product_data
from loadtests.helpers.response import extract_error_detail, is_stock_rejection
from loadtests.helpers.state import OrderState

_NEXT_STATUS = {
    ("pending", "delivery"): "processing",
    ("pending", "pickup"): "processing",
    ("processing", "delivery"): "shipped",
    ("processing", "pickup"): "ready_for_pickup",
    ("shipped", "delivery"): "delivered",
    ("ready_for_pickup", "pickup"): "delivered",
}


def _register_products(client, count: int, stock_quantity: int | None = None) -> list[str]:
    product_ids = []
    for _ in range(count):
        resp = client.post(
            "/products",
            json=product_data(stock_quantity),
            headers=ADMIN_HEADERS,
            name="POST /products",
        )
        if resp.status_code == 201:
            product_ids.append(resp.json()["data"]["id"])
    return product_ids


class OrderLifecycleJourney(SequentialTaskSet):
    """Place -> Pay -> Processing -> Shipped/Ready -> Delivered."""

    def on_start(self):
        self.state = OrderState(customer_id=f"lt-{uuid.uuid4().hex[:8]}", product_ids=self.user.product_ids)

    @task
    def place_order(self):
        payload = order_data(self.state.product_ids)
        with self.client.post(
            "/orders",
            json=payload,
            headers=client_headers(self.state.customer_id),
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code == 201:
                self.state.order_id = resp.json()["data"]["id"]
                self.state.shipment_method = payload["shipment_method"]
            else:
                resp.failure(f"Place order failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def pay(self):
        with self.client.post(
            f"/orders/{self.state.order_id}/payment",
            headers=client_headers(self.state.customer_id),
            catch_response=True,
            name="POST /orders/{id}/payment",
        ) as resp:
            # A declined payment is a 200 with success=false; only transport errors fail.
            if resp.status_code != 200:
                resp.failure(f"Payment failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def advance_status(self):
        while (next_status := _NEXT_STATUS.get((self.state.current_status, self.state.shipment_method))) is not None:
            with self.client.put(
                f"/orders/{self.state.order_id}/status",
                json={"status": next_status},
                headers=ADMIN_HEADERS,
                catch_response=True,
                name="PUT /orders/{id}/status",
            ) as resp:
                if resp.status_code != 200:
                    resp.failure(f"Status update failed: {resp.status_code} — {extract_error_detail(resp)}")
                    break
                self.state.current_status = next_status

    @task
    def done(self):
        self.interrupt()


class OrderCancellationJourney(SequentialTaskSet):
    """Place -> View -> Cancel. Every cancellation returns its units to stock."""

    def on_start(self):
        self.state = OrderState(customer_id=f"lt-{uuid.uuid4().hex[:8]}", product_ids=self.user.product_ids)

    @task
    def place_order(self):
        with self.client.post(
            "/orders",
            json=order_data(self.state.product_ids),
            headers=client_headers(self.state.customer_id),
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code == 201:
                self.state.order_id = resp.json()["data"]["id"]
            else:
                resp.failure(f"Place order failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def view_order(self):
        self.client.get(
            f"/orders/{self.state.order_id}",
            headers=client_headers(self.state.customer_id),
            name="GET /orders/{id}",
        )

    @task
    def cancel_order(self):
        with self.client.put(
            f"/orders/{self.state.order_id}/cancel",
            headers=client_headers(self.state.customer_id),
            catch_response=True,
            name="PUT /orders/{id}/cancel",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Cancel failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class OrderingUser(HttpUser):
    """Customers placing, paying, fulfilling and cancelling orders."""

    wait_time = between(0.5, 2.0)
    tasks = {OrderLifecycleJourney: 3, OrderCancellationJourney: 1}

    def on_start(self):
        self.product_ids = _register_products(self.client, count=3)


class StockContentionUser(HttpUser):
    """Many customers racing for a product with little stock.

    Stock rejections are the expected outcome once the product sells out and
    are reported as successes; anything else is a failure.
    """

    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.product_ids = _register_products(self.client, count=1, stock_quantity=50)
        self.customer_id = f"lt-{uuid.uuid4().hex[:8]}"

    @task
    def place_contended_order(self):
        if not self.product_ids:
            return
        with self.client.post(
            "/orders",
            json=order_data(self.product_ids, quantity=3),
            headers=client_headers(self.customer_id),
            catch_response=True,
            name="POST /orders (contended)",
        ) as resp:
            if resp.status_code == 201 or is_stock_rejection(resp):
                resp.success()
            else:
                resp.failure(f"Unexpected answer: {resp.status_code} — {extract_error_detail(resp)}")
