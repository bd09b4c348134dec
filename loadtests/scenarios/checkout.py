"""Checkout load test scenarios.

A shopper adds products to their cart, asks for a checkout summary (which
opens a mock payment intent), completes checkout and sometimes cancels. Every
completed checkout reserves stock, and every cancellation releases it, so the
run exercises the stock ledger under contention on a small product pool.
"""

import random
import uuid

from locust import HttpUser, SequentialTaskSet, between, events, task

from loadtests.data_generators import cart_item_data, checkout_data, product_data
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import ShopperState
from shared.auth import AuthGateway

PRODUCT_POOL_SIZE = 5
_products: list[dict] = []


@events.test_start.add_listener
def seed_products(environment, **_kwargs):
    """Register a small shared product pool so shoppers contend for the same stock."""
    import requests

    token = AuthGateway().issue_token("loadtest-admin", role="admin")
    for _ in range(PRODUCT_POOL_SIZE):
        response = requests.post(
            f"{environment.host}/products",
            json=product_data(),
            headers={"Authorization": f"Bearer {token}"},
            timeout=10,
        )
        response.raise_for_status()
        _products.append(response.json()["data"])


class CheckoutJourney(SequentialTaskSet):
    """Add items -> Summary -> Complete -> (maybe) Cancel."""

    def on_start(self):
        user_id = f"lt-{uuid.uuid4().hex[:10]}"
        self.state = ShopperState(user_id=user_id, token=AuthGateway().issue_token(user_id))

    @property
    def headers(self):
        return {"Authorization": f"Bearer {self.state.token}"}

    @task
    def add_items(self):
        for product in random.sample(_products, k=min(2, len(_products))):
            with self.client.post(
                "/cart/items",
                json=cart_item_data(product),
                headers=self.headers,
                catch_response=True,
                name="POST /cart/items",
            ) as resp:
                if resp.status_code == 201:
                    self.state.item_ids = [item["id"] for item in resp.json()["data"]["items"]]
                else:
                    resp.failure(f"Add to cart failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task
    def summary(self):
        with self.client.post(
            "/checkout",
            json={"delivery_option": "standard"},
            headers=self.headers,
            catch_response=True,
            name="POST /checkout",
        ) as resp:
            if resp.status_code == 200:
                self.state.payment_id = resp.json()["data"]["payment"]["payment_id"]
            else:
                resp.failure(f"Checkout summary failed: {resp.status_code}: {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def complete(self):
        with self.client.post(
            "/checkout/complete",
            json=checkout_data(self.state.payment_id),
            headers=self.headers,
            catch_response=True,
            name="POST /checkout/complete",
        ) as resp:
            if resp.status_code == 201:
                order = resp.json()["data"]
                self.state.order_id = order["id"]
                self.state.order_status = order["status"]
            elif resp.status_code == 409:
                # Stock ran out under contention; a legitimate outcome
                resp.success()
                self.interrupt()
            else:
                resp.failure(f"Checkout failed: {resp.status_code}: {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def maybe_cancel(self):
        if random.random() < 0.3:
            with self.client.post(
                f"/orders/{self.state.order_id}/cancel",
                json={"reason": "Changed my mind"},
                headers=self.headers,
                catch_response=True,
                name="POST /orders/{id}/cancel",
            ) as resp:
                if resp.status_code != 200:
                    resp.failure(f"Cancel failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class ShopperUser(HttpUser):
    wait_time = between(0.5, 2)
    tasks = [CheckoutJourney]
