import asyncio
import time
import unittest
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from config.assets import AssetConfig
from config.settings import OracleSettings
from main import create_app
from middleware.rate_limit import limiter
from services.oracle.price_resolver import PriceResolver
from services.oracle.price_store import PriceStore
from services.oracle.update_scheduler import UpdateScheduler
from tests.fakes import FakeMarketClient, FakeSubmitter, pair

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

BTC = AssetConfig(
    symbol="BTC",
    name="Wrapped Bitcoin",
    addresses={"ethereum": "0x2260"},
    search_terms=("WBTC",),
    min_liquidity=100_000,
)


def _scheduler(market=None, submitter=None):
    market = market or FakeMarketClient(
        by_address={
            ("ethereum", "0x2260"): [pair(price=67000.50, liquidity=150_000, volume=80_000)],
        }
    )
    return UpdateScheduler(
        resolver=PriceResolver(market, clock=lambda: NOW),
        store=PriceStore(),
        submitter=submitter or FakeSubmitter(),
        assets=(BTC,),
        interval_s=3600,
        clock=lambda: NOW,
    )


class OracleRoutesTests(unittest.TestCase):
    def setUp(self):
        limiter.reset()

    def _client(self, scheduler, run_scheduler=False):
        app = create_app(OracleSettings(), scheduler=scheduler, run_scheduler=run_scheduler)
        return TestClient(app)

    def _wait_for_updates(self, client, n=1, timeout_s=5.0):
        deadline = time.monotonic() + timeout_s
        while time.monotonic() < deadline:
            if client.get("/health").json()["updates"] >= n:
                return
            time.sleep(0.01)
        self.fail("scheduler did not complete a cycle")

    def test_end_to_end_btc_via_token_address(self):
        sched = _scheduler()
        with self._client(sched, run_scheduler=True) as client:
            self._wait_for_updates(client)
            r = client.get("/prices/btc")

        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["symbol"], "BTC")
        self.assertEqual(body["price"], 67000.50)
        self.assertEqual(body["method"], "token_address")
        self.assertEqual(body["txHash"], "tx-btc")
        self.assertEqual(body["liquidity"], 150000.0)
        self.assertEqual(len(body["history"]), 1)
        self.assertEqual(body["history"][0]["price"], 67000.50)

    def test_startup_does_not_wait_for_first_cycle(self):
        sched = _scheduler(submitter=FakeSubmitter(delay_s=0.5))
        started = time.monotonic()
        with self._client(sched, run_scheduler=True) as client:
            ready_after = time.monotonic() - started
            health = client.get("/health").json()
            self._wait_for_updates(client)

        self.assertLess(ready_after, 0.5)
        self.assertEqual(health["status"], "healthy")
        self.assertEqual(health["updates"], 0)
        self.assertEqual(sched.store.get("BTC").tx_hash, "tx-btc")

    def test_unknown_symbol_is_404_with_available_list(self):
        sched = _scheduler()
        asyncio.run(sched.run_cycle())
        with self._client(sched) as client:
            r = client.get("/prices/DOGE")
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json(), {"error": "Price for DOGE not found", "available": ["BTC"]})

    def test_prices_listing_and_detailed_metadata(self):
        sched = _scheduler()
        asyncio.run(sched.run_cycle())
        with self._client(sched) as client:
            plain = client.get("/prices").json()
            detailed = client.get("/prices", params={"detailed": "true"}).json()

        self.assertEqual(plain["count"], 1)
        self.assertEqual(plain["source"], "dexscreener")
        self.assertNotIn("metadata", plain)
        self.assertEqual(plain["prices"]["BTC"]["price"], 67000.50)
        self.assertEqual(detailed["metadata"]["updateCount"], 1)
        self.assertEqual(detailed["metadata"]["priceHistory"]["BTC"]["points"], 1)

    def test_submit_rejects_non_numeric_price(self):
        sched = _scheduler()
        with self._client(sched) as client:
            r = client.post("/submit", json={"symbol": "BTC", "price": "abc"})
        self.assertEqual(r.status_code, 400)
        self.assertIn("error", r.json())
        self.assertIsNone(sched.store.get("BTC"))

    def test_submit_rejects_malformed_body(self):
        with self._client(_scheduler()) as client:
            r = client.post("/submit", content=b"not json", headers={"Content-Type": "application/json"})
        self.assertEqual(r.status_code, 400)
        self.assertIn("error", r.json())

    def test_submit_rejects_unpublishable_prices(self):
        submitter = FakeSubmitter()
        sched = _scheduler(submitter=submitter)
        with self._client(sched) as client:
            for price in (1e308, 10**400, 1e17, 0.001, "0.004"):
                r = client.post("/submit", json={"symbol": "BTC", "price": price})
                self.assertEqual(r.status_code, 400, msg=repr(price))
                self.assertIn("error", r.json())

        self.assertEqual(submitter.submitted, [])
        self.assertIsNone(sched.store.get("BTC"))

    def test_submit_smallest_publishable_price(self):
        submitter = FakeSubmitter()
        sched = _scheduler(submitter=submitter)
        with self._client(sched) as client:
            r = client.post("/submit", json={"symbol": "BTC", "price": 0.01})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(submitter.submitted, [("BTC", 1)])

    def test_submit_unconfigured_ledger_is_503(self):
        sched = _scheduler(submitter=FakeSubmitter(provider=False, contract=False))
        with self._client(sched) as client:
            r = client.post("/submit", json={"symbol": "BTC", "price": 100})
        self.assertEqual(r.status_code, 503)
        self.assertEqual(r.json()["details"], {"provider": False, "contract": False})

    def test_submit_ledger_failure_is_500(self):
        sched = _scheduler(submitter=FakeSubmitter(fail_for={"BTC"}))
        with self._client(sched) as client:
            r = client.post("/submit", json={"symbol": "BTC", "price": 100})
        self.assertEqual(r.status_code, 500)
        self.assertIn("error", r.json())

    def test_submit_success(self):
        sched = _scheduler()
        with self._client(sched) as client:
            r = client.post("/submit", json={"symbol": "XLM", "price": "0.12", "source": "desk"})
            history = client.get("/history/xlm").json()

        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["transaction"], "tx-xlm")
        self.assertEqual(body["data"]["method"], "manual_submission")
        self.assertEqual(body["data"]["source"], "desk")
        self.assertEqual(history["count"], 1)
        self.assertEqual(history["history"][0]["source"], "desk")

    def test_history_limit_and_timespan(self):
        sched = _scheduler()
        for _ in range(5):
            asyncio.run(sched.run_cycle())
        with self._client(sched) as client:
            limited = client.get("/history/BTC", params={"limit": "2"}).json()
            fallback = client.get("/history/BTC", params={"limit": "abc"}).json()
            empty = client.get("/history/ETH").json()

        self.assertEqual(limited["count"], 2)
        self.assertEqual(limited["timespan"]["start"], limited["history"][0]["timestamp"])
        self.assertEqual(limited["timespan"]["end"], limited["history"][-1]["timestamp"])
        self.assertEqual(fallback["count"], 5)
        self.assertEqual(empty, {"symbol": "ETH", "history": [], "count": 0, "timespan": None})

    def test_access_log_levels(self):
        with self._client(_scheduler()) as client:
            with self.assertLogs("middleware.request_logging", level="DEBUG") as logs:
                client.get("/status")
                client.post("/submit", json={"symbol": "BTC", "price": "abc"})

        self.assertTrue(logs.output[0].startswith("DEBUG:"))
        self.assertIn("path=/status status=200", logs.output[0])
        self.assertTrue(logs.output[1].startswith("WARNING:"))
        self.assertIn("path=/submit status=400", logs.output[1])

    def test_health_and_status(self):
        sched = _scheduler(submitter=FakeSubmitter(contract=False))
        asyncio.run(sched.run_cycle())
        with self._client(sched) as client:
            health = client.get("/health").json()
            status = client.get("/status").json()

        self.assertEqual(health["status"], "starting")
        self.assertEqual(health["updates"], 1)
        self.assertEqual(health["stellar"]["contract"], "not_deployed")
        self.assertEqual(health["stellar"]["provider"], "configured")
        self.assertEqual(health["data"]["prices"], 1)
        self.assertEqual(health["data"]["historyPoints"], 1)
        self.assertEqual(status["tokens"], ["BTC"])
        self.assertIn("POST /submit", status["endpoints"])


if __name__ == "__main__":
    unittest.main()
