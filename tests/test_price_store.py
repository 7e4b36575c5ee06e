import unittest
from datetime import datetime, timedelta, timezone

from schemas.oracle import PriceRecord
from services.oracle.price_store import PriceStore

T0 = datetime(2026, 3, 2, tzinfo=timezone.utc)


def record(symbol="BTC", price=1.0, minutes=0, **kw):
    return PriceRecord(
        symbol=symbol,
        price=price,
        raw_price=price,
        timestamp=T0 + timedelta(minutes=minutes),
        method=kw.pop("method", "token_address"),
        **kw,
    )


class PriceStoreTests(unittest.TestCase):
    def test_upsert_replaces_current_record(self):
        store = PriceStore()
        store.upsert(record(price=1.0))
        store.upsert(record(price=2.0, minutes=1))
        self.assertEqual(store.get("BTC").price, 2.0)
        self.assertEqual(store.count(), 1)
        self.assertEqual([h.price for h in store.get_history("BTC")], [1.0, 2.0])

    def test_history_is_capped_fifo(self):
        store = PriceStore()
        for i in range(250):
            store.upsert(record(price=float(i), minutes=i))

        history = store.get_history("BTC")
        self.assertEqual(len(history), 100)
        self.assertEqual(history[0].price, 150.0)
        self.assertEqual(history[-1].price, 249.0)

    def test_custom_history_limit(self):
        store = PriceStore(history_limit=3)
        for i in range(5):
            store.upsert(record(price=float(i), minutes=i))
        self.assertEqual([h.price for h in store.get_history("BTC")], [2.0, 3.0, 4.0])

    def test_get_history_limit_returns_most_recent(self):
        store = PriceStore()
        for i in range(20):
            store.upsert(record(price=float(i), minutes=i))
        self.assertEqual([h.price for h in store.get_history("BTC", 3)], [17.0, 18.0, 19.0])
        self.assertEqual(store.get_history("BTC", 0), [])
        self.assertEqual(store.get_history("ETH", 5), [])

    def test_summary_and_counts(self):
        store = PriceStore()
        store.upsert(record("BTC", 1.0, 0))
        store.upsert(record("BTC", 2.0, 5))
        store.upsert(record("ETH", 3.0, 1))

        summary = store.summary()
        self.assertEqual(summary["BTC"]["points"], 2)
        self.assertEqual(summary["BTC"]["oldest"], T0)
        self.assertEqual(summary["BTC"]["latest"], T0 + timedelta(minutes=5))
        self.assertEqual(store.history_points(), 3)
        self.assertEqual(sorted(store.symbols()), ["BTC", "ETH"])

    def test_reads_do_not_mutate(self):
        store = PriceStore()
        store.upsert(record())
        store.get_history("BTC").clear()
        store.all().clear()
        self.assertEqual(len(store.get_history("BTC")), 1)
        self.assertIsNotNone(store.get("BTC"))

    def test_history_entry_carries_source(self):
        store = PriceStore()
        store.upsert(record(source="manual", method="manual_submission"))
        entry = store.get_history("BTC")[0]
        self.assertEqual(entry.source, "manual")
        self.assertEqual(entry.timestamp, T0)

    def test_rejects_non_positive_limit(self):
        with self.assertRaises(ValueError):
            PriceStore(history_limit=0)


if __name__ == "__main__":
    unittest.main()
