"""
Prior transaction lookup and provenance tests
"""
import asyncio
from datetime import datetime

from core.ledger_history import TRANSACTIONS, build_provenance, find_prior_transaction_id


class FailingStore:
    async def find(self, collection, filters, sort=None, limit=0):
        raise ConnectionError("query timed out")


def lookup(store, kind, source_id):
    return asyncio.run(find_prior_transaction_id(store, kind, source_id))


class TestFindPriorTransaction:

    def test_newest_record_wins(self, store):
        store.seed(TRANSACTIONS, "old", {"investmentId": "inv-1", "createdAt": datetime(2024, 1, 1)})
        store.seed(TRANSACTIONS, "new", {"investmentId": "inv-1", "createdAt": datetime(2024, 2, 1)})
        store.seed(TRANSACTIONS, "other", {"investmentId": "inv-2", "createdAt": datetime(2024, 3, 1)})

        assert lookup(store, "investment", "inv-1") == "new"

    def test_legacy_string_timestamp_does_not_break_lookup(self, store):
        store.seed(TRANSACTIONS, "legacy", {"investmentId": "inv-1", "createdAt": "2024-01-01"})
        store.seed(TRANSACTIONS, "new", {"investmentId": "inv-1", "createdAt": datetime(2024, 2, 1)})

        assert lookup(store, "investment", "inv-1") == "new"

    def test_no_record(self, store):
        assert lookup(store, "investment", "inv-1") is None

    def test_withdrawal_falls_back_to_reference(self, store):
        store.seed(TRANSACTIONS, "tx-w", {"reference": "wd-1", "createdAt": datetime(2024, 1, 1)})

        assert lookup(store, "withdrawal", "wd-1") == "tx-w"

    def test_topup_does_not_match_reference(self, store):
        store.seed(TRANSACTIONS, "tx-t", {"reference": "tp-1", "createdAt": datetime(2024, 1, 1)})

        assert lookup(store, "topup", "tp-1") is None

    def test_lookup_failure_means_no_prior(self):
        assert lookup(FailingStore(), "investment", "inv-1") is None


class TestBuildProvenance:
    NOW = datetime(2024, 6, 1, 12, 0)

    def test_defaults_without_prior(self):
        provenance = build_provenance(None, "inv-1", "Investment approved", self.NOW)

        assert provenance.currency == "USD"
        assert provenance.description == "Investment approved"
        assert provenance.reference == "inv-1"
        assert provenance.created_at == self.NOW
        assert provenance.source_link == "inv-1"

    def test_source_fields_used_before_defaults(self):
        provenance = build_provenance(
            None, "inv-1", "Investment approved", self.NOW,
            source_currency="EUR",
            source_created_at=datetime(2024, 5, 1),
            source_project_id="project-1"
        )

        assert provenance.currency == "EUR"
        assert provenance.created_at == datetime(2024, 5, 1)
        assert provenance.project_id == "project-1"

    def test_prior_wins_over_source(self):
        prior = {
            "currency": "GBP",
            "description": "Investment in Solar Farm",
            "reference": "INV-9",
            "createdAt": datetime(2024, 4, 1),
            "projectId": "project-9",
            "investmentId": "legacy-inv-1"
        }

        provenance = build_provenance(
            prior, "inv-1", "Investment approved", self.NOW,
            source_currency="EUR",
            source_created_at=datetime(2024, 5, 1),
            link_field="investmentId"
        )

        assert provenance.currency == "GBP"
        assert provenance.description == "Investment in Solar Farm"
        assert provenance.reference == "INV-9"
        assert provenance.created_at == datetime(2024, 4, 1)
        assert provenance.project_id == "project-9"
        assert provenance.source_link == "legacy-inv-1"

    def test_string_created_at_is_ignored(self):
        prior = {"createdAt": "2024-04-01T00:00:00Z"}

        provenance = build_provenance(prior, "inv-1", "Investment approved", self.NOW)

        assert provenance.created_at == self.NOW
