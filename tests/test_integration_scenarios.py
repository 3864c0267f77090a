"""
Integration Test Scenarios for the Loan Settlement Engine

End-to-end runs through SettlementService covering the business walkthroughs:
a payment waterfall for a syndicated loan and a secondary trade that changes
who gets paid next time.

Run with: python -m pytest tests/test_integration_scenarios.py -v
"""

from decimal import Decimal

import pytest

from settlement import SettlementService
from settlement.csv_export import csv_total, validate_csv_integrity
from settlement.errors import AlreadyApproved, AlreadyRejected, InsufficientOwnership


class TestThirdsWaterfall:
    """$10M split three ways where the shares don't divide evenly."""

    @pytest.fixture
    def service(self):
        return SettlementService()

    @pytest.fixture
    def result(self, service):
        return service.distribute_from_dict({
            "loanId": "LN-THIRDS",
            "total": "10000000.00",
            "owners": [
                {"name": "X", "bic": "XXXXGB2L", "account": "GB01", "share": "0.333333"},
                {"name": "Y", "bic": "YYYYDE33", "account": "DE02", "share": "0.333333"},
                {"name": "Z", "bic": "ZZZZFR2P", "account": "FR03", "share": "0.333334"},
            ],
        })

    def test_residual_on_last_owner(self, result):
        assert [d["amount"] for d in result["distribution"]] == [3333330.0, 3333330.0, 3333340.0]

    def test_csv_reconciles_exactly(self, result):
        assert csv_total(result["csv"]) == Decimal('10000000.00')
        assert result["csv"].splitlines()[-1] == "Z,ZZZZFR2P,USD,FR03,3333340.00"

    def test_tampered_csv_fails_integrity(self, result):
        tampered = result["csv"].replace("3333340.00", "3333339.00")
        assert not validate_csv_integrity(tampered, Decimal('10000000.00'))


class TestAwkwardTotals:
    """Totals that don't split into whole cents."""

    @pytest.fixture
    def service(self):
        return SettlementService()

    @pytest.mark.parametrize("total", ["0.01", "0.07", "1.00", "999999999.99", "12345.67"])
    def test_csv_sums_to_total(self, service, total):
        result = service.distribute_from_dict({
            "total": total,
            "owners": [
                {"name": f"Owner {i}", "bic": f"BIC{i}", "account": str(i), "share": "0.142857"}
                for i in range(6)
            ] + [{"name": "Owner 6", "bic": "BIC6", "account": "6", "share": "0.142858"}],
        })

        assert csv_total(result["csv"]) == Decimal(total)


class TestSecondaryTradeChangesPayout:
    """
    Pacific Rim Traders sells 20% of LN-2024-8392 to Quantum Capital; the
    next waterfall pays Quantum Capital its new share.
    """

    FACILITY = "LN-2024-8392"

    @pytest.fixture
    def service(self):
        return SettlementService(seed_demo=True)

    @pytest.fixture
    def trade(self):
        return {
            "seller": "Pacific Rim Traders",
            "buyer": "Quantum Capital",
            "amount": 15000000,
            "loan_id": self.FACILITY,
            "percentage": 20,
        }

    def test_full_trade_flow(self, service, trade):
        assert service.validate_from_dict(trade)["valid"] is True

        trade_id = service.propose_from_dict(trade)["trade"]["id"]
        # Proposal alone changes nothing
        assert service.get_ownership(self.FACILITY)["owners"][0]["share"] == 45.0

        approved = service.approve_from_dict({"trade_id": trade_id})
        assert approved["trade"]["status"] == "approved"

        ownership = service.get_ownership(self.FACILITY)
        assert ownership["total_ownership"] == 100.0
        assert {o["name"]: o["share"] for o in ownership["owners"]} == {
            "Pacific Rim Traders": 25.0,
            "Sovereign Wealth I": 30.0,
            "Maritime Ventures": 25.0,
            "Quantum Capital": 20.0,
        }

        events = service.list_events(facility_id=self.FACILITY)
        assert events["events"][0]["hash"] == approved["trade"]["hash"]

    def test_waterfall_uses_post_trade_shares(self, service, trade):
        trade_id = service.propose_from_dict(trade)["trade"]["id"]
        service.approve_from_dict({"trade_id": trade_id})

        owners = service.get_ownership(self.FACILITY)["owners"]
        result = service.distribute_from_dict({
            "loanId": self.FACILITY,
            "total": 1000000,
            "owners": [
                {"name": o["name"], "bic": "BIC", "account": "ACC", "share": str(Decimal(str(o["share"])) / 100)}
                for o in owners
            ],
        })

        assert {d["name"]: d["amount"] for d in result["distribution"]} == {
            "Pacific Rim Traders": 250000.0,
            "Sovereign Wealth I": 300000.0,
            "Maritime Ventures": 250000.0,
            "Quantum Capital": 200000.0,
        }

    def test_second_approval_does_not_transfer_again(self, service, trade):
        trade_id = service.propose_from_dict(trade)["trade"]["id"]
        service.approve_from_dict({"trade_id": trade_id})

        with pytest.raises(AlreadyApproved):
            service.approve_from_dict({"trade_id": trade_id})

        assert service.get_ownership(self.FACILITY)["owners"][0]["share"] == 25.0

    def test_competing_trades_for_same_share(self, service, trade):
        """Two validated trades for the same stake: only the first approval lands."""
        trade["percentage"] = 40
        competing = {**trade, "buyer": "Harbor Fund"}

        assert service.validate_from_dict(trade)["valid"] is True
        assert service.validate_from_dict(competing)["valid"] is True

        first = service.propose_from_dict(trade)["trade"]["id"]
        second = service.propose_from_dict(competing)["trade"]["id"]
        service.approve_from_dict({"trade_id": first})

        with pytest.raises(InsufficientOwnership):
            service.approve_from_dict({"trade_id": second})

        rejected = service.reject_from_dict({"trade_id": second, "reason": "Stake already sold"})
        assert rejected["trade"]["status"] == "rejected"

        with pytest.raises(AlreadyRejected):
            service.approve_from_dict({"trade_id": second})

    def test_seller_exits_facility(self, service):
        trade_id = service.propose_from_dict({
            "seller": "Maritime Ventures",
            "buyer": "Sovereign Wealth I",
            "amount": 5000000,
            "loan_id": self.FACILITY,
            "percentage": 25,
        })["trade"]["id"]

        ownership = service.approve_from_dict({"trade_id": trade_id})["ownership"]

        assert ownership == [
            {"name": "Pacific Rim Traders", "share": 45.0},
            {"name": "Sovereign Wealth I", "share": 55.0},
        ]
