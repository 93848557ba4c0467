"""
Tests for the four trust score components and their sum.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from fundex.models.records import (
    Campaign, CampaignStatus, Donation, Expense, FundRequest,
    FundRequestStatus, VerificationStatus,
)
from fundex.trust.aggregator import build_trust_score
from fundex.trust.components import (
    calculate_donor_confidence_component,
    calculate_fraud_component,
    calculate_fund_metrics,
    calculate_transparency_component,
    calculate_utilization_component,
    utilization_score,
)
from fundex.utils.rounding import round_half_up

NGO = "ngo_1"


def _expense(amount=100.0, fraud_score=0, status=VerificationStatus.APPROVED):
    return Expense(ngo_id=NGO, amount_spent=amount, fraud_score=fraud_score, verification_status=status)


def _request(approved=10000.0, status=FundRequestStatus.APPROVED):
    return FundRequest(ngo_id=NGO, requested_amount=approved, approved_amount=approved, status=status)


def _campaign(target=1000.0, raised=1000.0, status=CampaignStatus.COMPLETED):
    return Campaign(ngo_id=NGO, target_amount=target, raised_amount=raised, status=status)


class TestEmptyOrganization:

    def test_full_benefit_of_the_doubt(self):
        result = build_trust_score(NGO, [], [], [], [])
        b = result.breakdown
        assert (b.fraud.score, b.utilization.score, b.transparency.score, b.donor_confidence.score) == (40, 30, 20, 10)
        assert result.score == 100
        assert result.fund_metrics.total_raised == 0


class TestScenarioD:

    def test_healthy_ngo_scores_high(self):
        # 10 verified expenses averaging fraud score 20, 8,500 spent of 10,000 approved
        expenses = [_expense(amount=850.0, fraud_score=s) for s in (10, 30) * 5]
        requests = [_request(10000.0)]
        campaigns = [_campaign(1000, 900), _campaign(2000, 2000), _campaign(500, 450)]

        result = build_trust_score(NGO, expenses, requests, campaigns, [])
        b = result.breakdown

        assert b.fraud.score == 32
        assert b.utilization.utilization_rate == 85.0
        assert b.utilization.score == 30
        assert b.transparency.score == 20
        # 100% success, no active campaigns (neutral 50): (60 + 20) / 10
        assert b.donor_confidence.score == 8
        assert result.score == 90
        assert result.score == b.total


class TestFraudComponent:

    def test_average_inverts(self):
        comp = calculate_fraud_component([_expense(fraud_score=50), _expense(fraud_score=100)])
        assert comp.score == 10
        assert comp.high_risk_expenses == 1
        assert comp.high_risk_percentage == 50.0

    def test_all_critical(self):
        assert calculate_fraud_component([_expense(fraud_score=100)]).score == 0


class TestUtilization:

    @pytest.mark.parametrize("rate,expected", [
        (0, 0),
        (35, 10),
        (70, 25),
        (79.9, 25),
        (80, 30),
        (95, 30),
        (96, 28),
        (100, 28),
        (105, 20),
        (120, 0),
        (200, 0),
    ])
    def test_curve(self, rate, expected):
        assert utilization_score(rate) == expected

    def test_only_approved_records_count(self):
        expenses = [
            _expense(amount=8500.0),
            _expense(amount=5000.0, status=VerificationStatus.PENDING),
        ]
        requests = [_request(10000.0), _request(50000.0, status=FundRequestStatus.REJECTED)]
        comp = calculate_utilization_component(expenses, requests)
        assert comp.total_approved == 10000.0
        assert comp.total_spent == 8500.0
        assert comp.score == 30

    def test_no_approved_requests(self):
        comp = calculate_utilization_component([_expense()], [_request(status=FundRequestStatus.PENDING)])
        assert comp.score == 30


class TestTransparency:

    def test_half_verified_half_processed(self):
        expenses = [_expense(), _expense(status=VerificationStatus.PENDING)]
        requests = [_request(), _request(status=FundRequestStatus.PENDING)]
        comp = calculate_transparency_component(expenses, requests)
        assert comp.score == 10
        assert comp.verification_rate == 50.0
        assert comp.processing_rate == 50.0

    def test_rejected_requests_count_as_processed(self):
        comp = calculate_transparency_component([], [_request(status=FundRequestStatus.REJECTED)])
        assert comp.score == 20


class TestDonorConfidence:

    def test_no_campaigns(self):
        assert calculate_donor_confidence_component([]).score == 10

    def test_failed_campaigns(self):
        campaigns = [_campaign(1000, 100), _campaign(1000, 0, status=CampaignStatus.ACTIVE)]
        comp = calculate_donor_confidence_component(campaigns)
        assert comp.success_rate == 0.0
        assert comp.avg_progress == 0.0
        assert comp.score == 0

    def test_active_only_uses_neutral_success(self):
        comp = calculate_donor_confidence_component([_campaign(1000, 1000, status=CampaignStatus.ACTIVE)])
        # (50 * 0.6 + 100 * 0.4) / 10 = 7
        assert comp.score == 7

    def test_overfunded_capped(self):
        comp = calculate_donor_confidence_component([
            _campaign(1000, 1000),
            _campaign(100, 1000, status=CampaignStatus.ACTIVE),
        ])
        assert comp.score == 10


class TestHalfPointRounding:
    """Component points on an exact .5 round up."""

    def test_helper(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(12.5) == 13
        assert round_half_up(2.49) == 2
        assert round_half_up(0) == 0

    def test_transparency_quarter_verified(self):
        expenses = [_expense()] + [_expense(status=VerificationStatus.PENDING) for _ in range(3)]
        # 25% of 10 = 2.5 -> 3, plus 10 for no requests
        assert calculate_transparency_component(expenses, []).score == 13

    def test_fraud_average_on_half(self):
        expenses = [_expense(fraud_score=s) for s in (0, 5, 5, 5)]
        # 40 * (1 - 3.75 / 100) = 38.5
        assert calculate_fraud_component(expenses).score == 39

    def test_donor_confidence_on_half(self):
        campaigns = [
            _campaign(1000, 1000),
            _campaign(1000, 0),
            _campaign(1000, 375, status=CampaignStatus.ACTIVE),
        ]
        # (50 * 0.6 + 37.5 * 0.4) / 10 = 4.5
        assert calculate_donor_confidence_component(campaigns).score == 5

    def test_low_utilization_on_half(self):
        # 8.75 / 70 * 20 = 2.5
        assert utilization_score(8.75) == 3


class TestFundMetrics:

    def test_money_flow(self):
        donations = [
            Donation(ngo_id=NGO, donor_id="d1", amount=6000),
            Donation(ngo_id=NGO, donor_id="d2", amount=4000),
            Donation(ngo_id=NGO, donor_id="d1", amount=10000),
        ]
        campaigns = [_campaign(status=CampaignStatus.ACTIVE), _campaign()]
        metrics = calculate_fund_metrics(campaigns, donations, [_expense(amount=5000)], [_request(8000)])

        assert metrics.total_raised == 20000
        assert metrics.total_allocated == 8000
        assert metrics.total_spent == 5000
        assert metrics.available_funds == 12000
        assert metrics.utilization_percentage == 25.0
        assert metrics.total_donors == 2
        assert metrics.active_campaigns == 1
        assert metrics.completed_campaigns == 1
