from decimal import Decimal

import pytest

from src.core.allocation.ips import IpsService
from src.core.allocation.models import IpsAllocationUpdateRequest, IpsGenerateRequest
from src.core.assessment.models import AssessmentFinalizeRequest, AssessmentSubmitRequest
from src.core.assessment.service import AssessmentService
from src.core.errors import (
    NoSecurityForAssetClassError,
    PortfolioValidationError,
    RecordNotFoundError,
    UnresolvedSecurityError,
)
from src.core.models import TargetAllocation
from src.core.portfolio.models import (
    BulkRebalanceRequest,
    HoldingAddRequest,
    HoldingEditRequest,
    PortfolioApproveRequest,
    PortfolioBuildRequest,
    ProposedHolding,
    RemovalPolicy,
)
from src.core.portfolio.service import PortfolioService
from src.infrastructure.assessments import InMemoryAssessmentRepository
from src.infrastructure.catalogs.env_json import (
    EnvJsonQuestionnaireCatalog,
    EnvJsonSecurityCatalog,
)
from src.infrastructure.ips.in_memory import InMemoryIpsRepository
from src.infrastructure.portfolios.in_memory import InMemoryPortfolioRepository
from tests.factories import (
    StaticSecurityCatalog,
    StubBehavioralAnalyzer,
    client_profile,
    default_responses,
    security,
)


def _services(catalog=None):
    catalog = catalog or EnvJsonSecurityCatalog(catalog_json=None)
    assessments = AssessmentService(
        repository=InMemoryAssessmentRepository(),
        questionnaires=EnvJsonQuestionnaireCatalog(catalog_json=None),
        analyzer=StubBehavioralAnalyzer(),
    )
    ips = IpsService(assessments=assessments, repository=InMemoryIpsRepository(), catalog=catalog)
    repository = InMemoryPortfolioRepository()
    portfolios = PortfolioService(repository=repository, catalog=catalog, ips=ips)

    record = assessments.submit(
        payload=AssessmentSubmitRequest(
            client=client_profile(),
            questionnaire_version="v1",
            responses=default_responses("b"),
        )
    )
    assessments.finalize(assessment_id=record.assessment_id, payload=AssessmentFinalizeRequest())
    document = ips.generate(payload=IpsGenerateRequest(assessment_id=record.assessment_id))
    return portfolios, repository, document, ips


def _build(portfolios, document, total="100000"):
    return portfolios.build(
        payload=PortfolioBuildRequest(ips_id=document.ips_id, total_investment=Decimal(total))
    )


def test_build_picks_first_security_per_asset_class_including_aliases():
    portfolios, _, document, _ = _services()

    built = _build(portfolios, document)

    assert built.portfolio_id.startswith("pf_")
    assert built.ips_id == document.ips_id
    assert built.client_id == "cl_001"
    by_security = {h.security_id: h for h in built.holdings}
    assert set(by_security) == {"sec_us_total_market", "sec_core_bond", "sec_real_estate"}
    assert by_security["sec_us_total_market"].allocated_amount == Decimal("50000")
    assert by_security["sec_core_bond"].allocated_percent == Decimal("40")
    assert by_security["sec_core_bond"].asset_class == "Fixed Income"
    assert built.cash_balance == Decimal("0")
    assert portfolios.get_portfolio(portfolio_id=built.portfolio_id) == built


def test_build_fails_without_security_for_target_class_and_stores_nothing():
    catalog = StaticSecurityCatalog([security("sec_eq", "Equity")])
    portfolios, repository, document, _ = _services(catalog)

    with pytest.raises(
        NoSecurityForAssetClassError, match="DATA_INTEGRITY_NO_SECURITY_FOR_ASSET_CLASS: Debt"
    ):
        _build(portfolios, document)
    assert repository._portfolios == {}


def test_build_requires_positive_total_and_existing_ips():
    portfolios, _, document, _ = _services()

    with pytest.raises(PortfolioValidationError, match="TOTAL_INVESTMENT_MUST_BE_POSITIVE"):
        _build(portfolios, document, total="0")
    with pytest.raises(RecordNotFoundError, match="IPS_NOT_FOUND"):
        portfolios.build(
            payload=PortfolioBuildRequest(ips_id="ips_missing", total_investment=Decimal("1"))
        )


def test_edits_and_removals_persist_through_repository():
    portfolios, _, document, _ = _services()
    built = _build(portfolios, document)
    equity = next(h for h in built.holdings if h.asset_class == "Equity")

    edited = portfolios.edit_holding(
        portfolio_id=built.portfolio_id,
        holding_id=equity.holding_id,
        payload=HoldingEditRequest(allocated_percent=Decimal("30")),
    )
    assert edited.cash_balance == Decimal("20000")

    sold = portfolios.remove_holding(
        portfolio_id=built.portfolio_id,
        holding_id=equity.holding_id,
        policy=RemovalPolicy.SELL,
    )
    assert len(sold.holdings) == 2
    assert sold.cash_balance == Decimal("50000")
    assert portfolios.get_portfolio(portfolio_id=built.portfolio_id).cash_balance == Decimal(
        "50000"
    )


def test_security_swap_and_add_resolve_against_catalog():
    portfolios, _, document, _ = _services()
    built = _build(portfolios, document)
    equity = next(h for h in built.holdings if h.asset_class == "Equity")

    swapped = portfolios.edit_holding(
        portfolio_id=built.portfolio_id,
        holding_id=equity.holding_id,
        payload=HoldingEditRequest(security_id="sec_intl_developed"),
    )
    holding = swapped.find_holding(equity.holding_id)
    assert holding.security_id == "sec_intl_developed"
    assert holding.allocated_amount == Decimal("50000")

    added = portfolios.add_holding(
        portfolio_id=built.portfolio_id, payload=HoldingAddRequest(security_id="sec_gold_trust")
    )
    assert added.holdings[-1].security_id == "sec_gold_trust"
    assert added.holdings[-1].allocated_percent == Decimal("0")

    with pytest.raises(UnresolvedSecurityError, match="DATA_INTEGRITY_UNRESOLVED_SECURITY"):
        portfolios.add_holding(
            portfolio_id=built.portfolio_id, payload=HoldingAddRequest(security_id="sec_unknown")
        )


def test_failed_edit_leaves_stored_portfolio_unchanged():
    portfolios, _, document, _ = _services()
    built = _build(portfolios, document)
    equity = next(h for h in built.holdings if h.asset_class == "Equity")

    with pytest.raises(PortfolioValidationError, match="NEGATIVE_CASH_BALANCE"):
        portfolios.edit_holding(
            portfolio_id=built.portfolio_id,
            holding_id=equity.holding_id,
            payload=HoldingEditRequest(allocated_percent=Decimal("90")),
        )

    assert portfolios.get_portfolio(portfolio_id=built.portfolio_id) == built


def test_bulk_rebalance_and_approval():
    portfolios, _, document, _ = _services()
    built = _build(portfolios, document)

    rebalanced = portfolios.rebalance(
        portfolio_id=built.portfolio_id,
        payload=BulkRebalanceRequest(
            holdings=[
                ProposedHolding(security_id="sec_us_total_market", allocated_percent="60"),
                ProposedHolding(security_id="sec_short_treasury", allocated_percent="35"),
            ],
            cash_balance=Decimal("5000"),
        ),
    )
    assert [h.security_id for h in rebalanced.holdings] == [
        "sec_us_total_market",
        "sec_short_treasury",
    ]
    assert rebalanced.cash_balance == Decimal("5000")

    approved = portfolios.approve(
        portfolio_id=built.portfolio_id, payload=PortfolioApproveRequest(actor_id="cl_001")
    )
    assert approved.approval_status == "APPROVED"
    assert approved.client_approved is True
    assert approved.client_approved_at is not None


def test_missing_portfolio_is_not_found():
    portfolios, _, _, _ = _services()

    with pytest.raises(RecordNotFoundError, match="PORTFOLIO_NOT_FOUND"):
        portfolios.get_portfolio(portfolio_id="pf_missing")


def _target(asset_class: str, percent: str) -> TargetAllocation:
    target = Decimal(percent)
    return TargetAllocation(
        asset_class=asset_class,
        target_percent=target,
        lower_band=target - 5,
        upper_band=target + 5,
    )


def test_build_scales_targets_accepted_above_one_hundred():
    portfolios, _, document, ips = _services()
    updated = ips.update_allocations(
        ips_id=document.ips_id,
        payload=IpsAllocationUpdateRequest(
            target_allocations=[
                _target("Equity", "50.4"),
                _target("Debt", "40"),
                _target("Alternatives", "10"),
            ]
        ),
    )
    assert sum(t.target_percent for t in updated.target_allocations) == Decimal("100.4")

    built = _build(portfolios, updated)

    total = Decimal("100000")
    invested = sum(h.allocated_amount for h in built.holdings)
    assert built.cash_balance >= 0
    assert abs(invested + built.cash_balance - total) <= total * Decimal("0.000001")
    equity = next(h for h in built.holdings if h.asset_class == "Equity")
    assert equity.allocated_percent == Decimal("50.4") * 100 / Decimal("100.4")


def test_build_keeps_targets_summing_below_one_hundred():
    portfolios, _, document, ips = _services()
    updated = ips.update_allocations(
        ips_id=document.ips_id,
        payload=IpsAllocationUpdateRequest(
            target_allocations=[_target("Equity", "49.6"), _target("Debt", "50")]
        ),
    )

    built = _build(portfolios, updated)

    equity = next(h for h in built.holdings if h.asset_class == "Equity")
    assert equity.allocated_percent == Decimal("49.6")
    assert built.cash_balance == Decimal("400")


def test_latest_portfolio_for_client():
    portfolios, _, document, _ = _services()
    first = _build(portfolios, document)
    second = _build(portfolios, document, total="250000")

    latest = portfolios.latest_for_client(client_id="cl_001")

    assert latest.portfolio_id == second.portfolio_id
    assert latest.portfolio_id != first.portfolio_id
    assert latest.created_at is not None
    with pytest.raises(RecordNotFoundError, match="PORTFOLIO_NOT_FOUND"):
        portfolios.latest_for_client(client_id="cl_other")


def test_mutating_unknown_portfolio_registers_no_lock():
    portfolios, _, _, _ = _services()

    with pytest.raises(RecordNotFoundError, match="PORTFOLIO_NOT_FOUND"):
        portfolios.remove_holding(
            portfolio_id="pf_missing", holding_id="hld_x", policy=RemovalPolicy.SELL
        )
    assert portfolios._locks == {}
