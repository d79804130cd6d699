import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from src.core.allocation.ips import IpsService
from src.core.allocation.models import ASSET_CLASS_ALIASES
from src.core.collaborators import SecurityCatalog
from src.core.errors import (
    NoSecurityForAssetClassError,
    RecordNotFoundError,
    UnresolvedSecurityError,
)
from src.core.models import Portfolio, Security, TargetAllocation
from src.core.portfolio import engine
from src.core.portfolio.models import (
    BulkRebalanceRequest,
    HoldingAddRequest,
    HoldingEditRequest,
    PortfolioApproveRequest,
    PortfolioBuildRequest,
    ProposedHolding,
    RemovalPolicy,
)
from src.core.portfolio.repository import PortfolioRepository

logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class PortfolioService:
    """
    Builds portfolios from IPS targets and applies holding edits through the engine.

    Mutations of one portfolio are processed one at a time; a mutation that fails leaves the
    stored portfolio untouched.
    """

    def __init__(
        self,
        *,
        repository: PortfolioRepository,
        catalog: SecurityCatalog,
        ips: IpsService,
    ) -> None:
        self._repository = repository
        self._catalog = catalog
        self._ips = ips
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def build(self, *, payload: PortfolioBuildRequest) -> Portfolio:
        ips = self._ips.get_ips(ips_id=payload.ips_id)
        targets: List[Tuple[Security, Decimal]] = [
            (self._first_security_for(target.asset_class), percent)
            for target, percent in zip(
                ips.target_allocations, _investable_percents(ips.target_allocations)
            )
        ]

        portfolio = engine.new_portfolio(
            portfolio_id=f"pf_{uuid.uuid4().hex[:12]}",
            client_id=ips.client_id,
            ips_id=ips.ips_id,
            total_value=payload.total_investment,
            targets=targets,
            created_at=datetime.now(timezone.utc),
        )
        self._repository.create_portfolio(portfolio)
        self._log("portfolio.built", portfolio, ips_id=ips.ips_id)
        return portfolio

    def get_portfolio(self, *, portfolio_id: str) -> Portfolio:
        portfolio = self._repository.get_portfolio(portfolio_id=portfolio_id)
        if portfolio is None:
            raise RecordNotFoundError("PORTFOLIO_NOT_FOUND")
        return portfolio

    def latest_for_client(self, *, client_id: str) -> Portfolio:
        portfolios = self._repository.list_portfolios(client_id=client_id)
        if not portfolios:
            raise RecordNotFoundError("PORTFOLIO_NOT_FOUND")
        # ties on created_at resolve to the most recently stored row
        return max(reversed(portfolios), key=lambda row: row.created_at or _EPOCH)

    def add_holding(self, *, portfolio_id: str, payload: HoldingAddRequest) -> Portfolio:
        security = self._resolve_security(payload.security_id)
        return self._mutate(
            portfolio_id,
            "portfolio.holding_added",
            lambda portfolio: engine.add_holding(portfolio, security),
        )

    def edit_holding(
        self, *, portfolio_id: str, holding_id: str, payload: HoldingEditRequest
    ) -> Portfolio:
        if payload.allocated_percent is not None:
            percent = payload.allocated_percent
            return self._mutate(
                portfolio_id,
                "portfolio.holding_percent_edited",
                lambda portfolio: engine.set_holding_percent(portfolio, holding_id, percent),
            )
        if payload.allocated_amount is not None:
            amount = payload.allocated_amount
            return self._mutate(
                portfolio_id,
                "portfolio.holding_amount_edited",
                lambda portfolio: engine.set_holding_amount(portfolio, holding_id, amount),
            )
        security = self._resolve_security(payload.security_id)
        return self._mutate(
            portfolio_id,
            "portfolio.holding_security_swapped",
            lambda portfolio: engine.swap_holding_security(portfolio, holding_id, security),
        )

    def remove_holding(
        self, *, portfolio_id: str, holding_id: str, policy: RemovalPolicy
    ) -> Portfolio:
        if policy == RemovalPolicy.SELL:
            operation = engine.sell_and_remove
        else:
            operation = engine.rebalance_and_remove
        return self._mutate(
            portfolio_id,
            f"portfolio.holding_removed_{policy.value.lower()}",
            lambda portfolio: operation(portfolio, holding_id),
        )

    def rebalance(self, *, portfolio_id: str, payload: BulkRebalanceRequest) -> Portfolio:
        proposals: List[Tuple[ProposedHolding, Security]] = [
            (proposal, self._resolve_security(proposal.security_id))
            for proposal in payload.holdings
        ]
        return self._mutate(
            portfolio_id,
            "portfolio.rebalanced",
            lambda portfolio: engine.bulk_rebalance(portfolio, proposals, payload.cash_balance),
        )

    def approve(self, *, portfolio_id: str, payload: PortfolioApproveRequest) -> Portfolio:
        approved_at = datetime.now(timezone.utc)
        return self._mutate(
            portfolio_id,
            "portfolio.approved",
            lambda portfolio: portfolio.model_copy(
                update={
                    "approval_status": "APPROVED",
                    "client_approved": True,
                    "client_approved_at": approved_at,
                }
            ),
            actor_id=payload.actor_id,
        )

    def _mutate(
        self,
        portfolio_id: str,
        event: str,
        operation: Callable[[Portfolio], Portfolio],
        actor_id: Optional[str] = None,
    ) -> Portfolio:
        with self._portfolio_lock(portfolio_id):
            current = self.get_portfolio(portfolio_id=portfolio_id)
            updated = operation(current)
            self._repository.update_portfolio(updated)
        self._log(event, updated, actor_id=actor_id)
        return updated

    @contextmanager
    def _portfolio_lock(self, portfolio_id: str) -> Iterator[None]:
        # unknown ids raise before a lock is registered for them
        self.get_portfolio(portfolio_id=portfolio_id)
        with self._locks_guard:
            lock = self._locks.setdefault(portfolio_id, threading.Lock())
        with lock:
            yield

    def _resolve_security(self, security_id: Optional[str]) -> Security:
        security = self._catalog.get_security(security_id) if security_id else None
        if security is None:
            raise UnresolvedSecurityError(f"DATA_INTEGRITY_UNRESOLVED_SECURITY: {security_id}")
        return security

    def _first_security_for(self, asset_class: str) -> Security:
        for candidate in ASSET_CLASS_ALIASES.get(asset_class, (asset_class,)):
            securities = self._catalog.list_securities_by_asset_class(candidate)
            if securities:
                return securities[0]
        raise NoSecurityForAssetClassError(
            f"DATA_INTEGRITY_NO_SECURITY_FOR_ASSET_CLASS: {asset_class}"
        )

    @staticmethod
    def _log(event: str, portfolio: Portfolio, **fields) -> None:
        logger.info(
            event,
            extra={
                "extra_fields": {
                    "portfolio_id": portfolio.portfolio_id,
                    "holdings": len(portfolio.holdings),
                    "cash_balance": str(portfolio.cash_balance),
                    **{key: value for key, value in fields.items() if value is not None},
                }
            },
        )


def _investable_percents(targets: Sequence[TargetAllocation]) -> List[Decimal]:
    """IPS totals may overshoot 100 within the sum tolerance; such targets are scaled to 100."""
    total = sum((target.target_percent for target in targets), Decimal("0"))
    if total <= _HUNDRED:
        return [target.target_percent for target in targets]
    return [target.target_percent * _HUNDRED / total for target in targets]
