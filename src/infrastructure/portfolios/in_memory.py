from copy import deepcopy
from threading import Lock
from typing import Optional

from src.core.models import Portfolio
from src.core.portfolio.repository import PortfolioRepository


class InMemoryPortfolioRepository(PortfolioRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._portfolios: dict[str, Portfolio] = {}

    def create_portfolio(self, portfolio: Portfolio) -> None:
        with self._lock:
            self._portfolios[portfolio.portfolio_id] = deepcopy(portfolio)

    def update_portfolio(self, portfolio: Portfolio) -> None:
        with self._lock:
            self._portfolios[portfolio.portfolio_id] = deepcopy(portfolio)

    def get_portfolio(self, *, portfolio_id: str) -> Optional[Portfolio]:
        with self._lock:
            portfolio = self._portfolios.get(portfolio_id)
            return deepcopy(portfolio) if portfolio is not None else None

    def list_portfolios(self, *, client_id: str) -> list[Portfolio]:
        with self._lock:
            return deepcopy(
                [row for row in self._portfolios.values() if row.client_id == client_id]
            )
