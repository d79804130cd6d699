from typing import Optional, Protocol

from src.core.models import Portfolio


class PortfolioRepository(Protocol):
    def create_portfolio(self, portfolio: Portfolio) -> None: ...

    def update_portfolio(self, portfolio: Portfolio) -> None: ...

    def get_portfolio(self, *, portfolio_id: str) -> Optional[Portfolio]: ...

    def list_portfolios(self, *, client_id: str) -> list[Portfolio]: ...
