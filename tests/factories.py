from decimal import Decimal
from typing import Iterable, Optional, Sequence

from src.core.assessment.questionnaires import default_questionnaire
from src.core.models import (
    BehavioralAnalysis,
    ClientProfile,
    Holding,
    OptionSpec,
    Portfolio,
    QuestionCategory,
    QuestionSpec,
    Questionnaire,
    ResponseItem,
    Security,
)


def option(option_id: str, score_value: int, text: Optional[str] = None) -> OptionSpec:
    return OptionSpec(option_id=option_id, text=text or option_id, score_value=score_value)


def four_tier_question(
    question_id: str,
    text: str,
    *,
    weight: str = "1",
    order_number: int = 0,
    category: Optional[QuestionCategory] = None,
    time_horizon: Optional[bool] = None,
) -> QuestionSpec:
    """Question with options <id>_0 .. <id>_4 scoring 0..4."""
    return QuestionSpec(
        question_id=question_id,
        text=text,
        weight=Decimal(weight),
        order_number=order_number,
        category=category,
        time_horizon=time_horizon,
        options=[option(f"{question_id}_{score}", score) for score in range(0, 5)],
    )


def questionnaire(questions: Iterable[QuestionSpec], version: str = "v_test") -> Questionnaire:
    return Questionnaire(
        questionnaire_id=f"rq_{version}", version=version, questions=list(questions)
    )


def responses(*pairs: tuple[str, str]) -> list[ResponseItem]:
    return [
        ResponseItem(question_id=question_id, selected_option_id=option_id)
        for question_id, option_id in pairs
    ]


def default_responses(option_letter: str = "d") -> list[ResponseItem]:
    """Selects the same option letter for every question of the built-in questionnaire."""
    return [
        ResponseItem(
            question_id=question.question_id,
            selected_option_id=f"{question.question_id}_{option_letter}",
        )
        for question in default_questionnaire().questions
    ]


def client_profile(client_id: str = "cl_001", **overrides) -> ClientProfile:
    values = {
        "client_id": client_id,
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "dob": "1985-12-10",
        "annual_income": Decimal("120000"),
        "net_worth": Decimal("850000"),
        "liquidity_needs": Decimal("15000"),
        "tax_bracket": Decimal("32"),
    }
    values.update(overrides)
    return ClientProfile(**values)


def analysis(
    reliability: int = 80, consistency: int = 75, stability: int = 70
) -> BehavioralAnalysis:
    return BehavioralAnalysis(
        reliability=reliability,
        consistency=consistency,
        stability=stability,
        summary="Consistent answers across the questionnaire.",
    )


def security(
    security_id: str, asset_class: str = "Equity", price: str = "100", name: Optional[str] = None
) -> Security:
    return Security(
        security_id=security_id,
        name=name or security_id.upper(),
        asset_class=asset_class,
        price=Decimal(price),
    )


def holding(
    holding_id: str,
    *,
    percent: str,
    total_value: str = "100000",
    price: str = "100",
    security_id: Optional[str] = None,
) -> Holding:
    amount = Decimal(total_value) * Decimal(percent) / Decimal("100")
    unit_price = Decimal(price)
    return Holding(
        holding_id=holding_id,
        security_id=security_id or f"sec_{holding_id}",
        security_name=holding_id,
        asset_class="Equity",
        price=unit_price,
        allocated_percent=Decimal(percent),
        allocated_amount=amount,
        units=amount / unit_price if unit_price > 0 else Decimal("0"),
    )


def portfolio(
    holdings: Sequence[Holding] = (),
    *,
    total_value: str = "100000",
    portfolio_id: str = "pf_test",
) -> Portfolio:
    total = Decimal(total_value)
    invested = sum((item.allocated_amount for item in holdings), Decimal("0"))
    return Portfolio(
        portfolio_id=portfolio_id,
        client_id="cl_001",
        total_portfolio_value=total,
        cash_balance=total - invested,
        holdings=list(holdings),
    )


class StubBehavioralAnalyzer:
    def __init__(self, result: Optional[BehavioralAnalysis] = None, error: Exception = None):
        self.result = result or analysis()
        self.error = error
        self.calls: list[tuple] = []

    def analyze(self, request, *, model_variant: str) -> BehavioralAnalysis:
        self.calls.append((request, model_variant))
        if self.error is not None:
            raise self.error
        return self.result


class StubAllocationGenerator:
    def __init__(self, result=None, error: Exception = None):
        self.result = result
        self.error = error
        self.calls: list[tuple] = []

    def generate_allocation(self, request, *, model_variant: str):
        self.calls.append((request, model_variant))
        if self.error is not None:
            raise self.error
        return self.result


class StaticSecurityCatalog:
    def __init__(self, securities: Iterable[Security]):
        self._securities = list(securities)

    def get_security(self, security_id: str) -> Optional[Security]:
        return next((item for item in self._securities if item.security_id == security_id), None)

    def list_securities_by_asset_class(self, asset_class: str) -> list[Security]:
        return [item for item in self._securities if item.asset_class == asset_class]

    def list_securities(self) -> list[Security]:
        return sorted(self._securities, key=lambda item: item.name)

    def list_asset_classes(self) -> list[str]:
        return sorted({item.asset_class for item in self._securities})
