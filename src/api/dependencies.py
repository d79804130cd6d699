from typing import Optional

from src.api.routers import advisory_config
from src.core.allocation.ips import IpsService
from src.core.assessment.service import AssessmentService
from src.core.collaborators import SecurityCatalog
from src.core.portfolio.service import PortfolioService
from src.infrastructure.ips.in_memory import InMemoryIpsRepository
from src.infrastructure.portfolios.in_memory import InMemoryPortfolioRepository

_CATALOG: Optional[SecurityCatalog] = None
_ASSESSMENT_SERVICE: Optional[AssessmentService] = None
_IPS_SERVICE: Optional[IpsService] = None
_PORTFOLIO_SERVICE: Optional[PortfolioService] = None


def get_security_catalog() -> SecurityCatalog:
    global _CATALOG
    if _CATALOG is None:
        _CATALOG = advisory_config.build_security_catalog()
    return _CATALOG


def get_assessment_service() -> AssessmentService:
    global _ASSESSMENT_SERVICE
    if _ASSESSMENT_SERVICE is None:
        _ASSESSMENT_SERVICE = AssessmentService(
            repository=advisory_config.build_assessment_repository(),
            questionnaires=advisory_config.build_questionnaire_catalog(),
            analyzer=advisory_config.build_behavioral_analyzer(),
            default_model_variant=advisory_config.external_model_variant(),
        )
    return _ASSESSMENT_SERVICE


def get_ips_service() -> IpsService:
    global _IPS_SERVICE
    if _IPS_SERVICE is None:
        _IPS_SERVICE = IpsService(
            assessments=get_assessment_service(),
            repository=InMemoryIpsRepository(),
            catalog=get_security_catalog(),
            generator=advisory_config.build_allocation_generator(),
            default_model_variant=advisory_config.external_model_variant(),
        )
    return _IPS_SERVICE


def get_portfolio_service() -> PortfolioService:
    global _PORTFOLIO_SERVICE
    if _PORTFOLIO_SERVICE is None:
        _PORTFOLIO_SERVICE = PortfolioService(
            repository=InMemoryPortfolioRepository(),
            catalog=get_security_catalog(),
            ips=get_ips_service(),
        )
    return _PORTFOLIO_SERVICE


def reset_advisory_services_for_tests() -> None:
    global _CATALOG
    global _ASSESSMENT_SERVICE
    global _IPS_SERVICE
    global _PORTFOLIO_SERVICE
    _CATALOG = None
    _ASSESSMENT_SERVICE = None
    _IPS_SERVICE = None
    _PORTFOLIO_SERVICE = None
