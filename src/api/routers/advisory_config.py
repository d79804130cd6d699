import os
from typing import Optional, cast

from src.core.assessment.repository import AssessmentRepository
from src.core.collaborators import AllocationGenerator, BehavioralAnalyzer
from src.infrastructure.assessments import (
    InMemoryAssessmentRepository,
    PostgresAssessmentRepository,
)
from src.infrastructure.catalogs.env_json import (
    EnvJsonQuestionnaireCatalog,
    EnvJsonSecurityCatalog,
)
from src.infrastructure.collaborators.http import HttpAllocationGenerator, HttpBehavioralAnalyzer


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= 1 else default


def env_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def portfolio_api_enabled() -> bool:
    return env_flag("PORTFOLIO_API_ENABLED", True)


def assessment_store_backend_name() -> str:
    backend = os.getenv("ASSESSMENT_STORE_BACKEND", "IN_MEMORY").strip().upper()
    return "POSTGRES" if backend == "POSTGRES" else "IN_MEMORY"


def assessment_postgres_dsn() -> str:
    return os.getenv("ASSESSMENT_POSTGRES_DSN", "").strip()


def external_model_variant() -> str:
    return os.getenv("EXTERNAL_MODEL_VARIANT", "").strip() or "default"


def behavioral_analysis_url() -> str:
    return os.getenv("BEHAVIORAL_ANALYSIS_URL", "").strip()


def allocation_generator_url() -> str:
    return os.getenv("ALLOCATION_GENERATOR_URL", "").strip()


def _postgres_connection_exception_types() -> tuple[type[BaseException], ...]:
    types: list[type[BaseException]] = [
        ConnectionError,
        OSError,
        TimeoutError,
        TypeError,
        ValueError,
    ]
    try:
        import psycopg
    except ImportError:
        pass
    else:
        types.append(psycopg.Error)
    return tuple(types)


def build_assessment_repository() -> AssessmentRepository:
    if assessment_store_backend_name() == "POSTGRES":
        dsn = assessment_postgres_dsn()
        if not dsn:
            raise RuntimeError("ASSESSMENT_POSTGRES_DSN_REQUIRED")
        try:
            return cast(AssessmentRepository, PostgresAssessmentRepository(dsn=dsn))
        except RuntimeError:
            raise
        except _postgres_connection_exception_types() as exc:
            raise RuntimeError("ASSESSMENT_POSTGRES_CONNECTION_FAILED") from exc
    return cast(AssessmentRepository, InMemoryAssessmentRepository())


def _collaborator_settings() -> dict:
    return {
        "timeout_seconds": env_positive_float("EXTERNAL_TIMEOUT_SECONDS", 20.0),
        "max_attempts": env_int("EXTERNAL_MAX_ATTEMPTS", 3),
        "backoff_seconds": env_positive_float("EXTERNAL_BACKOFF_SECONDS", 0.5),
    }


def build_behavioral_analyzer() -> Optional[BehavioralAnalyzer]:
    base_url = behavioral_analysis_url()
    if not base_url:
        return None
    return HttpBehavioralAnalyzer(base_url=base_url, **_collaborator_settings())


def build_allocation_generator() -> Optional[AllocationGenerator]:
    base_url = allocation_generator_url()
    if not base_url:
        return None
    return HttpAllocationGenerator(base_url=base_url, **_collaborator_settings())


def build_security_catalog() -> EnvJsonSecurityCatalog:
    return EnvJsonSecurityCatalog(catalog_json=os.getenv("SECURITY_CATALOG_JSON"))


def build_questionnaire_catalog() -> EnvJsonQuestionnaireCatalog:
    return EnvJsonQuestionnaireCatalog(catalog_json=os.getenv("QUESTIONNAIRE_CATALOG_JSON"))
