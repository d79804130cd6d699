import json
from contextlib import closing
from datetime import datetime
from decimal import Decimal
from importlib.util import find_spec
from typing import Optional

from src.core.assessment.models import (
    AssessmentIdempotencyRecord,
    AssessmentRecord,
    AssessmentResponseRecord,
)
from src.core.models import (
    ClientProfile,
    ConfidenceResult,
    RiskCategory,
    ScoreResult,
    SuitabilityResult,
)
from src.infrastructure.postgres_migrations import apply_postgres_migrations

PERCENT_SCALE = "PERCENT"
# Legacy rows store confidence sub-scores as 0-1 fractions.
FRACTION_SCALE = "FRACTION"

_RECORD_COLUMNS = """
    assessment_id,
    client_id,
    questionnaire_id,
    questionnaire_version,
    created_at,
    request_hash,
    model_variant,
    status,
    risk_category,
    willingness_score,
    ability_score,
    knockout_triggered,
    raw_score,
    max_score,
    normalized_score,
    boundary_distance,
    external_reliability,
    consistency_score,
    stability_score,
    profile_completeness,
    final_confidence,
    analysis_source,
    fallback_reason,
    behavioral_summary,
    responses_json,
    client_profile_json,
    finalized_by_advisor,
    finalized_at,
    finalized_by,
    override_category,
    override_reason,
    rejected_at,
    rejection_reason,
    confidence_scale
"""


class PostgresAssessmentRepository:
    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("ASSESSMENT_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("ASSESSMENT_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn
        self._init_db()

    def get_idempotency(self, *, idempotency_key: str) -> Optional[AssessmentIdempotencyRecord]:
        query = """
            SELECT
                idempotency_key,
                request_hash,
                assessment_id,
                created_at
            FROM assessment_idempotency
            WHERE idempotency_key = %s
        """
        with closing(self._connect()) as connection:
            row = connection.execute(query, (idempotency_key,)).fetchone()
        if row is None:
            return None
        return AssessmentIdempotencyRecord(
            idempotency_key=row["idempotency_key"],
            request_hash=row["request_hash"],
            assessment_id=row["assessment_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def save_idempotency(self, record: AssessmentIdempotencyRecord) -> None:
        query = """
            INSERT INTO assessment_idempotency (
                idempotency_key,
                request_hash,
                assessment_id,
                created_at
            ) VALUES (%s, %s, %s, %s)
            ON CONFLICT (idempotency_key) DO UPDATE SET
                request_hash=excluded.request_hash,
                assessment_id=excluded.assessment_id,
                created_at=excluded.created_at
        """
        with closing(self._connect()) as connection:
            connection.execute(
                query,
                (
                    record.idempotency_key,
                    record.request_hash,
                    record.assessment_id,
                    record.created_at.isoformat(),
                ),
            )
            connection.commit()

    def create_assessment(self, assessment: AssessmentRecord) -> None:
        self._upsert_assessment(assessment)

    def update_assessment(self, assessment: AssessmentRecord) -> None:
        self._upsert_assessment(assessment)

    def get_assessment(self, *, assessment_id: str) -> Optional[AssessmentRecord]:
        query = f"""
            SELECT {_RECORD_COLUMNS}
            FROM assessment_records
            WHERE assessment_id = %s
        """
        with closing(self._connect()) as connection:
            row = connection.execute(query, (assessment_id,)).fetchone()
        return _to_assessment(row)

    def list_assessments(self, *, client_id: str) -> list[AssessmentRecord]:
        query = f"""
            SELECT {_RECORD_COLUMNS}
            FROM assessment_records
            WHERE client_id = %s
            ORDER BY created_at DESC, assessment_id DESC
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, (client_id,)).fetchall()
        return [_to_assessment(row) for row in rows]

    def _connect(self):
        psycopg, dict_row = _import_psycopg()
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def _init_db(self) -> None:
        with closing(self._connect()) as connection:
            apply_postgres_migrations(connection=connection, namespace="assessments")

    def _upsert_assessment(self, assessment: AssessmentRecord) -> None:
        query = f"""
            INSERT INTO assessment_records ({_RECORD_COLUMNS})
            VALUES (
                %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s
            )
            ON CONFLICT (assessment_id) DO UPDATE SET
                status=excluded.status,
                finalized_by_advisor=excluded.finalized_by_advisor,
                finalized_at=excluded.finalized_at,
                finalized_by=excluded.finalized_by,
                override_category=excluded.override_category,
                override_reason=excluded.override_reason,
                rejected_at=excluded.rejected_at,
                rejection_reason=excluded.rejection_reason
        """
        score = assessment.score
        suitability = assessment.suitability
        confidence = assessment.confidence
        with closing(self._connect()) as connection:
            connection.execute(
                query,
                (
                    assessment.assessment_id,
                    assessment.client_id,
                    assessment.questionnaire_id,
                    assessment.questionnaire_version,
                    assessment.created_at.isoformat(),
                    assessment.request_hash,
                    assessment.model_variant,
                    assessment.status,
                    suitability.risk_category.value,
                    suitability.willingness_score,
                    suitability.ability_score,
                    suitability.knockout_triggered,
                    score.raw_score,
                    score.max_score,
                    score.normalized_score,
                    confidence.boundary_distance,
                    confidence.external_reliability,
                    confidence.consistency,
                    confidence.stability,
                    confidence.profile_completeness,
                    confidence.final_confidence,
                    confidence.analysis_source,
                    confidence.fallback_reason,
                    assessment.behavioral_summary,
                    json.dumps(
                        [item.model_dump(mode="json") for item in assessment.responses],
                        sort_keys=True,
                    ),
                    json.dumps(assessment.client_profile.model_dump(mode="json"), sort_keys=True),
                    assessment.finalized_by_advisor,
                    _optional_iso(assessment.finalized_at),
                    assessment.finalized_by,
                    _optional_category(assessment.override_category),
                    assessment.override_reason,
                    _optional_iso(assessment.rejected_at),
                    assessment.rejection_reason,
                    PERCENT_SCALE,
                ),
            )
            connection.commit()


def _import_psycopg():
    import psycopg
    from psycopg.rows import dict_row

    return psycopg, dict_row


def _optional_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _optional_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _optional_category(value: Optional[RiskCategory]) -> Optional[str]:
    if value is None:
        return None
    return value.value


def _percent_scale(value, scale: str) -> Decimal:
    number = Decimal(str(value))
    if scale == FRACTION_SCALE:
        return number * Decimal("100")
    return number


def _to_assessment(row) -> Optional[AssessmentRecord]:
    if row is None:
        return None
    override = row["override_category"]
    scale = row["confidence_scale"]
    return AssessmentRecord(
        assessment_id=row["assessment_id"],
        client_id=row["client_id"],
        questionnaire_id=row["questionnaire_id"],
        questionnaire_version=row["questionnaire_version"],
        created_at=datetime.fromisoformat(row["created_at"]),
        request_hash=row["request_hash"],
        model_variant=row["model_variant"],
        responses=[
            AssessmentResponseRecord.model_validate(item)
            for item in json.loads(row["responses_json"])
        ],
        score=ScoreResult(
            raw_score=Decimal(str(row["raw_score"])),
            max_score=Decimal(str(row["max_score"])),
            normalized_score=Decimal(str(row["normalized_score"])),
        ),
        suitability=SuitabilityResult(
            risk_category=RiskCategory(row["risk_category"]),
            willingness_score=Decimal(str(row["willingness_score"])),
            ability_score=Decimal(str(row["ability_score"])),
            knockout_triggered=bool(row["knockout_triggered"]),
        ),
        confidence=ConfidenceResult(
            boundary_distance=Decimal(str(row["boundary_distance"])),
            external_reliability=_percent_scale(row["external_reliability"], scale),
            consistency=_percent_scale(row["consistency_score"], scale),
            stability=_percent_scale(row["stability_score"], scale),
            profile_completeness=Decimal(str(row["profile_completeness"])),
            final_confidence=_percent_scale(row["final_confidence"], scale),
            analysis_source=row["analysis_source"],
            fallback_reason=row["fallback_reason"],
        ),
        behavioral_summary=row["behavioral_summary"],
        client_profile=ClientProfile.model_validate(json.loads(row["client_profile_json"])),
        status=row["status"],
        finalized_by_advisor=bool(row["finalized_by_advisor"]),
        finalized_at=_optional_datetime(row["finalized_at"]),
        finalized_by=row["finalized_by"],
        override_category=RiskCategory(override) if override else None,
        override_reason=row["override_reason"],
        rejected_at=_optional_datetime(row["rejected_at"]),
        rejection_reason=row["rejection_reason"],
    )
