from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Path, status

from src.api.dependencies import get_assessment_service
from src.api.routers.advisory_http_errors import raise_advisory_http_exception
from src.core.assessment.models import (
    AssessmentFinalizeRequest,
    AssessmentListResponse,
    AssessmentOverrideRequest,
    AssessmentRecord,
    AssessmentRejectRequest,
    AssessmentSubmitRequest,
    EligibilityReport,
)
from src.core.assessment.service import AssessmentService
from src.core.errors import AdvisoryError
from src.core.models import Questionnaire

router = APIRouter(tags=["Risk Assessment"])

AssessmentId = Annotated[
    str,
    Path(description="Persisted assessment identifier.", examples=["ra_3f9c1a2b4d5e"]),
]


@router.get(
    "/questionnaires/{version}",
    response_model=Questionnaire,
    status_code=status.HTTP_200_OK,
    summary="Get Risk Questionnaire",
    description=(
        "Returns the questionnaire with questions ordered by order number. An unknown version "
        "falls back to the first questionnaire in the catalog."
    ),
)
def get_questionnaire(
    version: Annotated[str, Path(description="Questionnaire version.", examples=["v1"])],
    service: Annotated[AssessmentService, Depends(get_assessment_service)] = None,
) -> Questionnaire:
    try:
        return service.get_questionnaire(version=version)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.post(
    "/assessments",
    response_model=AssessmentRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Risk Assessment",
    description=(
        "Scores the responses, classifies suitability, aggregates confidence and stores an "
        "append-only assessment record."
    ),
)
def submit_assessment(
    payload: AssessmentSubmitRequest,
    idempotency_key: Annotated[
        Optional[str],
        Header(
            alias="Idempotency-Key",
            description="Optional idempotency key for submission deduplication.",
            examples=["assessment-submit-001"],
        ),
    ] = None,
    service: Annotated[AssessmentService, Depends(get_assessment_service)] = None,
) -> AssessmentRecord:
    try:
        return service.submit(payload=payload, idempotency_key=idempotency_key)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.get(
    "/assessments/{assessment_id}",
    response_model=AssessmentRecord,
    status_code=status.HTTP_200_OK,
    summary="Get Risk Assessment",
)
def get_assessment(
    assessment_id: AssessmentId,
    service: Annotated[AssessmentService, Depends(get_assessment_service)] = None,
) -> AssessmentRecord:
    try:
        return service.get_assessment(assessment_id=assessment_id)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.get(
    "/clients/{client_id}/assessments",
    response_model=AssessmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Client Assessments",
    description="Returns assessment history for a client, newest first, rejected ones included.",
)
def list_client_assessments(
    client_id: Annotated[str, Path(description="Client identifier.", examples=["cl_001"])],
    service: Annotated[AssessmentService, Depends(get_assessment_service)] = None,
) -> AssessmentListResponse:
    return AssessmentListResponse(
        client_id=client_id, items=service.list_assessments(client_id=client_id)
    )


@router.post(
    "/assessments/{assessment_id}/override",
    response_model=AssessmentRecord,
    status_code=status.HTTP_200_OK,
    summary="Record Advisor Override",
    description="Records an advisor category override. The computed category is never changed.",
)
def override_assessment(
    assessment_id: AssessmentId,
    payload: AssessmentOverrideRequest,
    service: Annotated[AssessmentService, Depends(get_assessment_service)] = None,
) -> AssessmentRecord:
    try:
        return service.record_override(assessment_id=assessment_id, payload=payload)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.post(
    "/assessments/{assessment_id}/finalize",
    response_model=AssessmentRecord,
    status_code=status.HTTP_200_OK,
    summary="Finalize Risk Assessment",
)
def finalize_assessment(
    assessment_id: AssessmentId,
    payload: AssessmentFinalizeRequest,
    service: Annotated[AssessmentService, Depends(get_assessment_service)] = None,
) -> AssessmentRecord:
    try:
        return service.finalize(assessment_id=assessment_id, payload=payload)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.post(
    "/assessments/{assessment_id}/reject",
    response_model=AssessmentRecord,
    status_code=status.HTTP_200_OK,
    summary="Reject Risk Assessment",
    description="Marks the assessment rejected; it stays in history and the client retakes.",
)
def reject_assessment(
    assessment_id: AssessmentId,
    payload: AssessmentRejectRequest,
    service: Annotated[AssessmentService, Depends(get_assessment_service)] = None,
) -> AssessmentRecord:
    try:
        return service.reject(assessment_id=assessment_id, payload=payload)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)


@router.get(
    "/assessments/{assessment_id}/eligibility",
    response_model=EligibilityReport,
    status_code=status.HTTP_200_OK,
    summary="Get IPS Eligibility",
    description="Reports whether an IPS may be drafted from the assessment, with blockers.",
)
def get_eligibility(
    assessment_id: AssessmentId,
    service: Annotated[AssessmentService, Depends(get_assessment_service)] = None,
) -> EligibilityReport:
    try:
        return service.eligibility(assessment_id=assessment_id)
    except AdvisoryError as exc:
        raise_advisory_http_exception(exc)
