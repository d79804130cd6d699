from src.infrastructure.assessments.in_memory import InMemoryAssessmentRepository
from src.infrastructure.assessments.postgres import PostgresAssessmentRepository

__all__ = ["InMemoryAssessmentRepository", "PostgresAssessmentRepository"]
