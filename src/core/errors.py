class AdvisoryError(Exception):
    pass


class AdvisoryValidationError(AdvisoryError):
    pass


class IncompleteResponseError(AdvisoryValidationError):
    pass


class UnknownResponseError(AdvisoryValidationError):
    pass


class AllocationValidationError(AdvisoryValidationError):
    pass


class PortfolioValidationError(AdvisoryValidationError):
    pass


class OverrideValidationError(AdvisoryValidationError):
    pass


class EligibilityError(AdvisoryValidationError):
    pass


class ExternalServiceError(AdvisoryError):
    pass


class ExternalServiceUnavailableError(ExternalServiceError):
    pass


class ExternalPayloadError(ExternalServiceError):
    pass


class DataIntegrityError(AdvisoryError):
    pass


class NoSecurityForAssetClassError(DataIntegrityError):
    pass


class UnresolvedSecurityError(DataIntegrityError):
    pass


class RecordNotFoundError(AdvisoryError):
    pass


class StateConflictError(AdvisoryError):
    pass


class IdempotencyConflictError(AdvisoryError):
    pass
