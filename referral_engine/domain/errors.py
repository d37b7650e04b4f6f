class ReferralEngineError(Exception):
    pass


class ReferralValidationError(ReferralEngineError):
    pass


class InvalidStatusError(ReferralEngineError):
    pass


class ReferralNotFoundError(ReferralEngineError):
    pass


class RepNotFoundError(ReferralEngineError):
    pass


class TaxInfoValidationError(ReferralEngineError):
    pass


class TaxInfoNotAllowedError(ReferralEngineError):
    pass
