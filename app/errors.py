"""
Exception hierarchy for the EPG service.

StructuralError and ValidationError are fatal for the invocation that raised
them; MissingDataError is expected to be logged and degraded around.
"""


class EPGError(Exception):
    """Base class for all EPG service errors"""
    pass


class StructuralError(EPGError):
    """Raised when a streamed document is malformed or ends inside an element"""
    pass


class ValidationError(EPGError):
    """Raised when a generated or transformed document fails well-formedness checks"""
    pass


class MissingDataError(EPGError):
    """Raised when optional upstream data (lineup/roster) is unavailable"""
    pass


class GuideFetchError(EPGError):
    """Raised when the guide API cannot be reached or returns unusable data"""
    pass


class GuideAuthError(GuideFetchError):
    """Raised when the DeviceAuth token cannot be obtained or is rejected"""
    pass
