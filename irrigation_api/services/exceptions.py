"""
Errors raised by the zone control services
"""

class ZoneControlError(Exception):
    """Base class for zone control failures surfaced to callers"""

class NotFoundError(ZoneControlError):
    """A zone or device id does not resolve"""

class InvalidArgumentError(ZoneControlError):
    """The request cannot be honoured as given (zero duration, missing or inactive device)"""
