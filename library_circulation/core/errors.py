class CirculationError(Exception):
    """Base exception for circulation outcomes other than success."""

    kind = "circulation_error"


class InvalidRequest(CirculationError):
    """Malformed identifiers; rejected before touching the store."""

    kind = "validation"


class MemberNotFound(InvalidRequest):
    """The member id does not refer to an existing member."""


class QuotaExceeded(CirculationError):
    """Member already holds the maximum number of active loans."""

    kind = "quota_exceeded"


class NoCopyAvailable(CirculationError):
    """No available copy of the requested book (or the book does not exist)."""

    kind = "no_copy_available"


class Conflict(CirculationError):
    """Lost the race for a copy and no attempts are left."""

    kind = "conflict"


class StoreUnavailable(CirculationError):
    """The backing store failed; nothing was committed and the call may be retried."""

    kind = "store_unavailable"
