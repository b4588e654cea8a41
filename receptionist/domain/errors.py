"""
Error taxonomy for the receptionist engine.

ReceptionError and its subclasses carry a message that is a complete
sentence, safe to display or read aloud to the guest.  The other errors
are infrastructure failures and never reach the guest verbatim.
"""


class ReceptionError(Exception):
    """A rejection the guest should hear about, phrased for the guest."""

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(ReceptionError):
    """Missing or malformed parameters, bad dates, capacity exceeded."""


class ConflictError(ReceptionError):
    """The requested stay overlaps an existing booking."""


class PermissionDenied(ReceptionError):
    """The caller does not own the record it tries to act on."""


class NotFound(ReceptionError):
    pass


class InvalidTransition(ReceptionError):
    """The booking's current status does not allow the requested change."""


class AlreadyCancelled(ReceptionError):
    pass


class StoreError(Exception):
    """Read or write against the record store failed."""


class UpstreamError(Exception):
    """The language model call failed or returned nothing usable."""


class SessionTimeout(Exception):
    """No response arrived on the session channel in time."""
