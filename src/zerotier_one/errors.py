"""
Error taxonomy for zerotier-one.

Every failure the supervisor, control client or identity tool can report maps
onto one of these exception types. Errors raised inside the running service are
never propagated past the supervisor: they are converted into a terminal
TerminationReason and handled by the exit mapping.
"""


class ZeroTierError(Exception):
    """Base class for all zerotier-one errors."""

    pass


class ConfigurationError(ZeroTierError):
    """Bad switch, bad port or wrong number of arguments on the command line."""

    pass


class PrivilegeError(ZeroTierError):
    """The process lacks the OS privilege required to run the service."""

    pass


class ResourceError(ZeroTierError):
    """Home directory, PID file or other local state could not be created."""

    pass


class ServiceFault(ZeroTierError):
    """The service engine failed in a way it cannot recover from."""

    pass


class UpgradeFault(ZeroTierError):
    """Replacing the running process with an upgrade binary failed."""

    pass


class ControlProtocolError(ZeroTierError):
    """Failure talking to the running service over the control channel."""

    pass


class AuthTokenError(ControlProtocolError):
    """No usable auth token could be resolved for a control request."""

    pass


class SupervisorContractError(ZeroTierError):
    """The engine returned from start-and-wait without a terminal reason."""

    pass


class IdentityError(ZeroTierError):
    """An identity could not be parsed, generated or used."""

    pass
