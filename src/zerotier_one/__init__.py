"""
zerotier-one - Service Supervisor, Control Client and Identity Tool

This package provides the process-lifecycle supervisor for the ZeroTier One
background service, the loopback control channel used by `zerotier-cli`, and
the `zerotier-idtool` identity utility. All three roles are served by a single
entry point that dispatches on the invocation name.
"""

VERSION_MAJOR = 0
VERSION_MINOR = 6
VERSION_REVISION = 1

__version__ = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_REVISION}"

__all__ = [
    "VERSION_MAJOR",
    "VERSION_MINOR",
    "VERSION_REVISION",
    "__version__",
]
