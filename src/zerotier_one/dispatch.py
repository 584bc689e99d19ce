"""
Role dispatch for the zerotier-one executable.

One binary serves three roles. The role is chosen once at startup, in this
order:

1. Invocation name contains "zerotier-cli" (any case) -> control client
2. Invocation name contains "zerotier-idtool" (any case) -> identity tool
3. A leading "-q" switch -> control client, a leading "-i" switch -> identity
   tool (the switch is removed before the role sees the arguments)
4. Otherwise -> service, parsing -p<port>, -c<port>, -v, -h/-? and an optional
   home directory

Service argument errors raise ConfigurationError before any service state is
created.
"""

import argparse
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from zerotier_one import __version__
from zerotier_one.errors import ConfigurationError
from zerotier_one.paths import CLI_NAME, DEFAULT_CONTROL_PORT, DEFAULT_PORT, IDTOOL_NAME, default_home

MAX_PORT = 65535


class Role(Enum):
    """Operating role selected at startup."""

    SERVICE = "service"
    CONTROL_CLIENT = "control_client"
    IDENTITY_TOOL = "identity_tool"


class RaisingArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ConfigurationError instead of exiting."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise ConfigurationError(message)


@dataclass
class Invocation:
    """The selected role and the arguments handed to it.

    Attributes:
        role: Selected role
        program: Program name as invoked (for usage text)
        argv: Arguments for the role, without the program name or role switch
    """

    role: Role
    program: str
    argv: list[str]


@dataclass
class ServiceOptions:
    """Parsed service-role command line."""

    home: Path
    port: int = 0
    control_port: int = 0
    show_version: bool = False
    show_help: bool = False

    @property
    def effective_port(self) -> int:
        return self.port or DEFAULT_PORT

    @property
    def effective_control_port(self) -> int:
        return self.control_port or DEFAULT_CONTROL_PORT


_ROLE_SWITCHES = {
    "-q": Role.CONTROL_CLIENT,
    "-i": Role.IDENTITY_TOOL,
}


def select_role(program: str, argv: list[str]) -> Invocation:
    """Select exactly one role for this invocation.

    Args:
        program: argv[0] as invoked
        argv: Remaining arguments

    Returns:
        Invocation describing the role and its arguments
    """
    name = Path(program).name.lower()
    if CLI_NAME in name:
        return Invocation(Role.CONTROL_CLIENT, program, list(argv))
    if IDTOOL_NAME in name:
        return Invocation(Role.IDENTITY_TOOL, program, list(argv))

    for index, arg in enumerate(argv):
        if not arg.startswith("-"):
            break
        role = _ROLE_SWITCHES.get(arg)
        if role is not None:
            return Invocation(role, program, argv[:index] + argv[index + 1 :])

    return Invocation(Role.SERVICE, program, list(argv))


def parse_port(value: str) -> int:
    """argparse type for a port number in 0-65535."""
    try:
        port = int(value, 10)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from None
    if port < 0 or port > MAX_PORT:
        raise argparse.ArgumentTypeError(f"port out of range (0-{MAX_PORT}): {port}")
    return port


def build_service_parser(prog: str) -> RaisingArgumentParser:
    parser = RaisingArgumentParser(prog=prog, add_help=False, allow_abbrev=False)
    parser.add_argument("-h", "-?", dest="show_help", action="store_true")
    parser.add_argument("-v", dest="show_version", action="store_true")
    parser.add_argument("-p", dest="port", type=parse_port, default=0)
    parser.add_argument("-c", dest="control_port", type=parse_port, default=0)
    parser.add_argument("home", nargs="?", default=None)
    return parser


def parse_service_args(prog: str, argv: list[str]) -> ServiceOptions:
    """Parse the service-role command line.

    Raises:
        ConfigurationError: Unknown switch, bad port, or more than one home directory
    """
    args = build_service_parser(prog).parse_args(argv)
    home = Path(args.home) if args.home else default_home()
    return ServiceOptions(
        home=home,
        port=args.port,
        control_port=args.control_port,
        show_version=args.show_version,
        show_help=args.show_help,
    )


def service_help_text(prog: str) -> str:
    return "\n".join(
        [
            f"ZeroTier One version {__version__}",
            "(c)2012-2013 ZeroTier Networks LLC",
            "Licensed under the GNU General Public License v3",
            "",
            "Auto-updates not enabled on this build. You must update manually.",
            "",
            f"Usage: {prog} [-switches] [home directory]",
            "",
            "Available switches:",
            "  -h                - Display this help",
            "  -v                - Show version",
            "  -p<port>          - Bind to this port for network I/O",
            "  -c<port>          - Bind to this port for local control packets",
            f"  -q                - Send a query to a running service ({CLI_NAME})",
            f"  -i                - Run idtool command ({IDTOOL_NAME})",
            "",
        ]
    )
