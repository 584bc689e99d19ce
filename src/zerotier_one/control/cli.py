"""
zerotier-cli - send one command to the running service and print the response.

Runs instead of the service when invoked as `zerotier-cli` or with `-q`.

Exit codes:
    0   At least one response line was received
    -1  No arguments/command, bad switch, or no response from the service
    -2  Auth token could not be resolved
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import TextIO

from zerotier_one import __version__
from zerotier_one.control.auth import TokenSources, resolve_auth_token
from zerotier_one.control.client import DEFAULT_RESPONSE_TIMEOUT, ControlClient
from zerotier_one.dispatch import RaisingArgumentParser, parse_port
from zerotier_one.errors import AuthTokenError, ConfigurationError

EXIT_OK = 0
EXIT_NO_RESPONSE = -1
EXIT_TOKEN_ERROR = -2

NO_RESULTS_MESSAGE = "ERROR: no results received. Is ZeroTier One running?"


def help_text(prog: str) -> str:
    return "\n".join(
        [
            f"ZeroTier One version {__version__} - (c)2012-2013 ZeroTier Networks LLC",
            "Licensed under the GNU General Public License v3",
            "",
            f"Usage: {prog} [-switches] <command>",
            "",
            "Switches:",
            "  -c<port>         - Communicate with daemon over this local port",
            "  -t<token>        - Specify token on command line",
            "  -T<file>         - Read token from file",
            "",
            "Use the 'help' command to get help from ZeroTier One itself.",
            "",
        ]
    )


def build_parser(prog: str) -> RaisingArgumentParser:
    parser = RaisingArgumentParser(prog=prog, add_help=False, allow_abbrev=False)
    parser.add_argument("-h", "-?", dest="show_help", action="store_true")
    parser.add_argument("-q", dest="query", action="store_true")  # accepted and ignored
    parser.add_argument("-c", dest="control_port", type=parse_port, default=0)
    parser.add_argument("-t", dest="token", default=None)
    parser.add_argument("-T", dest="token_file", type=Path, default=None)
    parser.add_argument("command", nargs=argparse.REMAINDER)
    return parser


def main(
    prog: str,
    argv: list[str],
    out: TextIO | None = None,
    err: TextIO | None = None,
    timeout: float = DEFAULT_RESPONSE_TIMEOUT,
    token_sources: TokenSources | None = None,
) -> int:
    """Entry point for the control client role.

    Args:
        prog: Program name for usage text
        argv: Arguments after the program name (role switch already removed)
        out: Stream for help, response lines and failure messages (default stdout)
        err: Stream for rejected command diagnostics (default stderr)
        timeout: Seconds to wait for the response
        token_sources: Override the default token search locations

    Returns:
        Process exit code
    """
    out = out or sys.stdout
    err = err or sys.stderr

    if not argv:
        out.write(help_text(prog))
        return EXIT_NO_RESPONSE

    try:
        args = build_parser(prog).parse_args(argv)
    except ConfigurationError as e:
        logging.debug(f"Bad control client arguments: {e}")
        out.write(help_text(prog))
        return EXIT_NO_RESPONSE

    if args.show_help:
        out.write(help_text(prog))
        return EXIT_OK

    command = " ".join(word for word in args.command if word)
    if not command:
        out.write(help_text(prog))
        return EXIT_NO_RESPONSE

    sources = token_sources or TokenSources()
    sources.literal = args.token
    sources.token_file = args.token_file
    try:
        auth_token = resolve_auth_token(sources)
    except AuthTokenError as e:
        print(f"FATAL ERROR: {e}", file=out)
        return EXIT_TOKEN_ERROR

    def print_line(text: str) -> None:
        out.write(text + "\n")
        out.flush()

    client = ControlClient(auth_token=auth_token, port=args.control_port)
    try:
        pending = client.send(command, on_line=print_line)
    except ValueError as e:
        print(f"{prog}: {e}", file=err)
        return EXIT_NO_RESPONSE

    outcome = pending.wait(timeout=timeout)
    if outcome.no_response:
        print(NO_RESULTS_MESSAGE, file=out)
        return EXIT_NO_RESPONSE
    return EXIT_OK
