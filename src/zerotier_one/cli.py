"""
Command-line entry point shared by zerotier-one, zerotier-cli and zerotier-idtool.

All three console scripts call main(); the role is selected from the invocation
name and leading switches (see zerotier_one.dispatch).
"""

import sys
from pathlib import Path
from typing import TextIO

from zerotier_one import __version__
from zerotier_one.control import cli as control_cli
from zerotier_one.dispatch import Role, parse_service_args, select_role, service_help_text
from zerotier_one.errors import ConfigurationError
from zerotier_one.identity import tool as identity_tool
from zerotier_one.paths import SERVICE_NAME
from zerotier_one.service.supervisor import EXIT_CONFIGURATION_ERROR, EXIT_OK, Supervisor


def service_main(prog: str, argv: list[str], out: TextIO | None = None, err: TextIO | None = None) -> int:
    """Entry point for the service role."""
    out = out or sys.stdout
    err = err or sys.stderr

    try:
        options = parse_service_args(prog, argv)
    except ConfigurationError as e:
        print(f"{prog}: {e}", file=err)
        err.write(service_help_text(prog))
        return EXIT_CONFIGURATION_ERROR

    if options.show_help:
        out.write(service_help_text(prog))
        return EXIT_OK
    if options.show_version:
        print(__version__, file=out)
        return EXIT_OK

    return Supervisor(options, program=prog).run()


def main(argv: list[str] | None = None) -> int:
    """Dispatch to the role selected by the invocation.

    Args:
        argv: Full argument vector including the program name (default sys.argv)

    Returns:
        Process exit code
    """
    if argv is None:
        argv = sys.argv
    program = argv[0] if argv else SERVICE_NAME
    invocation = select_role(program, argv[1:])
    prog = Path(program).name or SERVICE_NAME

    if invocation.role == Role.CONTROL_CLIENT:
        return control_cli.main(prog, invocation.argv)
    if invocation.role == Role.IDENTITY_TOOL:
        return identity_tool.main(prog, invocation.argv)
    return service_main(prog, invocation.argv)


if __name__ == "__main__":
    sys.exit(main())
