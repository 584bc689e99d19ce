"""
zerotier-idtool - generate, validate, sign and verify identities.

Runs instead of the service when invoked as `zerotier-idtool` or with `-i`.

Commands:
    generate [<identity.secret>] [<identity.public>]
    validate <identity.secret/public>
    getpublic <identity.secret>
    sign <identity.secret> <file>
    verify <identity.secret/public> <file> <signature>

An identity argument is taken literally when it is longer than 32 characters and
has ':' at position 10; otherwise it names a file to read.
"""

import sys
from pathlib import Path
from typing import TextIO

from zerotier_one.dispatch import RaisingArgumentParser
from zerotier_one.errors import ConfigurationError, IdentityError
from zerotier_one.identity.identity import ADDRESS_HEX_LENGTH, Identity

EXIT_OK = 0
EXIT_FAILURE = -1


def build_parser(prog: str) -> RaisingArgumentParser:
    parser = RaisingArgumentParser(prog=prog, description="Generate and use ZeroTier One identities.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate a new identity")
    generate.add_argument("secret_out", nargs="?", type=Path, help="Write the full identity (with private key) here")
    generate.add_argument("public_out", nargs="?", type=Path, help="Write the public identity here")

    validate = subparsers.add_parser("validate", help="Validate an identity")
    validate.add_argument("identity")

    getpublic = subparsers.add_parser("getpublic", help="Print the public portion of an identity")
    getpublic.add_argument("identity")

    sign = subparsers.add_parser("sign", help="Sign a file")
    sign.add_argument("identity")
    sign.add_argument("file", type=Path)

    verify = subparsers.add_parser("verify", help="Verify a file signature")
    verify.add_argument("identity")
    verify.add_argument("file", type=Path)
    verify.add_argument("signature")

    return parser


def identity_from_arg(arg: str) -> Identity | None:
    """Load an identity from a literal argument or a file path."""
    try:
        if len(arg) > 32 and arg[ADDRESS_HEX_LENGTH] == ":":
            return Identity.from_string(arg)
        return Identity.from_string(Path(arg).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, IdentityError):
        return None


def _write_identity(path: Path, text: str, out: TextIO, err: TextIO) -> bool:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError:
        print(f"Error writing to {path}", file=err)
        return False
    print(f"{path} written", file=out)
    return True


def run_generate(secret_out: Path | None, public_out: Path | None, out: TextIO, err: TextIO) -> int:
    identity = Identity.generate()
    secret = identity.to_string(include_private=True)
    if secret_out is None:
        print(secret, file=out)
        return EXIT_OK
    if not _write_identity(secret_out, secret, out, err):
        return EXIT_FAILURE
    if public_out is not None and not _write_identity(public_out, identity.to_string(), out, err):
        return EXIT_FAILURE
    return EXIT_OK


def _load_or_report(arg: str, err: TextIO) -> Identity | None:
    identity = identity_from_arg(arg)
    if identity is None:
        print(f"Identity argument invalid or file unreadable: {arg}", file=err)
    return identity


def _read_file(path: Path, err: TextIO) -> bytes | None:
    try:
        return path.read_bytes()
    except OSError:
        print(f"{path} is not readable", file=err)
        return None


def run_command(args, out: TextIO, err: TextIO) -> int:
    """Execute a parsed idtool command."""
    if args.command == "generate":
        return run_generate(args.secret_out, args.public_out, out, err)

    identity = _load_or_report(args.identity, err)
    if identity is None:
        return EXIT_FAILURE

    if args.command == "validate":
        if not identity.locally_validate():
            print(f"{args.identity} FAILED validation.", file=err)
            return EXIT_FAILURE
        print(f"{args.identity} is a valid identity", file=out)
        return EXIT_OK

    if args.command == "getpublic":
        print(identity.to_string(include_private=False), file=out)
        return EXIT_OK

    data = _read_file(args.file, err)
    if data is None:
        return EXIT_FAILURE

    if args.command == "sign":
        if not identity.has_private():
            print(f"{args.identity} does not contain a private key (must use private to sign)", file=err)
            return EXIT_FAILURE
        print(identity.sign(data).hex(), file=out)
        return EXIT_OK

    # verify
    try:
        signature = bytes.fromhex(args.signature)
    except ValueError:
        signature = b""
    if identity.verify(data, signature):
        print(f"{args.file} signature valid", file=out)
        return EXIT_OK
    print(f"{args.file} signature check FAILED", file=err)
    return EXIT_FAILURE


def main(prog: str, argv: list[str], out: TextIO | None = None, err: TextIO | None = None) -> int:
    """Entry point for the identity tool role.

    Args:
        prog: Program name for usage text
        argv: Arguments after the program name (role switch already removed)

    Returns:
        Process exit code
    """
    out = out or sys.stdout
    err = err or sys.stderr
    parser = build_parser(prog)

    if not argv:
        parser.print_help(err)
        return EXIT_FAILURE

    try:
        args = parser.parse_args(argv)
    except ConfigurationError as e:
        print(f"{prog}: {e}", file=err)
        parser.print_help(err)
        return EXIT_FAILURE

    return run_command(args, out, err)
