"""
Unit tests for role dispatch and service argument parsing.

Tests cover:
- Invocation name markers (case-insensitive) beating leading switches
- Leading -q / -i switches and their removal from the role's arguments
- Service switches: -p, -c, -v, -h/-?, optional home directory
- Rejection of malformed and out-of-range ports and extra positionals
"""

from pathlib import Path

import pytest

from zerotier_one.dispatch import Role, parse_service_args, select_role
from zerotier_one.errors import ConfigurationError
from zerotier_one.paths import DEFAULT_CONTROL_PORT, DEFAULT_PORT


@pytest.mark.unit
@pytest.mark.parametrize(
    "program",
    ["zerotier-cli", "/usr/local/bin/zerotier-cli", "ZeroTier-CLI.exe", "C:\\Program Files\\ZeroTier\\zerotier-cli.exe"],
)
def test_cli_name_selects_control_client(program):
    invocation = select_role(program, ["info"])
    assert invocation.role == Role.CONTROL_CLIENT
    assert invocation.argv == ["info"]


@pytest.mark.unit
def test_idtool_name_selects_identity_tool():
    invocation = select_role("/usr/bin/ZEROTIER-IDTOOL", ["generate"])
    assert invocation.role == Role.IDENTITY_TOOL
    assert invocation.argv == ["generate"]


@pytest.mark.unit
def test_name_marker_beats_switch():
    invocation = select_role("zerotier-cli", ["-i", "generate"])
    assert invocation.role == Role.CONTROL_CLIENT
    assert invocation.argv == ["-i", "generate"]


@pytest.mark.unit
def test_q_switch_selects_control_client_and_is_removed():
    invocation = select_role("zerotier-one", ["-c9999", "-q", "listpeers"])
    assert invocation.role == Role.CONTROL_CLIENT
    assert invocation.argv == ["-c9999", "listpeers"]


@pytest.mark.unit
def test_i_switch_selects_identity_tool_and_is_removed():
    invocation = select_role("zerotier-one", ["-i", "getpublic", "identity.secret"])
    assert invocation.role == Role.IDENTITY_TOOL
    assert invocation.argv == ["getpublic", "identity.secret"]


@pytest.mark.unit
def test_switch_after_positional_does_not_select_role():
    invocation = select_role("zerotier-one", ["/var/lib/zt", "-q"])
    assert invocation.role == Role.SERVICE


@pytest.mark.unit
def test_switch_with_trailing_characters_is_not_a_role_switch():
    invocation = select_role("zerotier-one", ["-qx"])
    assert invocation.role == Role.SERVICE
    with pytest.raises(ConfigurationError):
        parse_service_args("zerotier-one", invocation.argv)


@pytest.mark.unit
def test_service_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("ZEROTIER_HOME", str(tmp_path / "zt"))
    options = parse_service_args("zerotier-one", [])
    assert options.home == tmp_path / "zt"
    assert options.port == 0
    assert options.effective_port == DEFAULT_PORT
    assert options.effective_control_port == DEFAULT_CONTROL_PORT
    assert not options.show_help
    assert not options.show_version


@pytest.mark.unit
def test_service_ports_and_home():
    options = parse_service_args("zerotier-one", ["-p1234", "-c", "4321", "/tmp/zt-home"])
    assert options.port == 1234
    assert options.control_port == 4321
    assert options.home == Path("/tmp/zt-home")


@pytest.mark.unit
@pytest.mark.parametrize("argv", [["-h"], ["-?"]])
def test_service_help_switches(argv):
    assert parse_service_args("zerotier-one", argv).show_help


@pytest.mark.unit
def test_service_version_switch():
    assert parse_service_args("zerotier-one", ["-v"]).show_version


@pytest.mark.unit
@pytest.mark.parametrize(
    "argv",
    [
        ["-pabc"],
        ["-p65536"],
        ["-p-1"],
        ["-c99999"],
        ["-p"],
        ["-x"],
        ["home-one", "home-two"],
    ],
)
def test_service_rejects_bad_arguments(argv):
    with pytest.raises(ConfigurationError):
        parse_service_args("zerotier-one", argv)


@pytest.mark.unit
def test_port_boundaries_accepted():
    assert parse_service_args("zerotier-one", ["-p0"]).port == 0
    assert parse_service_args("zerotier-one", ["-p65535"]).port == 65535
