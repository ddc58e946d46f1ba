import pytest

from zonebridge.__main__ import build_parser, config_from_args
from zonebridge.cbus_client import CBusClient
from zonebridge.config import build_client, build_connection, parse_names_csv, validate_config
from zonebridge.connection import SerialConnection, TcpConnection
from zonebridge.exceptions import BridgeConfigError
from zonebridge.mrc88_client import MRC88Client


def test_mrc88_defaults():
    config = validate_config({"protocol": "MRC88", "host": "192.168.0.50"})

    assert config["protocol"] == "mrc88"
    assert config["port"] == 10001
    assert config["zone_count"] == 8
    assert config["poll_interval"] == 20
    assert config["refresh_threshold"] == 90
    assert config["readiness_threshold"] == 180
    assert config["monitor_timeout"] == 60
    assert config["send_timeout"] == 0.3
    assert config["zone_names"] == {}


def test_mrc88_expanded():
    config = validate_config({"protocol": "mrc88", "host": "matrix", "expanded": "yes"})
    assert config["zone_count"] == 16

    with pytest.raises(BridgeConfigError):
        validate_config({"protocol": "mrc88", "host": "matrix", "zone_count": 17})


def test_cbus_defaults():
    config = validate_config({"protocol": "cbus", "serial_port": "/dev/ttyUSB0"})

    assert config["baudrate"] == 9600
    assert config["zone_count"] == 256
    assert config["poll_interval"] == 180
    assert config["refresh_threshold"] == 120
    assert config["readiness_threshold"] == 600
    assert config["monitor_timeout"] == 60


def test_transport_is_required_and_exclusive():
    with pytest.raises(BridgeConfigError):
        validate_config({"protocol": "cbus"})
    with pytest.raises(BridgeConfigError):
        validate_config({"protocol": "cbus", "host": "pci", "serial_port": "/dev/ttyS0"})


def test_unknown_protocol():
    with pytest.raises(BridgeConfigError):
        validate_config({"protocol": "knx", "host": "gateway"})


def test_refresh_must_be_below_readiness():
    with pytest.raises(BridgeConfigError):
        validate_config(
            {
                "protocol": "mrc88",
                "host": "matrix",
                "refresh_threshold": 200,
                "readiness_threshold": 180,
            }
        )


def test_names_are_checked_against_range():
    config = validate_config(
        {"protocol": "mrc88", "host": "matrix", "zone_names": {"2": " Kitchen "}}
    )
    assert config["zone_names"] == {2: "Kitchen"}

    with pytest.raises(BridgeConfigError):
        validate_config({"protocol": "mrc88", "host": "matrix", "zone_names": {9: "Attic"}})
    with pytest.raises(BridgeConfigError):
        validate_config({"protocol": "mrc88", "host": "matrix", "source_names": {0: "Tuner"}})


def test_parse_names_csv():
    text = "Group,Name\n1,Kitchen\n2, Lounge \nnotes,ignored\n3,\n"
    assert parse_names_csv(text) == {1: "Kitchen", 2: "Lounge"}


def test_parse_names_csv_without_header():
    assert parse_names_csv("5,Deck\n6,Pool") == {5: "Deck", 6: "Pool"}


def test_parse_names_csv_needs_rows():
    with pytest.raises(BridgeConfigError):
        parse_names_csv("Zone,Name\n")


def test_build_connection_framing():
    mrc88 = build_connection(validate_config({"protocol": "mrc88", "host": "matrix"}))
    assert isinstance(mrc88, TcpConnection)
    assert mrc88.terminator == ""
    assert mrc88.keepalive == "!ZA1+"
    assert mrc88.monitor_timeout == 60

    cbus = build_connection(
        validate_config({"protocol": "cbus", "serial_port": "/dev/ttyUSB0", "baudrate": 9600})
    )
    assert isinstance(cbus, SerialConnection)
    assert cbus.terminator == "\r"
    assert cbus.keepalive is None
    assert cbus.monitor_timeout == 60


def test_build_client():
    client = build_client({"protocol": "cbus", "host": "pci", "zone_count": 64})
    assert isinstance(client, CBusClient)
    assert client.store.configured_count == 64
    assert client.poller.interval == 180

    client = build_client({"protocol": "mrc88", "host": "matrix", "source_names": {1: "Tuner"}})
    assert isinstance(client, MRC88Client)
    assert client.source_names[1] == "Tuner"


def test_command_line(tmp_path):
    csv_file = tmp_path / "groups.csv"
    csv_file.write_text("group,name\n3,Porch\n")
    args = build_parser().parse_args(
        ["--protocol", "cbus", "--host", "pci", "--zones", "16", "--zones-csv", str(csv_file)]
    )
    config = validate_config(config_from_args(args))

    assert config["host"] == "pci"
    assert config["zone_count"] == 16
    assert config["zone_names"] == {3: "Porch"}


def test_command_line_requires_transport():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--protocol", "mrc88"])
