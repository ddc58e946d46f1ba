import pytest

from zonebridge.commands import (
    OP_BASS,
    OP_MUTE_TOGGLE,
    OP_OFF,
    OP_ON,
    OP_POWER,
    OP_RAMP,
    OP_SOURCE,
    OP_VOLUME,
    RAMP_RATES,
    CBusCommands,
    Command,
    MRC88Commands,
    build_frame,
)
from zonebridge.exceptions import OutOfRangeTargetError
from zonebridge.models import LEVEL_SCALE, VOLUME_SCALE


# ============================================================================
# C-BUS
# ============================================================================


def test_group_off_frame():
    """Group 37 OFF."""
    assert CBusCommands().turn_off(37) == "\\05380001259D"


def test_group_on_frame():
    """Group 37 ON."""
    assert CBusCommands().turn_on(37) == "\\053800792525"


def test_encode_dispatches_on_opcode():
    commands = CBusCommands()
    assert commands.encode(Command(OP_ON, 37)) == "\\053800792525"
    assert commands.encode(Command(OP_OFF, 37)) == "\\05380001259D"
    assert commands.encode(Command(OP_RAMP, 37, 40)) == "\\05380002256636"
    assert commands.encode(Command(OP_RAMP, 37, 100, rate="4 Sec")) == "\\0538000A25FF95"


def test_ramp_levels_saturate():
    commands = CBusCommands()
    assert commands.ramp(37, 250, "4 Sec") == commands.ramp(37, 100, "4 Sec")
    assert commands.ramp(37, -20) == build_frame([0x05, 0x38, 0x00, 0x02, 0x25, 0x00])


def test_stop_ramp_has_no_level_byte():
    frame = CBusCommands().ramp(37, 80, "Stop Ramp")
    assert frame == "\\0538000925" + "95"
    assert frame == CBusCommands().terminate_ramp(37)


def test_unknown_ramp_rate():
    with pytest.raises(ValueError):
        CBusCommands().ramp(1, 50, "6 Sec")


def test_ramp_rate_table():
    assert RAMP_RATES["0 Sec"] == 0x02
    assert RAMP_RATES["17 Min"] == 0x7A
    assert RAMP_RATES["Stop Ramp"] == 0x09
    assert len(RAMP_RATES) == 17


def test_status_requests_cover_all_groups():
    requests = CBusCommands().status_requests()
    assert len(requests) == 8
    assert requests[0] == "\\05FF00730738004A"
    assert requests[1] == "\\05FF00730738202A"


def test_status_requests_for_partial_configuration():
    assert len(CBusCommands(group_count=33).status_requests()) == 2
    assert len(CBusCommands(group_count=32).status_requests()) == 1


def test_refresh_frames_use_the_block_request():
    commands = CBusCommands()
    assert commands.refresh_frames(37) == [commands.status_request(32)]
    assert commands.refresh_frames(0) == [commands.status_request(0)]


def test_init_frames():
    assert CBusCommands.init_frames() == ["~~~", "@A3210038", "@A3420006", "@A3300079"]


def test_group_out_of_range():
    commands = CBusCommands(group_count=16)
    with pytest.raises(OutOfRangeTargetError):
        commands.turn_on(16)
    with pytest.raises(OutOfRangeTargetError):
        commands.ramp(-1, 50)
    with pytest.raises(OutOfRangeTargetError):
        CBusCommands().turn_on(256)


def test_group_must_be_an_integer():
    commands = CBusCommands()
    for group in ("5", 2.5, None, True):
        with pytest.raises(OutOfRangeTargetError):
            commands.turn_on(group)


def test_ramp_checks_group_before_rate():
    with pytest.raises(OutOfRangeTargetError):
        CBusCommands(group_count=16).ramp(40, 50, "6 Sec")
    with pytest.raises(OutOfRangeTargetError):
        CBusCommands().ramp(None, 50, "Stop Ramp")


# ============================================================================
# MRC88
# ============================================================================


def test_mrc88_setters():
    commands = MRC88Commands()
    assert commands.set_power(1, True) == "!1PR1+"
    assert commands.set_power(1, False) == "!1PR0+"
    assert commands.set_mute(2, True) == "!2MU1+"
    assert commands.set_volume(3, 50) == "!3VO19+"
    assert commands.set_bass(3, 50) == "!3BS7+"
    assert commands.set_treble(3, 100) == "!3TR14+"
    assert commands.set_balance(3, 50) == "!3BA32+"
    assert commands.set_source(4, 6) == "!4SS6+"


def test_mrc88_steps_and_toggles_have_no_value():
    commands = MRC88Commands()
    assert commands.toggle_power(5) == "!5PT+"
    assert commands.toggle_mute(5) == "!5MT+"
    assert commands.volume_up(5) == "!5VI+"
    assert commands.volume_down(5) == "!5VD+"
    assert commands.bass_up(5) == "!5BI+"
    assert commands.bass_down(5) == "!5BD+"
    assert commands.treble_up(5) == "!5TI+"
    assert commands.treble_down(5) == "!5TD+"
    assert commands.balance_left(5) == "!5BL+"
    assert commands.balance_right(5) == "!5BR+"


def test_mrc88_values_are_clamped():
    commands = MRC88Commands()
    assert commands.set_volume(1, 150) == "!1VO38+"
    assert commands.set_volume(1, -5) == "!1VO0+"
    assert commands.set_balance(1, 100) == "!1BA63+"
    assert commands.set_source(1, 0) == "!1SS1+"
    assert commands.set_source(1, 12) == "!1SS8+"


def test_mrc88_encode():
    commands = MRC88Commands()
    assert commands.encode(Command(OP_POWER, 2, True)) == "!2PR1+"
    assert commands.encode(Command(OP_VOLUME, 2, 100)) == "!2VO38+"
    assert commands.encode(Command(OP_BASS, 2, 0)) == "!2BS0+"
    assert commands.encode(Command(OP_SOURCE, 2, 3)) == "!2SS3+"
    assert commands.encode(Command(OP_MUTE_TOGGLE, 2)) == "!2MT+"
    with pytest.raises(ValueError):
        commands.encode(Command("loudness", 2, True))


def test_mrc88_queries():
    commands = MRC88Commands()
    assert commands.zone_refresh(7) == "!7ZD+"
    assert commands.status_query(7) == "?7ZS+"
    assert commands.refresh_query(7) == "?7ZD+"
    assert commands.refresh_frames(7) == ["?7ZD+"]
    assert commands.activity_on() == "!ZA1+"
    assert commands.init_frames() == ["!ZA1+"]
    assert commands.status_requests() == [f"?{z}ZS+" for z in range(1, 9)]


def test_mrc88_zone_out_of_range():
    single = MRC88Commands()
    with pytest.raises(OutOfRangeTargetError):
        single.set_power(9, True)
    with pytest.raises(OutOfRangeTargetError):
        single.set_volume(0, 50)
    expanded = MRC88Commands(zone_count=16)
    assert expanded.set_power(16, True) == "!16PR1+"
    with pytest.raises(OutOfRangeTargetError):
        expanded.status_query(17)


def test_mrc88_zone_must_be_an_integer():
    commands = MRC88Commands()
    with pytest.raises(OutOfRangeTargetError):
        commands.set_power(2.5, True)
    with pytest.raises(OutOfRangeTargetError):
        commands.set_power(None, True)
    with pytest.raises(OutOfRangeTargetError):
        commands.status_query("3")


def test_out_of_range_is_a_value_error():
    with pytest.raises(ValueError):
        MRC88Commands().set_mute(42, True)


def test_level_round_trip():
    for level in range(101):
        assert abs(LEVEL_SCALE.to_external(LEVEL_SCALE.to_native(level)) - level) <= 1


def test_volume_scale():
    assert VOLUME_SCALE.to_native(50) == 19
    assert VOLUME_SCALE.to_external(8) == 21
    assert VOLUME_SCALE.to_external(38) == 100
