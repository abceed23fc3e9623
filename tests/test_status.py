from aerospin.state.models import Brake, DeviceState, Direction
from aerospin.state.status import parse_log_lines, parse_status

FULL_STATUS = "Direction: Reverse\nBrake: Push\nSpeed: 75\nSession: Active\n"


def test_full_status_parses_every_field():
    assert parse_status(FULL_STATUS) == {
        "direction": Direction.REVERSE,
        "brake": Brake.PUSH,
        "speed": 75,
        "session_active": True,
    }


def test_unrecognised_lines_are_ignored():
    updates = parse_status("Firmware: 1.2\nDirection: Forward\r\ngarbage\nBrake: Sideways\n")
    assert updates == {"direction": Direction.FORWARD}


def test_session_other_than_active_is_inactive():
    assert parse_status("Session: Idle") == {"session_active": False}


def test_speed_parsing_is_lenient():
    assert parse_status("Speed: 42%")["speed"] == 42
    assert parse_status("Speed: fast")["speed"] == 0
    assert parse_status("Speed: 250")["speed"] == 100


def test_values_are_case_insensitive():
    assert parse_status("Direction: forward\nBrake: PULL") == {
        "direction": Direction.FORWARD,
        "brake": Brake.PULL,
    }


def test_enum_str_is_device_text():
    assert str(Direction.NONE) == "None"
    assert f"{Brake.PULL}" == "Pull"
    assert DeviceState(brake=Brake.PUSH).to_dict()["brake"] == "Push"


def test_log_lines_drop_blanks():
    assert parse_log_lines("10:00:01: start\n\n  \n10:00:02: speed 20\n") == [
        "10:00:01: start",
        "10:00:02: speed 20",
    ]
