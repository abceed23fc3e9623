import asyncio

import pytest
from conftest import DEVICE_URL, FakeTransport, make_controller

from aerospin.alerts import AlertCategory, AlertLevel
from aerospin.state.models import Brake, Direction

FULL_STATUS = "Direction: Reverse\nBrake: Push\nSpeed: 75\nSession: Active\n"


def connect(controller):
    asyncio.run(controller.probe_now())


@pytest.mark.parametrize("speed", [0, 1, 40, 99, 100])
def test_speed_intent_is_applied_exactly(controller, speed):
    asyncio.run(controller.set_speed(speed))
    assert controller.state.speed == speed


@pytest.mark.parametrize("speed", [-1, 101, 1000])
def test_out_of_range_speed_is_rejected_not_clamped(controller, speed):
    asyncio.run(controller.set_speed(40))
    with pytest.raises(ValueError):
        asyncio.run(controller.set_speed(speed))
    assert controller.state.speed == 40


def test_wrong_types_and_fields_are_rejected(controller):
    with pytest.raises(TypeError):
        asyncio.run(controller.update(speed=True))
    with pytest.raises(TypeError):
        asyncio.run(controller.update(speed=12.5))
    with pytest.raises(TypeError):
        asyncio.run(controller.update(throttle=3))
    with pytest.raises(ValueError):
        asyncio.run(controller.update(direction="sideways"))


def test_offline_intent_updates_state_without_transport(controller, transport):
    delivered = asyncio.run(controller.update(direction="forward", speed=30))
    assert delivered is False
    assert controller.state.direction == Direction.FORWARD
    assert controller.state.speed == 30
    assert transport.calls == []


def test_connected_intent_sends_commands_in_fixed_order(controller, transport):
    connect(controller)
    transport.clear()

    delivered = asyncio.run(
        controller.update(speed=55, brake=Brake.PULL, direction=Direction.REVERSE)
    )

    assert delivered is True
    assert transport.paths() == [
        "/direction?state=reverse",
        "/brake?action=pull&state=on",
        "/speed?value=55",
    ]
    assert all(endpoint == DEVICE_URL for endpoint, _, _ in transport.calls)


def test_failures_keep_optimistic_state_and_continue(controller, transport):
    connect(controller)
    asyncio.run(controller.start_session())
    transport.clear()
    transport.failing = {"/direction"}

    delivered = asyncio.run(controller.update(direction=Direction.FORWARD, speed=20))

    assert delivered is False
    assert controller.state.direction == Direction.FORWARD
    assert controller.state.speed == 20
    assert transport.paths() == ["/direction?state=forward", "/speed?value=20"]
    texts = [event.text for event in controller.recorder.events]
    assert texts[-1] == "Device communication lost - operating offline"
    warnings = [
        a for a in controller.alerts.latest(AlertCategory.OPERATION) if a.level == AlertLevel.WARNING
    ]
    assert len(warnings) == 1


def test_latest_intent_always_wins_locally(controller, transport):
    connect(controller)
    transport.failing = {"/speed"}

    async def scenario():
        for speed in (10, 80, 35):
            await controller.set_speed(speed)
            assert controller.state.speed == speed

    asyncio.run(scenario())


def test_session_events_one_per_changed_field(controller):
    asyncio.run(controller.start_session())
    before = len(controller.recorder.events)

    asyncio.run(controller.update(direction=Direction.FORWARD, speed=25, session_active=True))

    texts = [event.text for event in controller.recorder.events[before:]]
    assert texts == ["direction changed to Forward", "speed changed to 25"]


def test_no_session_events_without_session(controller):
    asyncio.run(controller.set_speed(10))
    assert controller.recorder.events == []


def test_brake_release_snapshots_previous_brake(controller, transport):
    connect(controller)
    asyncio.run(controller.set_brake(Brake.PUSH))
    transport.clear()

    asyncio.run(controller.set_brake(Brake.NONE))

    assert controller.reconciler.previous_brake == Brake.PUSH
    assert controller.state.brake == Brake.NONE
    assert transport.paths() == ["/brake?action=none&state=off"]


def test_fold_status_from_neutral_state(controller):
    controller.reconciler.fold_status(FULL_STATUS)
    state = controller.state
    assert (state.direction, state.brake, state.speed, state.session_active) == (
        Direction.REVERSE,
        Brake.PUSH,
        75,
        True,
    )


def test_fold_status_is_idempotent(controller):
    controller.reconciler.fold_status(FULL_STATUS)
    once = controller.state
    controller.reconciler.fold_status(FULL_STATUS)
    assert controller.state == once


def test_fold_overrides_optimistic_values(controller):
    asyncio.run(controller.update(direction=Direction.FORWARD, speed=5))
    controller.reconciler.fold_status("Speed: 60\n")
    assert controller.state.speed == 60
    assert controller.state.direction == Direction.FORWARD


def test_probe_refreshes_status(transport):
    transport.responses["/status"] = FULL_STATUS
    controller = make_controller(transport)
    connect(controller)
    assert controller.state.brake == Brake.PUSH
    assert "/status" in transport.paths()


def test_refresh_status_offline_returns_false(controller, transport):
    assert asyncio.run(controller.reconciler.refresh_status()) is False
    assert transport.calls == []


def test_state_is_a_copy(controller):
    snapshot = controller.state
    snapshot.speed = 99
    assert controller.state.speed == 0


def test_fake_transport_is_recorded():
    transport = FakeTransport()
    asyncio.run(transport.get("http://x", "/ping"))
    assert transport.paths() == ["/ping"]
