import asyncio
from datetime import datetime, timedelta

from aerospin.session.recorder import format_duration
from aerospin.state.models import Brake, Direction


def texts(recorder):
    return [event.text for event in recorder.events]


def connect(controller):
    assert asyncio.run(controller.probe_now()) is True


def test_format_duration():
    assert format_duration(0) == "00:00:00"
    assert format_duration(3725.9) == "01:02:05"
    assert format_duration(-4) == "00:00:00"


def test_offline_session_start(controller, transport):
    asyncio.run(controller.start_session())

    assert controller.state.session_active
    recorded = texts(controller.recorder)
    assert recorded[0].startswith("Session started at ")
    assert recorded[0].endswith("(link: offline)")
    assert recorded[1] == "Operating in offline mode"
    assert transport.calls == []


def test_online_session_start(controller, transport):
    connect(controller)
    transport.clear()

    asyncio.run(controller.start_session())

    assert transport.paths() == ["/startSession"]
    recorded = texts(controller.recorder)
    assert recorded[0].endswith("(link: http://192.168.4.1)")
    assert recorded[1] == "Connected to device successfully"


def test_session_start_survives_device_refusal(controller, transport):
    connect(controller)
    transport.failing = {"/startSession"}

    asyncio.run(controller.start_session())

    assert controller.state.session_active
    assert texts(controller.recorder)[-1] == "Device connection lost - continuing offline"


def test_second_start_is_ignored(controller):
    asyncio.run(controller.start_session())
    before = texts(controller.recorder)
    asyncio.run(controller.start_session())
    assert texts(controller.recorder) == before


def test_events_keep_chronological_order(controller):
    async def scenario():
        await controller.start_session()
        await controller.set_direction(Direction.FORWARD)
        await controller.set_speed(20)
        await controller.emergency_stop()

    asyncio.run(scenario())
    events = controller.recorder.events
    assert all(a.timestamp <= b.timestamp for a, b in zip(events, events[1:]))
    assert texts(controller.recorder)[2:4] == ["direction changed to Forward", "speed changed to 20"]


def test_end_session_leaves_brake_and_neutralises_motion(controller):
    async def scenario():
        await controller.start_session()
        await controller.update(brake=Brake.PULL, speed=60, direction=Direction.REVERSE)
        await controller.end_session()

    asyncio.run(scenario())
    state = controller.state
    assert (state.session_active, state.direction, state.speed, state.brake) == (
        False,
        Direction.NONE,
        0,
        Brake.PULL,
    )
    assert texts(controller.recorder)[-1].startswith("Session ended at ")


def test_end_session_merges_final_device_log(controller, transport):
    connect(controller)
    transport.responses["/endSession"] = "10:00:00: motor started\n10:00:05: speed 20\n"

    async def scenario():
        await controller.start_session()
        await controller.end_session()

    asyncio.run(scenario())
    recorded = texts(controller.recorder)
    assert recorded[-3:] == ["10:00:00: motor started", "10:00:05: speed 20", "Session data saved to device"]


def test_end_session_offline_fallback(controller, transport):
    connect(controller)

    async def scenario():
        await controller.start_session()
        transport.failing = {"/endSession"}
        await controller.end_session()

    asyncio.run(scenario())
    assert texts(controller.recorder)[-1] == "Session ended offline - data saved locally"


def test_device_log_replaces_local_events(controller, transport):
    connect(controller)
    transport.responses["/getSessionLog"] = "line one\nline two\n"
    asyncio.run(controller.start_session())

    assert asyncio.run(controller.recorder.refresh_device_log()) is True
    assert texts(controller.recorder) == ["line one", "line two"]


def test_empty_device_log_keeps_local_events(controller, transport):
    connect(controller)
    transport.responses["/getSessionLog"] = "\n\n"
    asyncio.run(controller.start_session())
    before = texts(controller.recorder)

    assert asyncio.run(controller.recorder.refresh_device_log()) is False
    assert texts(controller.recorder) == before


def test_timers_update_duration_and_poll_device(controller, transport):
    connect(controller)
    transport.responses["/getSessionLog"] = "from device\n"

    async def scenario():
        await controller.start_session()
        controller.recorder._data.start_time = datetime.now() - timedelta(seconds=65)
        controller.recorder.start()
        await asyncio.sleep(0.1)
        await controller.recorder.stop()

    asyncio.run(scenario())
    assert controller.recorder.data.duration == "00:01:05"
    assert texts(controller.recorder) == ["from device"]
    assert "/status" in transport.paths()


def test_timers_idle_without_session(controller, transport):
    async def scenario():
        controller.recorder.start()
        await asyncio.sleep(0.06)
        await controller.recorder.stop()

    asyncio.run(scenario())
    assert transport.calls == []
    assert controller.recorder.duration == "00:00:00"


def test_report_lists_events(controller):
    asyncio.run(controller.start_session())
    report = controller.recorder.report()
    assert report.splitlines()[2] == "Events:"
    assert "Operating in offline mode" in report


def test_clear_returns_discarded_events(controller):
    asyncio.run(controller.start_session())
    discarded = controller.recorder.clear()
    assert [event.text for event in discarded][1] == "Operating in offline mode"
    assert controller.recorder.events == []
    assert controller.recorder.data.start_time is None


def test_end_session_without_session_is_ignored(controller, transport):
    connect(controller)
    transport.clear()

    asyncio.run(controller.end_session())

    assert controller.recorder.events == []
    assert transport.calls == []
