import asyncio

from conftest import DEVICE_URL, FakeTransport, fast_config, make_controller

from aerospin.state.models import Brake


def test_snapshot_before_connecting(controller):
    snapshot = controller.snapshot()
    assert snapshot["device"] == {"direction": "None", "brake": "None", "speed": 0, "session_active": False}
    assert snapshot["connection"]["is_connected"] is False
    assert snapshot["previous_brake"] == "None"
    assert snapshot["session"]["events"] == []


def test_running_controller_connects_and_folds_status():
    transport = FakeTransport()
    transport.responses["/status"] = "Direction: Forward\nBrake: Pull\nSpeed: 12\nSession: Inactive\n"
    controller = make_controller(transport)

    async def scenario():
        controller.start()
        for _ in range(50):
            if controller.is_connected and controller.state.speed == 12:
                break
            await asyncio.sleep(0.01)
        await controller.stop()

    asyncio.run(scenario())
    snapshot = controller.snapshot()
    assert snapshot["connection"]["current_endpoint"] == DEVICE_URL
    assert snapshot["device"]["brake"] == "Pull"
    assert snapshot["resolver_reason"] == "on device subnet (192.168.4.37)"
    assert not controller.monitor.running


def test_session_snapshot_reports_live_duration(controller):
    asyncio.run(controller.start_session())
    session = controller.snapshot()["session"]
    assert session["start_time"] is not None
    assert session["duration"] == "00:00:00"
    assert session["events"][1].endswith("Operating in offline mode")


def test_proxy_configuration_routes_every_command():
    transport = FakeTransport()
    proxy = "http://localhost:8081/api"
    controller = make_controller(transport, fast_config(endpoints={"proxy_url": proxy}))

    async def scenario():
        await controller.probe_now()
        await controller.set_brake(Brake.PUSH)

    asyncio.run(scenario())
    assert {endpoint for endpoint, _, _ in transport.calls} == {proxy}
