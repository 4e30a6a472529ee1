import threading

import pytest

from pialert_relay.controller import RelayController, describe_alert
from pialert_relay.devices import SimulatedOutputDevice
from pialert_relay.exceptions import ControllerClosedError, DeviceWriteError
from pialert_relay.history import PollHistory
from pialert_relay.models import (AlertSnapshot, ApiError, AuthFailed, OutcomeKind, RateLimited, RelayState,
                                  TransportError)


def test_initial_state(controller, history):
    snap = controller.snapshot()
    assert snap.relay_state == RelayState.OFF
    assert snap.last_poll_time is None
    assert snap.last_alert is None
    assert snap.api_url == "http://pialert.test/api/v1/alert-status"
    assert snap.poll_interval_ms == 30000
    assert len(history) == 0


def test_alert_turns_relay_on(controller, device, make_success):
    record = controller.evaluate(make_success(("db", 3, 3)))
    assert controller.relay_state == RelayState.ON
    assert device.value == RelayState.ON
    assert record.kind == OutcomeKind.SUCCESS
    assert record.relay_state == RelayState.ON
    assert record.alert is True
    assert "db (3/3)" in record.detail
    assert controller.last_poll_time is not None


def test_all_clear_turns_relay_off(controller, device, make_success):
    controller.evaluate(make_success(("db", 3, 3)))
    record = controller.evaluate(make_success())
    assert controller.relay_state == RelayState.OFF
    assert device.value == RelayState.OFF
    assert record.detail == "All systems operational"
    assert record.alert is False


def test_success_writes_even_when_unchanged(controller, device, make_success):
    controller.evaluate(make_success())
    controller.evaluate(make_success())
    assert device.writes == [RelayState.OFF, RelayState.OFF]


def test_detail_lists_every_failing_target(make_success):
    snapshot = make_success(("db", 3, 3), ("web", 5, 4)).snapshot
    assert describe_alert(snapshot) == "2 target(s) down: db (3/3), web (5/4)"


@pytest.mark.parametrize("outcome, kind, detail", [
    (RateLimited(retry_after="120"), OutcomeKind.RATE_LIMITED, "Rate limited (120s)"),
    (RateLimited(), OutcomeKind.RATE_LIMITED, "Rate limited (retry-after unknown)"),
    (AuthFailed(), OutcomeKind.AUTH_FAILED, "Auth failed (invalid key)"),
    (ApiError(status_code=503), OutcomeKind.API_ERROR, "API error: 503"),
])
def test_non_actuating_failures_freeze_state(controller, device, make_success, outcome, kind, detail):
    controller.evaluate(make_success(("db", 3, 3)))
    last_alert = controller.last_alert
    last_poll = controller.last_poll_time
    writes = len(device.writes)

    record = controller.evaluate(outcome)

    assert controller.relay_state == RelayState.ON
    assert controller.last_alert == last_alert
    assert controller.last_poll_time == last_poll
    assert len(device.writes) == writes
    assert record.kind == kind
    assert record.relay_state is None
    assert record.detail == detail
    assert record.status_code == outcome.status_code


def test_transport_error_forces_off_and_keeps_alert(controller, device, history, make_success):
    controller.evaluate(make_success(("db", 3, 3)))
    last_alert = controller.last_alert

    record = controller.evaluate(TransportError(message="Connection refused"))

    assert controller.relay_state == RelayState.OFF
    assert device.value == RelayState.OFF
    assert controller.last_alert == last_alert
    assert record.kind == OutcomeKind.TRANSPORT_ERROR
    assert record.relay_state == RelayState.OFF
    assert record.detail == "Connection refused"
    assert history.snapshot()[0] == record


def test_state_follows_outcome_sequence(controller, make_success):
    sequence = [
        (make_success(("db", 1, 1)), RelayState.ON),
        (AuthFailed(), RelayState.ON),
        (make_success(), RelayState.OFF),
        (RateLimited(retry_after="5"), RelayState.OFF),
        (make_success(("api", 2, 2)), RelayState.ON),
        (ApiError(status_code=500), RelayState.ON),
        (TransportError(message="timeout"), RelayState.OFF),
        (RateLimited(), RelayState.OFF),
    ]
    for outcome, expected in sequence:
        controller.evaluate(outcome)
        assert controller.relay_state == expected


def test_every_evaluate_records_once(controller, history, make_success):
    outcomes = [make_success(), AuthFailed(), RateLimited(), ApiError(status_code=418),
                TransportError(message="x")]
    for outcome in outcomes:
        controller.evaluate(outcome)
    kinds = [r.kind for r in history.snapshot()]
    assert kinds == [OutcomeKind.TRANSPORT_ERROR, OutcomeKind.API_ERROR, OutcomeKind.RATE_LIMITED,
                     OutcomeKind.AUTH_FAILED, OutcomeKind.SUCCESS]


def test_manual_on_then_off(controller, device, history):
    controller.set_manual(True)
    controller.set_manual(False)
    assert controller.relay_state == RelayState.OFF
    assert device.writes == [RelayState.ON, RelayState.OFF]
    snap = history.snapshot()
    assert len(snap) == 2
    assert all(r.kind == OutcomeKind.MANUAL_OVERRIDE for r in snap)
    assert snap[0].relay_state == RelayState.OFF
    assert snap[1].relay_state == RelayState.ON


def test_manual_leaves_alert_context(controller, make_success):
    controller.evaluate(make_success(("db", 3, 3)))
    last_alert = controller.last_alert
    last_poll = controller.last_poll_time
    record = controller.set_manual(False)
    assert record.detail == "Manual override: Relay OFF"
    assert controller.last_alert == last_alert
    assert controller.last_poll_time == last_poll


def test_manual_override_is_replaced_by_next_success(controller, make_success):
    controller.set_manual(True)
    controller.evaluate(make_success())
    assert controller.relay_state == RelayState.OFF


def test_toggle(controller, history):
    assert controller.toggle().relay_state == RelayState.ON
    assert controller.toggle().relay_state == RelayState.OFF
    assert [r.kind for r in history.snapshot()] == [OutcomeKind.MANUAL_OVERRIDE] * 2


def test_device_failure_propagates_without_commit(history, make_success):
    device = SimulatedOutputDevice(fail_writes=True)
    controller = RelayController(device, history)
    with pytest.raises(DeviceWriteError):
        controller.evaluate(make_success(("db", 3, 3)))
    with pytest.raises(DeviceWriteError):
        controller.set_manual(True)
    assert controller.relay_state == RelayState.OFF
    assert controller.last_alert is None
    assert len(history) == 0


def test_unexpected_device_exception_is_wrapped(history):
    class BrokenDevice(SimulatedOutputDevice):
        def write(self, state):
            raise OSError("pin busy")

    controller = RelayController(BrokenDevice(), history)
    with pytest.raises(DeviceWriteError) as excinfo:
        controller.set_manual(True)
    assert excinfo.value.state == RelayState.ON


def test_shutdown_forces_off_and_releases_once(controller, device):
    controller.set_manual(True)
    controller.shutdown()
    controller.shutdown()
    assert device.writes[-1] == RelayState.OFF
    assert device.release_count == 1
    assert controller.closed
    with pytest.raises(ControllerClosedError):
        controller.set_manual(True)
    with pytest.raises(ControllerClosedError):
        controller.evaluate(AuthFailed())


def test_shutdown_releases_even_if_final_write_fails(history):
    device = SimulatedOutputDevice(fail_writes=True)
    controller = RelayController(device, history)
    with pytest.raises(DeviceWriteError):
        controller.shutdown()
    assert device.release_count == 1


def test_unknown_outcome_rejected(controller):
    with pytest.raises(TypeError):
        controller.evaluate(AlertSnapshot(alert=True))


def test_concurrent_evaluate_and_manual(make_success):
    """Each call commits atomically: one record per call, final state matches the last commit."""
    device = SimulatedOutputDevice()
    history = PollHistory(capacity=1000)
    controller = RelayController(device, history)
    outcomes = [make_success(("db", 3, 3)), make_success(), TransportError(message="down")]
    per_thread = 50
    barrier = threading.Barrier(4)

    def poller():
        barrier.wait()
        for i in range(per_thread):
            controller.evaluate(outcomes[i % len(outcomes)])

    def operator(on):
        barrier.wait()
        for _ in range(per_thread):
            controller.set_manual(on)

    def toggler():
        barrier.wait()
        for _ in range(per_thread):
            controller.toggle()

    threads = [threading.Thread(target=poller), threading.Thread(target=operator, args=(True,)),
               threading.Thread(target=operator, args=(False,)), threading.Thread(target=toggler)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    records = history.snapshot()
    assert len(records) == 4 * per_thread
    assert records[0].relay_state == controller.relay_state
    assert device.value == controller.relay_state
    # Device writes happened in the same order as committed records
    assert list(reversed(device.writes)) == [r.relay_state for r in records]


def test_success_record_shares_poll_time(controller, history, make_success):
    record = controller.evaluate(make_success(("db", 3, 3)))
    assert record.timestamp == controller.last_poll_time
    assert controller.snapshot().last_poll_time == history.snapshot()[0].timestamp
