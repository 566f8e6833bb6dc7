import json
import base64
import dataclasses

import pytest

from fakes import FakeControlPlane

from zeroscale.errors import ControlPlaneError
from zeroscale.deactivation import (
    DeactivationHandler,
    HandlerState,
    StopSignal,
    parse_push_envelope,
)
from zeroscale.resources import DesiredChange, ResourceKind


def envelope(data=None, attributes=None, message_id="1001"):
    message = {"messageId": message_id}
    if data is not None:
        raw = data if isinstance(data, str) else json.dumps(data)
        message["data"] = base64.b64encode(raw.encode("utf-8")).decode("ascii")
    if attributes is not None:
        message["attributes"] = attributes
    return {"message": message, "subscription": "projects/starbase/subscriptions/wp-stop"}


# --- Envelope parsing ---

def test_parse_push_envelope_json_payload():
    signal = parse_push_envelope(envelope({"instance": "wp-mysql"}, attributes={"source": "scheduler"}))

    assert signal.message_id == "1001"
    assert signal.data == {"instance": "wp-mysql"}
    assert signal.attributes == {"source": "scheduler"}


def test_parse_push_envelope_text_payload():
    """Cloud Scheduler often just publishes the word 'stop'"""
    signal = parse_push_envelope(envelope("stop"))

    assert signal.data == "stop"
    assert signal.targets() == {}


def test_parse_push_envelope_without_data():
    signal = parse_push_envelope(envelope())

    assert signal.data is None


@pytest.mark.parametrize(
    "body",
    [
        None,
        [],
        {"subscription": "projects/starbase/subscriptions/wp-stop"},
        {"message": "stop"},
        {"message": {"data": "!!!not-base64!!!"}},
        {"message": {"data": base64.b64encode(b"\xff\xfe").decode("ascii")}},
        {"message": {"attributes": ["instance", "wp-mysql"]}},
    ],
)
def test_parse_push_envelope_rejects_malformed(body):
    with pytest.raises(ValueError):
        parse_push_envelope(body)


def test_signal_targets_prefer_payload_over_attributes():
    signal = StopSignal(
        message_id="1",
        data={"instance": "wp-mysql"},
        attributes={"instance": "other", "zone": "us-central1-a"},
    )

    assert signal.targets() == {"instance": "wp-mysql", "zone": "us-central1-a"}


# --- Handler ---

@pytest.mark.parametrize(
    "suspend_on_stop, expected_change",
    [
        (False, DesiredChange.STOP),
        (True, DesiredChange.SUSPEND),
    ],
)
def test_stop_signal_issues_exactly_one_change(compute_settings, suspend_on_stop, expected_change):
    """Stop and suspend are mutually exclusive; one call per signal"""
    settings = dataclasses.replace(compute_settings, suspend_on_stop=suspend_on_stop)
    control_plane = FakeControlPlane(ResourceKind.COMPUTE_INSTANCE)
    handler = DeactivationHandler(settings, control_plane_factory=control_plane.factory)

    result = handler.on_stop_signal(parse_push_envelope(envelope({"instance": "wp-mysql"})))

    assert result.acknowledged is True
    assert result.change == expected_change
    assert result.operation_id == "operation-1"
    assert [change for _, change in control_plane.mutate_calls] == [expected_change]
    assert control_plane.get_calls == []
    assert handler.state == HandlerState.IDLE


def test_database_stop_sets_activation_policy_never(database_settings):
    control_plane = FakeControlPlane(ResourceKind.MANAGED_DATABASE)
    handler = DeactivationHandler(database_settings, control_plane_factory=control_plane.factory)

    result = handler.on_stop_signal(StopSignal(message_id="1", data="stop"))

    assert result.acknowledged is True
    assert control_plane.mutate_calls[0][1] == DesiredChange.ACTIVATION_NEVER


def test_redelivery_acknowledges(compute_settings):
    """A second delivery of the same signal is not an error"""
    control_plane = FakeControlPlane(
        ResourceKind.COMPUTE_INSTANCE,
        mutate_errors=[None, ControlPlaneError("already in progress", status=409, reason="operationInProgress")],
    )
    handler = DeactivationHandler(compute_settings, control_plane_factory=control_plane.factory)
    signal = parse_push_envelope(envelope("stop"))

    first = handler.on_stop_signal(signal)
    second = handler.on_stop_signal(signal)

    assert first.acknowledged and not first.already_satisfied
    assert second.acknowledged and second.already_satisfied
    assert handler.state == HandlerState.IDLE


@pytest.mark.parametrize(
    "overrides, missing",
    [
        ({"instance_id": None}, "WORDPRESS_DB_INSTANCE_ID"),
        ({"project_id": None}, "PROJECT_ID"),
        ({"zone": None}, "GCE_ZONE"),
    ],
)
def test_missing_configuration_is_fatal_rejection(compute_settings, overrides, missing):
    """No best-effort stop: nothing is called without a full resource ref"""
    settings = dataclasses.replace(compute_settings, **overrides)
    control_plane = FakeControlPlane(ResourceKind.COMPUTE_INSTANCE)
    handler = DeactivationHandler(settings, control_plane_factory=control_plane.factory)

    result = handler.on_stop_signal(StopSignal(message_id="1", data="stop"))

    assert result.acknowledged is False
    assert result.fatal is True
    assert missing in result.reason
    assert control_plane.mutate_calls == []


def test_suspend_is_rejected_for_cloud_sql(database_settings):
    settings = dataclasses.replace(database_settings, suspend_on_stop=True)
    control_plane = FakeControlPlane(ResourceKind.MANAGED_DATABASE)
    handler = DeactivationHandler(settings, control_plane_factory=control_plane.factory)

    result = handler.on_stop_signal(StopSignal(message_id="1", data="stop"))

    assert result.fatal is True
    assert "SUSPEND_ON_STOP" in result.reason
    assert control_plane.mutate_calls == []


def test_signal_for_another_instance_is_rejected(compute_settings):
    control_plane = FakeControlPlane(ResourceKind.COMPUTE_INSTANCE)
    handler = DeactivationHandler(compute_settings, control_plane_factory=control_plane.factory)

    result = handler.on_stop_signal(parse_push_envelope(envelope({"instance": "prod-mysql"})))

    assert result.acknowledged is False
    assert result.fatal is False
    assert "prod-mysql" in result.reason
    assert control_plane.mutate_calls == []


def test_control_plane_error_propagates(compute_settings):
    """Errors surface so the delivery system can redeliver"""
    error = ControlPlaneError("Compute Engine POST failed with HTTP 403", status=403, reason="forbidden")
    control_plane = FakeControlPlane(ResourceKind.COMPUTE_INSTANCE, mutate_errors=[error])
    handler = DeactivationHandler(compute_settings, control_plane_factory=control_plane.factory)

    with pytest.raises(ControlPlaneError) as excinfo:
        handler.on_stop_signal(StopSignal(message_id="1", data="stop"))

    assert excinfo.value is error
    assert handler.state == HandlerState.IDLE
