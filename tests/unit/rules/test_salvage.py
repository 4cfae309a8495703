import json

from shipment_sync.errors import CarrierError
from shipment_sync.rules.salvage import (
    is_invalid_pickup_location,
    salvage_awb,
    salvage_awb_from_error,
)


def test_current_awb_is_recovered_from_message():
    msg = "AWB is already assigned for this shipment. Current AWB ABC123 cannot be reassigned to courier 10"
    assert salvage_awb(msg) == "ABC123"


def test_current_awb_variants():
    assert salvage_awb("Current AWB: 19041234567") == "19041234567"
    assert salvage_awb("current awb is XY-99") == "XY-99"
    assert salvage_awb("Current AWB - 7788") == "7788"


def test_no_awb_when_pattern_absent_or_empty():
    assert salvage_awb("Courier not serviceable") is None
    assert salvage_awb("Current AWB is") is None
    assert salvage_awb("") is None
    assert salvage_awb(None) is None


def test_salvage_scans_error_body():
    err = CarrierError(
        "Shiprocket request failed (400) /v1/external/courier/assign/awb",
        status=400,
        body=json.dumps({"message": "Current AWB ABC123", "status_code": 400}),
        path="/v1/external/courier/assign/awb",
    )
    assert salvage_awb_from_error(err) == "ABC123"


def test_invalid_pickup_location_signatures():
    assert is_invalid_pickup_location(["Wrong Pickup location entered"])
    assert is_invalid_pickup_location(["ok", "Pickup location does not exist"])
    assert is_invalid_pickup_location(["Invalid pickup location"])
    assert not is_invalid_pickup_location(["Order created"])
    assert not is_invalid_pickup_location([None, ""])
    assert not is_invalid_pickup_location([])
