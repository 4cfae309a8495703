from __future__ import annotations

from shipment_sync.rules.status_mapper import (
    display_status,
    is_numeric_only,
    normalize_status,
    status_code_to_label,
)


def test_known_numeric_codes_map_to_labels():
    assert normalize_status("7") == "Delivered"
    assert normalize_status("6") == "Out for Delivery"
    assert normalize_status(" 18 ") == "In Transit"


def test_unmapped_code_embeds_raw_value():
    out = normalize_status("999")
    assert "999" in out
    assert out == "Tracking in progress (code 999)"
    assert "42" in normalize_status("42")


def test_free_text_passes_through():
    assert normalize_status("In Transit") == "In Transit"
    assert normalize_status("  PICKED UP ") == "PICKED UP"


def test_blank_means_nothing_observed():
    assert normalize_status(None) is None
    assert normalize_status("   ") is None


def test_custom_mapping_is_honoured():
    assert normalize_status("7", {"7": "Zugestellt"}) == "Zugestellt"
    assert status_code_to_label("007") == "Delivered"


def test_numeric_only_classifier():
    assert is_numeric_only("12")
    assert is_numeric_only(" 12 ")
    assert not is_numeric_only("12a")
    assert not is_numeric_only("")
    assert not is_numeric_only(None)
    assert not is_numeric_only("-1")


def test_display_status_rewrites_only_numeric_values():
    assert display_status("17") == "Shipped"
    assert display_status("awb_assigned") == "awb_assigned"
    assert display_status(None) is None
