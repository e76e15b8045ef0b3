import pytest

from transform_pipeline.jobs.errors import ValidationError
from transform_pipeline.jobs.overlays import resolve_overlay, validate_aspect_ratio

SQUARE = {"asset_id": "ov-square", "url": "https://cdn.test/ov-square.png"}
DEFAULT = {"asset_id": "ov-default", "url": "https://cdn.test/ov-default.png"}


def test_overlay_disabled_returns_none():
  assert resolve_overlay({"1:1": SQUARE, "default": DEFAULT}, False, "1:1") is None


def test_missing_overlay_map_returns_none():
  assert resolve_overlay(None, True, "1:1") is None


def test_exact_ratio_wins_over_default():
  assert resolve_overlay({"1:1": SQUARE, "default": DEFAULT}, True, "1:1") == SQUARE


def test_unmatched_ratio_falls_back_to_default():
  assert resolve_overlay({"1:1": SQUARE, "default": DEFAULT}, True, "9:16") == DEFAULT


def test_null_ratio_slot_falls_back_to_default():
  assert resolve_overlay({"9:16": None, "default": DEFAULT}, True, "9:16") == DEFAULT


def test_no_match_and_no_default_returns_none():
  assert resolve_overlay({"1:1": SQUARE}, True, "16:9") is None


@pytest.mark.parametrize(("media_type", "ratio"), [("image", "3:2"), ("image", "9:16"), ("video", "16:9")])
def test_compatible_ratios_are_accepted(media_type, ratio):
  assert validate_aspect_ratio(media_type, ratio) == ratio


@pytest.mark.parametrize(("media_type", "ratio"), [("image", "16:9"), ("video", "1:1"), ("audio", "1:1")])
def test_incompatible_ratios_are_rejected(media_type, ratio):
  with pytest.raises(ValidationError):
    validate_aspect_ratio(media_type, ratio)


@pytest.mark.parametrize("ratio", ["4:3", "21:9", "square"])
def test_non_canonical_ratios_are_rejected(ratio):
  with pytest.raises(ValidationError, match="Unknown aspect ratio"):
    validate_aspect_ratio("image", ratio)
