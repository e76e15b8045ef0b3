"""Overlay selection by aspect ratio."""

from __future__ import annotations

from collections.abc import Mapping

from transform_pipeline.jobs.errors import ValidationError
from transform_pipeline.jobs.models import MediaRef

DEFAULT_OVERLAY_KEY = "default"

ASPECT_RATIOS: tuple[str, ...] = ("1:1", "3:2", "2:3", "9:16", "16:9")

# Ratios each media type may be configured with.
MEDIA_TYPE_ASPECT_RATIOS: dict[str, frozenset[str]] = {
  "image": frozenset({"1:1", "3:2", "2:3", "9:16"}),
  "video": frozenset({"9:16", "16:9"}),
}


def resolve_overlay(overlays: Mapping[str, MediaRef | None] | None, apply_overlay: bool, aspect_ratio: str) -> MediaRef | None:
  """Pick the overlay for an aspect ratio, falling back to the default slot.

  A ratio slot that exists but holds null counts as empty and falls through to
  ``default``, which may itself be null.
  """
  if not apply_overlay:
    return None

  if overlays is None:
    return None

  exact = overlays.get(aspect_ratio)
  if exact is not None:
    return exact

  return overlays.get(DEFAULT_OVERLAY_KEY)


def validate_aspect_ratio(media_type: str, aspect_ratio: str) -> str:
  """Reject ratio/media-type pairs at configuration time."""
  if aspect_ratio not in ASPECT_RATIOS:
    raise ValidationError(f"Unknown aspect ratio: {aspect_ratio}")

  allowed = MEDIA_TYPE_ASPECT_RATIOS.get(media_type)
  if allowed is None:
    raise ValidationError(f"Unknown media type: {media_type}")

  if aspect_ratio not in allowed:
    raise ValidationError(f"Aspect ratio {aspect_ratio} is not available for {media_type} outcomes.")

  return aspect_ratio
