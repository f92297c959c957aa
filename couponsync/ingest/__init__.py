"""Ingestion helpers."""

from __future__ import annotations

from couponsync.ingest.models import BrandMeta, NormalizedOffer
from couponsync.ingest.normalize import normalize_addrevenue, normalize_awin

__all__ = ["BrandMeta", "NormalizedOffer", "normalize_addrevenue", "normalize_awin"]
