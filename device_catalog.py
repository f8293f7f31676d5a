"""
Device catalog: file-backed list of scraped device records, plus matching
of storefront listings back to catalog records by title.
"""
from __future__ import annotations
import logging
import re
from pathlib import Path
from typing import Optional, Sequence, Union

from pydantic import TypeAdapter, ValidationError

from models import ProductTracking, ScrapedProduct, SmartPrixRecord

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.4

_RECORD_LIST = TypeAdapter(list[SmartPrixRecord])
_PARENTHESISED = re.compile(r'\s*\([^)]*\)')


class CatalogLoadError(RuntimeError):
    """The catalog file is missing, unreadable or not a list of device records."""


def load_records(path: Union[str, Path]) -> list[SmartPrixRecord]:
    try:
        raw = Path(path).read_bytes()
        return _RECORD_LIST.validate_json(raw)
    except (OSError, ValidationError) as e:
        raise CatalogLoadError(f"Could not read device list {path}: {e}") from e


class DeviceCatalog:
    """Loads the device list once and serves it from memory afterwards."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._records: Optional[list[SmartPrixRecord]] = None

    def get_device_list(self) -> list[SmartPrixRecord]:
        if self._records is None:
            self._records = load_records(self.path)
            logger.info(f"Loaded {len(self._records)} devices from {self.path}")
        return list(self._records)

    def reload(self) -> list[SmartPrixRecord]:
        self._records = None
        return self.get_device_list()

    @property
    def loaded(self) -> bool:
        return self._records is not None

    def __len__(self) -> int:
        return len(self.get_device_list())


# ============================================================
# Listing -> Catalog Matching
# ============================================================

def _tokenize(text: str) -> list[str]:
    return text.lower().split()


def title_match_score(listing_tokens: Sequence[str], catalog_tokens: Sequence[str]) -> float:
    """
    Overlap of a catalog title with a listing title. Repeated catalog tokens
    each count toward the overlap; the denominator is the distinct union.
    """
    listing_set = set(listing_tokens)
    overlap = sum(1 for t in catalog_tokens if t in listing_set)
    union = len(listing_set | set(catalog_tokens)) or 1
    return overlap / union


def match_scraped_products(
    scraped: Sequence[ScrapedProduct],
    catalog: Sequence[SmartPrixRecord],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    tracking: Optional[dict[str, ProductTracking]] = None,
) -> list[SmartPrixRecord]:
    """
    Attach each scraped listing to its best catalog record. Listings whose
    best score does not exceed `threshold` are dropped.
    """
    catalog_tokens = [(rec, _tokenize(rec.title)) for rec in catalog]
    enriched: list[SmartPrixRecord] = []

    for listing in scraped:
        cleaned = _PARENTHESISED.sub('', listing.title)
        listing_tokens = _tokenize(cleaned)

        best: Optional[SmartPrixRecord] = None
        best_score = 0.0
        for rec, tokens in catalog_tokens:
            score = title_match_score(listing_tokens, tokens)
            if score > best_score:
                best_score = score
                best = rec

        matched = best is not None and best_score > threshold

        entry = tracking.get(listing.title) if tracking is not None else None
        if entry is not None:
            reason = None if matched else f"Match score {best_score} below threshold {threshold}"
            entry.add_step(
                'db_match',
                matched=matched,
                score=best_score,
                db_product=best.title if best is not None else None,
                reason=reason,
            )

        if not matched:
            logger.debug(f"No catalog match for '{listing.title}' (best={best_score:.2f})")
            continue

        enriched.append(best.model_copy(update={
            'real_title': listing.title,
            'flipkart_link': listing.link,
            'flipkart_image': listing.image,
            'db_record_id': best.id,
        }))

    return enriched
