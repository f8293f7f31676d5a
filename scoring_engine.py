"""
Product Relevance Engine — Scoring & Ranking

Pipeline:
  1. Validation: keep records every category processor can score
  2. Context building: per-category min/max over the validated records
  3. Scoring: normalized category scores x user weights, summed
  4. Ranking: stable sort by total weighted score, truncate to top N

Every call builds its own context from its own catalog; nothing is cached
between calls and inputs are never mutated.
"""
from __future__ import annotations
import logging
from typing import Optional, Sequence

from category_processors import ProcessorRegistry, build_registry
from models import (
    CategoryScore, CategoryWeights, NormalizationContext,
    ProductCategoryScores, ProductTracking, ScoredProduct,
    SmartPrixRecord, ValueRange,
)

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 20

Tracking = dict[str, ProductTracking]


def _tracking_entry(
    tracking: Optional[Tracking], record: SmartPrixRecord
) -> Optional[ProductTracking]:
    if tracking is None:
        return None
    return tracking.get(record.display_title)


# ============================================================
# Stage 1: Validation
# ============================================================

def failed_processors(
    record: SmartPrixRecord, registry: ProcessorRegistry
) -> list[str]:
    """Names of the categories that reject `record`."""
    return [p.category_name for p in registry if not p.validate_product(record)]


def validate_products(
    records: Sequence[SmartPrixRecord],
    registry: ProcessorRegistry,
    tracking: Optional[Tracking] = None,
) -> list[SmartPrixRecord]:
    """Keep only records that pass validation from ALL processors."""
    valid: list[SmartPrixRecord] = []
    for record in records:
        entry = _tracking_entry(tracking, record)
        if entry is not None:
            failed = failed_processors(record, registry)
            is_valid = not failed
            entry.add_step('validation', valid=is_valid, failed_processors=failed)
        else:
            is_valid = all(p.validate_product(record) for p in registry)

        if is_valid:
            valid.append(record)
    return valid


# ============================================================
# Stage 2: Context Building
# ============================================================

def build_normalization_context(
    records: Sequence[SmartPrixRecord],
    registry: ProcessorRegistry,
) -> NormalizationContext:
    """
    Merge every processor's partial context. Keys no processor contributes
    keep the defaults declared on NormalizationContext.
    """
    merged: dict[str, ValueRange] = {}
    for processor in registry:
        merged.update(processor.prepare_context(records))
    return NormalizationContext(**merged)


# ============================================================
# Stage 3: Scoring
# ============================================================

def score_product(
    record: SmartPrixRecord,
    context: NormalizationContext,
    weights: CategoryWeights,
    registry: ProcessorRegistry,
) -> ProductCategoryScores:
    """
    Score one record across all categories: Score = sum(w_i * n_i).
    Unweighted (gatekeeper) categories report their raw score with a
    weighted score of 0.
    """
    categories: dict[str, CategoryScore] = {}
    for processor in registry:
        raw = processor.process(record, context)
        weight = weights.weight_for(processor.category_name) if processor.weighted else 0.0
        categories[processor.category_name] = CategoryScore(
            category=processor.category_name,
            raw_score=raw,
            weighted_score=raw * weight,
        )

    total = sum(c.weighted_score for c in categories.values())
    return ProductCategoryScores(categories=categories, total_weighted_score=total)


# ============================================================
# Stage 4: Ranking
# ============================================================

def rank_products(
    scored: Sequence[tuple[SmartPrixRecord, ProductCategoryScores]],
    top_n: int = DEFAULT_TOP_N,
) -> list[tuple[SmartPrixRecord, ProductCategoryScores]]:
    """Descending by total weighted score; ties keep input order."""
    ranked = sorted(scored, key=lambda pair: pair[1].total_weighted_score, reverse=True)
    return ranked[:max(top_n, 0)]


def to_scored_product(
    record: SmartPrixRecord, scores: ProductCategoryScores
) -> ScoredProduct:
    return ScoredProduct(
        link=record.link,
        title=record.title,
        brand=record.brand,
        extracted=record.extracted,
        flipkart_link=record.flipkart_link,
        flipkart_image=record.flipkart_image,
        db_record_id=record.db_record_id,
        scores=scores,
    )


def score_and_rank_products(
    records: Sequence[SmartPrixRecord],
    weights: CategoryWeights,
    top_n: int = DEFAULT_TOP_N,
    registry: Optional[ProcessorRegistry] = None,
    tracking: Optional[Tracking] = None,
) -> list[ScoredProduct]:
    """
    Score all records and return the top N by total weighted score.
    Pipeline: Validation -> Context Building -> Scoring -> Ranking
    """
    if not records:
        return []

    if registry is None:
        registry = build_registry()

    valid = validate_products(records, registry, tracking)
    logger.info("Validated %d of %d products", len(valid), len(records))
    if not valid:
        return []

    context = build_normalization_context(valid, registry)
    logger.debug("Normalization context: %s", context)

    scored: list[tuple[SmartPrixRecord, ProductCategoryScores]] = []
    for record in valid:
        scores = score_product(record, context, weights, registry)
        entry = _tracking_entry(tracking, record)
        if entry is not None:
            entry.add_step(
                'scoring',
                total_weighted_score=scores.total_weighted_score,
                category_scores={
                    name: c.model_dump() for name, c in scores.categories.items()
                },
            )
        scored.append((record, scores))

    ranked = rank_products(scored, top_n)
    return [to_scored_product(record, scores) for record, scores in ranked]
