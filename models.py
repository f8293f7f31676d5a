"""
Product Relevance Engine — Core Pydantic Models
"""
from __future__ import annotations
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MISSING = "MISSING"

# ============================================================
# Catalog Records (scraper output, read-only to the engine)
# ============================================================

def dig(tree: Any, *path: str) -> Any:
    """Walk nested mappings; None as soon as a step is absent or not a mapping."""
    node = tree
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


class SmartPrixRecord(BaseModel):
    """
    One scraped device. `normalized_specs` stays a loose mapping: the
    category processors decide for themselves what is usable.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    id: Optional[str] = Field(default=None, alias="_id")
    link: str = ""
    title: str
    brand: Optional[str] = None
    price: Optional[float] = None
    success: bool = True
    normalized_specs: dict[str, Any] = Field(default_factory=dict)

    # Set when a scraped listing is matched against the catalog
    real_title: Optional[str] = None
    flipkart_link: Optional[str] = None
    flipkart_image: Optional[str] = None
    db_record_id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def unwrap_object_id(cls, v: Any) -> Any:
        # Mongo exports ids as {"$oid": "..."}
        if isinstance(v, dict) and "$oid" in v:
            return str(v["$oid"])
        return None if v is None else str(v)

    @field_validator("normalized_specs", mode="before")
    @classmethod
    def default_specs(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}

    @property
    def extracted(self) -> dict[str, Any]:
        ex = self.normalized_specs.get("extracted")
        return ex if isinstance(ex, dict) else {}

    @property
    def display_title(self) -> str:
        return self.real_title or self.title

    def lookup(self, *path: str) -> Any:
        """Value at `path` under normalized_specs, or None."""
        return dig(self.normalized_specs, *path)


class ScrapedProduct(BaseModel):
    """A listing scraped from a storefront search page."""
    title: str
    link: Optional[str] = None
    image: Optional[str] = None


class BudgetInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    budget: float
    extension_amount: Optional[float] = None

# ============================================================
# Scoring Models
# ============================================================

class ValueRange(BaseModel):
    min: float = 0.0
    max: float = 1.0


def _unit_range() -> ValueRange:
    return ValueRange(min=0.0, max=1.0)


class NormalizationContext(BaseModel):
    """Per-category min/max over the validated catalog of one scoring call."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    battery_capacity: ValueRange = Field(default_factory=_unit_range)
    display_type: ValueRange = Field(default_factory=lambda: ValueRange(min=0.0, max=10.0))
    display_ppi: ValueRange = Field(default_factory=_unit_range)
    display_refresh_rate: ValueRange = Field(default_factory=_unit_range)
    display_brightness: ValueRange = Field(default_factory=_unit_range)
    cpu_score: ValueRange = Field(default_factory=_unit_range)
    gpu_score: ValueRange = Field(default_factory=_unit_range)
    camera_main_mp: ValueRange = Field(default_factory=_unit_range)
    ram_capacity: ValueRange = Field(default_factory=_unit_range)
    rom_capacity: ValueRange = Field(default_factory=_unit_range)


class CategoryWeights(BaseModel):
    """
    User-priority weights, one per scored category. Expected to lie in
    [0, 1] and sum to 1.0; the engine does not enforce either.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    battery_endurance: float = 0.0
    display_quality: float = 0.0
    cpu_performance: float = 0.0
    gpu_performance: float = 0.0
    camera_quality: float = 0.0

    def weight_for(self, category: str) -> float:
        if category not in type(self).model_fields:
            raise KeyError(f"No weight defined for category '{category}'")
        return getattr(self, category)


class CategoryScore(BaseModel):
    category: str
    raw_score: float        # normalized 0-1
    weighted_score: float   # raw_score * weight


class ProductCategoryScores(BaseModel):
    categories: dict[str, CategoryScore] = Field(default_factory=dict)
    total_weighted_score: float = 0.0


class ScoredProduct(BaseModel):
    link: str
    title: str
    brand: Optional[str] = None
    extracted: dict[str, Any] = Field(default_factory=dict)
    flipkart_link: Optional[str] = None
    flipkart_image: Optional[str] = None
    db_record_id: Optional[str] = None
    scores: ProductCategoryScores

# ============================================================
# Tracking
# ============================================================

class TrackingStep(BaseModel):
    name: str
    details: dict[str, Any] = Field(default_factory=dict)


class ProductTracking(BaseModel):
    """Trail of pipeline steps for one listing, keyed by title by the caller."""
    details: dict[str, Any] = Field(default_factory=dict)
    steps: list[TrackingStep] = Field(default_factory=list)

    def add_step(self, name: str, **details: Any) -> TrackingStep:
        step = TrackingStep(name=name, details=details)
        self.steps.append(step)
        return step

    @property
    def last_step(self) -> Optional[TrackingStep]:
        return self.steps[-1] if self.steps else None

# ============================================================
# Diagnostics
# ============================================================

class FailedValueEntry(BaseModel):
    value: Any
    document_ids: list[str] = Field(default_factory=list)


class ProcessorFailure(BaseModel):
    processor: str
    failed_count: int
    failed_values: list[FailedValueEntry] = Field(default_factory=list)


class FailureReport(BaseModel):
    total_records: int
    processor_failures: list[ProcessorFailure] = Field(default_factory=list)
