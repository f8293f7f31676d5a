"""
Product Relevance Engine — Category Processors

Each processor owns one scoring category and answers four questions about a
device record:
  1. Does the record carry usable data for this category? (validate_product)
  2. What min/max ranges does the category need over a catalog? (prepare_context)
  3. What is the record's normalized 0-1 score? (process)
  4. Which raw fields did it look at? (snapshot, for failure diagnostics)

ProcessorRegistry is the single list of active categories; validation,
context building and scoring all iterate it.
"""
from __future__ import annotations
import math
import re
from typing import Any, Callable, Iterable, Iterator, Optional, Protocol, Sequence

from models import MISSING, NormalizationContext, SmartPrixRecord, ValueRange
from normalization import is_finite_number, normalize_value, value_range

# Fallback ranges when a catalog yields no usable values
_DEFAULTS = NormalizationContext()

# Display blend. Sums to 0.90: the 0.10 HDR share is not scored.
DISPLAY_BLEND: dict[str, float] = {
    'display_type': 0.30,
    'display_ppi': 0.25,
    'display_refresh_rate': 0.20,
    'display_brightness': 0.15,
}

# Main camera share of the camera score. The 0.30 camera-count share is not scored.
MAIN_CAMERA_SHARE = 0.70

GB_PER_TB = 1024


class CategoryProcessor(Protocol):
    category_name: str
    weighted: bool

    def validate_product(self, record: SmartPrixRecord) -> bool: ...

    def prepare_context(self, records: Sequence[SmartPrixRecord]) -> dict[str, ValueRange]: ...

    def process(self, record: SmartPrixRecord, context: NormalizationContext) -> float: ...

    def snapshot(self, record: SmartPrixRecord) -> dict[str, Any]: ...


# ============================================================
# Field Parsing
# ============================================================

_LEADING_FLOAT = re.compile(r'^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')
_GB_RE = re.compile(r'(\d+(?:\.\d+)?)\s*GB', re.IGNORECASE)
_TB_RE = re.compile(r'(\d+(?:\.\d+)?)\s*TB', re.IGNORECASE)


def as_number(value: Any) -> Optional[float]:
    return float(value) if is_finite_number(value) else None


def parse_benchmark_score(value: Any) -> Optional[float]:
    """
    Parse a benchmark string by its leading numeric prefix
    ("512340" -> 512340.0, "512340 pts" -> 512340.0, "N/A" -> None).
    """
    if not isinstance(value, str):
        return None
    m = _LEADING_FLOAT.match(value)
    if not m:
        return None
    parsed = float(m.group(0))
    return parsed if math.isfinite(parsed) else None


def _positive(match: Optional[re.Match]) -> Optional[float]:
    if not match:
        return None
    value = float(match.group(1))
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def parse_ram_gb(text: Any) -> Optional[float]:
    """'12 GB' -> 12.0. Anything without a positive GB figure -> None."""
    if not isinstance(text, str) or not text.strip():
        return None
    return _positive(_GB_RE.search(text))


def parse_storage_gb(text: Any) -> Optional[float]:
    """'256 GB' -> 256.0, '1 TB' -> 1024.0. TB takes precedence over GB."""
    if not isinstance(text, str) or not text.strip():
        return None
    tb_match = _TB_RE.search(text)
    if tb_match:
        tb = _positive(tb_match)
        return tb * GB_PER_TB if tb is not None else None
    return _positive(_GB_RE.search(text))


def _or_missing(value: Any) -> Any:
    return MISSING if value is None else value


# ============================================================
# Battery
# ============================================================

class BatteryEnduranceProcessor:
    """Uses: battery.capacity.value (mAh)"""
    category_name = 'battery_endurance'
    weighted = True

    @staticmethod
    def capacity(record: SmartPrixRecord) -> Any:
        return record.lookup('extracted', 'battery', 'capacity', 'value')

    def validate_product(self, record: SmartPrixRecord) -> bool:
        return is_finite_number(self.capacity(record))

    def prepare_context(self, records: Sequence[SmartPrixRecord]) -> dict[str, ValueRange]:
        return {
            'battery_capacity': value_range(
                (self.capacity(r) for r in records), _DEFAULTS.battery_capacity),
        }

    def process(self, record: SmartPrixRecord, context: NormalizationContext) -> float:
        rng = context.battery_capacity
        return normalize_value(as_number(self.capacity(record)), rng.min, rng.max)

    def snapshot(self, record: SmartPrixRecord) -> dict[str, Any]:
        return {'capacity_value': _or_missing(self.capacity(record))}


# ============================================================
# Display
# ============================================================

class DisplayQualityProcessor:
    """
    Uses: display.type.score (tiered panel score), display.ppi,
    display.refreshRate and peak brightness. All four are required.
    """
    category_name = 'display_quality'
    weighted = True

    # context key -> path under extracted.display
    FIELDS: dict[str, tuple[str, str]] = {
        'display_type': ('type', 'score'),
        'display_ppi': ('ppi', 'value'),
        'display_refresh_rate': ('refreshRate', 'value'),
        'display_brightness': ('brightness', 'value'),
    }

    def _field(self, record: SmartPrixRecord, key: str) -> Any:
        return record.lookup('extracted', 'display', *self.FIELDS[key])

    def validate_product(self, record: SmartPrixRecord) -> bool:
        return all(is_finite_number(self._field(record, key)) for key in self.FIELDS)

    def prepare_context(self, records: Sequence[SmartPrixRecord]) -> dict[str, ValueRange]:
        return {
            key: value_range((self._field(r, key) for r in records), getattr(_DEFAULTS, key))
            for key in self.FIELDS
        }

    def process(self, record: SmartPrixRecord, context: NormalizationContext) -> float:
        combined = 0.0
        for key, share in DISPLAY_BLEND.items():
            value = as_number(self._field(record, key))
            if key == 'display_type' and value is None:
                value = 0.0
            rng: ValueRange = getattr(context, key)
            combined += normalize_value(value, rng.min, rng.max) * share
        return combined

    def snapshot(self, record: SmartPrixRecord) -> dict[str, Any]:
        return {
            'type_name': _or_missing(record.lookup('extracted', 'display', 'type', 'type')),
            'type_score': _or_missing(self._field(record, 'display_type')),
            'ppi_value': _or_missing(self._field(record, 'display_ppi')),
            'refresh_rate_value': _or_missing(self._field(record, 'display_refresh_rate')),
            'brightness_value': _or_missing(self._field(record, 'display_brightness')),
        }


# ============================================================
# CPU / GPU (Antutu breakdown)
# ============================================================

class _AntutuBreakdownProcessor:
    category_name: str
    breakdown_key: str
    context_key: str
    weighted = True

    def raw(self, record: SmartPrixRecord) -> Any:
        return record.lookup(
            'extracted', 'technical', 'benchmark', 'antutu', 'breakdown', self.breakdown_key)

    def validate_product(self, record: SmartPrixRecord) -> bool:
        return parse_benchmark_score(self.raw(record)) is not None

    def prepare_context(self, records: Sequence[SmartPrixRecord]) -> dict[str, ValueRange]:
        return {
            self.context_key: value_range(
                (parse_benchmark_score(self.raw(r)) for r in records),
                getattr(_DEFAULTS, self.context_key)),
        }

    def process(self, record: SmartPrixRecord, context: NormalizationContext) -> float:
        rng: ValueRange = getattr(context, self.context_key)
        return normalize_value(parse_benchmark_score(self.raw(record)), rng.min, rng.max)

    def snapshot(self, record: SmartPrixRecord) -> dict[str, Any]:
        return {self.context_key: _or_missing(self.raw(record))}


class CPUPerformanceProcessor(_AntutuBreakdownProcessor):
    """Uses: technical.benchmark.antutu.breakdown.CPU"""
    category_name = 'cpu_performance'
    breakdown_key = 'CPU'
    context_key = 'cpu_score'


class GPUPerformanceProcessor(_AntutuBreakdownProcessor):
    """Uses: technical.benchmark.antutu.breakdown.GPU"""
    category_name = 'gpu_performance'
    breakdown_key = 'GPU'
    context_key = 'gpu_score'


# ============================================================
# Camera
# ============================================================

class CameraQualityProcessor:
    """Uses: camera.rearCamera, the first unit tagged position == 'main'."""
    category_name = 'camera_quality'
    weighted = True

    @staticmethod
    def rear_cameras(record: SmartPrixRecord) -> Any:
        return record.lookup('extracted', 'camera', 'rearCamera')

    @classmethod
    def main_camera(cls, record: SmartPrixRecord) -> Optional[dict[str, Any]]:
        cams = cls.rear_cameras(record)
        if not isinstance(cams, list):
            return None
        return next(
            (c for c in cams if isinstance(c, dict) and c.get('position') == 'main'),
            None,
        )

    def validate_product(self, record: SmartPrixRecord) -> bool:
        cams = self.rear_cameras(record)
        if not isinstance(cams, list) or not cams:
            return False
        main = self.main_camera(record)
        return main is not None and is_finite_number(main.get('megapixel'))

    def prepare_context(self, records: Sequence[SmartPrixRecord]) -> dict[str, ValueRange]:
        mps = []
        for r in records:
            main = self.main_camera(r)
            if main is not None:
                mps.append(main.get('megapixel'))
        return {'camera_main_mp': value_range(mps, _DEFAULTS.camera_main_mp)}

    def process(self, record: SmartPrixRecord, context: NormalizationContext) -> float:
        cams = self.rear_cameras(record)
        if not isinstance(cams, list) or not cams:
            return 0.0
        main = self.main_camera(record)
        main_mp = (as_number(main.get('megapixel')) if main else None) or 0.0
        rng = context.camera_main_mp
        return normalize_value(main_mp, rng.min, rng.max) * MAIN_CAMERA_SHARE

    def snapshot(self, record: SmartPrixRecord) -> dict[str, Any]:
        cams = self.rear_cameras(record)
        if not isinstance(cams, list):
            return {'rear_camera': MISSING, 'main_camera_megapixel': MISSING,
                    'has_main_camera': False}
        if not cams:
            return {'rear_camera': 'EMPTY_ARRAY', 'main_camera_megapixel': MISSING,
                    'has_main_camera': False}
        main = self.main_camera(record)
        return {
            'rear_camera_count': len(cams),
            'main_camera_megapixel': _or_missing(main.get('megapixel')) if main else MISSING,
            'has_main_camera': main is not None,
        }


# ============================================================
# Memory (gatekeepers: validated, not weighted)
# ============================================================

class _MemoryProcessor:
    category_name: str
    memory_key: str
    context_key: str
    weighted = False

    parse: Callable[[Any], Optional[float]]

    def raw(self, record: SmartPrixRecord) -> Any:
        return record.lookup('specs', 'memory', self.memory_key)

    def validate_product(self, record: SmartPrixRecord) -> bool:
        return self.parse(self.raw(record)) is not None

    def prepare_context(self, records: Sequence[SmartPrixRecord]) -> dict[str, ValueRange]:
        return {
            self.context_key: value_range(
                (self.parse(self.raw(r)) for r in records),
                getattr(_DEFAULTS, self.context_key)),
        }

    def process(self, record: SmartPrixRecord, context: NormalizationContext) -> float:
        rng: ValueRange = getattr(context, self.context_key)
        return normalize_value(self.parse(self.raw(record)), rng.min, rng.max)

    def snapshot(self, record: SmartPrixRecord) -> dict[str, Any]:
        return {self.memory_key: _or_missing(self.raw(record))}


class RAMCapacityProcessor(_MemoryProcessor):
    """Uses: specs.memory.ram ('8 GB')"""
    category_name = 'ram_capacity'
    memory_key = 'ram'
    context_key = 'ram_capacity'
    parse = staticmethod(parse_ram_gb)


class ROMCapacityProcessor(_MemoryProcessor):
    """Uses: specs.memory.storage ('256 GB', '1 TB')"""
    category_name = 'rom_capacity'
    memory_key = 'storage'
    context_key = 'rom_capacity'
    parse = staticmethod(parse_storage_gb)


# ============================================================
# Registry
# ============================================================

def get_category_processors() -> list[CategoryProcessor]:
    """All active processors, in scoring order."""
    return [
        BatteryEnduranceProcessor(),
        DisplayQualityProcessor(),
        CPUPerformanceProcessor(),
        GPUPerformanceProcessor(),
        CameraQualityProcessor(),
        RAMCapacityProcessor(),
        ROMCapacityProcessor(),
    ]


class ProcessorRegistry:
    """Ordered processors plus a name index derived from them."""

    def __init__(self, processors: Iterable[CategoryProcessor]):
        self._processors: list[CategoryProcessor] = list(processors)
        self._by_name: dict[str, CategoryProcessor] = {}
        for p in self._processors:
            if p.category_name in self._by_name:
                raise ValueError(f"Duplicate category processor: {p.category_name}")
            self._by_name[p.category_name] = p

    def __iter__(self) -> Iterator[CategoryProcessor]:
        return iter(self._processors)

    def __len__(self) -> int:
        return len(self._processors)

    def get(self, name: str) -> CategoryProcessor:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"No processor registered for category '{name}'") from None

    @property
    def names(self) -> list[str]:
        return [p.category_name for p in self._processors]

    @property
    def weighted(self) -> list[CategoryProcessor]:
        return [p for p in self._processors if p.weighted]

    @property
    def gatekeepers(self) -> list[CategoryProcessor]:
        return [p for p in self._processors if not p.weighted]


def build_registry() -> ProcessorRegistry:
    return ProcessorRegistry(get_category_processors())
