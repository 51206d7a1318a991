"""Search budgets and pipeline result records."""

from dataclasses import dataclass, field
from typing import Optional, Union

Param = Union[int, float]

DEFAULT_QUALITY_LADDER = (80, 60, 40, 20, 10)
DEFAULT_RESIZE_LADDER = (0.9, 0.8, 0.7, 0.6, 0.5)
DEFAULT_LEVEL_LADDER = (9, 6, 3, 1, 0)


@dataclass(frozen=True)
class SearchBudget:
    """Byte budget plus the parameter ladders searched to meet it.

    Ladders are tried in the order given, so quality and level ladders should
    run from best to worst and the resize ladder from largest to smallest.
    """

    target_size: int
    quality_ladder: tuple[int, ...] = DEFAULT_QUALITY_LADDER
    resize_ladder: tuple[float, ...] = DEFAULT_RESIZE_LADDER
    level_ladder: tuple[int, ...] = DEFAULT_LEVEL_LADDER
    fallback_quality: int = 20
    fallback_level: int = 9

    def __post_init__(self):
        if self.target_size <= 0:
            raise ValueError(f"target_size must be positive, got {self.target_size}")
        for name in ("quality_ladder", "resize_ladder", "level_ladder"):
            if not getattr(self, name):
                raise ValueError(f"{name} must not be empty")
        if not all(1 <= q <= 100 for q in self.quality_ladder):
            raise ValueError(f"quality values must be 1-100, got {self.quality_ladder}")
        if not all(0 < f < 1 for f in self.resize_ladder):
            raise ValueError(f"resize factors must be in (0, 1), got {self.resize_ladder}")
        if not all(0 <= lv <= 9 for lv in self.level_ladder):
            raise ValueError(f"compression levels must be 0-9, got {self.level_ladder}")
        if not 1 <= self.fallback_quality <= 100:
            raise ValueError(f"fallback_quality must be 1-100, got {self.fallback_quality}")
        if not 0 <= self.fallback_level <= 9:
            raise ValueError(f"fallback_level must be 0-9, got {self.fallback_level}")


@dataclass(frozen=True)
class CompressionAttempt:
    """One ladder step: the parameter tried and the encoded size it produced."""

    param: Param
    size: int


@dataclass(frozen=True)
class CompressionResult:
    """Output of the size-targeting compressor.

    Attributes:
        data:           Encoded WebP bytes.
        original_size:  Length of the uploaded body.
        final_size:     Length of *data*.
        elapsed_ms:     Wall time spent in the pipeline.
        label:          Winning parameter(s), e.g. ``"80"`` or ``"20% + resize 70%"``.
        width, height:  Output dimensions.
        source_format:  Format detected while decoding (``"PNG"``, ``"JPEG"``...).
        attempts:       Number of encode operations performed.
        fits:           Whether *final_size* is within the budget.
    """

    data: bytes
    original_size: int
    final_size: int
    elapsed_ms: int
    label: str
    width: int
    height: int
    source_format: Optional[str] = None
    attempts: int = 0
    fits: bool = True

    @property
    def compression_ratio(self) -> float:
        """Percentage of the original size saved. Negative when the output grew."""
        if self.original_size <= 0:
            return 0.0
        return (self.original_size - self.final_size) / self.original_size * 100.0


@dataclass(frozen=True)
class EnhancementResult(CompressionResult):
    """Output of the OCR enhancement pipeline.

    *applied_steps* lists the filter steps in order, an optional
    ``resize-N%`` entry, and finally ``compression-<label>``.
    """

    applied_steps: list[str] = field(default_factory=list)
