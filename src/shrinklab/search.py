"""Composite byte-budget search.

The encoder's quality-to-size curve is unknown up front, so the search turns
knobs in a fixed order, trial-encoding as it goes, and stops at the first
result that fits:

0. Container conversion (only when a different output format was requested)
1. DPI normalization            (DPI-capable formats)
2. Quality                      (quality-capable formats; bisection, bounded probes)
3. Frame sampling               (frame-sampling-capable formats, animated input)
4. Iterative dimension shrink   (always; bounded iterations and size floor)

Stages 1-3 each start from the search's original input. Stage 4 chains onto
its own running result.
"""

import logging
import math
import time
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from .blob import ImageBlob
from .capabilities import supports_dpi, supports_frame_sampling, supports_quality
from .errors import BudgetExhaustedError, log_warning_with_context
from .frame_merge import fit_sample_stride
from .inspector import frame_count, image_dimensions

if TYPE_CHECKING:
    from .builder import ImageBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Candidate:
    """One trial encode and the quality that produced it (None = encoder default)."""

    blob: ImageBlob
    quality: float | None = None


class ByteBudgetSearch:
    """Fit one builder's image into its byte budget."""

    def __init__(self, builder: "ImageBuilder"):
        self.builder = builder
        self.backend = builder.backend
        self.config = builder.config
        self.max_bytes = builder.compress.max_bytes
        self.probes = 0
        self.candidates: list[Candidate] = []

        # Settings every sub-state shares; compression knobs are set per stage
        self.template = replace(builder, compress=None, quality=None, sample_count=None)

    def fits(self, blob: ImageBlob) -> bool:
        return len(blob) <= self.max_bytes

    def run(self) -> ImageBlob:
        start = time.perf_counter()
        original_size = len(self.builder.blob)

        result = self._search()

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"🗜️  Fit {original_size} → {len(result)} bytes "
            f"(budget {self.max_bytes}) with {self.probes} trial encodes in {elapsed_ms:.1f}ms"
        )
        return result

    def _search(self) -> ImageBlob:
        candidate = self._convert_container()
        if candidate is not None and self.fits(candidate.blob):
            return candidate.blob

        fmt = self.template.input_format

        if supports_dpi(fmt, self.backend):
            candidate = self._normalize_dpi()
            if self.fits(candidate.blob):
                return candidate.blob

        if supports_quality(fmt, self.backend):
            candidate = self._fit_quality()
            if self.fits(candidate.blob):
                return candidate.blob

        if supports_frame_sampling(fmt, self.backend):
            candidate = self._sample_frames()
            if candidate is not None and self.fits(candidate.blob):
                return candidate.blob

        return self._shrink_dimensions()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def _probe(self, builder: "ImageBuilder", stage: str) -> Candidate:
        """Run one trial encode and remember it as a candidate."""
        blob = builder.finalize()
        self.probes += 1
        candidate = Candidate(blob, builder.quality)
        self.candidates.append(candidate)
        logger.debug(
            f"[{stage}] probe {self.probes}: {len(blob)} bytes "
            f"(budget {self.max_bytes}, quality={builder.quality})"
        )
        return candidate

    def _convert_container(self) -> Candidate | None:
        if self.template.output_format is self.template.input_format:
            return None

        candidate = self._probe(self.template, "convert")

        # Later stages work on the converted blob, whose pixels already went
        # through the requested color layout
        converted = candidate.blob
        self.template = replace(
            self.template,
            blob=converted,
            input_format=converted.format,
            output_format=converted.format,
            color_layout=None,
        )
        return candidate

    def _normalize_dpi(self) -> Candidate:
        dpi = self.builder.dpi or self.config.DEFAULT_DPI
        return self._probe(self.template.set_dpi(dpi), "dpi")

    def _fit_quality(self) -> Candidate:
        if self.builder.quality is not None:
            return self._probe(self.template.set_quality(self.builder.quality), "quality")

        low, high = 0.0, 1.0
        lower_edge = int(self.max_bytes * self.config.QUALITY_FIT_RATIO)
        best_fit: Candidate | None = None
        candidate = None

        for _ in range(self.config.QUALITY_PROBE_LIMIT):
            quality = (low + high) / 2
            candidate = self._probe(self.template.set_quality(quality), "quality")
            size = len(candidate.blob)

            if size <= self.max_bytes and (best_fit is None or quality > best_fit.quality):
                best_fit = candidate

            if size < lower_edge:
                low = quality
            elif size > self.max_bytes:
                high = quality
            else:
                break

        return best_fit or candidate

    def _sample_frames(self) -> Candidate | None:
        frames = frame_count(self.template.blob, self.backend)
        stride = self.builder.sample_count or fit_sample_stride(frames, self.config)

        if frames < 2 or stride <= 1:
            logger.debug(f"[sample] skipped: {frames} frame(s), stride {stride}")
            return None

        return self._probe(self.template.set_sample_count(stride), "sample")

    def _shrink_dimensions(self) -> ImageBlob:
        if self.candidates:
            current = min(self.candidates, key=lambda c: len(c.blob))
            # Candidate pixels already went through the color layout
            layout = None
        else:
            current = Candidate(self.template.blob)
            layout = self.template.color_layout

        longest = float(max(image_dimensions(current.blob, self.backend)))
        iterations = 0

        while not self.fits(current.blob):
            if (
                iterations >= self.config.MAX_SHRINK_ITERATIONS
                or longest <= self.config.MIN_LONGEST_SIDE
            ):
                log_warning_with_context(
                    "Byte budget unreachable",
                    {"max_bytes": self.max_bytes, "smallest": len(current.blob), "longest": longest},
                    logger=logger,
                )
                raise BudgetExhaustedError(self.max_bytes, len(current.blob), iterations)

            ratio = math.sqrt(self.max_bytes / len(current.blob))
            longest = max(longest * ratio, self.config.MIN_LONGEST_SIDE)

            step = replace(
                self.template,
                blob=current.blob,
                input_format=current.blob.format,
                output_format=current.blob.format,
                quality=current.quality,
                color_layout=layout,
            )
            current = self._probe(step.set_longest_side(longest), "shrink")
            iterations += 1
            layout = None

        return current.blob
