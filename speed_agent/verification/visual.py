"""
Visual verification - Compare deployed screenshots against the baseline.

Contains:
- PixelDiffComparator: Pillow-based per-channel threshold diff
- classify_diff: bucket a diff percentage into a status
- VisualVerifier: capture, compare, and escalate doubtful diffs to an AI judge
"""

import asyncio
import os
from typing import List, Optional, Protocol, Sequence

from PIL import Image, ImageChops
from pydantic import BaseModel

from speed_agent.core.browser import BrowserDriver, Viewport
from speed_agent.core.schemas import BaselineScreenshot, VisualComparisonResult, VisualReview, VisualStatus
from speed_agent.recorder.screenshots import capture_screenshot
from speed_agent.utils.constants import (
    CAPTURE_WORKERS,
    DIFF_ACCEPTABLE_PERCENT,
    DIFF_IDENTICAL_PERCENT,
    DIFF_NEEDS_REVIEW_PERCENT,
    HEIGHT_DELTA_LIMIT_PX,
    MAX_AI_VISUAL_REVIEWS,
    PIXEL_THRESHOLD,
    VIEWPORTS,
)
from speed_agent.utils.helpers import StructuredLogger, page_url_on, safe_path_name


class DiffResult(BaseModel):
    diff_pixels: int
    total_pixels: int
    diff_percent: float
    baseline_height: int
    optimized_height: int

    @property
    def height_delta(self) -> int:
        return abs(self.baseline_height - self.optimized_height)


class ImageComparator(Protocol):
    def compare(self, baseline_path: str, optimized_path: str, diff_path: Optional[str] = None) -> DiffResult:
        ...


class PixelDiffComparator:
    """
    Counts pixels whose largest channel difference exceeds `threshold`
    (fraction of 255). Both images are cropped to the common area first.
    """

    def __init__(self, threshold: float = PIXEL_THRESHOLD):
        self.threshold = threshold

    def compare(self, baseline_path: str, optimized_path: str, diff_path: Optional[str] = None) -> DiffResult:
        with Image.open(baseline_path) as baseline_img, Image.open(optimized_path) as optimized_img:
            baseline = baseline_img.convert("RGB")
            optimized = optimized_img.convert("RGB")

        width = min(baseline.width, optimized.width)
        height = min(baseline.height, optimized.height)
        if width == 0 or height == 0:
            raise ValueError("Zero-dimension screenshot")

        box = (0, 0, width, height)
        difference = ImageChops.difference(baseline.crop(box), optimized.crop(box))
        red, green, blue = difference.split()
        channel_max = ImageChops.lighter(ImageChops.lighter(red, green), blue)

        cutoff = int(self.threshold * 255)
        mask = channel_max.point(lambda v: 255 if v > cutoff else 0)
        diff_pixels = mask.histogram()[255]
        total_pixels = width * height

        if diff_path:
            mask.save(diff_path)

        return DiffResult(
            diff_pixels=diff_pixels,
            total_pixels=total_pixels,
            diff_percent=diff_pixels / total_pixels * 100,
            baseline_height=baseline.height,
            optimized_height=optimized.height,
        )


def classify_diff(diff_percent: float, height_delta: int = 0) -> VisualStatus:
    if diff_percent < DIFF_IDENTICAL_PERCENT:
        status = "identical"
    elif diff_percent < DIFF_ACCEPTABLE_PERCENT:
        status = "acceptable"
    elif diff_percent < DIFF_NEEDS_REVIEW_PERCENT:
        status = "needs-review"
    else:
        status = "failed"

    if height_delta > HEIGHT_DELTA_LIMIT_PX and status in ("identical", "acceptable"):
        status = "needs-review"
    return status


class VisualJudge(Protocol):
    async def review(self, result: VisualComparisonResult) -> VisualReview:
        ...


def viewport_for(baseline: BaselineScreenshot) -> Viewport:
    for viewport in VIEWPORTS:
        if viewport[0] == baseline.viewport:
            return (baseline.viewport, baseline.width, baseline.height, viewport[3])
    return (baseline.viewport, baseline.width, baseline.height, 1)


class VisualVerifier:
    def __init__(
        self,
        driver: BrowserDriver,
        comparator: Optional[ImageComparator] = None,
        judge: Optional[VisualJudge] = None,
        log: Optional[StructuredLogger] = None,
        workers: int = CAPTURE_WORKERS,
    ):
        self.driver = driver
        self.comparator = comparator or PixelDiffComparator()
        self.judge = judge
        self.log = log or StructuredLogger("Visual")
        self.workers = workers

    async def verify(
        self,
        edge_url: str,
        baselines: Sequence[BaselineScreenshot],
        work_dir: str,
    ) -> List[VisualComparisonResult]:
        optimized_dir = os.path.join(work_dir, "optimized")
        diffs_dir = os.path.join(work_dir, "diffs")
        os.makedirs(optimized_dir, exist_ok=True)
        os.makedirs(diffs_dir, exist_ok=True)

        semaphore = asyncio.Semaphore(self.workers)

        async def bounded(baseline: BaselineScreenshot) -> VisualComparisonResult:
            async with semaphore:
                return await self.compare_one(edge_url, baseline, optimized_dir, diffs_dir)

        results = list(await asyncio.gather(*(bounded(b) for b in baselines)))

        passed = sum(1 for r in results if r.passed)
        self.log.info(f"Visual: {passed} passed, {len(results) - passed} need attention")

        if self.judge is not None:
            await self.escalate(results)
        return results

    async def compare_one(
        self,
        edge_url: str,
        baseline: BaselineScreenshot,
        optimized_dir: str,
        diffs_dir: str,
    ) -> VisualComparisonResult:
        result = VisualComparisonResult(
            page=baseline.page,
            viewport=baseline.viewport,
            baseline_image_path=baseline.full_page_path,
        )
        try:
            shot = await capture_screenshot(
                self.driver,
                page_url_on(edge_url, baseline.page),
                baseline.page,
                viewport_for(baseline),
                optimized_dir,
            )
            result.optimized_image_path = shot.full_page_path

            if not os.path.exists(baseline.full_page_path):
                result.error = "Baseline screenshot missing"
                return result

            diff_path = os.path.join(diffs_dir, f"{safe_path_name(baseline.page)}_{baseline.viewport}_diff.png")
            diff = self.comparator.compare(baseline.full_page_path, shot.full_page_path, diff_path)
        except Exception as e:
            result.error = f"Comparison failed: {e}"
            self.log.warning(f"{baseline.page} @ {baseline.viewport}: {result.error}")
            return result

        result.diff_percent = diff.diff_percent
        result.diff_pixels = diff.diff_pixels
        result.total_pixels = diff.total_pixels
        result.height_delta = diff.height_delta
        result.diff_image_path = diff_path
        result.status = classify_diff(diff.diff_percent, diff.height_delta)

        if diff.height_delta > HEIGHT_DELTA_LIMIT_PX:
            self.log.warning(
                f"{baseline.page} @ {baseline.viewport}: height {diff.baseline_height}px -> {diff.optimized_height}px"
            )
        self.log.info(f"{baseline.page} @ {baseline.viewport}: {diff.diff_percent:.2f}% diff ({result.status})")
        return result

    async def escalate(self, results: List[VisualComparisonResult]) -> None:
        """Attach AI verdicts to the first few doubtful diffs. Status is unchanged."""
        doubtful = [
            r for r in results
            if not r.passed
            and os.path.exists(r.baseline_image_path)
            and r.optimized_image_path
            and os.path.exists(r.optimized_image_path)
        ][:MAX_AI_VISUAL_REVIEWS]

        for result in doubtful:
            try:
                review = await self.judge.review(result)
            except Exception as e:
                self.log.warning(f"AI visual review failed for {result.page} @ {result.viewport}: {e}")
                continue
            result.ai_review = review.verdict
            result.ai_regions = list(review.regions)
            self.log.info(f"AI review {result.page} @ {result.viewport}: {review.verdict}")
