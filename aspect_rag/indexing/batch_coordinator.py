"""Split frame analysis into bounded-concurrency batches and merge the results."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from ..analysis import AnalysisResult, ConfidenceLevel, FrameObservation, TokenUsage
from ..exceptions import InvalidInputError
from ..models.base import FrameSample, VideoAnalyzer
from ..utils import chunk_list, elapsed_ms

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Video analysis completed using parallel batch processing."

EMPTY_SUMMARY_MARKERS = {"", "no summary provided"}


def _frame_sort_key(frame: FrameObservation) -> float:
    try:
        return frame.timestamp_seconds
    except ValueError:
        return float("inf")


def merge_analysis_results(results: list[AnalysisResult]) -> AnalysisResult:
    """
    Merge per-batch analysis results.

    Frames are concatenated and stably sorted by timestamp, confidence is the
    lowest reported level, summaries are joined with a space and token usage
    is summed when any batch reported it.

    Args:
        results: Batch results in batch order

    Returns:
        Single AnalysisResult
    """
    frames: list[FrameObservation] = []
    for result in results:
        frames.extend(result.frames)
    frames.sort(key=_frame_sort_key)

    summaries = [
        r.summary.strip()
        for r in results
        if r.summary and r.summary.strip().lower() not in EMPTY_SUMMARY_MARKERS
    ]

    usages = [r.token_usage for r in results if r.token_usage is not None]
    token_usage: Optional[TokenUsage] = None
    if usages:
        thoughts = [u.thoughts_tokens for u in usages if u.thoughts_tokens is not None]
        token_usage = TokenUsage(
            input_tokens=sum(u.input_tokens for u in usages),
            output_tokens=sum(u.output_tokens for u in usages),
            thoughts_tokens=sum(thoughts) if thoughts else None,
        )

    persons_summary = next(
        (r.persons_summary for r in reversed(results) if r.persons_summary is not None),
        None,
    )

    return AnalysisResult(
        summary=" ".join(summaries) if summaries else DEFAULT_SUMMARY,
        frames=frames,
        confidence=ConfidenceLevel.lowest([r.confidence for r in results]),
        persons_summary=persons_summary,
        token_usage=token_usage,
    )


class BatchIndexingCoordinator:
    """Analyze sampled frames in batches, at most ``max_concurrency`` at a time."""

    def __init__(
        self,
        analyzer: VideoAnalyzer,
        batch_size: int = 10,
        max_concurrency: int = 6,
    ) -> None:
        """
        Args:
            analyzer: Provider used for each batch
            batch_size: Frames per batch
            max_concurrency: Batches running at once
        """
        if batch_size <= 0 or max_concurrency <= 0:
            raise InvalidInputError("batch_size and max_concurrency must be positive")
        self._analyzer = analyzer
        self._batch_size = batch_size
        self._max_concurrency = max_concurrency

    async def analyze(self, frames: list[FrameSample]) -> AnalysisResult:
        """
        Analyze all frames and merge the batch results.

        Batches run in groups; the next group starts only after every batch
        in the current group has finished. Any batch failure fails the whole
        analysis.

        Args:
            frames: Sampled frames in timestamp order

        Returns:
            Merged AnalysisResult

        Raises:
            InvalidInputError: If no frames were given
        """
        if not frames:
            raise InvalidInputError("No frames to analyze")

        start = time.perf_counter()
        batches = chunk_list(frames, self._batch_size)
        total = len(batches)
        logger.info(
            f"Analyzing {len(frames)} frames in {total} batches "
            f"(max {self._max_concurrency} concurrent)"
        )

        results: list[AnalysisResult] = []
        for group_start in range(0, total, self._max_concurrency):
            group = batches[group_start : group_start + self._max_concurrency]
            group_results = await asyncio.gather(
                *[
                    self._analyzer.analyze_frame_batch(batch, group_start + i, total)
                    for i, batch in enumerate(group)
                ]
            )
            results.extend(group_results)
            logger.debug(f"Completed batches {group_start + 1}-{group_start + len(group)}/{total}")

        merged = merge_analysis_results(results)
        logger.info(
            f"Batch analysis produced {len(merged.frames)} frames "
            f"({merged.confidence.value} confidence) in {elapsed_ms(start)}ms"
        )
        return merged
