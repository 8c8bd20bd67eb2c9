"""Write path: aspect extraction, batch analysis and indexing."""

from .aspect_extractor import AspectExtractor, count_aspects
from .batch_coordinator import BatchIndexingCoordinator, merge_analysis_results
from .video_indexer import FrameDescription, TimestampRange, VideoIndexer

__all__ = [
    "AspectExtractor",
    "count_aspects",
    "BatchIndexingCoordinator",
    "merge_analysis_results",
    "VideoIndexer",
    "FrameDescription",
    "TimestampRange",
]
