"""Command-line entry point for aspect RAG."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .analysis import AnalysisResult
from .config import load_config, validate_config
from .exceptions import VideoRAGError
from .schema import RAGResponse
from .service import VideoRAGService


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def print_answer(response: RAGResponse) -> None:
    print(f"\n{response.answer}\n")
    if response.sources:
        print("Sources:")
        for source in response.sources:
            aspect = f"[{source.aspect_type.value}] " if source.aspect_type else ""
            score = f" ({source.relevance_score:.2f})" if source.relevance_score is not None else ""
            print(f"  {source.timestamp} {aspect}{source.content}{score}")
    print(f"\n{response.latency_ms}ms")


async def run_index(service: VideoRAGService, args: argparse.Namespace) -> int:
    path = Path(args.analysis)
    if not path.exists():
        print(f"Error: Analysis file not found: {path}")
        return 1

    with open(path) as f:
        analysis = AnalysisResult.from_dict(json.load(f))

    result = await service.index_video(
        source_uri=args.source or str(path.resolve()),
        title=args.title or path.stem,
        analysis=analysis,
        duration=args.duration,
    )
    if not result.success:
        print(f"Indexing failed: {result.error}")
        return 1

    print(f"Indexed video {result.video_id}: {result.record_count} records in {result.duration_ms}ms")
    for aspect, count in result.aspect_counts.items():
        print(f"  {aspect}: {count}")
    return 0


async def run_index_video(service: VideoRAGService, args: argparse.Namespace) -> int:
    result = await service.analyze_and_index_video(
        file_uri=args.file_uri,
        title=args.title or args.file_uri,
        source_uri=args.source,
    )
    if not result.success:
        print(f"Indexing failed: {result.error}")
        return 1
    print(f"Indexed video {result.video_id}: {result.record_count} records")
    return 0


async def run_chat(service: VideoRAGService, video_id: str, top_k: Optional[int]) -> None:
    """Run interactive question answering about one video."""
    video = await service.get_video(video_id)

    print("\n" + "=" * 60)
    print(f"CHAT: {video.title}")
    print("Type 'quit' or 'exit' to end the chat")
    print("=" * 60 + "\n")

    while True:
        try:
            question = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting chat...")
            break

        if not question:
            continue

        if question.lower() in ("quit", "exit", "q"):
            print("Goodbye!")
            break

        try:
            print_answer(await service.answer(video_id, question, top_k))
        except VideoRAGError as e:
            print(f"\nError: {e}\n")


async def run_ask(service: VideoRAGService, args: argparse.Namespace) -> int:
    if args.question:
        print_answer(await service.answer(args.video_id, args.question, args.top_k))
    else:
        await run_chat(service, args.video_id, args.top_k)
    return 0


async def run_search(service: VideoRAGService, args: argparse.Namespace) -> int:
    response = await service.global_search(args.query, args.top_k)
    for hit in response.hits:
        aspect = f"[{hit.aspect_type.value}] " if hit.aspect_type else ""
        print(f"{hit.video_title} @ {hit.timestamp} {aspect}{hit.content} ({hit.relevance_score:.2f})")
    print(f"\n{len(response.hits)} hits in {response.latency_ms}ms {response.aspect_counts}")
    return 0


async def run_list(service: VideoRAGService, args: argparse.Namespace) -> int:
    videos = await service.list_videos()
    if not videos:
        print("No indexed videos")
    for video in videos:
        print(
            f"{video.id}  {video.title}  ({video.record_count} records, "
            f"{video.confidence.value}, {video.indexed_at})"
        )
    return 0


async def run_delete(service: VideoRAGService, args: argparse.Namespace) -> int:
    deleted = await service.delete_video(args.video_id)
    print(f"Deleted video {args.video_id} ({deleted} records)")
    return 0


async def run_stats(service: VideoRAGService, args: argparse.Namespace) -> int:
    stats = await service.get_stats()
    print(f"Videos:          {stats.video_count}")
    print(f"Aspect records:  {stats.record_count}")
    print(f"Legacy frames:   {stats.frame_count}")
    print(f"Database:        {stats.db_location}")
    return 0


COMMANDS = {
    "index": run_index,
    "index-video": run_index_video,
    "ask": run_ask,
    "search": run_search,
    "list": run_list,
    "delete": run_delete,
    "stats": run_stats,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aspect-rag",
        description="Index videos by aspect and answer questions about them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Index a saved analysis result
  aspect-rag index analysis.json --title "Store camera 3"

  # Ask one question, or start a chat when the question is omitted
  aspect-rag ask <video-id> "How many robbers were there?"
  aspect-rag ask <video-id>

  # Search every indexed video
  aspect-rag search "red car"

Environment Variables:
  GEMINI_API_KEY      Google AI Studio API key
  GROQ_API_KEY        Groq API key (when providers.text is groq)
  MILVUS_HOST         Milvus host (default: localhost)
  VECTOR_DB_BACKEND   milvus or memory (default: milvus)
""",
    )
    parser.add_argument(
        "--config",
        "-c",
        default="config/config.yaml",
        help="Path to configuration file (default: config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    index = sub.add_parser("index", help="Index a structured analysis JSON file")
    index.add_argument("analysis", help="Path to analysis JSON")
    index.add_argument("--title", "-t", help="Video title (default: file name)")
    index.add_argument("--source", "-s", help="Source URI used for de-duplication")
    index.add_argument("--duration", type=float, help="Video duration in seconds")

    index_video = sub.add_parser("index-video", help="Analyze an uploaded Gemini file and index it")
    index_video.add_argument("file_uri", help="Gemini File API URI (files/...)")
    index_video.add_argument("--title", "-t", help="Video title")
    index_video.add_argument("--source", "-s", help="Source URI used for de-duplication")

    ask = sub.add_parser("ask", help="Ask about an indexed video")
    ask.add_argument("video_id")
    ask.add_argument("question", nargs="?", help="Question (omit for interactive chat)")
    ask.add_argument("--top-k", "-k", type=int)

    search = sub.add_parser("search", help="Search across all indexed videos")
    search.add_argument("query")
    search.add_argument("--top-k", "-k", type=int)

    sub.add_parser("list", help="List indexed videos")

    delete = sub.add_parser("delete", help="Delete an indexed video")
    delete.add_argument("video_id")

    sub.add_parser("stats", help="Show store statistics")

    return parser


async def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    config = load_config(args.config)
    errors = validate_config(config)
    if errors:
        for error in errors:
            print(f"Config error: {error}")
        return 2

    service = VideoRAGService.from_config(config)
    try:
        await service.start()
        return await COMMANDS[args.command](service, args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except VideoRAGError as e:
        print(f"Error: {e}")
        return 1
    except Exception as e:
        logging.error(f"Error: {e}")
        if args.log_level == "DEBUG":
            import traceback

            traceback.print_exc()
        return 1
    finally:
        await service.stop()


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
