#!/usr/bin/env python3
"""
Batch annotation CLI.

Usage:
    # Annotate every item of a JSONL file with the default provider
    python annotate.py -i ./items.jsonl

    # Dry run with a preset, exporting item results
    python annotate.py -i ./items.jsonl --config configs/presets/local.py --export results.jsonl

    # Only items matching a filter, through an OpenAI-compatible server
    python annotate.py -i ./items.jsonl --provider openai --model llama3.1 --filter table=orders

    # Housekeeping on persisted batches
    python annotate.py --config configs.presets.local --history
    python annotate.py --config configs.presets.local --cleanup-days 30
"""

import argparse
import json
import logging
from pathlib import Path

from analytics.quality import QualityAssessor
from batching import (
    BatchOrchestrator,
    BatchValidationError,
    CompositeEventSink,
    InMemoryItemSource,
    JsonlEventSink,
    JsonlItemSource,
    LoggingEventSink,
)
from caching.annotation_cache import AnnotationCache
from configs.base import OrchestratorConfig
from configs.loader import load_config
from core.config import BATCH_OPERATIONS, GEMINI_MODELS
from core.jsonl_utils import write_entries
from providers.factory import ProviderRegistry
from storage.file_store import FileStore


def select_model_interactive() -> str:
    """Prompt user to select a model."""
    print("\n" + "=" * 60)
    print("SELECT A MODEL")
    print("=" * 60)
    for key, (model_name, description) in GEMINI_MODELS.items():
        print(f"  [{key}] {description}")
        print(f"      → {model_name}")
    print()

    while True:
        choice = input("Enter choice (1/2/3) or press Enter for default [3]: ").strip()
        if choice == "":
            choice = "3"
        if choice in GEMINI_MODELS:
            model_name, _ = GEMINI_MODELS[choice]
            print(f"\n✓ Selected: {model_name}\n")
            return model_name
        print("Invalid choice. Please enter 1, 2, or 3.")


def parse_filters(pairs: list[str]) -> dict:
    """Turn KEY=VALUE arguments into a filter dict. Values are JSON when they parse."""
    filters = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Filter must look like KEY=VALUE, got {pair!r}")
        try:
            filters[key] = json.loads(raw)
        except json.JSONDecodeError:
            filters[key] = raw
    return filters


def build_orchestrator(
    config: OrchestratorConfig, input_path: Path | None, provider_name: str, events_path: Path | None
) -> BatchOrchestrator:
    """Wire provider, item source, cache, store and event sinks from a config."""
    store = FileStore(config.storage_dir) if config.storage_dir else None
    cache_store = FileStore(config.cache_dir) if config.cache_persistent else None
    cache = AnnotationCache(
        store=cache_store,
        default_ttl=config.cache_ttl,
        namespace_ttls=config.namespace_ttls,
        sweep_interval=config.cache_sweep_interval,
        persistent=config.cache_persistent,
    )

    sinks = [LoggingEventSink()]
    if events_path:
        sinks.append(JsonlEventSink(events_path))

    return BatchOrchestrator(
        provider=ProviderRegistry.create(provider_name),
        item_source=JsonlItemSource(input_path) if input_path else InMemoryItemSource(),
        cache=cache,
        assessor=QualityAssessor(store=store),
        events=CompositeEventSink(*sinks),
        store=store,
        config=config,
    )


def print_history(orchestrator: BatchOrchestrator, limit: int) -> None:
    jobs = orchestrator.get_batch_history({"limit": limit})
    if not jobs:
        print("No batches recorded.")
        return
    print(f"{'ID':<45} {'OPERATION':<10} {'STATUS':<10} {'PROGRESS':>8}  CREATED")
    for job in jobs:
        print(
            f"{job.id:<45} {job.operation.value:<10} {job.status.value:<10} "
            f"{job.progress:>8.0%}  {job.created_at:%Y-%m-%d %H:%M}"
        )


def print_summary(data: dict) -> None:
    summary = data["summary"]
    perf = summary["performance_metrics"]
    print(f"\nBatch {data['id']}: {data['status']}")
    if data.get("error"):
        print(f"Error: {data['error']}")
    print(
        f"Items: {summary['total']} | Success: {summary['successful']} | "
        f"Failed: {summary['failed']} | Cached: {summary['cached']}"
    )
    print(f"Quality score: {summary['quality_score']:.1f}")
    print(
        f"Latency ms: avg {perf['average_duration']:.0f}, p50 {perf['p50']:.0f}, "
        f"p95 {perf['p95']:.0f}, p99 {perf['p99']:.0f}"
    )
    if summary["business_areas"]:
        print(f"Business areas: {summary['business_areas']}")


def main():
    """Run one annotation batch, or query persisted batches."""
    parser = argparse.ArgumentParser(
        description="Bulk annotation batches with caching, retries and cost tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Operations: {', '.join(BATCH_OPERATIONS)}
Providers: {', '.join(ProviderRegistry.list_providers())}

Examples:
  python annotate.py -i ./items.jsonl
  python annotate.py -i ./items.jsonl --provider echo --export results.jsonl
  python annotate.py --config configs.presets.local --history
        """,
    )
    parser.add_argument("--input", "-i", type=Path, default=None, help="JSONL file of items")
    parser.add_argument(
        "--operation", choices=BATCH_OPERATIONS, default="annotate", help="Batch operation kind"
    )
    parser.add_argument("--config", "-c", type=str, default=None, help="Config preset (path or module)")
    parser.add_argument("--provider", "-p", type=str, default=None, help="Provider name (overrides config)")
    parser.add_argument("--model", type=str, default=None, help="Model identifier (overrides config)")
    parser.add_argument("--select-model", action="store_true", help="Interactively select model")
    parser.add_argument("--workers", "-w", type=int, default=None, help="Parallel requests")
    parser.add_argument("--retries", type=int, default=None, help="Retry attempts per item")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds per provider call")
    parser.add_argument(
        "--quality-threshold", type=int, default=None, help="Open QA reviews below this score"
    )
    parser.add_argument(
        "--filter", "-f", action="append", default=[], metavar="KEY=VALUE", help="Item filter"
    )
    parser.add_argument("--name", type=str, default=None, help="Batch name")
    parser.add_argument("--events", type=Path, default=None, help="Append events to this JSONL file")
    parser.add_argument("--export", "-o", type=Path, default=None, help="Write item results to JSONL")
    parser.add_argument("--history", action="store_true", help="List persisted batches and exit")
    parser.add_argument("--limit", "-n", type=int, default=20, help="Rows shown by --history")
    parser.add_argument(
        "--cleanup-days", type=int, default=None, help="Delete batches older than N days and exit"
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = load_config(args.config, Path(__file__).parent) if args.config else OrchestratorConfig()
    provider_name = args.provider or config.provider

    if not (args.history or args.cleanup_days is not None or args.input):
        parser.error("--input is required unless --history or --cleanup-days is given")

    with build_orchestrator(config, args.input, provider_name, args.events) as orchestrator:
        restored = orchestrator.restore()
        if restored:
            print(f"Restored {restored} batches from {config.storage_dir}")

        if args.cleanup_days is not None:
            removed = orchestrator.cleanup_old_batches(args.cleanup_days)
            print(f"Removed {removed} batches older than {args.cleanup_days} days")
            return

        if args.history:
            print_history(orchestrator, args.limit)
            return

        options = {}
        model = select_model_interactive() if args.select_model else args.model
        if model:
            options["model"] = model
        if args.workers is not None:
            options["parallel_requests"] = args.workers
        if args.retries is not None:
            options["retry_attempts"] = args.retries
        if args.timeout is not None:
            options["timeout"] = args.timeout
        if args.quality_threshold is not None:
            options["quality_threshold"] = args.quality_threshold

        try:
            job = orchestrator.create(
                {
                    "operation": args.operation,
                    "filters": parse_filters(args.filter),
                    "options": options,
                    "name": args.name,
                }
            )
        except (BatchValidationError, ValueError) as e:
            parser.error(str(e))

        print(f"\nInput: {args.input}")
        print(f"Using: {orchestrator.provider.name} / {job.options['model']}")
        print(f"Workers: {job.options['parallel_requests']}")
        print()

        orchestrator.run(job.id)
        data = orchestrator.get_batch_with_results(job.id)
        print_summary(data)

        if args.export:
            count = write_entries(args.export, data["results"])
            print(f"Results: {args.export} ({count} entries)")

        for row in orchestrator.ledger.get_all_models_stats():
            print(
                f"Usage {row.model_name} ({row.provider}): {row.total_requests} requests, "
                f"{row.total_tokens} tokens, ${row.total_cost:.4f}"
            )


if __name__ == "__main__":
    main()
