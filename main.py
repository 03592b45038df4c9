# main.py
"""
Entry point / Orchestrator.

Wires the review pipeline together:
1) Load configuration (.env + AR_* environment + CLI flags)
2) Build the snapshot store, corpus, artifact store and text generator
3) Run one of:
   - daily     one daily review (bootstrap on first run, incremental afterwards)
   - weekly    aggregate this ISO week's daily reviews
   - catch-up  run a missed daily review for today or yesterday
   - schedule  catch up, then trigger daily/weekly reviews on time
   - status    snapshot store diagnostics
   - gc        remove snapshot blobs no longer referenced by the index

Design principle:
- Determinism-first: detection, diffing and persistence never involve the LLM;
  the generator only narrates the structured change payload.
"""
from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ar.artifacts import ArtifactStore
from ar.config import ReviewConfig, load_config
from ar.corpus import VaultCorpus
from ar.errors import ReviewError
from ar.llm import OpenAIGenerator, TextGenerator
from ar.logging_utils import setup_logging
from ar.review import ReviewService
from ar.scheduler import Scheduler
from ar.store import BlobStore, SnapshotIndexStore, snapshot_stats, sweep_orphans
from ar.weekly import WeeklyAggregator


def build_generator(config: ReviewConfig) -> OpenAIGenerator:
    return OpenAIGenerator(
        model=config.model,
        temperature=config.temperature,
        timeout=config.llm_timeout_seconds,
        max_retries=config.llm_max_retries,
    )


def build_review_service(config: ReviewConfig, generator: TextGenerator) -> ReviewService:
    vault = config.vault_dir
    corpus = VaultCorpus(
        vault,
        exclude_dirs=[_vault_relative(config.reviews_path, vault), _vault_relative(config.data_path, vault)],
    )
    return ReviewService(
        source=corpus,
        blobs=BlobStore(config.snapshots_path),
        index_store=SnapshotIndexStore(config.index_path),
        artifacts=ArtifactStore(config.reviews_path),
        generator=generator,
        max_diff_lines=config.max_diff_lines,
        max_files_for_detail=config.max_files_for_detail,
        gc_orphans=config.gc_orphans,
    )


def _vault_relative(path: Path, vault: Path) -> str:
    # Output directories outside the vault need no exclusion
    try:
        return path.resolve().relative_to(vault.resolve()).as_posix()
    except ValueError:
        return ""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Daily and weekly activity reviews for a Markdown vault.")
    parser.add_argument("--vault", type=Path, help="Vault directory (default: AR_VAULT_DIR or cwd)")
    parser.add_argument("--env-file", type=Path, help="Path to a .env file")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", type=Path)

    sub = parser.add_subparsers(dest="command", required=True)

    daily = sub.add_parser("daily", help="Generate today's (or --date's) daily review")
    daily.add_argument("--date", help="Attribute the review to this YYYY-MM-DD date")
    daily.add_argument("--max-diff-lines", type=int)

    sub.add_parser("weekly", help="Generate this ISO week's review from the daily reviews")
    sub.add_parser("catch-up", help="Run a missed daily review for today or yesterday")

    schedule = sub.add_parser("schedule", help="Catch up, then run reviews at the configured times")
    schedule.add_argument("--max-ticks", type=int, help="Stop after this many ticks (default: run forever)")

    sub.add_parser("status", help="Show snapshot store diagnostics")
    sub.add_parser("gc", help="Delete snapshot blobs that no index entry references")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        config = load_config(env_file=args.env_file, vault_dir=args.vault)
    except ValidationError as e:
        print(f"\nERROR: invalid configuration:\n{e}", file=sys.stderr)
        return 2

    generator = build_generator(config)
    service = build_review_service(config, generator)
    weekly = WeeklyAggregator(service.artifacts, generator)
    now = datetime.now()

    try:
        if args.command == "daily":
            outcome = service.run_daily(now, date_key=args.date, max_diff_lines=args.max_diff_lines)
            print(f"Daily review ({outcome.kind}) written to {outcome.artifact_path}")
            if outcome.changes is not None and not outcome.changes.is_empty:
                print(f"Changes: {outcome.changes.summary}")
            if outcome.unreadable:
                print(f"Skipped unreadable documents: {outcome.unreadable}")

        elif args.command == "weekly":
            artifact = weekly.run(now)
            print(f"Weekly review {artifact.week_key} written to {artifact.path}")
            print(f"Daily reviews used: {', '.join(artifact.daily_dates)}")

        elif args.command == "catch-up":
            scheduler = Scheduler.from_config(service, weekly, config)
            target = scheduler.catch_up(now)
            print(f"Caught up daily review for {target}" if target else "No missed daily review to run")

        elif args.command == "schedule":
            scheduler = Scheduler.from_config(service, weekly, config)
            for name, at in scheduler.next_run_times(now).items():
                print(f"Next {name} review: {at:%Y-%m-%d %H:%M}")
            scheduler.start(max_ticks=args.max_ticks)

        elif args.command == "status":
            stats = snapshot_stats(BlobStore(config.snapshots_path), SnapshotIndexStore(config.index_path))
            print(f"Index status:       {stats.index_status}")
            print(f"Tracked documents:  {stats.tracked_documents}")
            print(f"Snapshot blobs:     {stats.blob_count} ({stats.blob_bytes} bytes)")
            print(f"Orphan blobs:       {stats.orphan_count}")
            print(f"Last snapshot time: {stats.last_snapshot_time or '-'}")

        elif args.command == "gc":
            index = SnapshotIndexStore(config.index_path).load()
            if index is None:
                print("No snapshot index; nothing to collect")
                return 0
            removed = sweep_orphans(BlobStore(config.snapshots_path), index)
            print(f"Removed {len(removed)} orphan snapshot blobs")

    except ReviewError as e:
        print("\nERROR:", str(e), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
