#!/usr/bin/env python3
"""
Pipeline management CLI - enqueue items and inspect the queue and store.

Usage: python compintel_cli.py <command> [options]

Commands:
    enqueue <file.jsonl>     - Validate and enqueue raw items (one JSON object per line)
    process [file.jsonl]     - Optionally enqueue a file, then process until the queue is empty
    fingerprint <file.jsonl> - Print the deduplication fingerprint of each item
    stats                    - Show queue counts
    dead-letters [limit]     - List dead-lettered items
    requeue <entry_id>       - Give a dead-lettered item a fresh set of attempts
    recent <tenant> [limit]  - Show the most recent processed items for a tenant
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Iterator, Tuple

from dotenv import load_dotenv

from compintel.config import load_config
from compintel.errors import ItemValidationError
from compintel.fingerprint import fingerprint
from compintel.models import RawItem
from compintel.pipeline_orchestrator import PipelineOrchestrator, create_orchestrator


class Colors:
    """ANSI color codes for terminal output."""
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    END = "\033[0m"


def read_jsonl(path: str) -> Iterator[Tuple[int, Dict[str, Any]]]:
    """Yield (line number, object) for each non-blank line."""
    with Path(path).open() as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if line:
                yield lineno, json.loads(line)


async def enqueue_file(orchestrator: PipelineOrchestrator, path: str) -> None:
    accepted = rejected = 0
    for lineno, data in read_jsonl(path):
        try:
            entry_id = await orchestrator.enqueue(data)
        except ItemValidationError as e:
            rejected += 1
            first_line = str(e).splitlines()[0] if str(e) else "invalid item"
            print(f"{Colors.RED}Line {lineno} rejected: {first_line}{Colors.END}")
            continue
        accepted += 1
        print(f"{Colors.GREEN}Line {lineno} queued as entry {entry_id}{Colors.END}")
    print(f"{Colors.BOLD}Accepted {accepted}, rejected {rejected}{Colors.END}")


def show_fingerprints(path: str) -> None:
    for lineno, data in read_jsonl(path):
        try:
            item = RawItem.model_validate(data)
        except ValueError as e:
            print(f"{Colors.RED}Line {lineno}: invalid item ({str(e).splitlines()[0]}){Colors.END}")
            continue
        print(f"{lineno}\t{item.tenant_id}\t{fingerprint(item)}")


async def show_stats(orchestrator: PipelineOrchestrator) -> None:
    stats = await orchestrator.queue.stats()
    print(f"{Colors.BOLD}📊 Ingestion Queue{Colors.END}")
    print("=" * 40)
    print(f"Pending:   {Colors.CYAN}{stats['pending']}{Colors.END}")
    print(f"In flight: {Colors.BLUE}{stats['in_flight']}{Colors.END}")
    dead_color = Colors.RED if stats["dead"] else Colors.GREEN
    print(f"Dead:      {dead_color}{stats['dead']}{Colors.END}")


async def show_dead_letters(orchestrator: PipelineOrchestrator, limit: int) -> None:
    letters = await orchestrator.queue.dead_letters(limit)
    if not letters:
        print(f"{Colors.GREEN}No dead-lettered items{Colors.END}")
        return
    for letter in letters:
        print(
            f"{Colors.RED}#{letter.entry_id}{Colors.END} item={letter.item_id} "
            f"tenant={letter.tenant_id} attempts={letter.attempts}"
        )
        print(f"    {letter.last_error}")


async def show_recent(orchestrator: PipelineOrchestrator, tenant_id: str, limit: int) -> None:
    items = await orchestrator.store.list_recent(tenant_id, limit=limit)
    for item in items:
        print(
            f"{item.processed_at:%Y-%m-%d %H:%M} [{item.priority.value:>8}] "
            f"{item.kind.value:<12} {item.content[:60]}"
        )
        for insight in item.insights:
            print(f"    - {insight}")
    if not items:
        print(f"{Colors.YELLOW}No processed items for tenant {tenant_id}{Colors.END}")


async def main(argv) -> int:
    """Main CLI entry point."""
    command = argv[1].lower()

    if command == "fingerprint":
        show_fingerprints(argv[2])
        return 0

    config = load_config(os.getenv("PIPELINE_CONFIG", "pipeline.yml"))
    orchestrator = create_orchestrator(config)
    await orchestrator.open()

    try:
        if command == "enqueue":
            await enqueue_file(orchestrator, argv[2])
        elif command == "process":
            if len(argv) > 2:
                await enqueue_file(orchestrator, argv[2])
            await orchestrator.run_until_empty()
            print(f"{Colors.BOLD}Done:{Colors.END} {orchestrator.stats.snapshot()}")
        elif command == "stats":
            await show_stats(orchestrator)
        elif command == "dead-letters":
            limit = int(argv[2]) if len(argv) > 2 else 100
            await show_dead_letters(orchestrator, limit)
        elif command == "requeue":
            if await orchestrator.queue.requeue_dead_letter(int(argv[2])):
                print(f"{Colors.GREEN}Entry {argv[2]} requeued{Colors.END}")
            else:
                print(f"{Colors.YELLOW}Entry {argv[2]} is not dead-lettered{Colors.END}")
                return 1
        elif command == "recent":
            limit = int(argv[3]) if len(argv) > 3 else 20
            await show_recent(orchestrator, argv[2], limit)
        else:
            print(f"{Colors.RED}Unknown command: {command}{Colors.END}")
            print(__doc__)
            return 1
    finally:
        await orchestrator.drain_and_stop()

    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2 or (sys.argv[1] in ("enqueue", "fingerprint", "requeue", "recent")
                             and len(sys.argv) < 3):
        print(__doc__)
        sys.exit(1)

    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s"
    )

    try:
        sys.exit(asyncio.run(main(sys.argv)))
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Interrupted{Colors.END}")
        sys.exit(130)
