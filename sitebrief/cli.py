"""Sitebrief - website brief extractor

Simple CLI that starts a crawl, polls it and prints the extracted brief.
"""

import argparse
import asyncio
import json
import sys

from sitebrief.agents.orchestrator import BriefOrchestrator
from sitebrief.config import settings
from sitebrief.models.schemas import BriefResponse, FailureResponse, ProgressResponse


async def run_brief(
    url: str,
    goal: str | None = None,
    poll_interval: float = 3.0,
    max_wait: float = 600.0,
    orchestrator: BriefOrchestrator | None = None,
) -> int:
    """Crawl ``url`` and print its brief. Returns a process exit code."""
    orchestrator = orchestrator or BriefOrchestrator()

    print(f"Crawling: {url}")
    print("-" * 50)

    started = await orchestrator.start_crawl(url, goal)
    if isinstance(started, FailureResponse):
        print(f"[!] Error: {started.error}")
        return 1

    print(f"[*] Job {started.job_id} (goal: {started.goal}, limit: {started.limit})")

    loop = asyncio.get_running_loop()
    deadline = loop.time() + max_wait
    while True:
        result = await orchestrator.get_status_or_brief(started.job_id, goal=started.goal, extract=True)

        if isinstance(result, ProgressResponse):
            print(f"  [~] {result.status}: {result.completed}/{result.total} pages")
            if loop.time() >= deadline:
                print(f"\n[!] Gave up after {max_wait:.0f}s; job {started.job_id} is still running")
                return 1
            await asyncio.sleep(poll_interval)
            continue

        if isinstance(result, FailureResponse):
            print(f"\n[!] Error: {result.error}")
            if result.detail is not None:
                print(json.dumps(result.detail, indent=2, default=str))
            return 1

        if isinstance(result, BriefResponse):
            meta = result.meta
            print(f"\n[*] Brief complete!")
            print(f"   Pages used: {meta.pages_used}/{meta.total_pages}")
            print(f"   JSON repaired: {meta.json_repaired}")
            if meta.pagination_truncated:
                print("   Pagination truncated")
            print(f"\n{'='*50}")
            print("BRIEF:")
            print(f"{'='*50}")
            print(json.dumps(result.result.model_dump(mode="json"), indent=2, ensure_ascii=False))
            return 0

        # Completed without extraction should not happen with extract=True
        print(f"\n[!] Unexpected response: {result!r}")
        return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sitebrief website brief extractor")
    parser.add_argument("--url", "-u", required=True, help="Website to crawl")
    parser.add_argument("--goal", "-g", help="Brief goal (default: Competitor Snapshot)")
    parser.add_argument("--poll-interval", type=float, default=3.0, help="Seconds between status checks")
    parser.add_argument("--max-wait", type=float, default=600.0, help="Give up after this many seconds")

    args = parser.parse_args(argv)

    if not settings.firecrawl_api_key or not settings.claude_api_key:
        print("[!] FIRECRAWL_API_KEY and CLAUDE_API_KEY must be set", file=sys.stderr)
        return 2

    return asyncio.run(run_brief(args.url, args.goal, args.poll_interval, args.max_wait))


if __name__ == "__main__":
    sys.exit(main())
