#!/usr/bin/env python3
"""Time catalog builds and queries against a generated package tree."""

from __future__ import annotations

import argparse
import json
import shutil
import statistics
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from catalog_mcp.server import StdioServer, create_server

REPO_ROOT = Path(__file__).resolve().parents[1]

FIXTURE_TYPES = ("AxClass", "AxTable", "AxForm", "AxEnum")


@dataclass(frozen=True, slots=True)
class FixtureProfile:
    """Size profile for a generated catalog tree."""

    packages: int
    objects_per_type: int
    double_nested: bool = True


FIXTURE_PROFILES: dict[str, FixtureProfile] = {
    "small": FixtureProfile(packages=4, objects_per_type=25),
    "medium": FixtureProfile(packages=12, objects_per_type=100),
    "large": FixtureProfile(packages=24, objects_per_type=250),
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--profile",
        default="medium",
        choices=sorted(FIXTURE_PROFILES),
        help="Fixture size profile. Default: medium.",
    )
    parser.add_argument(
        "--runs",
        type=int,
        default=3,
        help="Number of timed runs per step. Default: 3.",
    )
    parser.add_argument(
        "--fixtures-root",
        default=None,
        help="Where generated trees are written. Default: <repo>/.catalog_mcp/perf/fixtures/",
    )
    parser.add_argument(
        "--out",
        default=None,
        help="Optional path for the JSON summary; always printed to stdout.",
    )
    return parser.parse_args()


def object_xml(object_type: str, name: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f"<{object_type}>\n"
        f"\t<Name>{name}</Name>\n"
        "\t<SourceCode>\n"
        f"\t\t<Declaration>// {name} declaration</Declaration>\n"
        "\t</SourceCode>\n"
        f"</{object_type}>\n"
    )


def write_fixture_tree(fixture_root: Path, profile: FixtureProfile) -> int:
    """Write the tree and return the number of object files created."""
    if fixture_root.exists():
        shutil.rmtree(fixture_root)
    created = 0
    for package_idx in range(profile.packages):
        package = f"BenchPackage{package_idx:03d}"
        content_root = fixture_root / package
        if profile.double_nested:
            content_root = content_root / package
        for object_type in FIXTURE_TYPES:
            folder = content_root / object_type
            folder.mkdir(parents=True, exist_ok=True)
            prefix = object_type.removeprefix("Ax")
            for object_idx in range(profile.objects_per_type):
                name = f"Bench{prefix}{package_idx:03d}_{object_idx:04d}"
                (folder / f"{name}.xml").write_text(
                    object_xml(object_type, name), encoding="utf-8"
                )
                created += 1
    return created


def time_step(call: Callable[[], dict[str, object]], runs: int) -> dict[str, object]:
    values: list[float] = []
    last: dict[str, object] = {}
    for _ in range(runs):
        started = time.perf_counter()
        last = call()
        values.append(time.perf_counter() - started)
    return {
        "min_seconds": min(values),
        "max_seconds": max(values),
        "mean_seconds": statistics.fmean(values),
        "ok": bool(last.get("ok", False)),
    }


def tool_call(server: StdioServer, name: str, arguments: dict[str, object]) -> dict[str, object]:
    return server.handle_payload(
        {
            "id": f"bench-{name}",
            "method": "tools/call",
            "params": {"name": name, "arguments": arguments},
        }
    )


def run_benchmark(fixture_root: Path, profile: FixtureProfile, runs: int) -> dict[str, object]:
    created = write_fixture_tree(fixture_root, profile)
    server = create_server(root=str(fixture_root), environ={})
    probe = f"BenchClass{profile.packages - 1:03d}_{profile.objects_per_type - 1:04d}"

    steps = {
        "build_index_full": time_step(
            lambda: tool_call(server, "catalog.build_index", {"force_rebuild": True}), runs
        ),
        "build_index_incremental": time_step(
            lambda: tool_call(server, "catalog.build_index", {}), runs
        ),
        "find_object": time_step(
            lambda: tool_call(server, "catalog.find_object", {"name": probe}), runs
        ),
        "search_pattern": time_step(
            lambda: tool_call(server, "catalog.search_pattern", {"pattern": "BenchTable*_00?0"}),
            runs,
        ),
        "list_by_type": time_step(
            lambda: tool_call(
                server, "catalog.list_by_type", {"object_type": "AxForm", "sort_by": "size"}
            ),
            runs,
        ),
        "smart_search": time_step(
            lambda: tool_call(server, "catalog.smart_search", {"term": "declaration"}), runs
        ),
    }
    stats = tool_call(server, "catalog.index_stats", {})
    result = stats.get("result", {})
    total = result.get("total_objects") if isinstance(result, dict) else None
    return {
        "objects_created": created,
        "objects_indexed": total,
        "steps": steps,
    }


def main() -> int:
    args = parse_args()
    if args.runs < 1:
        raise SystemExit("--runs must be >= 1")
    profile = FIXTURE_PROFILES[args.profile]
    fixtures_root = (
        Path(args.fixtures_root).resolve()
        if args.fixtures_root
        else REPO_ROOT / ".catalog_mcp" / "perf" / "fixtures"
    )
    fixture_root = fixtures_root / args.profile

    measured = run_benchmark(fixture_root, profile, args.runs)
    summary = {
        "benchmark_version": 1,
        "timestamp_utc": datetime.now(UTC).isoformat(),
        "profile": args.profile,
        "fixture_profile": {
            "packages": profile.packages,
            "objects_per_type": profile.objects_per_type,
            "object_types": list(FIXTURE_TYPES),
        },
        "runs_per_step": args.runs,
        **measured,
    }
    rendered = json.dumps(summary, indent=2, sort_keys=True)
    if args.out:
        out_path = Path(args.out).resolve()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(rendered, encoding="utf-8")
    print(rendered)
    failed = sorted(name for name, step in measured["steps"].items() if not step["ok"])
    return 0 if not failed else 1


if __name__ == "__main__":
    raise SystemExit(main())
