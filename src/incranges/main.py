"""Command-line entry point: plan an incremental build from a job manifest."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from incranges import __version__
from incranges.config import Settings, load_settings
from incranges.models import load_build_manifest
from incranges.orchestrator.engine import IncrementalEngine
from incranges.orchestrator.scheduler import ScheduleDecision

logger = logging.getLogger("incranges")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="incranges",
        description="Decide which compile jobs must run, using source-range incremental info.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    plan = sub.add_parser("plan", help="print the jobs that must run")
    plan.add_argument("manifest", help="YAML build manifest listing the proposed jobs")
    plan.add_argument("--config", default=None, help="YAML settings file (default: ./config.yaml if present)")
    plan.add_argument("--show-decisions", action="store_true", help="log why each job is queued")
    plan.add_argument("--dump-source-ranges", action="store_true", help="print every loaded side-car record")
    plan.add_argument("--dump-compiled-source-diffs", action="store_true", help="print changed ranges per unit")
    plan.add_argument("--json", action="store_true", help="emit the decision as JSON")
    return parser


def _resolve_settings(args: argparse.Namespace) -> Settings:
    config_path: Optional[Path] = Path(args.config) if args.config else Path("config.yaml")
    settings = load_settings(config_path if config_path.exists() else None)
    updates = {}
    if args.show_decisions:
        updates["show_incremental_decisions"] = True
    if args.dump_source_ranges:
        updates["dump_source_ranges"] = True
    if args.dump_compiled_source_diffs:
        updates["dump_compiled_source_diffs"] = True
    return settings.model_copy(update=updates) if updates else settings


def _render(decision: ScheduleDecision, warnings: list[str], as_json: bool) -> str:
    if as_json:
        return json.dumps(
            {
                "needed": decision.needed_names(),
                "lacking_info": decision.lacking_info_names(),
                "warnings": warnings,
            },
            indent=2,
        )
    lines = ["needed:"]
    lines.extend(f"  {name}" for name in decision.needed_names())
    lines.append("lacking incremental info:")
    lines.extend(f"  {name}" for name in decision.lacking_info_names())
    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point: load config and manifest, then print the plan."""
    args = _build_parser().parse_args(argv)
    settings = _resolve_settings(args)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    manifest_path = Path(args.manifest)
    manifest = load_build_manifest(manifest_path)
    jobs = manifest.to_jobs(
        base_dir=manifest_path.parent,
        build_dir=settings.build_dir,
        compiled_source_suffix=settings.compiled_source_suffix,
        source_ranges_suffix=settings.source_ranges_suffix,
    )
    logger.info("incranges v%s planning %d jobs from %s", __version__, len(jobs), manifest_path)

    engine = IncrementalEngine(settings)
    decision = engine.schedule(jobs)
    print(_render(decision, engine.diagnostics.warnings, args.json))
    return 0


if __name__ == "__main__":
    sys.exit(main())
