#!/usr/bin/env python3
"""
snatch CLI - extract UI elements from live pages as framework components

Usage:
    snatch <url> (-s SELECTOR | -f QUERY | -i) [--framework F] [--styling S] [-o DIR] [-n NAME] [-a] [-v]
    snatch batch <file.json|file.yaml> [--shared-session] [-v]
    snatch list [-d DIR]
    snatch clean <Name> [-d DIR]
"""

import argparse
import asyncio
import sys
from typing import Dict, List, Optional

from .batch import BatchCoordinator, load_batch_config
from .config import load_config
from .constants import SUPPORTED_FRAMEWORKS, SUPPORTED_STYLING
from .diagnostics import get_logger, set_verbose
from .error_handler import create_error_response, format_error_for_logging
from .errors import ConfigError, SnatchError
from .models import BatchResult, ExtractionJob, PipelineOutcome
from .orchestrator import PipelineOrchestrator
from .output import list_components, remove_component
from .transformer import validate_component_name

logger = get_logger("snatch_core")

COMMANDS = ("extract", "batch", "list", "clean")


def validate_extract_args(args) -> List[str]:
    """All problems with the extract options, not just the first."""
    errors = []
    modes = [m for m, on in (("--selector", args.selector), ("--find", args.find),
                             ("--interactive", args.interactive)) if on]
    if not modes:
        errors.append("One of --selector, --find or --interactive is required")
    elif len(modes) > 1:
        errors.append(f"Options {' and '.join(modes)} cannot be used together")
    if args.framework and args.framework not in SUPPORTED_FRAMEWORKS:
        errors.append(f"Invalid framework: {args.framework}. Use: {', '.join(SUPPORTED_FRAMEWORKS)}")
    if args.styling and args.styling not in SUPPORTED_STYLING:
        errors.append(f"Invalid styling: {args.styling}. Use: {', '.join(SUPPORTED_STYLING)}")
    if args.name and not validate_component_name(args.name):
        errors.append(f"Component name must be PascalCase: {args.name}")
    return errors


def _cli_overrides(args) -> Dict:
    return {
        "framework": getattr(args, "framework", None),
        "styling": getattr(args, "styling", None),
        "output_dir": getattr(args, "output", None),
        "include_assets": True if getattr(args, "assets", False) else None,
        "verbose": True if args.verbose else None,
        "interactive": getattr(args, "interactive", False),
    }


def print_summary(outcome: PipelineOutcome) -> None:
    timing = outcome.timing.to_dict()
    print()
    print("=" * 60)
    if outcome.success:
        output = outcome.output
        print(f"✅ {outcome.component_name}")
        print(f"   Files:  {len(output.files)}")
        for f in output.files:
            print(f"     - {f.path}")
        if output.assets:
            print(f"   Assets: {len(output.assets)}")
        print(f"   Import: {output.import_path}")
    else:
        print(format_error_for_logging(outcome.error))
    print(
        f"⏱️  browse {timing['browse']}ms | locate {timing['locate']}ms | extract {timing['extract']}ms | "
        f"transform {timing['transform']}ms | write {timing['write']}ms | total {timing['total']}ms"
    )
    print("=" * 60)


def print_batch_summary(result: BatchResult) -> None:
    print()
    print("=" * 60)
    print(f"Batch: {result.succeeded}/{result.total} succeeded in {result.total_time / 1000:.1f}s")
    for r in result.results:
        if r.success:
            print(f"  ✅ {r.name}")
        else:
            print(f"  ❌ {r.name}: {r.error}")
    print("=" * 60)


def cmd_extract(args) -> int:
    """Extract one element"""
    errors = validate_extract_args(args)
    if errors:
        for e in errors:
            logger.error(e)
        return 1

    try:
        config = load_config(_cli_overrides(args))
    except ConfigError as e:
        logger.error(e.message)
        return 1
    set_verbose(config.verbose)

    job = ExtractionJob(
        url=args.url,
        selector=args.selector,
        find=args.find,
        interactive=args.interactive,
        framework=config.framework,
        styling=config.styling,
        output_dir=config.output_dir,
        component_name=args.name,
        include_assets=config.include_assets,
        verbose=config.verbose,
    )
    outcome = asyncio.run(PipelineOrchestrator.from_config(config).run(job))
    print_summary(outcome)
    return 0 if outcome.success else 1


def cmd_batch(args) -> int:
    """Run a batch file"""
    loaded = load_batch_config(args.file)
    if not loaded.valid:
        logger.error(f"Invalid batch config: {args.file}")
        for e in loaded.errors:
            logger.error(f"  - {e}")
        return 1

    try:
        config = load_config(_cli_overrides(args))
    except ConfigError as e:
        logger.error(e.message)
        return 1
    set_verbose(config.verbose)

    mode = "shared" if args.shared_session else "per-job"
    result = asyncio.run(BatchCoordinator(config, session_mode=mode).run(loaded.config))
    print_batch_summary(result)
    return 0 if result.failed == 0 else 1


def cmd_list(args) -> int:
    """List generated components"""
    components = list_components(args.dir)
    if not components:
        print(f"No components found in: {args.dir}")
        return 0
    print(f"\nComponents in {args.dir}:")
    for c in components:
        marker = "" if c["exported"] else " (not in index.ts)"
        print(f"  {c['name']}{marker}: {', '.join(c['files'])}")
    print(f"\nTotal: {len(components)} components")
    return 0


def cmd_clean(args) -> int:
    """Remove a generated component"""
    try:
        removed = remove_component(args.dir, args.name)
    except SnatchError as e:
        response = create_error_response(e, context=f"clean {args.name}")
        logger.error(f"{response['error']['message']}: {e.message}")
        return 1
    if not removed:
        print(f"Component not found: {args.name}")
        return 1
    print(f"🗑️  Removed {args.name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snatch",
        description="Extract UI elements from live pages into reusable components",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    extract_parser = subparsers.add_parser("extract", help="Extract one element (default command)")
    extract_parser.add_argument("url", help="Page URL (https:// is added when missing)")
    extract_parser.add_argument("--selector", "-s", help="CSS selector of the element")
    extract_parser.add_argument("--find", "-f", help="Natural-language description of the element")
    extract_parser.add_argument("--interactive", "-i", action="store_true", help="Pick the element in a browser window")
    extract_parser.add_argument("--framework", help=f"Target framework ({', '.join(SUPPORTED_FRAMEWORKS)})")
    extract_parser.add_argument("--styling", help=f"Styling approach ({', '.join(SUPPORTED_STYLING)})")
    extract_parser.add_argument("--output", "-o", help="Output directory")
    extract_parser.add_argument("--name", "-n", help="Component name (PascalCase)")
    extract_parser.add_argument("--assets", "-a", action="store_true", help="Download referenced assets")
    extract_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    extract_parser.set_defaults(func=cmd_extract)

    batch_parser = subparsers.add_parser("batch", help="Extract every component listed in a JSON/YAML file")
    batch_parser.add_argument("file", help="Batch file")
    batch_parser.add_argument("--shared-session", action="store_true",
                              help="Reuse one browser for all components instead of one per component")
    batch_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    batch_parser.set_defaults(func=cmd_batch)

    list_parser = subparsers.add_parser("list", help="List generated components")
    list_parser.add_argument("--dir", "-d", default="./components", help="Components directory")
    list_parser.set_defaults(func=cmd_list)

    clean_parser = subparsers.add_parser("clean", help="Remove a generated component")
    clean_parser.add_argument("name", help="Component name")
    clean_parser.add_argument("--dir", "-d", default="./components", help="Components directory")
    clean_parser.set_defaults(func=cmd_clean)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    argv = list(sys.argv[1:] if argv is None else argv)
    # `snatch <url> ...` is shorthand for `snatch extract <url> ...`
    if argv and argv[0] not in COMMANDS and argv[0] not in ("-h", "--help"):
        argv.insert(0, "extract")

    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
