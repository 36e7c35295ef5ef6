"""
Command-line interface for rastertrace.

Provides commands for tracing an image and writing a default config.
"""

import argparse
import sys

from rastertrace.config import load_config, save_default_config
from rastertrace.pipeline import STAGES, run_pipeline
from rastertrace.tracer import configure_tracer, get_tracer


def parse_colour(text):
    """Parse '#rrggbb', 'rrggbb' or 'r,g,b' into an RGB tuple."""
    text = text.strip()
    if "," in text:
        parts = [int(p) for p in text.split(",")]
        if len(parts) != 3:
            raise argparse.ArgumentTypeError(f"Expected three components: {text}")
        return tuple(parts)
    text = text.lstrip("#")
    if len(text) != 6:
        raise argparse.ArgumentTypeError(f"Expected a hex colour like #000000: {text}")
    try:
        return tuple(int(text[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid hex colour: {text}") from e


def parse_stages(text):
    stages = [s.strip() for s in text.split(",") if s.strip()]
    unknown = [s for s in stages if s not in STAGES]
    if unknown:
        raise argparse.ArgumentTypeError(f"Unknown stages: {', '.join(unknown)}")
    return stages


def main(argv=None):
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="rastertrace: trace raster images into vector paths",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Trace an image")
    run_parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input image file",
    )
    run_parser.add_argument(
        "--out", "-o",
        required=True,
        help="Output directory",
    )
    run_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    run_parser.add_argument(
        "--colour",
        type=parse_colour,
        default=None,
        help="Foreground colour to trace (#rrggbb or r,g,b)",
    )
    run_parser.add_argument(
        "--fuzz",
        type=float,
        default=None,
        help="Colour distance tolerance in [0, 1]",
    )
    run_parser.add_argument(
        "--stages",
        type=parse_stages,
        default=list(STAGES),
        help="Comma separated stages to run (default: all)",
    )
    run_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug artifact generation",
    )
    run_parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable runtime tracing",
    )
    run_parser.add_argument(
        "--trace-level",
        default="INFO",
        choices=["ERROR", "WARN", "INFO", "DEBUG"],
        help="Trace log level",
    )
    run_parser.add_argument(
        "--trace-file",
        default=None,
        help="Path to write trace logs",
    )
    run_parser.add_argument(
        "--trace-json",
        action="store_true",
        help="Enable JSON trace output",
    )

    # Init config command
    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="rastertrace_config.yaml",
        help="Output path for config file",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return handle_run(args)
    elif args.command == "init-config":
        return handle_init_config(args)

    return 0


def handle_run(args):
    """Handle the run command."""
    config = load_config(args.config)
    if args.colour is not None:
        config.scan.foreground = args.colour
    if args.fuzz is not None:
        config.scan.fuzz = args.fuzz

    if args.trace:
        configure_tracer(
            enabled=True,
            level=args.trace_level,
            file_path=args.trace_file,
            json_output=args.trace_json,
        )
    else:
        configure_tracer(
            enabled=config.tracing.enabled,
            level=config.tracing.level,
            file_path=config.tracing.file_path,
            json_output=config.tracing.json_output,
        )

    tracer = get_tracer()

    try:
        with tracer.span("cli_run", module="cli"):
            document = run_pipeline(
                input_path=args.input,
                out_dir=args.out,
                config=config,
                debug=args.debug,
                stages=args.stages,
            )

        print(f"\nTracing completed.")
        for report in document.reports:
            print(f"  {report.stage}: {report.input_count} -> {report.output_count} paths "
                  f"({report.elapsed_ms:.0f} ms)")
        print(f"\nOutputs saved to: {args.out}/")
        print(f"  - paths.json")
        print(f"  - final.svg")

        return 0

    except Exception as e:
        tracer.event(f"Tracing failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
