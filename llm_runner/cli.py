"""CLI entry point: argparse and main()."""

from __future__ import annotations

import argparse
import os
import sys

from llm_runner.report import failure_lines, running_total_line, summary_lines
from llm_runner.runner import PromptOptions
from llm_runner.runtimes import RUNTIMES, get_runtime
from llm_runner.state import config, init_user_config, save_user_config
from llm_runner.telemetry import SessionTelemetry, fold_result, format_duration
from llm_runner.ui import dim, error, info, section, success


HELP_EPILOG = """\
Each --prompt-file is run as one step, in order, after the positional
prompt (if any). Token usage and cost are accumulated across all steps.
The run stops at the first failing step and exits with its exit code.

Saved defaults live in ~/.llm-runner/config.json (see --save-defaults).

Examples:
  llm-runner "explain this project structure"
  llm-runner -r cursor -m gpt-4o "add a --json flag to the CLI"
  llm-runner -f 01-spec.md -f 02-tasks.md -f 03-implement.md
  llm-runner --timeout 1800 --max-lines 10 "run the test suite and fix failures"
  llm-runner -r opencode --list-models
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-runner",
        description="llm-runner: drive Claude Code / Cursor / OpenCode with live stream rendering",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_EPILOG,
    )
    parser.add_argument("prompt", nargs="*", help="Prompt text (words are joined with spaces)")
    parser.add_argument("-r", "--runtime", choices=sorted(RUNTIMES), default=None,
                        help="Backend CLI (default: claude, or the saved default)")
    parser.add_argument("-m", "--model", default=None, help="Model id passed to the backend")
    parser.add_argument("-C", "--cwd", default=None, help="Working directory for the backend")
    parser.add_argument("-f", "--prompt-file", action="append", default=[], metavar="FILE",
                        help="Read a step prompt from FILE (repeatable)")
    parser.add_argument("--interactive", action="store_true",
                        help="Give the backend the terminal (no streaming, no telemetry)")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Capture output without rendering it live")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show raw JSON events")
    parser.add_argument("--debug", action="store_true", help="Debug mode")
    parser.add_argument("--timeout", type=float, default=None, metavar="SECS",
                        help="Terminate a step after SECS seconds")
    parser.add_argument("--max-lines", type=int, default=None, metavar="N",
                        help="Tool result preview lines (default: 5)")
    parser.add_argument("--list-runtimes", action="store_true", help="List backends and exit")
    parser.add_argument("--list-models", action="store_true", help="List models and exit")
    parser.add_argument("--save-defaults", action="store_true",
                        help="Persist --runtime/--model/--max-lines/--timeout as defaults")
    return parser


def _collect_steps(args, parser: argparse.ArgumentParser) -> list[tuple[str, str]]:
    steps = []
    if args.prompt:
        steps.append(("prompt", " ".join(args.prompt)))
    for path in args.prompt_file:
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            parser.error(f"cannot read prompt file {path}: {e.strerror}")
        if not text.strip():
            parser.error(f"prompt file {path} is empty")
        steps.append((os.path.basename(path), text))
    return steps


def _list_runtimes():
    for rt in RUNTIMES.values():
        mark = "✓" if rt.is_available() else "✗"
        tracking = "token tracking" if rt.supports_token_tracking else "no token tracking"
        info(f"  {mark} {rt.name:<9} {rt.display_name} ({rt.command}, {tracking})")


def _list_models(runtime):
    for model in runtime.list_models():
        desc = f"  {model.description}" if model.description else ""
        info(f"  {model.id:<32}{desc}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    init_user_config()
    if args.runtime:
        config.runtime = args.runtime
    if args.model is not None:
        config.model = args.model
    if args.max_lines is not None:
        if args.max_lines < 1:
            parser.error("--max-lines must be at least 1")
        config.max_result_lines = args.max_lines
    if args.timeout is not None:
        if args.timeout <= 0:
            parser.error("--timeout must be positive")
        config.timeout = args.timeout
    config.debug = args.debug
    config.verbose = args.verbose

    if args.save_defaults:
        save_user_config({
            "runtime": config.runtime,
            "model": config.model,
            "max_result_lines": config.max_result_lines,
            "timeout": config.timeout,
        })
        success("Defaults saved to ~/.llm-runner/config.json")

    if args.list_runtimes:
        _list_runtimes()
        return 0

    try:
        runtime = get_runtime(config.runtime)
    except KeyError:
        error(f"Unknown runtime '{config.runtime}'. Choose from: {', '.join(sorted(RUNTIMES))}")
        return 2

    if args.list_models:
        _list_models(runtime)
        return 0

    steps = _collect_steps(args, parser)
    if not steps:
        if args.save_defaults:
            return 0
        parser.error("no prompt given (positional words or --prompt-file)")

    if not runtime.is_available():
        error(f"{runtime.display_name} is not available ('{runtime.command}' not found or not reachable).")
        return 1

    options = PromptOptions(
        working_directory=args.cwd,
        stream_output=not args.quiet,
        automated=not args.interactive,
        verbose=args.verbose,
        model=config.model or None,
        timeout=config.timeout,
    )
    dim(f"{runtime.display_name}" + (f" [{config.model}]" if config.model else ""))

    telemetry = SessionTelemetry()
    for step_num, (phase, prompt) in enumerate(steps, 1):
        info(f"  Step {step_num}: {phase}")
        info("")
        result = runtime.run_prompt(prompt, options)
        telemetry = fold_result(telemetry, result)

        info("")
        info(f"  Duration: {format_duration(result.duration_ms)}")
        if runtime.supports_token_tracking and telemetry.input_tokens > 0:
            info(running_total_line(telemetry))
        info("")

        if not result.success:
            for line in failure_lines(result, phase):
                info(line)
            section("TOKEN USAGE SUMMARY")
            for line in summary_lines(telemetry, runtime):
                info(line)
            return result.exit_code or 1

    section("TOKEN USAGE SUMMARY")
    for line in summary_lines(telemetry, runtime):
        info(line)
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
