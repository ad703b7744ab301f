#!/usr/bin/env python3
"""Code Studio - multi-agent React app generation.

Usage:
    python main.py build --prompt "build a todo app"                 # plan + generate
    python main.py build --prompt "add a dark mode" --files ./my-app  # change existing files
    python main.py build --prompt "..." --preview --verbose           # lint preview + debug loop
    python main.py debug --files ./my-app --error "require is not defined"
    python main.py validate src/App.jsx --mode fast
    python main.py score plan.json
    python main.py memory stats
    python main.py list-agents
"""

import argparse
import json
import logging
import os
import sys

from agents.validator import validate_code, validate_runtime_safety
from core.compressor import ContextCompressor
from core.errors import StudioError
from core.memory import MemoryStore
from core.orchestrator import Orchestrator, write_files
from core.preview import LintPreview
from core.quality import score_quality
from core.state import ValidationMode
from core.versions import VersionHistory
from utils.code_cleanup import is_script
from utils.folder_naming import get_output_dir

_SKIP_DIRS = {"node_modules", ".git", "dist", "build", "__pycache__"}
_SOURCE_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".css", ".json", ".html")


def load_files(directory):
    """Read a project directory into a {relative path: content} map."""
    files = {}
    for root, dirs, names in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if d not in _SKIP_DIRS and not d.startswith("."))
        for name in sorted(names):
            if not name.endswith(_SOURCE_EXTENSIONS):
                continue
            path = os.path.join(root, name)
            relative = os.path.relpath(path, directory).replace(os.sep, "/")
            with open(path, encoding="utf-8") as f:
                files[relative] = f.read()
    return files


def _print_progress(event):
    print(f"  [{event.orchestrator}:{event.phase}] {event.message}")


def _build_orchestrator(memory):
    return Orchestrator(memory=memory, compressor=ContextCompressor(memory), history=VersionHistory())


def cmd_build(args):
    memory = MemoryStore.from_directory()
    orchestrator = _build_orchestrator(memory)
    files = load_files(args.files) if args.files else {}
    preview = LintPreview() if args.preview else None

    result = orchestrator.run(args.prompt, files, on_update=_print_progress if args.verbose else None,
                              preview=preview)

    print(f"\nScenario: {result.scenario}")
    plan_result = result.plan_result
    if plan_result is not None and plan_result.plan is not None:
        plan = plan_result.plan
        print(f"App:      {plan.app_name} - {plan.tagline}")
        if plan_result.quality is not None:
            refined = " (refined)" if plan_result.refined else ""
            print(f"Quality:  {plan_result.quality.score:.2f}{refined}")
    print(f"Status:   {'ok' if result.success else 'FAILED'} - {result.message}")
    if result.debug_cycles:
        print(f"Debug:    {result.debug_cycles} cycle(s), {result.attempts} attempt(s)")
    if not result.success and result.error_category:
        print(f"Error:    {result.error_category}")

    print(f"\n{len(result.file_operations)} file operation(s):")
    for op in result.file_operations:
        flag = "" if op.validated else "  [not validated]"
        print(f"  {op.kind:7s} {op.filename}{flag}")
        if args.verbose:
            for warning in op.warnings:
                print(f"          - {warning}")

    if result.code_result is not None:
        for failure in result.code_result.failures:
            print(f"  FAILED  {failure.filename}: {failure.error}")

    if result.file_operations:
        output_dir = args.out or args.files or get_output_dir(args.prompt)
        written = write_files({op.filename: op.content for op in result.file_operations}, output_dir)
        print(f"\nWrote {len(written)} file(s) to {output_dir}")

    if orchestrator.compressor is not None:
        orchestrator.compressor.save_session()
    return 0 if result.success else 1


def cmd_debug(args):
    memory = MemoryStore.from_directory()
    orchestrator = _build_orchestrator(memory)
    files = load_files(args.files)
    debug = orchestrator.debug(args.error, files, on_update=_print_progress if args.verbose else None)

    diagnosis = debug.diagnosis
    print(f"Category: {debug.category}")
    if diagnosis is not None:
        print(f"Target:   {', '.join(diagnosis.target_files) or '-'}")
        if diagnosis.primary_issue is not None:
            print(f"Issue:    {diagnosis.primary_issue.pattern}")
        if diagnosis.root_cause:
            print(f"Cause:    {diagnosis.root_cause}")
    print(f"Attempts: {debug.attempts}")
    print(f"Result:   {'fixed' if debug.success else 'NOT FIXED'} - {debug.message}")
    if debug.success:
        written = write_files({op.filename: op.content for op in debug.file_operations},
                              args.out or args.files)
        print(f"Wrote {', '.join(written)}")
    return 0 if debug.success else 1


def cmd_validate(args):
    with open(args.file, encoding="utf-8") as f:
        code = f.read()
    filename = os.path.basename(args.file)
    result = validate_code(code, filename, args.mode)
    issues = list(result.errors)
    warnings = list(result.warnings)
    if is_script(filename) and args.mode == ValidationMode.FULL.value:
        safety = validate_runtime_safety(code, filename)
        issues += [e for e in safety.errors if e.rule not in {i.rule for i in issues}]
        warnings += [w for w in safety.warnings if w.rule == "unused-import"]

    for issue in issues:
        loc = f":{issue.line}" if issue.line else ""
        print(f"  [ERROR] {filename}{loc} - {issue.message}")
        if issue.suggestion:
            print(f"          Fix: {issue.suggestion}")
    for issue in warnings:
        loc = f":{issue.line}" if issue.line else ""
        print(f"  [WARN]  {filename}{loc} - {issue.message}")
    if result.auto_fixed:
        print(f"\nAuto-fixes available: {', '.join(result.fixes)}")
    print(f"\n{'valid' if not issues else 'INVALID'}: {len(issues)} error(s), {len(warnings)} warning(s)")
    return 0 if not issues else 1


def cmd_score(args):
    with open(args.file, encoding="utf-8") as f:
        artifact = json.load(f) if args.kind == "plan" else f.read()
    quality = score_quality(artifact, args.kind)
    print(f"Score:  {quality.score:.2f} ({'pass' if quality.passed else 'FAIL'})")
    for name, passed in quality.checks.items():
        print(f"  [{'x' if passed else ' '}] {name}")
    for suggestion in quality.suggestions:
        print(f"  - {suggestion}")
    return 0 if quality.passed else 1


def cmd_memory(args):
    memory = MemoryStore.from_directory()
    if args.action == "stats":
        print(json.dumps(memory.stats(), indent=2))
    else:
        for entry in memory.get_common_bug_patterns(limit=args.limit):
            print(f"  {entry['count']:3d}x [{entry['category']}] {entry['pattern']}")
            print(f"       fix: {entry['fix']}")
    return 0


def cmd_list_agents(args):
    orchestrator = Orchestrator(memory=MemoryStore())
    print("Available agents:")
    for agent in orchestrator.agents():
        print(f"  {agent.name:12s} - {agent.description}")
    print("\nZero-LLM components: validator, file_scanner, quality scorer")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="codestudio",
        description="Multi-agent React code generation studio",
    )
    subparsers = parser.add_subparsers(dest="command")

    build_parser = subparsers.add_parser("build", help="Plan and generate (or modify) an app")
    build_parser.add_argument("--prompt", required=True, help="Natural language request")
    build_parser.add_argument("--files", help="Directory with the current project files")
    build_parser.add_argument("--out", help="Where to write results (default: --files or projects/<slug>)")
    build_parser.add_argument("--preview", action="store_true",
                              help="Run the lint preview and debug any error it reports")
    build_parser.add_argument("--verbose", action="store_true", help="Show progress events")

    debug_parser = subparsers.add_parser("debug", help="Fix a runtime error in a project")
    debug_parser.add_argument("--files", required=True, help="Project directory")
    debug_parser.add_argument("--error", required=True, help="Runtime error text")
    debug_parser.add_argument("--out", help="Where to write fixed files (default: --files)")
    debug_parser.add_argument("--verbose", action="store_true", help="Show progress events")

    validate_parser = subparsers.add_parser("validate", help="Run the validator on one file")
    validate_parser.add_argument("file")
    validate_parser.add_argument("--mode", default=ValidationMode.FULL.value,
                                 choices=[m.value for m in ValidationMode])

    score_parser = subparsers.add_parser("score", help="Score a plan (JSON) or a code file")
    score_parser.add_argument("file")
    score_parser.add_argument("--kind", choices=["plan", "code"], default="plan")

    memory_parser = subparsers.add_parser("memory", help="Inspect the memory store")
    memory_parser.add_argument("action", choices=["stats", "patterns"])
    memory_parser.add_argument("--limit", type=int, default=10)

    subparsers.add_parser("list-agents", help="List available agents")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "build": cmd_build,
        "debug": cmd_debug,
        "validate": cmd_validate,
        "score": cmd_score,
        "memory": cmd_memory,
        "list-agents": cmd_list_agents,
    }
    if args.command not in commands:
        parser.print_help()
        return 1
    try:
        return commands[args.command](args)
    except StudioError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
