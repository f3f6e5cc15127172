"""CLI entrypoints for stacktutor commands."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from .analyzers.hints import extract_hints
from .config import StacktutorConfig, load_config
from .errors import ConfigError, StacktutorError
from .logging import configure_logging
from .models import AnalysisJob, JobStatus, Snapshot
from .orchestrator import Orchestrator
from .snapshot import SnapshotBuilder
from .stores.memory import InMemoryStore, JsonFileStore

FAILURE_GUIDANCE = {
    "no_credential": "Set STACKTUTOR_API_KEY or <BACKEND>_API_KEY for the selected backend.",
    "no_files": "The project contains no readable manifest, config or source files.",
    "no_technologies": "Run `stacktutor analyze` on the project first.",
    "backend_error": "The generation backend rejected the request; check the key, model and rate limits.",
    "malformed_response": "The model reply could not be parsed; retrying usually helps.",
}


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )


def _add_backend_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--backend", help="Generation backend (overrides .stacktutor.yml).")
    parser.add_argument("--model", help="Model name for the selected backend.")
    parser.add_argument(
        "--store",
        type=Path,
        help="JSON file used to persist projects, jobs and results between runs.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stacktutor",
        description="Digest a project, detect its technology stack and build a learning curriculum.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    digest_parser = subparsers.add_parser("digest", help="Print the project digest document.")
    _add_verbose_option(digest_parser, suppress_default=True)
    _add_path_argument(digest_parser)
    digest_parser.add_argument("-o", "--output", type=Path, help="Write the digest to this file.")

    hints_parser = subparsers.add_parser("hints", help="List deterministic technology hints.")
    _add_verbose_option(hints_parser, suppress_default=True)
    _add_path_argument(hints_parser)
    hints_parser.add_argument("--json", action="store_true", help="Emit hints as JSON.")

    analyze_parser = subparsers.add_parser("analyze", help="Detect the technology stack with a backend.")
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_path_argument(analyze_parser)
    _add_backend_options(analyze_parser)
    analyze_parser.add_argument("--json", action="store_true", help="Emit detected technologies as JSON.")

    curriculum_parser = subparsers.add_parser(
        "curriculum",
        help="Analyze the project (if needed) and generate a learning path.",
    )
    _add_verbose_option(curriculum_parser, suppress_default=True)
    _add_path_argument(curriculum_parser)
    _add_backend_options(curriculum_parser)
    curriculum_parser.add_argument(
        "--difficulty",
        choices=("beginner", "intermediate", "advanced"),
        help="Learner level (defaults to the configured difficulty).",
    )
    curriculum_parser.add_argument(
        "--project-id",
        help="Reuse a project already analyzed in --store instead of re-analyzing.",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP job-status service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind.")
    serve_parser.add_argument("--config", type=Path, default=Path("."), help="Directory holding .stacktutor.yml.")
    serve_parser.add_argument("--store", type=Path, help="JSON file used to persist state.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for stacktutor commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    try:
        if args.command == "digest":
            _run_digest(args)
        elif args.command == "hints":
            _run_hints(args)
        elif args.command == "analyze":
            _run_analyze(parser, args)
        elif args.command == "curriculum":
            _run_curriculum(parser, args)
        elif args.command == "serve":
            _run_serve(args)
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except (FileNotFoundError, NotADirectoryError, ConfigError) as exc:
        parser.exit(1, f"{exc}\n")
    except StacktutorError as exc:
        parser.exit(1, f"stacktutor {args.command} failed: {exc}\n")


def _load(path: str) -> tuple[StacktutorConfig, Snapshot]:
    root = Path(path).expanduser()
    if not root.is_dir():
        raise NotADirectoryError(f"Project path is not a directory: {path}")
    config = load_config(root)
    builder = SnapshotBuilder(
        max_file_bytes=config.digest.max_file_bytes,
        exclude_paths=config.digest.exclude_paths,
    )
    return config, builder.build(root)


def _run_digest(args: argparse.Namespace) -> None:
    config, snapshot = _load(args.path)
    document = Orchestrator(config=config).render_digest(snapshot)
    if args.output:
        args.output.write_text(document, encoding="utf-8")
        print(f"Digest written to {_relativize(args.output)}")
    else:
        sys.stdout.write(document)


def _run_hints(args: argparse.Namespace) -> None:
    _, snapshot = _load(args.path)
    hints = extract_hints(snapshot.with_content())
    if args.json:
        print(json.dumps([asdict(hint) for hint in hints], indent=2))
        return
    if not hints:
        print("No technology hints found.")
        return
    for hint in hints:
        version = f" {hint.version}" if hint.version else ""
        print(f"{hint.name}{version} [{hint.category}] confidence={hint.confidence:.2f} ({hint.source})")


def _orchestrator(args: argparse.Namespace, config: StacktutorConfig) -> Orchestrator:
    if getattr(args, "backend", None):
        config.llm.backend = args.backend.strip().lower()
    if getattr(args, "model", None):
        config.llm.model = args.model
    store = JsonFileStore(args.store) if getattr(args, "store", None) else InMemoryStore()
    return Orchestrator(store, config=config)


def _finish(parser: argparse.ArgumentParser, job: AnalysisJob) -> None:
    if JobStatus(job.status) is JobStatus.COMPLETED:
        return
    guidance = FAILURE_GUIDANCE.get(job.error_kind or "", "Run with --verbose for more details.")
    parser.exit(1, f"Job {job.id} failed ({job.error_kind}): {job.error_message}\n{guidance}\n")


def _run_analyze(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    config, snapshot = _load(args.path)
    orchestrator = _orchestrator(args, config)
    try:
        project = orchestrator.create_project(snapshot.project_name, snapshot)
        job = orchestrator.wait(orchestrator.start_analysis(project.id).id)
        _finish(parser, job)
        technologies = sorted(orchestrator.store.list_technologies(project.id), key=lambda record: -record.confidence)
        summary = orchestrator.get_project(project.id).tech_summary or {}
    finally:
        orchestrator.shutdown()

    if args.json:
        payload = {
            "project_id": project.id,
            "architecture_summary": summary.get("architecture_summary"),
            "technologies": [asdict(record) for record in technologies],
            "input_tokens": job.input_tokens,
            "output_tokens": job.output_tokens,
        }
        print(json.dumps(payload, indent=2))
        return

    print(f"Project {project.id}: {len(technologies)} technologies")
    for record in technologies:
        version = f" {record.version}" if record.version else ""
        print(f"- {record.name}{version} [{record.category}, {record.importance}] {record.confidence:.2f}")
    if summary.get("architecture_summary"):
        print()
        print(summary["architecture_summary"])
    print(f"\nTokens: {job.input_tokens} in / {job.output_tokens} out")


def _run_curriculum(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    project_id: Optional[str] = args.project_id
    if project_id and not args.store:
        parser.exit(1, "--project-id requires --store\n")

    config, snapshot = _load(args.path)
    orchestrator = _orchestrator(args, config)
    try:
        if project_id is None:
            project_id = orchestrator.create_project(snapshot.project_name, snapshot).id
            _finish(parser, orchestrator.wait(orchestrator.start_analysis(project_id).id))
        job = orchestrator.wait(orchestrator.start_curriculum(project_id, difficulty=args.difficulty).id)
        _finish(parser, job)
        path = orchestrator.store.latest_learning_path(project_id)
    finally:
        orchestrator.shutdown()

    if path is None:  # pragma: no cover - a completed job always stores a path
        parser.exit(1, "No learning path was produced\n")
    print(f"{path.title} ({path.difficulty}, {len(path.modules)} modules)")
    if path.description:
        print(path.description)
    for module in path.modules:
        marker = "" if module.sections else "  [no content]"
        print(f"{module.order:>2}. [{module.tech_name}] {module.title} ({module.module_type}){marker}")
    print(f"\nTokens: {job.input_tokens} in / {job.output_tokens} out")


def _run_serve(args: argparse.Namespace) -> None:  # pragma: no cover - integration path
    from .service.app import run_service

    config = load_config(args.config)
    store = JsonFileStore(args.store) if args.store else InMemoryStore()
    run_service(args.host, args.port, lambda: Orchestrator(store, config=config))


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
