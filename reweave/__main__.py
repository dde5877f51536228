import argparse
import importlib
import json
import logging
import os
import sys
import uuid
from pathlib import Path

import yaml


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def load_registry(spec: str):
    """Build a TransformerRegistry from a ``module:callable`` factory.

    Without a factory an empty registry is returned, so every task is
    reported as skipped.
    """
    from .core.transform.transformers import TransformerRegistry

    if not spec:
        logger.warning("No --registry given; all tasks will be skipped")
        return TransformerRegistry()

    module_name, _, attr = spec.partition(":")
    if not attr:
        raise SystemExit(f"--registry must look like 'package.module:factory', got {spec!r}")

    factory = getattr(importlib.import_module(module_name), attr)
    registry = factory()
    if not isinstance(registry, TransformerRegistry):
        raise SystemExit(f"{spec} returned {type(registry).__name__}, expected TransformerRegistry")
    logger.info(f"Loaded {len(registry)} transformers from {spec}")
    return registry


def load_plan(path: str):
    """Read a migration plan from a YAML or JSON file."""
    from .core.transform.models import MigrationPlan

    with open(path, "r") as f:
        if path.endswith(".json"):
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    return MigrationPlan.from_dict(data)


def _make_fetcher(settings):
    from .core.transform.fetcher import LocalFileFetcher

    return LocalFileFetcher(
        max_file_size_mb=settings.max_file_size_mb,
        max_files=settings.max_files,
        skip_directories=settings.skip_directories,
    )


def serve(args, settings) -> None:
    from .api.app import create_app

    app = create_app(
        registry=load_registry(args.registry),
        fetcher=_make_fetcher(settings),
        settings=settings,
    )

    # Launch with uvicorn
    import uvicorn

    port = args.port or settings.api_port
    logger.info(f"Starting FastAPI server on http://{settings.api_host}:{port}")
    print(f"\n  Reweave is running at: http://localhost:{port}")
    print(f"  API docs at: http://localhost:{port}/docs\n")

    uvicorn.run(
        app,
        host=settings.api_host,
        port=port,
        log_level=args.log_level.lower(),
    )


def run(args, settings) -> int:
    """Execute a plan against a local checkout and print the summary."""
    from .core.errors import ReweaveError
    from .core.transform.models import RepositoryRef, TransformOptions
    from .core.transform.orchestrator import TransformationOrchestrator
    from .core.transform.progress import LoggingProgressSink

    try:
        plan = load_plan(args.plan)
    except ReweaveError as e:
        logger.error(f"Invalid plan {args.plan}: {e}")
        return 2
    repo_path = os.path.abspath(args.repo)
    repo = RepositoryRef(
        owner=args.owner,
        name=args.name or os.path.basename(repo_path),
        path=repo_path,
    )
    selected = args.task or [task.id for task in plan.all_tasks()]

    orchestrator = TransformationOrchestrator(
        registry=load_registry(args.registry),
        fetcher=_make_fetcher(settings),
        progress=LoggingProgressSink(),
        settings=settings,
    )
    options = TransformOptions(
        use_pipeline=not args.no_pipeline and settings.use_pipeline,
        preserve_formatting=settings.preserve_formatting,
        timeout=args.timeout,
        project_path=repo_path,
    )

    job_id = str(uuid.uuid4())
    try:
        result = orchestrator.execute_orchestration(job_id, repo, plan, selected, options)
    except ReweaveError as e:
        logger.error(str(e))
        return 2

    if args.output:
        out_dir = Path(args.output)
        for rel_path, content in result.transformed_files.items():
            target = out_dir / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        logger.info(f"Wrote {len(result.transformed_files)} files to {out_dir}")

    print(json.dumps(
        {"job_id": job_id, "success": result.success, "summary": result.summary.to_dict()},
        indent=2,
    ))
    return 0 if result.success else 1


def main():
    """Main entry point for Reweave."""
    parser = argparse.ArgumentParser(description="Reweave - migration plan execution engine")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (defaults to the configured level)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to reweave.yaml"
    )
    parser.add_argument(
        "--registry",
        type=str,
        default="",
        help="Transformer registry factory, e.g. mypkg.transformers:build_registry"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--port", type=int, default=None, help="Port for the API server")

    run_parser = subparsers.add_parser("run", help="Execute a plan against a local checkout")
    run_parser.add_argument("plan", help="Migration plan (YAML or JSON)")
    run_parser.add_argument("--repo", required=True, help="Path to the repository checkout")
    run_parser.add_argument("--owner", default="local", help="Repository owner used for locking")
    run_parser.add_argument("--name", default=None, help="Repository name (defaults to the directory name)")
    run_parser.add_argument("--task", action="append", help="Task id to run (repeatable, default: all)")
    run_parser.add_argument("--output", default=None, help="Directory to write transformed files to")
    run_parser.add_argument("--timeout", type=float, default=None, help="Per-transformer timeout in seconds")
    run_parser.add_argument("--no-pipeline", action="store_true", help="Call transformers directly")

    args = parser.parse_args()

    from .core.config import load_settings
    settings = load_settings(args.config)
    args.log_level = args.log_level or settings.log_level
    setup_logging(args.log_level)

    if args.command == "serve":
        serve(args, settings)
        return
    sys.exit(run(args, settings))


if __name__ == "__main__":
    main()
