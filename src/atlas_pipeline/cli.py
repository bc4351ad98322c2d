"""
Atlas Pipeline: Command Line Interface

Comandos:
    validate  valida a definição e imprime os batches topológicos
    run       executa o pipeline e imprime o RunOutcome
    version   calcula a versão determinística (e a tag) de um artefato

Exit codes:
    0  sucesso
    1  run terminou com falha
    2  definição, settings ou bindings inválidos (nenhum Step executado)
"""
import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from . import __version__
from .core.artifacts.registry import FileSystemRegistry
from .core.artifacts.versioning import image_tag, version
from .core.config.errors import ConfigError
from .core.config.settings import load_settings
from .core.engine.engine import attach_manifest, build_executor
from .core.engine.planner import load_pipeline, topological_batches
from .core.environment.store import DEFAULT_SECRET_PREFIX, DEFAULT_VARIABLE_PREFIX, BindingStore
from .core.exceptions import AtlasException
from .core.pipeline.context import RunContext
from .core.traceability.manifest import save_manifest

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


def _fail(message, hint=None):
    print(f"error: {message}", file=sys.stderr)
    if hint:
        print(f"hint: {hint}", file=sys.stderr)
    return EXIT_INVALID


def _load_graph(args, settings=None):
    kwargs = {}
    if settings is not None:
        kwargs = {"default_retry": settings.default_retry, "default_timeout": settings.default_timeout_seconds}
    return load_pipeline(Path(args.pipeline), **kwargs)


def _load_store(args):
    store = BindingStore()
    if not args.no_env:
        store = BindingStore.from_environ(
            os.environ,
            secret_prefix=args.secret_prefix,
            variable_prefix=args.variable_prefix,
        )
    if args.variables or args.secrets:
        store = store.merged(BindingStore.from_files(variables_path=args.variables, secrets_path=args.secrets))
    return store


def cmd_validate(args):
    """Valida a definição sem executar nenhum Step"""
    try:
        graph = _load_graph(args)
    except AtlasException as e:
        return _fail(e.message, e.hint)
    except ConfigError as e:
        return _fail(str(e))

    batches = [graph.order_of(batch) for batch in topological_batches(graph)]
    if args.json:
        print(json.dumps({"pipeline": graph.name, "steps": len(graph), "batches": batches}, indent=2))
    else:
        print(f"pipeline '{graph.name}' is valid: {len(graph)} steps, {len(batches)} batches")
        for i, batch in enumerate(batches, start=1):
            print(f"  batch {i}: {', '.join(batch)}")
    return EXIT_OK


def cmd_run(args):
    """Executa o pipeline e reporta o RunOutcome"""
    overrides = {}
    if args.fail_fast:
        overrides["engine"] = {"fail_fast": True}
    if args.max_parallel is not None:
        overrides.setdefault("engine", {})["max_parallel"] = args.max_parallel

    try:
        settings = load_settings(args.settings, overrides=overrides)
        graph = _load_graph(args, settings)
        store = _load_store(args)
    except AtlasException as e:
        return _fail(e.message, e.hint)
    except ConfigError as e:
        return _fail(str(e))

    group_id = args.group or graph.group_id or "default"
    try:
        ctx = RunContext.create(group_id, sequence=args.sequence, meta={"pipeline_file": str(args.pipeline)})
    except ValueError as e:
        return _fail(str(e))
    attach_manifest(ctx, graph, settings)

    registry = FileSystemRegistry(args.registry_dir or settings.registry_root)
    executor = build_executor(settings, store=store, registry=registry)
    outcome = asyncio.run(executor.run(graph, ctx))

    if args.manifest:
        save_manifest(ctx.manifest, args.manifest)
    if args.events:
        Path(args.events).parent.mkdir(parents=True, exist_ok=True)
        with open(args.events, "w", encoding="utf-8") as f:
            for event in ctx.events:
                f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")

    if args.json:
        print(outcome.to_json())
    else:
        print(f"run {outcome.run_id}: {outcome.status.value.upper()}")
        for name, result in outcome.steps.items():
            line = f"  {result.status.value:<9} {name}"
            if result.attempts > 1:
                line += f" (attempts: {result.attempts})"
            if result.error:
                line += f" [{result.error['type']}] {result.error['message']}"
            print(line)
    return outcome.exit_code


def cmd_version(args):
    """Imprime a versão determinística (e a tag, se --target for informado)"""
    try:
        v = version(args.group, args.revision)
        tag = image_tag(args.target, args.group, v) if args.target else None
    except ValueError as e:
        return _fail(str(e))
    if args.json:
        print(json.dumps({"group_id": args.group, "revision": args.revision, "version": v, "tag": tag}))
    else:
        print(tag or v)
    return EXIT_OK


def build_parser():
    parser = argparse.ArgumentParser(prog="atlas-pipeline", description="Atlas Pipeline - CI/CD orchestration engine")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a pipeline definition")
    validate_parser.add_argument("pipeline", help="Pipeline definition (YAML/JSON)")
    validate_parser.add_argument("--json", action="store_true", help="Output as JSON")
    validate_parser.set_defaults(func=cmd_validate)

    # Run command
    run_parser = subparsers.add_parser("run", help="Run a pipeline")
    run_parser.add_argument("pipeline", help="Pipeline definition (YAML/JSON)")
    run_parser.add_argument("--settings", help="Engine settings file (YAML/JSON)")
    run_parser.add_argument("--variables", help="Variables file (YAML/JSON mapping)")
    run_parser.add_argument("--secrets", help="Secrets file (YAML/JSON mapping)")
    run_parser.add_argument("--no-env", action="store_true", help="Do not read bindings from environment variables")
    run_parser.add_argument("--secret-prefix", default=DEFAULT_SECRET_PREFIX, help="Environment prefix for secrets")
    run_parser.add_argument("--variable-prefix", default=DEFAULT_VARIABLE_PREFIX, help="Environment prefix for variables")
    run_parser.add_argument("--group", help="Group id (overrides the definition's group_id)")
    run_parser.add_argument("--sequence", type=int, help="Run sequence number (e.g. CI build number)")
    run_parser.add_argument("--registry-dir", help="Local registry directory")
    run_parser.add_argument("--fail-fast", action="store_true", help="Cancel in-flight steps when nothing else can run")
    run_parser.add_argument("--max-parallel", type=int, help="Maximum concurrent steps")
    run_parser.add_argument("--manifest", help="Write the run manifest to this path")
    run_parser.add_argument("--events", help="Write structured events (JSON lines) to this path")
    run_parser.add_argument("--json", action="store_true", help="Output as JSON")
    run_parser.set_defaults(func=cmd_run)

    # Version command
    version_parser = subparsers.add_parser("version", help="Compute the deterministic artifact version")
    version_parser.add_argument("--group", required=True, help="Group id")
    version_parser.add_argument("--revision", required=True, help="Source revision (e.g. commit sha)")
    version_parser.add_argument("--target", help="Target/repository name to build the full tag")
    version_parser.add_argument("--json", action="store_true", help="Output as JSON")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if hasattr(args, "func"):
        return args.func(args)
    parser.print_help()
    return EXIT_INVALID


if __name__ == "__main__":
    sys.exit(main())
