"""
jaxbuild — CLI entrypoint.

Usage:
    python -m jaxbuild.main --help
    python -m jaxbuild.main build --sm 8.0,9.0 --clean
    python -m jaxbuild.main targets --sm all
"""

from __future__ import annotations

import json
import os
import platform
import sys
from pathlib import Path

import click

from jaxbuild import __version__
from jaxbuild.core.observability.logging_config import resolve_level, setup_logging


def _settings(ctx: click.Context):
    """Load settings once per invocation; exit 1 on an invalid file."""
    from jaxbuild.core.config.loader import ConfigError, load_settings

    if "settings" not in ctx.obj:
        try:
            ctx.obj["settings"] = load_settings(ctx.obj.get("config_path"))
        except ConfigError as e:
            click.secho(f"❌ {e}", fg="red")
            sys.exit(1)
    return ctx.obj["settings"]


@click.group()
@click.version_option(version=__version__, prog_name="jaxbuild")
@click.option("--verbose", "-v", is_flag=True, help="Show build phases and decisions.")
@click.option("--quiet", "-q", is_flag=True, help="Only show errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to jaxbuild.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """jaxbuild — configure, build, and install JAX and jaxlib with CUDA."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["environ"] = dict(os.environ)

    setup_logging(
        level=resolve_level(debug, verbose, quiet, os.environ.get("JAXBUILD_LOG_LEVEL")),
        log_file=os.environ.get("JAXBUILD_LOG_FILE"),
        log_file_level=os.environ.get("JAXBUILD_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@cli.command()
@click.option("--clean/--no-clean", default=False, help="Delete local configuration and Bazel caches afterwards.")
@click.option(
    "--sm",
    default=None,
    metavar="SM1,SM2,...|all|local",
    help="Compute capabilities to build for (default: local, query the attached GPUs).",
)
@click.option("--dbg", is_flag=True, help="Build in debug mode.")
@click.option("--jaxlib-only", is_flag=True, help="Only build and install jaxlib.")
@click.option(
    "--build-param",
    "build_params",
    multiple=True,
    metavar="PARAM",
    help="Passed to build/build.py as is; repeatable. Bazel flags go as --build-param=--bazel_options=...",
)
@click.option("--tf-dir", default=None, help="TensorFlow source tree (default from settings).")
@click.option("--dry-run", is_flag=True, help="Resolve and plan, but execute nothing.")
@click.option("--mock", is_flag=True, help="Use mock adapters and a static GPU probe.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def build(
    ctx: click.Context,
    clean: bool,
    sm: str | None,
    dbg: bool,
    jaxlib_only: bool,
    build_params: tuple[str, ...],
    tf_dir: str | None,
    dry_run: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Configure, build, and install jaxlib (and jax).

    Examples:

        jaxbuild build

        jaxbuild build --sm 8.0,9.0 --jaxlib-only

        jaxbuild build --sm all --build-param=--bazel_options=--config=avx_posix --clean
    """
    from jaxbuild.core.use_cases.build import BuildRequest, run_build

    request = BuildRequest(
        sm=sm,
        clean=clean,
        debug=dbg,
        jaxlib_only=jaxlib_only,
        build_params=list(build_params),
        tf_dir=tf_dir,
        dry_run=dry_run,
        mock=mock,
    )
    result = run_build(
        request,
        _settings(ctx),
        ctx.obj["environ"],
        platform.machine(),
        project_root=Path.cwd(),
        cpu_count=os.cpu_count(),
        use_sudo=hasattr(os, "geteuid") and os.geteuid() != 0,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.targets:
        click.secho(f"\nCUDA COMPUTE: {result.targets.render()}", fg="cyan", bold=True)

    if result.report:
        mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
        click.echo()
        for receipt in result.report.receipts:
            if receipt.ok:
                click.secho(f"   ✓ {mode_label}{receipt.action_id}", fg="green", nl=False)
                timing = f" ({receipt.duration_ms}ms)" if receipt.duration_ms else ""
                click.echo(timing)
            elif receipt.failed:
                click.secho(f"   ✗ {receipt.action_id}", fg="red")
            else:
                click.secho(f"   ⊘ {receipt.action_id} ", fg="yellow", nl=False)
                click.echo(f"({receipt.output})")

        for warning in result.report.warnings:
            click.secho(f"   ⚠️  {warning}", fg="yellow")

    if result.error:
        click.echo()
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.echo()
    click.secho("✅ Build complete", fg="green", bold=True)
    click.echo()


@cli.command()
@click.option(
    "--sm",
    default=None,
    metavar="SM1,SM2,...|all|local",
    help="Compute capabilities to resolve (default: local).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def targets(ctx: click.Context, sm: str | None, as_json: bool) -> None:
    """Resolve and print the compute capabilities a build would use."""
    from jaxbuild.core.errors import BuildError
    from jaxbuild.core.use_cases.build import resolve_targets

    try:
        family, resolved = resolve_targets(
            sm, _settings(ctx), ctx.obj["environ"], platform.machine()
        )
    except BuildError as e:
        if as_json:
            click.echo(json.dumps({"error": str(e), "error_kind": e.kind}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({
            "host_family": family.value,
            "compute_capabilities": [str(i) for i in resolved],
        }, indent=2))
        return

    click.echo(resolved.render())


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def toolchain(ctx: click.Context, as_json: bool) -> None:
    """Show the CUDA toolchain discovered on this host."""
    from jaxbuild.core.detection.toolchain import locate
    from jaxbuild.core.errors import BuildError
    from jaxbuild.core.models.target import HostCpuFamily

    environ = ctx.obj["environ"]
    machine = platform.machine()
    try:
        family = HostCpuFamily.detect(machine, environ.get("TARGETARCH"))
        found = locate(_settings(ctx), environ, machine, family)
    except BuildError as e:
        if as_json:
            click.echo(json.dumps({"error": str(e), "error_kind": e.kind}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(found.model_dump(mode="json"), indent=2))
        return

    click.secho(f"\n🔧 CUDA toolchain ({family.value})", fg="cyan", bold=True)
    click.echo(f"   CUDA:    {found.cuda_version}  ({found.cuda_paths})")
    click.echo(f"   cuBLAS:  {found.cublas_version}")
    click.echo(f"   cuDNN:   {found.cudnn_version or '-'}  ({found.cudnn_paths})")
    click.echo(f"   NCCL:    {found.nccl_version or '-'}")
    if found.cc_opt_flags:
        click.echo(f"   CC_OPT_FLAGS: {found.cc_opt_flags}")
    click.echo()


if __name__ == "__main__":
    cli()
