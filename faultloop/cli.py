"""FaultLoop CLI - Main Entry Point.

The `faultloop` command inspects the severity taxonomy and serves ASGI
applications wrapped in FaultCaptureMiddleware.

Commands:
    codes     - List every severity code with its classification
    classify  - Classify one code against a reporting mask
    serve     - Run an ASGI app under fault capture with uvicorn
"""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .config import ConfigLoader
from .faults.classifier import classify, handled_at_termination, is_reportable, known_codes
from .faults.core import ConfigError, ErrorLevel


def _load_app(target: str):
    """Import ``module:attribute``."""
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise click.BadParameter(f"expected 'module:attribute', got {target!r}", param_hint="APP")

    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name!r}: {e}", param_hint="APP")

    try:
        return getattr(module, attr)
    except AttributeError:
        raise click.BadParameter(f"{module_name!r} has no attribute {attr!r}", param_hint="APP")


@click.group()
@click.version_option(version=__version__, prog_name="faultloop")
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, verbose: bool):
    """Request-scoped fault capture with redirect-loop protection."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ============================================================================
# Commands
# ============================================================================

@cli.command('codes')
def codes():
    """List severity codes and how each one is handled."""
    click.echo(f"{'CODE':>6}  {'CATEGORY':<18} {'FATAL':<6} {'AT END':<6} DESCRIPTION")
    for code in known_codes():
        c = classify(code)
        fatal = "yes" if c.fatal else "no"
        at_end = "yes" if handled_at_termination(code) else "no"
        click.echo(f"{code:>6}  {c.category:<18} {fatal:<6} {at_end:<6} {c.description}")


@cli.command('classify')
@click.argument('code', type=int)
@click.option('--mask', type=int, default=int(ErrorLevel.ALL), show_default=True,
              help='Reporting mask')
def classify_code(code: int, mask: int):
    """
    Classify a severity CODE.

    Examples:
      faultloop classify 1
      faultloop classify 1024 --mask 1
    """
    if code < 0:
        raise click.BadParameter("code must be non-negative", param_hint="CODE")

    c = classify(code)
    click.echo(f"code:        {code}")
    click.echo(f"category:    {c.category}")
    click.echo(f"description: {c.description}")
    click.echo(f"fatal:       {'yes' if c.fatal else 'no'}")
    click.echo(f"reportable:  {'yes' if is_reportable(code, mask) else 'no'}")
    click.echo(f"at end:      {'yes' if handled_at_termination(code) else 'no'}")


@cli.command('serve')
@click.argument('app')
@click.option('--host', default='127.0.0.1', show_default=True, help='Bind host')
@click.option('--port', default=8000, type=int, show_default=True, help='Bind port')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='YAML/JSON config file')
@click.option('--env-file', type=click.Path(dir_okay=False), default='.env', show_default=True,
              help='.env file with FAULTLOOP_ options')
def serve(app: str, host: str, port: int, config_path: Optional[str], env_file: str):
    """
    Serve APP (module:attribute) wrapped in fault capture.

    Examples:
      faultloop serve myapp:app
      faultloop serve myapp:app --port 9000 --config faultloop.yaml
    """
    import uvicorn

    from .middleware import FaultCaptureMiddleware

    try:
        config = ConfigLoader.load(config_path, env_file=env_file)
    except ConfigError as e:
        raise click.ClickException(str(e))

    asgi_app = FaultCaptureMiddleware(_load_app(app), config=config)
    click.echo(f"Serving {app} on http://{host}:{port} (break threshold {config.break_threshold})")
    uvicorn.run(asgi_app, host=host, port=port)


def main():
    """Entry point for `faultloop` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
