import logging
import sys
from pathlib import Path

import click

from .config import UcConfig
from .diagnostics import report_errors
from .errors import UcBuildError, UcSourceError
from .pipeline import UcPipeline

logger = logging.getLogger(__name__)


def configure_logging(verbose: int) -> None:
    level = logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger("uc_transformer")
    root.handlers[:] = [handler]
    root.setLevel(level)


@click.command()
@click.option("--config", "-c", default=None, type=click.Path(exists=True, resolve_path=True))
@click.option("--out-dir", "-o", required=True, type=click.Path(file_okay=False, resolve_path=True))
@click.option("--dist", default=None, type=str, help="Default distribution module, relative to SRC_ROOT")
@click.option("--temp-dir", default=None, type=click.Path(file_okay=False, resolve_path=True))
@click.option("--library", default=None, type=str, help="Serialization framework module name")
@click.option("--format/--no-format", "format_code", default=None, help="Format distribution modules with ruff")
@click.option("--verbose", "-v", count=True)
@click.argument("src_root", type=click.Path(exists=True, file_okay=False, resolve_path=True))
def uc_transformer(config, out_dir, dist, temp_dir, library, format_code, verbose, src_root):
    """Rewrite serializer factory calls under SRC_ROOT and build distribution modules."""
    configure_logging(verbose)

    if config is not None:
        config = UcConfig.from_file(config)
    else:
        config = UcConfig.from_pyproject(Path(src_root) / "pyproject.toml") or UcConfig.from_pyproject(
            Path(src_root).parent / "pyproject.toml"
        )
        config = config or UcConfig()

    # Command line options override the config file
    config.out_dir = out_dir
    if dist is not None:
        config.dist = dist
    if temp_dir is not None:
        config.temp_dir = temp_dir
    if library is not None:
        config.library = library
    if format_code is not None:
        config.formatter.enabled = format_code

    pipeline = UcPipeline(src_root, config)
    try:
        pipeline.run()
    except UcSourceError as e:
        report_errors([e.diagnostic()])
        sys.exit(1)
    except UcBuildError as e:
        if not e.diagnostics:
            click.echo(click.style("error", fg="red") + f" UC: {e}", err=True)
        sys.exit(1)
