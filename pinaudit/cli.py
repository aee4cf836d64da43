"""
Command-line entry point for pinaudit.

The ``pinaudit`` group owns the options shared by every command: which
configuration file to load, how chatty logging is and whether output is
coloured. It builds one :class:`~pinaudit.context.PinAuditContext` per
invocation; the commands themselves live in :mod:`pinaudit.commands`.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

import click

from pinaudit.config import PinAuditConfig, load_config
from pinaudit.__version__ import __version__
from pinaudit.context import PinAuditContext
from pinaudit.exceptions import ConfigError, PinAuditError, error_hint
from pinaudit.utils.console import print_error, print_warning, reconfigure_console
from pinaudit.utils.logger import get_logger, setup_logging, verbosity_to_level

logger = get_logger("cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="PINAUDIT_CONFIG",
    help="Configuration file (pinaudit.toml or pyproject.toml).",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="-v logs each processed package, -vv adds queries and pins.",
)
@click.option(
    "--color/--no-color",
    default=True,
    envvar="PINAUDIT_COLOR",
    help="Enable or disable colored output.",
)
@click.version_option(
    version=__version__,
    prog_name="pinaudit",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """Audit centrally pinned package versions against declared ranges.

    \b
    Commands:
      pinaudit audit               Build the dependency closure and write reports
      pinaudit range               Check versions against a version range

    \b
    Examples:
      pinaudit audit --snapshot metadata.json
      pinaudit -v audit --cluster mycluster.kusto.windows.net
      pinaudit range "[2.0.0, 3.0.0)" 2.1.0 3.0.0
    """
    level = verbosity_to_level(verbose)
    setup_logging(level=level, verbose=verbose > 1)
    _apply_color(color)

    try:
        loaded = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(EXIT_ERROR) from exc

    ctx.obj = _make_context(loaded, config_path=config, verbose=verbose, color=color)
    logger.debug("pinaudit %s, log level %s", __version__, level)


def _apply_color(color: bool) -> None:
    """Propagate ``--no-color`` through ``NO_COLOR`` and rebuild the console."""
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()


def _make_context(
    config: PinAuditConfig,
    *,
    config_path: Optional[Path] = None,
    verbose: int = 0,
    color: bool = True,
) -> PinAuditContext:
    pinaudit_ctx = PinAuditContext()
    pinaudit_ctx.config = config
    pinaudit_ctx.config_path = config_path or config.source_path
    pinaudit_ctx.verbose = verbose
    pinaudit_ctx.color = color
    if config.source_path:
        logger.debug("Configuration from %s: %s", config.source_path, config.to_log_dict())
    return pinaudit_ctx


try:
    from pinaudit.commands.audit import audit
    from pinaudit.commands.range import range_command

    cli.add_command(audit)
    cli.add_command(range_command)

except ImportError as exc:
    sys.stderr.write(f"FATAL: Failed to import CLI commands: {exc}\n")
    sys.exit(EXIT_ERROR)


def main() -> int:
    """Run the CLI and translate failures into exit codes.

    Returns:
        0 on success, 1 on an application error (or conflicts with
        ``--fail-on-conflicts``), Click's own code for usage errors and
        130 when interrupted.
    """
    try:
        cli(standalone_mode=False)
        return EXIT_OK

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except (click.exceptions.Abort, KeyboardInterrupt):
        print_warning("Operation cancelled by user")
        return EXIT_INTERRUPTED

    except PinAuditError as exc:
        print_error(str(exc))
        hint = error_hint(exc)
        if hint:
            print_warning(hint, prefix="[HINT]")
        logger.debug("PinAuditError details: %s", exc.details or "<none>", exc_info=True)
        return EXIT_ERROR

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
