"""CLI entrypoint for mindloop."""

from __future__ import annotations

import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

import click
import yaml


def _setup_logging(verbose: bool = False, config_dir: Optional[Path] = None) -> None:
    """Apply logging configuration from config/default.yaml."""
    from mindloop.core.config import load_config

    try:
        config = load_config(config_dir=config_dir)
        level_name = config.logging.level
        fmt = config.logging.format
    except Exception:
        level_name = "INFO"
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format=fmt, stream=sys.stderr)


@click.group()
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose (DEBUG) logging.")
@click.option(
    "--config-dir",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Config directory containing default.yaml and models.yaml.",
)
@click.option("--env", default=None, help="Config overlay name, e.g. 'test' loads test.yaml.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_dir: Optional[Path], env: Optional[str]) -> None:
    """mindloop command line interface."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_dir"] = config_dir
    ctx.obj["env"] = env
    _setup_logging(verbose=verbose, config_dir=config_dir)


@cli.command("run")
@click.argument("message")
@click.option("--conversation-id", default=None, help="Conversation to continue. Default: new one.")
@click.option("--agent-id", default="default", show_default=True, help="Agent whose focus is tracked.")
@click.option(
    "--memories",
    "memories_path",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Text file of relevant memories, one per line.",
)
@click.option("--api-key", default=None, envvar="OPENROUTER_API_KEY", help="OpenRouter API key.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the full run result as JSON.")
@click.option(
    "--diagnostics",
    "diagnostics_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Write this run's per-iteration diagnostics as JSON to a file or directory.",
)
@click.pass_context
def run_command(
    ctx: click.Context,
    message: str,
    conversation_id: Optional[str],
    agent_id: str,
    memories_path: Optional[Path],
    api_key: Optional[str],
    as_json: bool,
    diagnostics_path: Optional[Path],
) -> None:
    """Run one turn of the decision loop for MESSAGE and print the reply."""
    from mindloop.core.exceptions import MindloopError
    from mindloop.core.factory import ComponentFactory

    try:
        bundle = ComponentFactory.create(
            config_dir=ctx.obj.get("config_dir"),
            env=ctx.obj.get("env"),
            api_key=api_key,
        )
    except MindloopError as e:
        raise click.ClickException(str(e)) from e

    seed = memories_path.read_text(encoding="utf-8") if memories_path else None
    try:
        loop = bundle.build_loop(agent_id=agent_id)
        result = loop.run(
            message,
            conversation_id=conversation_id or str(uuid.uuid4()),
            seed_memories=seed,
        )
    finally:
        ComponentFactory.close(bundle)

    if diagnostics_path is not None:
        try:
            written = loop.diagnostics.dump_to_file(diagnostics_path, run_id=result.run_id)
        except OSError as e:
            raise click.ClickException(f"Could not write diagnostics: {e}") from e
        click.echo(f"Diagnostics written to {written}", err=True)

    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
    else:
        click.echo(result.response)


@cli.command("show-config")
@click.option("--models", "show_models", is_flag=True, default=False, help="Also show model roles.")
@click.pass_context
def show_config(ctx: click.Context, show_models: bool) -> None:
    """Print the effective configuration as YAML."""
    from mindloop.core.config import load_config, load_model_registry
    from mindloop.core.exceptions import ConfigError

    try:
        config = load_config(config_dir=ctx.obj.get("config_dir"), env=ctx.obj.get("env"))
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    data = config.model_dump(mode="json")
    if show_models:
        data["models"] = load_model_registry(config_dir=ctx.obj.get("config_dir")).model_dump()
    click.echo(yaml.safe_dump(data, sort_keys=False))


def main() -> None:
    """Entry point used by `mindloop` console script."""
    from dotenv import load_dotenv
    load_dotenv(Path(__file__).parent.parent / ".env", override=True)
    cli()


if __name__ == "__main__":
    main()
