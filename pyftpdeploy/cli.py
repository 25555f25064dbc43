"""CLI interface for pyftpdeploy."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import click

from .cli_progress import run_deploy_with_progress
from .config import DeployConfig, config_template, load_config_from_json
from .deploy import DeployPipeline, DeployProgressTracker, LocalScanner, manifest_file_count
from .exceptions import DeployConfigError, DeployError
from .output import OutputFormatter
from .transport import create_transport

logger = logging.getLogger(__name__)


def _load_config(ctx: Any, out: OutputFormatter, config_path: str) -> DeployConfig:
    try:
        return load_config_from_json(config_path)
    except DeployConfigError as e:
        out.error(e.message)
        ctx.exit(1)
        raise  # Unreachable, but helps type checker


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pyftpdeploy")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """PyFtpDeploy - Deploy a local directory to an FTP or SFTP server."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pyftpdeploy").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    # paramiko is chatty at INFO level
    logging.getLogger("paramiko").setLevel(logging.WARNING)


@main.command()
@click.argument("config_path", metavar="CONFIG", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--password",
    "-p",
    envvar="PYFTPDEPLOY_PASSWORD",
    help="Server password (overrides the config file)",
)
@click.option(
    "--delete-remote/--keep-remote",
    default=None,
    help="Delete the remote directory contents before uploading",
)
@click.option(
    "--backup/--no-backup",
    default=None,
    help="Download the remote directory before anything is deleted",
)
@click.option("--no-progress", is_flag=True, help="Disable the progress display")
@click.pass_context
def deploy(
    ctx: Any,
    config_path: str,
    password: Optional[str],
    delete_remote: Optional[bool],
    backup: Optional[bool],
    no_progress: bool,
) -> None:
    """Deploy the local root described by CONFIG to the remote server.

    Examples:
        pyftpdeploy deploy deploy.json
        pyftpdeploy deploy deploy.json --delete-remote --backup
        PYFTPDEPLOY_PASSWORD=secret pyftpdeploy deploy deploy.json
    """
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(ctx, out, config_path).with_overrides(
        password=password,
        delete_remote=delete_remote,
        backup=backup,
    )

    if not out.quiet and not out.json_output:
        out.info(f"Deploying {config.local_root} -> {config.protocol}://{config.host}{config.remote_root}")
        if config.backup:
            out.info(f"Backup: {config.backup_root}")
        if config.delete_remote:
            out.warning(f"Remote directory {config.remote_root} will be emptied first")

    def make_pipeline(tracker: DeployProgressTracker) -> DeployPipeline:
        return DeployPipeline(config, transport=create_transport(config), tracker=tracker)

    try:
        if no_progress or out.quiet or out.json_output:
            pipeline = make_pipeline(DeployProgressTracker())
            results = pipeline.deploy()
        else:
            results = run_deploy_with_progress(make_pipeline)
    except DeployError as e:
        if out.json_output:
            out.print_json({"success": False, "error": e.to_dict()})
        out.error(f"[{e.code}] {e.message}")
        ctx.exit(1)
        return

    if out.json_output:
        out.print_json({"success": True, "uploaded": results})
    else:
        out.success(f"✓ Deployment finished: {len(results)} file(s) uploaded")


@main.command()
@click.argument("config_path", metavar="CONFIG", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def scan(ctx: Any, config_path: str) -> None:
    """Show which local files CONFIG would upload, without connecting."""
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(ctx, out, config_path)

    try:
        manifest = LocalScanner(config.include, config.exclude).scan(config.local_root)
    except DeployError as e:
        out.error(f"[{e.code}] {e.message}")
        ctx.exit(1)
        return

    if out.json_output:
        out.print_json(manifest)
        return

    rows = [(rel_dir, len(names), ", ".join(names)) for rel_dir, names in manifest.items() if names]
    if not rows:
        out.warning("No files match the include/exclude patterns")
        return
    out.print_table(["Directory", "Files", "Names"], rows, title=str(config.local_root))
    out.info(f"{manifest_file_count(manifest)} file(s) in {len(rows)} director(y/ies)")


@main.command()
@click.argument("path", default="deploy.json", type=click.Path(dir_okay=False))
@click.option("--sftp", is_flag=True, help="Write an SFTP template")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def init(ctx: Any, path: str, sftp: bool, force: bool) -> None:
    """Write a template configuration file to PATH."""
    out: OutputFormatter = ctx.obj["out"]
    target = Path(path)

    if target.exists() and not force:
        out.error(f"{target} already exists (use --force to overwrite)")
        ctx.exit(1)

    template = config_template()
    if sftp:
        template["sftp"] = True
        template["port"] = 22
        del template["forcePasv"]

    target.write_text(json.dumps(template, indent=2) + "\n", encoding="utf-8")
    out.success(f"✓ Configuration template written to {target}")
    out.info("Set the password with --password or the PYFTPDEPLOY_PASSWORD variable.")


if __name__ == "__main__":
    main()
