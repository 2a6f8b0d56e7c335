"""CLI entry point for vpnattach."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click

from vpnattach import __version__
from vpnattach.config import ManagerConfig, load_config
from vpnattach.errors import (
    AttachmentError,
    AttachmentNotFoundError,
    DeleteGuardError,
    WaitTimeoutError,
)
from vpnattach.utils.logging import configure_logging, get_logger
from vpnattach.utils.result import ExitCode

DEFAULT_CONFIG = "./config"


class Context:
    """CLI context for sharing state between commands."""

    def __init__(self, config: ManagerConfig, dry_run: bool) -> None:
        self.config = config
        self.dry_run = dry_run
        self.logger = get_logger("cli")

    def lifecycle(self):
        """Build a lifecycle bound to a fresh Network Manager client."""
        from vpnattach.client import create_client
        from vpnattach.lifecycle import AttachmentLifecycle

        aws = self.config.aws
        client = create_client(
            region=aws.region,
            profile=aws.profile,
            endpoint_url=aws.endpoint_url,
            partition=aws.partition,
            max_attempts=aws.max_attempts,
        )
        return AttachmentLifecycle(
            client,
            timeouts=self.config.timeouts,
            polling=self.config.polling,
        )

    @property
    def partition(self) -> str:
        return self.config.aws.partition or "aws"


pass_context = click.make_pass_decorator(Context)


def output_json(data: dict) -> None:
    """Output JSON to stdout."""
    click.echo(json.dumps(data, indent=2, default=str))


def exit_code_for(error: AttachmentError) -> int:
    """Map a lifecycle error to a process exit code."""
    if isinstance(error, DeleteGuardError):
        return ExitCode.DELETE_REFUSED
    if isinstance(error, WaitTimeoutError):
        return ExitCode.WAIT_TIMEOUT
    if isinstance(error, AttachmentNotFoundError):
        return ExitCode.NOT_FOUND
    return ExitCode.OPERATION_FAILED


def fail(ctx: Context, event: str, error: AttachmentError) -> None:
    """Report a lifecycle error and exit."""
    ctx.logger.error(event, error=str(error), error_type=type(error).__name__)
    output_json({
        "status": "error",
        "error_type": type(error).__name__,
        "resource_id": error.resource_id,
        "operation": error.operation,
        "message": str(error),
    })
    sys.exit(exit_code_for(error))


def parse_tags(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    tags = {}
    for value in values:
        key, sep, tag_value = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {value!r}", param_hint="--tag")
        tags[key] = tag_value
    return tags


@click.group()
@click.option(
    "--config",
    type=click.Path(exists=False, path_type=Path),
    default=DEFAULT_CONFIG,
    help="Path to config directory",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warn", "error"], case_sensitive=False),
    default=None,
    help="Logging level (overrides config)",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"], case_sensitive=False),
    default=None,
    help="Log format (overrides config)",
)
@click.option("--region", default=None, help="AWS region for the Network Manager API")
@click.option("--profile", default=None, help="AWS named profile")
@click.option("--endpoint-url", default=None, help="Override the API endpoint")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Show what would be done without executing",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path,
    log_level: Optional[str],
    log_format: Optional[str],
    region: Optional[str],
    profile: Optional[str],
    endpoint_url: Optional[str],
    dry_run: bool,
) -> None:
    """
    Manage Cloud WAN site-to-site VPN attachments.

    Every mutating command waits for Network Manager to finish the state
    change before returning.
    """
    result = load_config(config)
    if result.is_err():
        configure_logging()
        error = result.unwrap_err()
        get_logger("cli").error("config_invalid", field=error.field, message=error.message)
        output_json({"status": "error", "message": str(error)})
        sys.exit(ExitCode.CONFIG_ERROR)

    manager_config = result.unwrap().with_aws(
        region=region,
        profile=profile,
        endpoint_url=endpoint_url,
    )

    configure_logging(
        level=log_level or manager_config.logging.level,
        format_type=log_format or manager_config.logging.format,
    )

    ctx.obj = Context(config=manager_config, dry_run=dry_run)


@cli.command()
@click.option("--core-network-id", required=True, help="Core network to attach to")
@click.option("--vpn-arn", required=True, help="ARN of the site-to-site VPN connection")
@click.option("--tag", "tags", multiple=True, help="Tag as KEY=VALUE (can be repeated)")
@click.option("--timeout", type=int, default=None, help="Create timeout in seconds")
@pass_context
def create(
    ctx: Context,
    core_network_id: str,
    vpn_arn: str,
    tags: tuple[str, ...],
    timeout: Optional[int],
) -> None:
    """Create an attachment and wait for it to settle."""
    from vpnattach.models import CreateAttachmentRequest

    try:
        request = CreateAttachmentRequest(
            core_network_id=core_network_id,
            vpn_arn=vpn_arn,
            tags=parse_tags(tags),
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    if ctx.dry_run:
        output_json({
            "status": "dry_run",
            "message": "Would create VPN attachment",
            "core_network_id": request.core_network_id,
            "vpn_arn": request.vpn_arn,
            "tags": request.tags,
            "timeout": timeout or ctx.config.timeouts.create,
        })
        return

    try:
        attachment = asyncio.run(ctx.lifecycle().create_and_wait(request, timeout=timeout))
    except AttachmentError as e:
        fail(ctx, "create_failed", e)
        return

    output_json({
        "status": "success",
        "attachment": attachment.to_dict(ctx.partition),
    })


@cli.command()
@click.argument("attachment_id")
@click.option("--timeout", type=int, default=None, help="Delete timeout in seconds")
@pass_context
def delete(ctx: Context, attachment_id: str, timeout: Optional[int]) -> None:
    """Delete an attachment and wait until it is gone."""
    if ctx.dry_run:
        output_json({
            "status": "dry_run",
            "message": "Would delete VPN attachment",
            "attachment_id": attachment_id,
            "timeout": timeout or ctx.config.timeouts.delete,
        })
        return

    try:
        asyncio.run(ctx.lifecycle().delete_and_wait(attachment_id, timeout=timeout))
    except AttachmentError as e:
        fail(ctx, "delete_failed", e)
        return

    output_json({"status": "success", "attachment_id": attachment_id, "deleted": True})


@cli.command()
@click.argument("attachment_ids", nargs=-1, required=True)
@click.option("--timeout", type=int, default=None, help="Wait timeout in seconds")
@click.option("--parallelism", type=int, default=None, help="Concurrent waits")
@pass_context
def wait(
    ctx: Context,
    attachment_ids: tuple[str, ...],
    timeout: Optional[int],
    parallelism: Optional[int],
) -> None:
    """Wait for attachments to become AVAILABLE."""
    parallelism = parallelism or ctx.config.parallelism

    if ctx.dry_run:
        output_json({
            "status": "dry_run",
            "message": "Would wait for VPN attachments",
            "attachment_ids": list(attachment_ids),
            "parallelism": parallelism,
        })
        return

    results = asyncio.run(
        ctx.lifecycle().await_available_many(
            attachment_ids,
            timeout=timeout,
            parallelism=parallelism,
        )
    )

    failures = {rid: r for rid, r in results.items() if isinstance(r, AttachmentError)}
    output_json({
        "status": "error" if failures else "success",
        "attachments": {
            rid: (
                {"error": str(r), "error_type": type(r).__name__}
                if isinstance(r, AttachmentError)
                else r.to_dict(ctx.partition)
            )
            for rid, r in results.items()
        },
    })

    if failures:
        # Report the first failure's category
        sys.exit(exit_code_for(next(iter(failures.values()))))


@cli.command()
@click.argument("attachment_id")
@pass_context
def show(ctx: Context, attachment_id: str) -> None:
    """Show an attachment's current attributes."""
    try:
        attachment = asyncio.run(ctx.lifecycle().read(attachment_id))
    except AttachmentError as e:
        fail(ctx, "read_failed", e)
        return

    if attachment is None:
        output_json({"status": "not_found", "attachment_id": attachment_id})
        sys.exit(ExitCode.NOT_FOUND)

    output_json({"status": "success", "attachment": attachment.to_dict(ctx.partition)})


@cli.command()
@click.argument("attachment_id")
@click.option("--tag", "tags", multiple=True, help="Set tag KEY=VALUE (can be repeated)")
@click.option("--untag", "untags", multiple=True, help="Remove tag KEY (can be repeated)")
@pass_context
def tag(
    ctx: Context,
    attachment_id: str,
    tags: tuple[str, ...],
    untags: tuple[str, ...],
) -> None:
    """Update an attachment's tags."""
    additions = parse_tags(tags)

    if ctx.dry_run:
        output_json({
            "status": "dry_run",
            "message": "Would update VPN attachment tags",
            "attachment_id": attachment_id,
            "set": additions,
            "remove": list(untags),
        })
        return

    async def apply():
        lifecycle = ctx.lifecycle()
        current = await lifecycle.read(attachment_id)
        if current is None:
            raise AttachmentNotFoundError(attachment_id, "update")
        new_tags = {k: v for k, v in current.tags.items() if k not in untags}
        new_tags.update(additions)
        return await lifecycle.update_tags(attachment_id, current.tags, new_tags)

    try:
        attachment = asyncio.run(apply())
    except AttachmentError as e:
        fail(ctx, "tag_failed", e)
        return

    output_json({"status": "success", "attachment": attachment.to_dict(ctx.partition)})


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except Exception as e:
        logger = get_logger("cli")
        logger.error("cli_error", error=str(e))
        sys.exit(ExitCode.GENERAL_ERROR)


if __name__ == "__main__":
    main()
