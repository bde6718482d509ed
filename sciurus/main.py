import asyncio
import base64
import logging
import math
import sys
from pathlib import Path

import click

from .config.dirs import get_config_file_path
from .config.store import ConfigError, JsonConfig
from .objectstore.onedrive import AuthorizationRequired, OneDriveClient, OneDriveError

VALUE_TYPES = ['string', 'number', 'bool', 'bytes', 'null']


def parse_value(text, value_type):
    """Convert command line text into a typed config value."""
    if value_type == 'string':
        return text
    if value_type == 'number':
        try:
            number = float(text)
        except ValueError:
            raise click.BadParameter(f"{text!r} is not a number")
        if not math.isfinite(number):
            raise click.BadParameter(f"{text!r} is not a finite number")
        return number
    if value_type == 'bool':
        lowered = text.lower()
        if lowered in ('true', '1', 'yes', 'on'):
            return True
        if lowered in ('false', '0', 'no', 'off'):
            return False
        raise click.BadParameter(f"{text!r} is not a boolean")
    if value_type == 'bytes':
        try:
            return base64.b64decode(text, validate=True)
        except ValueError:
            raise click.BadParameter(f"{text!r} is not valid base64")
    return None


def format_value(value):
    if isinstance(value, bytes):
        return base64.b64encode(value).decode('ascii')
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def open_config(config_file, create_dir=False):
    """Load the store with auto-save on, creating its directory for writers."""
    if create_dir:
        config_file.parent.mkdir(parents=True, exist_ok=True)
    config = JsonConfig(config_file, auto_save=True)
    try:
        config.load()
    except ConfigError as e:
        raise click.ClickException(str(e))
    return config


@click.group()
@click.option('--config', 'config_file', type=click.Path(dir_okay=False, path_type=Path),
              default=None, help='Config file to use')
@click.option('-v', '--verbose', is_flag=True, help='Enable debug logging')
@click.pass_context
def main(ctx, config_file, verbose):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    ctx.obj = config_file or get_config_file_path()


@main.command()
@click.argument('key')
@click.pass_obj
def get(config_file, key):
    """Print the value stored at KEY."""
    config = open_config(config_file)
    value = config.get(key)
    if value is None:
        click.echo(f"{key} is not set", err=True)
        sys.exit(1)
    click.echo(format_value(value))


@main.command('set')
@click.argument('key')
@click.argument('value', required=False)
@click.option('--type', 'value_type', type=click.Choice(VALUE_TYPES), default='string',
              help='How to interpret VALUE (bytes are given as base64)')
@click.pass_obj
def set_(config_file, key, value, value_type):
    """Store VALUE at KEY."""
    if value is None and value_type != 'null':
        raise click.UsageError("VALUE is required unless --type null")
    config = open_config(config_file, create_dir=True)
    try:
        config.set(key, parse_value(value, value_type))
    except ConfigError as e:
        raise click.ClickException(str(e))


@main.command()
@click.argument('key')
@click.pass_obj
def delete(config_file, key):
    """Remove KEY from the config."""
    config = open_config(config_file, create_dir=True)
    try:
        config.delete(key)
    except ConfigError as e:
        raise click.ClickException(str(e))


@main.command()
@click.option('--client-id', envvar='SCIURUS_ONEDRIVE_CLIENT_ID', required=True,
              help='OneDrive application client id')
@click.pass_obj
def auth(config_file, client_id):
    """Check OneDrive access, asking for authorization when needed."""
    config = open_config(config_file, create_dir=True)
    onedrive = OneDriveClient(client_id, config)
    try:
        asyncio.run(onedrive.access_test())
    except AuthorizationRequired as e:
        click.echo("Open this URL, then store the code with 'sciurus set onedrive.code <code>':")
        click.echo(e.url)
        sys.exit(2)
    except (OneDriveError, ConfigError) as e:
        raise click.ClickException(str(e))
    click.echo(f"OneDrive access OK (user {onedrive.user_id})")


if __name__ == '__main__':
    main()
