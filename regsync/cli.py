#!/usr/bin/env python3

import click

from regsync.commands.sync import sync_handler
from regsync.commands.config import config_cmd


@click.group()
@click.version_option(package_name="regsync")
def cli():
    """regsync - Mirror container images between registries and directories.

    Copies only the tags that changed, with bounded concurrency.
    """
    pass


cli.add_command(sync_handler, name='sync')
cli.add_command(config_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
