"""CLI entry point for passreview."""

from __future__ import annotations

import importlib.metadata

import click

from passreview_cli.commands.review import review_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("passreview"),
    prog_name="passreview",
)
def main():
    """Multi-pass LLM code reviewer for GitHub pull requests."""


main.add_command(review_cmd)
