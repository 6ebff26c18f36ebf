"""CLI entrypoint for hit-dispatch."""

import logging

import rich_click as click

from hit_dispatch import __version__
from hit_dispatch.dispatch.controllers import (
    DispatchCliController,
    DispatchCommand,
    ResultCommand,
    SearchCommand,
)

click.rich_click.USE_MARKDOWN = True
DISPATCH_CONTROLLER = DispatchCliController()


@click.group()
@click.version_option(version=__version__, prog_name="hit-dispatch")
@click.option("--verbose", is_flag=True, help="Log raw marketplace responses.")
def hit_dispatch(verbose: bool) -> None:
    """Dispatch human tasks to the marketplace and collect their answers."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@hit_dispatch.command("dispatch")
@click.option("--external-id", required=True, help="Caller-side id stored as the task annotation.")
@click.option("--title", required=True, help="Task title shown to workers.")
@click.option("--description", required=True, help="Task description shown to workers.")
@click.option("--content", required=True, help="Question text, or page HTML with --html.")
@click.option("--html", is_flag=True, help="Render as an embedded HTML page.")
@click.option(
    "--wait/--no-wait",
    default=False,
    show_default=True,
    help="Poll until the task is answered or expires.",
)
def dispatch(  # noqa: PLR0913
    external_id: str,
    title: str,
    description: str,
    content: str,
    html: bool,
    wait: bool,
) -> None:
    """Create one task and optionally wait for its answer."""

    _emit_lines(
        DISPATCH_CONTROLLER.dispatch(
            DispatchCommand(
                external_id=external_id,
                title=title,
                description=description,
                content=content,
                html=html,
                wait=wait,
            ),
        ),
    )


@hit_dispatch.command("result")
@click.argument("task_id")
def result(task_id: str) -> None:
    """Fetch the current result of one task."""

    _emit_lines(DISPATCH_CONTROLLER.result(ResultCommand(task_id=task_id)))


@hit_dispatch.command("search")
@click.option("--page-size", type=click.IntRange(min=1, max=100), default=None)
@click.option("--page-number", type=click.IntRange(min=1), default=None)
@click.option("--sort-property", default=None, help="For example CreationTime or Title.")
@click.option("--descending", is_flag=True, help="Sort in descending order.")
def search(
    page_size: int | None,
    page_number: int | None,
    sort_property: str | None,
    descending: bool,
) -> None:
    """List requester tasks with their assignment counters."""

    _emit_lines(
        DISPATCH_CONTROLLER.search(
            SearchCommand(
                page_size=page_size,
                page_number=page_number,
                sort_property=sort_property,
                descending=descending,
            ),
        ),
    )


@hit_dispatch.command("receive")
def receive() -> None:
    """Receive one marketplace notification from the configured queue."""

    _emit_lines(DISPATCH_CONTROLLER.receive())


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    hit_dispatch()
