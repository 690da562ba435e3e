"""backlot command-line interface."""

import typer

from backlot_cli import __version__
from backlot_cli.commands.config import check_config, plan
from backlot_cli.commands.records import errors, logs

app = typer.Typer(help="backlot - Department work pool and qualification pipeline")


@app.command()
def version() -> None:
    """Show CLI version."""
    typer.echo(f"backlot v{__version__}")


app.command("check-config")(check_config)
app.command()(plan)
app.command()(errors)
app.command()(logs)


def main() -> None:
    """Entrypoint invoked by ``python -m backlot_cli`` or console scripts."""
    app()


if __name__ == "__main__":
    main()
