"""tinyclaw CLI: run the queue processor and poke at the queue."""

import json
import signal
from dataclasses import asdict
from functools import wraps

import typer
from click.exceptions import Exit

from tinyclaw.core.models import InboundMessage
from tinyclaw.errors import ConfigError, TinyclawError
from tinyclaw.lib import config, ids, paths
from tinyclaw.lib.logs import setup_logging
from tinyclaw.lib.settings import load_settings
from tinyclaw.lib.signals import ResetSignal
from tinyclaw.os.queue import QueueDirs, QueueProcessor

app = typer.Typer(no_args_is_help=True, add_completion=False)


def error_feedback(f):
    """Report tinyclaw failures on stderr and exit 1 instead of dumping a traceback."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (SystemExit, Exit):
            raise
        except ConfigError as e:
            typer.echo(f"Config error: {e}", err=True)
            raise typer.Exit(1) from e
        except TinyclawError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e
        except OSError as e:
            typer.echo(f"Cannot access {paths.home()}: {e}", err=True)
            raise typer.Exit(1) from e

    return wrapper


def echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2))


@app.command()
@error_feedback
def run(
    once: bool = typer.Option(False, "--once", help="Process the queue once and exit."),
):
    """Start the queue processor loop."""
    cfg = config.load_config()
    setup_logging(paths.log_file(), cfg["log_level"])

    processor = QueueProcessor()
    if once:
        processor.queue.ensure()
        handled = processor.poll()
        typer.echo(f"Processed {handled} message(s)")
        return

    def _shutdown(signum, frame):
        processor.stop()

    signal.signal(signal.SIGTERM, _shutdown)
    try:
        processor.run()
    except KeyboardInterrupt:
        pass


@app.command()
@error_feedback
def send(
    message: str = typer.Argument(..., help="Message text."),
    channel: str = typer.Option("cli", "--channel", "-c", help="Channel name."),
    sender: str = typer.Option("cli", "--sender", "-s", help="Sender display name."),
    agent: str = typer.Option(None, "--agent", "-a", help="Route directly to agent or team id."),
):
    """Queue a message as if it came from a channel."""
    queue = QueueDirs()
    queue.ensure()
    inbound = InboundMessage(
        channel=channel,
        sender=sender,
        message=message,
        timestamp=ids.now_ms(),
        message_id=ids.uuid7(),
        agent=agent,
    )
    path = queue.enqueue(inbound)
    typer.echo(f"✓ Queued {path.name}")


@app.command()
@error_feedback
def reset():
    """Start a fresh backend conversation on the next message."""
    ResetSignal(paths.reset_flag()).request()
    typer.echo("✓ Reset flag set")
    typer.echo("The next message will start a fresh conversation.")


@app.command()
@error_feedback
def status(
    json_output: bool = typer.Option(False, "--json", "-j", help="Output in JSON format."),
):
    """Show queue depth and pending reset."""
    counts = QueueDirs().counts()
    reset_pending = ResetSignal(paths.reset_flag()).is_set()
    if json_output:
        echo_json({**counts, "reset_pending": reset_pending, "home": str(paths.home())})
        return

    typer.echo(f"Home: {paths.home()}")
    for name, count in counts.items():
        typer.echo(f"  {name:<12} {count}")
    typer.echo(f"  {'reset':<12} {'pending' if reset_pending else '-'}")


@app.command()
@error_feedback
def agents(
    json_output: bool = typer.Option(False, "--json", "-j", help="Output in JSON format."),
):
    """List configured agents and teams."""
    settings = load_settings()
    if json_output:
        echo_json(
            {
                "agents": [asdict(agent) for agent in settings.agents.values()],
                "teams": [asdict(team) for team in settings.teams.values()],
            }
        )
        return

    for agent in settings.agents.values():
        model = agent.model or "-"
        typer.echo(f"@{agent.agent_id:<14} {agent.provider:<10} {model:<20} {agent.working_directory}")
    for team in settings.teams.values():
        members = ", ".join(f"@{member}" for member in team.agents)
        typer.echo(f"@{team.team_id:<14} team (leader @{team.leader_agent}): {members}")


def main() -> None:
    """Entry point for tinyclaw command."""
    app()


if __name__ == "__main__":
    main()
