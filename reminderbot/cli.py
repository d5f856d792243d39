"""One-shot commands for ``RUN_MODE=cli``."""

from __future__ import annotations

import asyncio
import sys
import uuid

import click

from reminderbot.shared.config import Settings, load_settings, parse_list


def run_async(coro):
    """Run an async function in a new event loop."""
    return asyncio.run(coro)


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--config",
    "config_file",
    default=None,
    envvar="CONFIG_FILE",
    help="Path to the config file (defaults to .env).",
)
@click.pass_context
def cli(ctx, config_file):
    """Discord notification bot command line."""
    ctx.obj = load_settings(config_file)


# --- Notifications ---


@cli.command()
@click.option("--text", required=True, help="What to notify about")
@click.option("--users", required=True, help="Comma-separated Discord user IDs")
@click.option("--time", "when", required=True, help="ISO 8601 time; no offset means TIMEZONE")
@click.option("--channel", required=True, help="Discord channel ID")
@click.pass_obj
def create(settings: Settings, text, users, when, channel):
    """Create a notification directly, without confirmation."""
    from reminderbot.shared.utils.timefmt import format_time, parse_time

    if not text.strip():
        _fail("--text must not be empty")
    user_ids = parse_list(users)
    if not user_ids:
        _fail("--users must name at least one user")
    try:
        event_time = parse_time(when, settings.timezone)
    except ValueError:
        _fail(f"invalid --time {when!r}, expected ISO 8601")

    try:
        count = run_async(_create(settings, text.strip(), user_ids, event_time, channel))
    except Exception as e:
        _fail(f"failed to create notification: {e}")

    click.echo(
        f"Created notification for {len(user_ids)} user(s) at "
        f"{format_time(event_time, settings.timezone)} ({count} deliveries)"
    )


async def _create(settings: Settings, text, user_ids, event_time, channel) -> int:
    from reminderbot.services.notification_service import NotificationService
    from reminderbot.shared.database import create_engine, create_session_factory, init_db

    engine = create_engine(settings.database_url)
    try:
        await init_db(engine)
        service = NotificationService(create_session_factory(engine), settings.lead_minutes)
        count = 0
        for user_id in user_ids:
            rows = await service.create(
                text, user_id, channel, event_time, request_id=str(uuid.uuid4())
            )
            count += len(rows)
        return count
    finally:
        await engine.dispose()


@cli.command("create-prompt")
@click.option("--text", default=None, help="The request; asked for when omitted")
@click.option("--user", "user_id", default=None, help="Defaults to DISCORD_USER_ID")
@click.option("--channel", default=None, help="Defaults to DISCORD_CHANNEL_ID")
@click.pass_obj
def create_prompt(settings: Settings, text, user_id, channel):
    """Describe a notification in a sentence and let the LLM fill in the details."""
    from reminderbot.shared.utils.timefmt import format_time

    user_id = user_id or settings.discord_user_id
    channel = channel or settings.discord_channel_id
    if not user_id or not channel:
        _fail("set DISCORD_USER_ID and DISCORD_CHANNEL_ID, or pass --user and --channel")
    if not settings.openai_api_key:
        _fail("OPENAI_API_KEY is required for create-prompt")

    text = text or click.prompt("What should I notify you about, and when?")
    if not text.strip():
        _fail("nothing to schedule")

    try:
        draft = run_async(_create_from_prompt(settings, text.strip(), user_id, channel))
    except Exception as e:
        _fail(f"failed to create notification: {e}")

    click.echo(f'Created: "{draft.content}" at {format_time(draft.time, settings.timezone)}')


async def _create_from_prompt(settings: Settings, text, user_id, channel):
    from reminderbot.core.actions.drafts import DraftBuilder
    from reminderbot.runtime import build_completion_client
    from reminderbot.services.notification_service import NotificationService
    from reminderbot.shared.database import create_engine, create_session_factory, init_db

    drafts = DraftBuilder(
        build_completion_client(settings),
        timeout=settings.llm_timeout_seconds,
        tz=settings.timezone,
    )
    draft = await drafts.extract(text)

    engine = create_engine(settings.database_url)
    try:
        await init_db(engine)
        service = NotificationService(create_session_factory(engine), settings.lead_minutes)
        await service.create(
            draft.content, user_id, channel, draft.time, request_id=str(uuid.uuid4())
        )
    finally:
        await engine.dispose()
    return draft


# --- Todos ---


@cli.group()
def todo():
    """Todo list commands."""
    pass


def _todo_user(settings: Settings, user_id: str | None) -> str:
    user_id = user_id or settings.discord_user_id
    if not user_id:
        _fail("set DISCORD_USER_ID or pass --user")
    return user_id


async def _with_todos(settings: Settings, action):
    from reminderbot.services.todo_service import TodoService
    from reminderbot.shared.database import create_engine, create_session_factory, init_db

    engine = create_engine(settings.database_url)
    try:
        await init_db(engine)
        return await action(TodoService(create_session_factory(engine)))
    finally:
        await engine.dispose()


@todo.command("add")
@click.argument("text")
@click.option("--user", "user_id", default=None, help="Defaults to DISCORD_USER_ID")
@click.pass_obj
def todo_add(settings: Settings, text, user_id):
    """Add an item to a todo list."""
    user_id = _todo_user(settings, user_id)
    if not text.strip():
        _fail("nothing to add")
    run_async(_with_todos(settings, lambda todos: todos.create(user_id, text)))
    click.echo("Added to your todo list.")


@todo.command("list")
@click.option("--user", "user_id", default=None, help="Defaults to DISCORD_USER_ID")
@click.pass_obj
def todo_list(settings: Settings, user_id):
    """Show open todos."""
    from reminderbot.services.todo_service import format_todo_list

    user_id = _todo_user(settings, user_id)
    items = run_async(_with_todos(settings, lambda todos: todos.list_open(user_id)))
    if not items:
        click.echo("You have no open todos.")
        return
    click.echo(f"Your open todos:\n{format_todo_list(items)}")


@todo.command("done")
@click.argument("index", type=int)
@click.option("--user", "user_id", default=None, help="Defaults to DISCORD_USER_ID")
@click.pass_obj
def todo_done(settings: Settings, index, user_id):
    """Mark the INDEX-th open todo as done."""
    user_id = _todo_user(settings, user_id)
    if index < 1:
        _fail("Provide a valid index for todo done.")
    item = run_async(_with_todos(settings, lambda todos: todos.complete(user_id, index)))
    if item is None:
        _fail("That todo index does not exist.")
    click.echo("Marked as done.")


@todo.command("clear")
@click.option("--user", "user_id", default=None, help="Defaults to DISCORD_USER_ID")
@click.pass_obj
def todo_clear(settings: Settings, user_id):
    """Remove completed todos."""
    user_id = _todo_user(settings, user_id)
    removed = run_async(_with_todos(settings, lambda todos: todos.clear_completed(user_id)))
    click.echo(f"Cleared completed todos ({removed} removed).")


# --- Calendar ---


@cli.group()
def calendar():
    """Calendar commands."""
    pass


@calendar.command("add")
@click.option("--title", required=True, help="Event title")
@click.option("--start", required=True, help="ISO 8601 start; no offset means TIMEZONE")
@click.option("--end", default=None, help="ISO 8601 end")
@click.option("--description", default=None)
@click.option("--user", "user_id", default=None, help="Defaults to DISCORD_USER_ID")
@click.option("--channel", default=None, help="Defaults to DISCORD_CHANNEL_ID")
@click.pass_obj
def calendar_add(settings: Settings, title, start, end, description, user_id, channel):
    """Add an event announced shortly before it starts."""
    from reminderbot.shared.utils.timefmt import format_time, parse_time

    user_id = user_id or settings.discord_user_id
    channel = channel or settings.discord_channel_id
    if not user_id or not channel:
        _fail("set DISCORD_USER_ID and DISCORD_CHANNEL_ID, or pass --user and --channel")
    try:
        start_time = parse_time(start, settings.timezone)
        end_time = parse_time(end, settings.timezone) if end else None
    except ValueError:
        _fail("invalid --start/--end, expected ISO 8601")

    try:
        run_async(
            _add_calendar_event(settings, title, user_id, channel, start_time, end_time, description)
        )
    except Exception as e:
        _fail(f"failed to add event: {e}")
    click.echo(f"Added {title} at {format_time(start_time, settings.timezone)}")


async def _add_calendar_event(settings: Settings, title, user_id, channel, start, end, description):
    from reminderbot.services.calendar_service import CalendarService
    from reminderbot.shared.database import create_engine, create_session_factory, init_db

    engine = create_engine(settings.database_url)
    try:
        await init_db(engine)
        await CalendarService(create_session_factory(engine)).create(
            title, user_id, channel, start, end_time=end, description=description
        )
    finally:
        await engine.dispose()


# --- Service ---


@cli.command()
@click.pass_obj
def serve(settings: Settings):
    """Run the bot service (same as RUN_MODE=api)."""
    from reminderbot.api import serve as serve_api

    serve_api(settings)


if __name__ == "__main__":
    cli()
