"""School data maintenance CLI commands."""

import asyncio

import typer

schools_app = typer.Typer()


@schools_app.command("clear")
def clear_schools(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Delete every stored school."""
    if not yes:
        typer.confirm("Delete ALL schools?", abort=True)
    asyncio.run(_clear_schools())


async def _clear_schools() -> None:
    """Async implementation of clear."""
    from schools_api.core.config import get_settings
    from schools_api.core.database import dispose_engine, get_session_factory, init_engine
    from schools_api.services.school_service import clear_schools

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            deleted = await clear_schools(session)
            typer.echo(f"Deleted {deleted} schools")
    finally:
        await dispose_engine()
