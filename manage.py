import asyncio
import json
from pathlib import Path
import subprocess
from typing import Annotated
from uuid import UUID

from pydantic import validate_email
from rich import print
from rich.table import Table
import typer

from app.core.config import settings

app = typer.Typer()


def email_validator(email: str | None) -> str | None:
    if email is None:
        return None
    try:
        _, email = validate_email(email)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    return email.lower()


def run_shell(command: str, label: str) -> None:
    """
    Run a shell command, echoing it first.

    Raises:
        subprocess.CalledProcessError: If the command exits non-zero.
    """
    print(f"Running {label}: {command}")
    try:
        subprocess.run(command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


# ==========================================================================
# Database migrations
# ==========================================================================


@app.command()
def makemigrations(comment: Annotated[str, typer.Argument()] = "auto"):
    """Autogenerate a new Alembic revision."""
    run_shell(f'alembic revision --autogenerate -m "{comment}"', "Alembic revision")
    print("[green]Make migrations complete[/green]")


@app.command()
def migrate():
    """Upgrade the database schema to the latest revision."""
    run_shell("alembic upgrade head", "Alembic upgrade")
    print("[green]Migration complete[/green]")


@app.command()
def showmigrations():
    run_shell("alembic history", "Alembic history")


# ==========================================================================
# Processes
# ==========================================================================


@app.command()
def runserver():
    server_command = (
        "uvicorn app.main:app --host 127.0.0.1 --port 8000 --reload"
        if settings.DEBUG
        else "uvicorn app.main:app --host 0.0.0.0 --port 8000"
    )
    run_shell(server_command, "FastAPI server")


@app.command()
def runworker():
    """Run the activity and notification queue consumers on their own."""
    run_shell("python -m app.infrastructure.messaging.main", "message worker")


@app.command()
def runscheduler():
    """Run the reaper, invitation expiry and role cache jobs on their own."""
    run_shell("python -m app.infrastructure.scheduler.main", "scheduler")


@app.command()
def generateopenapi():
    """Write the OpenAPI schema of the API to openapi.json."""
    from app.main import app as fastapi_app

    openapi_path = Path("openapi.json")
    with openapi_path.open("w", encoding="utf-8") as f:
        json.dump(fastapi_app.openapi(), f, ensure_ascii=False, indent=2)
    print(f"[green]OpenAPI schema generated at {openapi_path.name}[/green]")


# ==========================================================================
# Users
# ==========================================================================


async def create_user_task(
    email: str, full_name: str | None, password: str | None
) -> UUID | None:
    from app.core.db import AsyncSessionLocal
    from app.core.db.crud import user_db
    from app.core.utils import hash_password

    async with AsyncSessionLocal.begin() as session:
        if existing := await user_db.get_by_email(session, email):
            print(f"[yellow]User already exists:[/yellow] {existing.email} ({existing.id})")
            return existing.id

        user = await user_db.create(
            session,
            {
                "email": email,
                "full_name": full_name,
                "password_hash": hash_password(password) if password else None,
                "email_verified": True,
            },
            commit_self=False,
        )
        print(f"[green]User created:[/green] {user.email} ({user.id})")
        return user.id


@app.command()
def createuser(
    email: Annotated[
        str, typer.Option(prompt=True, prompt_required=False, callback=email_validator)
    ],
    full_name: Annotated[str | None, typer.Option()] = None,
    password: Annotated[str | None, typer.Option(hide_input=True)] = None,
):
    """
    Create a user that can own or join workspaces.

    Examples:
        python manage.py createuser --email ada@example.com --full-name "Ada Lovelace"
    """
    asyncio.run(create_user_task(email, full_name, password))


async def issue_token_task(email: str) -> str:
    from app.core.db import AsyncSessionLocal
    from app.core.db.crud import user_db
    from app.core.utils import create_jwt_token

    async with AsyncSessionLocal.begin() as session:
        user = await user_db.get_by_email(session, email)
        if user is None:
            print(f"[red]No user with email {email}[/red]")
            raise typer.Exit(1)
        user_id = user.id

    return create_jwt_token({"sub": str(user_id), "type": "access"})


@app.command()
def issuetoken(
    email: Annotated[str, typer.Argument(callback=email_validator)],
):
    """Print a bearer access token for an existing user (development only)."""
    if settings.ENVIRONMENT == "production":
        print("[red]Refusing to issue tokens in production[/red]")
        raise typer.Exit(1)
    token = asyncio.run(issue_token_task(email))
    print(token)


# ==========================================================================
# Maintenance jobs
# ==========================================================================


def _print_counts(title: str, counts: dict[str, int] | None) -> None:
    if counts is None:
        print(f"[red]{title} failed; see logs/scheduler.log[/red]")
        raise typer.Exit(1)
    table = Table(title=title)
    table.add_column("Outcome")
    table.add_column("Count", justify="right")
    for key, value in counts.items():
        table.add_row(key, str(value))
    print(table)


@app.command()
def reapworkspaces():
    """Permanently delete archived workspaces whose grace period has elapsed."""
    from app.infrastructure.scheduler.jobs import reap_archived_workspaces

    _print_counts("Archived workspace sweep", asyncio.run(reap_archived_workspaces()))


@app.command()
def expireinvitations():
    """Mark every overdue pending invitation as expired."""
    from app.infrastructure.scheduler.jobs import expire_invitations

    expired = asyncio.run(expire_invitations())
    _print_counts("Invitation expiry", None if expired is None else {"expired": expired})


@app.command()
def reconcileroles():
    """Rebuild role cache entries from owners and member rows."""
    from app.infrastructure.scheduler.jobs import reconcile_role_cache

    _print_counts("Role cache reconciliation", asyncio.run(reconcile_role_cache()))


@app.callback()
def main(ctx: typer.Context):
    print(f"Executing the command: {ctx.invoked_subcommand}")


if __name__ == "__main__":
    app()
