"""FieldOps CLI tool (fieldopsctl)."""

import typer

app = typer.Typer(name="fieldopsctl", help="FieldOps Teams CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


@db_app.command("create")
def db_create():
    """Create the MySQL database if it doesn't exist."""
    import pymysql
    from sqlalchemy.engine import make_url
    from fieldops.core.config import settings

    url = make_url(settings.DATABASE_URL)
    if not url.drivername.startswith("mysql"):
        typer.echo(f"Nothing to create for {url.drivername}")
        raise typer.Exit()

    conn = pymysql.connect(
        host=url.host or "localhost",
        port=url.port or 3306,
        user=url.username,
        password=url.password or "",
    )
    try:
        cursor = conn.cursor()
        cursor.execute(
            f"CREATE DATABASE IF NOT EXISTS `{url.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
        typer.echo(f"Database '{url.database}' created (or already exists)")
    finally:
        conn.close()


@db_app.command("init")
def db_init():
    """Create all tables."""
    from fieldops.db.base import Base
    from fieldops.db.session import engine
    import fieldops.models  # noqa: F401  registers every table on Base.metadata

    Base.metadata.create_all(bind=engine)
    typer.echo("Tables created")


@db_app.command("seed-admin")
def db_seed_admin(
    username: str = typer.Option(None, help="Defaults to SEED_ADMIN_USERNAME"),
    password: str = typer.Option(None, help="Defaults to SEED_ADMIN_PASSWORD"),
):
    """Create the global admin account."""
    from fieldops.core.config import settings
    from fieldops.db.session import SessionLocal
    from fieldops.services.auth_service import auth_service

    db = SessionLocal()
    try:
        user = auth_service.create_admin(
            db,
            username or settings.SEED_ADMIN_USERNAME,
            password or settings.SEED_ADMIN_PASSWORD,
        )
        typer.echo(f"Admin account '{user.username}' ready (id={user.id})")
    finally:
        db.close()


@app.command("ping")
def ping(
    base_url: str = typer.Option("http://localhost:8000", help="API base URL"),
):
    """Check that a running API answers its health endpoint."""
    import httpx
    resp = httpx.get(f"{base_url}/api/health", timeout=10)
    typer.echo(resp.json())


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("fieldops.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
