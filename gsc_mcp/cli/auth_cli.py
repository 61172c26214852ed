# gsc_mcp/cli/auth_cli.py
import typer
from typing import Optional
from typing_extensions import Annotated

from ..oauth.credential_store import get_credential_store
from ..oauth.google_oauth import GoogleOAuthClient
from ..oauth.models import Credential
from .utils_cli import load_settings, run_async

app = typer.Typer(
    name="auth",
    help="Inspect and manage Google authorization.",
    no_args_is_help=True
)


@app.command("url")
def authorization_url(
    session_id: Annotated[Optional[str], typer.Option("--session-id", help="Session ID to embed as OAuth state.")] = None,
):
    """Print the Google consent URL the server would redirect to."""
    cli_settings = load_settings(require_oauth_client=True)
    oauth = GoogleOAuthClient(
        client_id=cli_settings.google_client_id,
        client_secret=cli_settings.google_client_secret,
        redirect_uri=cli_settings.redirect_uri,
        scopes=cli_settings.oauth_scopes,
    )
    typer.echo(f"Redirect URI: {cli_settings.redirect_uri}")
    typer.echo(f"Scopes: {' '.join(cli_settings.oauth_scopes)}")
    typer.secho("Auth URL generated:", fg=typer.colors.GREEN)
    typer.echo(oauth.build_authorization_url(state=session_id))
    run_async(oauth.aclose())


async def _load_stored() -> Optional[Credential]:
    cli_settings = load_settings()
    store = get_credential_store(cli_settings)
    await store.initialize()
    try:
        return await store.load_credential()
    finally:
        await store.teardown()


@app.command("status")
def status():
    """Show the stored process-wide credential, if any."""
    cli_settings = load_settings()
    if cli_settings.credential_mode != "process":
        typer.secho(
            "CREDENTIAL_MODE is 'session': credentials live in memory per connection and are never stored.",
            fg=typer.colors.YELLOW
        )
    credential = run_async(_load_stored())
    if credential is None:
        typer.secho(f"No stored credential ({cli_settings.credential_store_backend} store).", fg=typer.colors.YELLOW)
        typer.echo(f"Authenticate at: {cli_settings.auth_base_url}/auth")
        raise typer.Exit(code=1)

    typer.secho("Stored credential found.", fg=typer.colors.GREEN)
    typer.echo(f"  Scopes: {', '.join(credential.scopes) or '(not reported)'}")
    typer.echo(f"  Obtained at: {credential.obtained_at.isoformat()}")
    typer.echo(f"  Expires at: {credential.expires_at.isoformat() if credential.expires_at else 'unknown'}")
    typer.echo(f"  Access token expired: {'yes' if credential.is_expired(leeway_seconds=0) else 'no'}")
    typer.echo(f"  Refresh token: {'SET' if credential.refresh_token else 'NOT_SET'}")


@app.command("clear")
def clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
):
    """
    Delete the stored process-wide credential.

    A running process-mode server keeps the credential it already loaded;
    restart it to drop that one too.
    """
    if not yes:
        typer.confirm("Delete the stored credential?", abort=True)

    async def _clear() -> None:
        store = get_credential_store(load_settings())
        await store.initialize()
        try:
            await store.delete_credential()
        finally:
            await store.teardown()

    run_async(_clear())
    typer.secho("Stored credential deleted.", fg=typer.colors.GREEN)
    typer.secho(
        "A running server keeps its loaded credential until it is restarted.",
        fg=typer.colors.YELLOW
    )


if __name__ == "__main__":
    app()
