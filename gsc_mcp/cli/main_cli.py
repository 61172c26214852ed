# gsc_mcp/cli/main_cli.py
import typer
import uvicorn
from typing import Optional
from typing_extensions import Annotated

from . import auth_cli
from .utils_cli import load_settings, make_api_request

# Main CLI application with help enabled when no arguments are provided
app = typer.Typer(
    name="gsc-mcp",
    help="Google Search Console MCP server.",
    no_args_is_help=True
)

app.add_typer(auth_cli.app, name="auth")


@app.callback()
def main_callback():
    """
    Google Search Console MCP server CLI.
    Use 'gsc-mcp auth --help' for authorization commands.
    """
    pass


@app.command("serve")
def serve(
    host: Annotated[Optional[str], typer.Option(help="Interface to bind (defaults to HOST).")] = None,
    port: Annotated[Optional[int], typer.Option(help="Port to listen on (defaults to PORT).")] = None,
    reload: Annotated[bool, typer.Option(help="Reload on code changes.")] = False,
):
    """Run the MCP server."""
    cli_settings = load_settings(require_oauth_client=True)
    uvicorn.run(
        "gsc_mcp.main:create_app",
        factory=True,
        host=host or cli_settings.host,
        port=port or cli_settings.port,
        log_level="debug" if cli_settings.debug_mode else cli_settings.log_level.lower(),
        reload=reload,
    )


@app.command("health")
def health():
    """Query the /health endpoint of a running server."""
    make_api_request("GET", "/health")


def cli_entry_point():
    """Entry point function for console script registration in pyproject.toml"""
    app()


if __name__ == "__main__":
    cli_entry_point()
