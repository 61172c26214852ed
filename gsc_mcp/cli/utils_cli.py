# gsc_mcp/cli/utils_cli.py
import asyncio
import json
from typing import Any, Coroutine, Dict, Optional, TypeVar

import requests
import typer

from ..settings import ConfigurationError, Settings

T = TypeVar("T")


def make_api_request(
    method: str,
    endpoint: str,
    params_payload: Optional[Dict[str, Any]] = None,
    expected_status: int = 200,
) -> Any:
    """Call a running server and print its JSON response. Exits with code 1 on any failure."""
    from .config import GSC_CLI_API_BASE_URL

    full_url = f"{GSC_CLI_API_BASE_URL}{endpoint}"
    typer.echo(f"CLI: {method.upper()} {full_url}")

    try:
        response = requests.request(method, full_url, params=params_payload, timeout=30)
    except requests.exceptions.ConnectionError as e:
        typer.secho(
            f"CLI: Connection Error - Could not connect to API at {full_url}. Is the server running? Error: {e}",
            fg=typer.colors.RED
        )
        raise typer.Exit(code=1)
    except requests.exceptions.RequestException as e:
        typer.secho(f"CLI: Request Error - {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"CLI: Response Status: {response.status_code}")
    if response.status_code != expected_status:
        typer.secho(
            f"CLI: API Error - Expected status {expected_status}, got {response.status_code}. "
            f"Raw response: {response.text}",
            fg=typer.colors.RED
        )
        raise typer.Exit(code=1)

    try:
        data = response.json()
    except json.JSONDecodeError:
        typer.secho(f"CLI: Error - Could not decode JSON response. Raw text: {response.text}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(typer.style("CLI: Response JSON:", fg=typer.colors.CYAN))
    typer.echo(json.dumps(data, indent=2))
    return data


def load_settings(require_oauth_client: bool = False) -> Settings:
    """Settings from the environment; exits with code 1 when required OAuth config is missing."""
    cli_settings = Settings()
    if require_oauth_client:
        try:
            cli_settings.require_oauth_client()
        except ConfigurationError as e:
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
    return cli_settings


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)
