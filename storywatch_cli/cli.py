import asyncio
import json
import os

import requests
import typer

from storywatch.datatypes import (
    VALIDATOR_ADDRESS_LENGTH,
    VALIDATOR_ADDRESS_PREFIX,
    is_valid_validator_address,
)
from storywatch.exceptions import InvalidAddressError
from storywatch.registry import RecipientRegistry

app = typer.Typer()

# Default API URL (can be overridden with the API_URL environment variable)
API_URL = os.getenv("API_URL", "http://localhost:8000")


@app.command()
def run():
    """
    Start the watcher service (reconciliation loop, bot and status API).
    """
    from storywatch.server import main

    main()


@app.command()
def check_address(address: str = typer.Argument(..., help="Validator operator address.")):
    """
    Check whether a validator operator address is well-formed.
    """
    if is_valid_validator_address(address):
        typer.secho(f"{address} is a valid validator address.", fg=typer.colors.GREEN)
        return
    typer.secho(
        f"{address} is invalid: expected prefix '{VALIDATOR_ADDRESS_PREFIX}' "
        f"and {VALIDATOR_ADDRESS_LENGTH} characters, got {len(address)}.",
        fg=typer.colors.RED,
    )
    raise typer.Exit(code=1)


@app.command()
def register(
    chat_id: str = typer.Option(..., prompt=True, help="The Telegram chat id to notify."),
    address: str = typer.Option(..., prompt=True, help="The validator operator address."),
    registry_path: str = typer.Option(
        "validators.json", help="Path to the registry file."
    ),
):
    """
    Register a chat id for a validator directly in the registry file.
    """
    registry = RecipientRegistry(registry_path)
    try:
        asyncio.run(registry.register(chat_id, address))
    except InvalidAddressError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.secho(f"Chat {chat_id} now watches {address}.", fg=typer.colors.GREEN)


@app.command()
def status(
    api_key: str = typer.Option(None, help="API key of the watcher service."),
):
    """
    Show the reconciliation loop status of a running watcher.
    """
    url = f"{API_URL}/api/status"
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
    response = requests.get(url, headers=headers, timeout=10)
    if response.status_code == 200:
        typer.secho(json.dumps(response.json(), indent=4), fg=typer.colors.GREEN)
    else:
        typer.secho(
            f"Error: {response.status_code} - {response.text}", fg=typer.colors.RED
        )
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
