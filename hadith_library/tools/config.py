"""
Config tool: CLI subapp only. Implementation in hadith_library.config.
"""

import typer

from hadith_library import config as config_module

config_app = typer.Typer(help="Show or change provider and cache settings (.hadith_library.json).")


@config_app.command("show")
def _show() -> None:
    """Show config file location and the resolved settings (file + environment)."""
    data = config_module.load_config()
    cf = data.get("_config_file", "")
    if data.get("_no_file"):
        typer.echo(f"Config file: {cf} (not found; using defaults)")
    elif data.get("_load_error"):
        typer.echo(f"Config file: {cf} (unreadable; using defaults)")
    else:
        typer.echo(f"Config file: {cf}")
    try:
        settings = config_module.load_settings()
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)
    for key, value in settings.model_dump().items():
        if key == "supabase_key":
            value = "(set)" if value else "(not set)"
        typer.echo(f"  {key}: {value}")


@config_app.command("set")
def _set(
    key: str = typer.Argument(..., help=f"Setting name: {', '.join(config_module.SETTING_KEYS)}"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Validate and save one setting."""
    result = config_module.set_value(key, value)
    if not result["ok"]:
        typer.echo(result["error"], err=True)
        raise typer.Exit(1)
    typer.echo(f"{key} set to: {result['config'].get(key)}")


@config_app.command("path")
def _path() -> None:
    """Print the config file path in use."""
    typer.echo(config_module.get_config_path())
