"""
Django application initialization.
"""

import os

SETTINGS_MODULE = "giftbook.web.settings"


def _apply_runtime_settings(config_path: str | None, state_db_path: str | None) -> None:
    # os.environ requires strings, so convert Path objects
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", SETTINGS_MODULE)
    if config_path:
        os.environ["GIFTBOOK_CONFIG"] = str(config_path)
    if state_db_path:
        os.environ["STATE_DB_PATH"] = str(state_db_path)


def get_wsgi_application(config_path: str | None = None, state_db_path: str | None = None):
    """
    Get the Django WSGI application configured with our settings.

    Args:
        config_path: Path to config.yaml (optional)
        state_db_path: Path to state.db (optional, overrides config)
    """
    _apply_runtime_settings(config_path, state_db_path)

    from django.core.wsgi import get_wsgi_application as django_wsgi

    return django_wsgi()


def run_server(
    host: str = "127.0.0.1",
    port: int = 8080,
    config_path: str | None = None,
    state_db_path: str | None = None,
):
    """
    Run the Django development server.

    Args:
        host: Host to bind to
        port: Port to listen on
        config_path: Path to config.yaml
        state_db_path: Path to state.db (overrides config)
    """
    _apply_runtime_settings(config_path, state_db_path)

    import django

    django.setup()

    from django.core.management import execute_from_command_line

    print(f"\n🌐 Starting giftbook API at http://{host}:{port}/")
    print(f"💾 State DB: {os.environ.get('STATE_DB_PATH') or 'from config'}")
    print("\nPress Ctrl+C to stop.\n")

    execute_from_command_line(
        [
            "manage.py",
            "runserver",
            f"{host}:{port}",
            "--noreload",
        ]
    )
