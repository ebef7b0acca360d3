"""Flask CLI commands for WealthBook."""

from __future__ import annotations

import json

import click


def init_app(app) -> None:
    """Register CLI commands on the Flask app."""

    @app.cli.command("wealthbook-create-user")
    @click.argument("username")
    @click.option("--display-name", default="", help="Name shown in summaries")
    def wealthbook_create_user(username: str, display_name: str) -> None:
        """Register a user id for the X-User-Id header. Existing users are reused."""

        from .extensions import get_context
        from .models import User

        repo = get_context().user_repo
        user = repo.get_by_username(username)
        if user is None:
            user = repo.create(User(username=username, display_name=display_name or username))
            click.echo(f"Created user {user.username} with id {user.id}")
        else:
            click.echo(f"User {user.username} already exists with id {user.id}")

    @app.cli.command("wealthbook-sync-sips")
    @click.option("--user-id", type=int, default=None, help="Only tick this user's SIPs")
    def wealthbook_sync_sips(user_id: int | None) -> None:
        """Post due SIP installments and refresh SIP valuations."""

        from .extensions import get_context
        from .scheduler import run_sip_tick

        summary = run_sip_tick(get_context(), user_id=user_id)
        click.echo(json.dumps(summary.to_dict(), indent=2))

    @app.cli.command("wealthbook-evaluate-alerts")
    def wealthbook_evaluate_alerts() -> None:
        """Evaluate portfolio and spending alerts for every user."""

        from .extensions import get_context
        from .scheduler import run_alert_evaluation

        result = run_alert_evaluation(get_context())
        click.echo(json.dumps(result, indent=2))

    @app.cli.command("wealthbook-evaluate-price-alerts")
    def wealthbook_evaluate_price_alerts() -> None:
        """Check active price alerts against current quotes."""

        from .extensions import get_context
        from .scheduler import run_price_alert_evaluation

        result = run_price_alert_evaluation(get_context())
        click.echo(json.dumps(result.to_dict(), indent=2))

    @app.cli.command("wealthbook-scheduler")
    def wealthbook_scheduler() -> None:
        """Run the in-process scheduler until interrupted."""

        import time

        from .extensions import get_context
        from .scheduler import create_scheduler

        scheduler = create_scheduler(get_context(), auto_start=True)
        click.echo("Scheduler running; press Ctrl+C to stop.")
        try:
            while True:
                time.sleep(60)
        except KeyboardInterrupt:
            scheduler.stop()
