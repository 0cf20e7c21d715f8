"""Flask CLI commands."""
from __future__ import annotations

import click

from seisan import db


def register_commands(app):
    """Register Flask CLI commands."""

    @app.cli.group()
    def accounting():
        """Accounting sync maintenance."""
        pass

    @accounting.command("retry-failed")
    @click.option("--max-retries", type=int, default=None, help="Skip logs retried this many times.")
    def retry_failed(max_retries):
        """Retry every failed accounting sync below the retry ceiling."""
        from seisan.services.accounting_service import retry_failed_syncs

        results = retry_failed_syncs(max_retries)
        if not results:
            click.echo("No failed syncs to retry.")
            return
        succeeded = sum(1 for result in results if result.success)
        for result in results:
            status = "OK" if result.success else f"FAILED ({result.error})"
            click.echo(f"{result.log_id}  {result.service:<13} {result.operation:<13} {status}")
        click.echo(f"{succeeded}/{len(results)} syncs succeeded.")

    @app.cli.group()
    def users():
        """Manage user accounts."""
        pass

    @users.command("create")
    @click.argument("email")
    @click.option("--name", "full_name", required=True)
    @click.option("--organization", "organization_name", required=True, help="Created if missing.")
    @click.option("--role", type=click.Choice(["employee", "manager", "admin"]), default="employee")
    @click.option("--department", default=None)
    @click.password_option()
    def create_user(email, full_name, organization_name, role, department, password):
        """Create a user by EMAIL inside an organization."""
        from seisan.models import Organization, User, UserRole

        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            click.echo(f'ERROR: "{email}" is already registered.', err=True)
            return

        organization = Organization.query.filter_by(name=organization_name).first()
        if organization is None:
            organization = Organization(name=organization_name, settings={})
            db.session.add(organization)
            click.echo(f'Created organization "{organization_name}".')

        user = User(
            email=email,
            full_name=full_name,
            department=department,
            role=UserRole(role),
            organization=organization,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f'SUCCESS: {role} "{full_name}" ({email}) created.')
