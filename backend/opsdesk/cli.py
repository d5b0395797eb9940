# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/opsdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Tenant management:
# - python -m flask tenants list
#   List all tenants.
# - python -m flask tenants create --subdomain acme --name "Acme Corp"
#   Create a new tenant.
#
# User inspection/bootstrap:
# - python -m flask users list [--tenant-id 1]
#   List users with role and active status.
# - python -m flask users create --tenant-id 1 --username admin --password "Password123" --role owner
#   Create a user (prompts if options are omitted).
#
# Maintenance:
# - python -m flask sessions cleanup --retention-days 7
#   Delete sessions expired or revoked before the retention window.
# - python -m flask sessions cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Tenant, User
from .roles import Role
from .services.auth_service import create_user
from .services.security_service import cleanup_security_events
from .services.session_service import cleanup_expired_sessions
from .services.tenant_service import create_tenant


@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id).all()
    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Subdomain':<20} {'Name':<30} {'Active'}")
    click.echo("=" * 70)
    for tenant in tenants:
        active_str = "Yes" if tenant.active else "No"
        click.echo(f"{tenant.id:<5} {tenant.subdomain:<20} {tenant.name or '':<30} {active_str}")
    click.echo("=" * 70 + "\n")


@tenants_group.command('create')
@click.option('--subdomain', required=True, help='Host label, e.g. "acme" for acme.example.com')
@click.option('--name', default=None, help='Display name')
@with_appcontext
def create_tenant_command(subdomain, name):
    """Create a new tenant."""
    try:
        tenant = create_tenant(subdomain, name)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created tenant: {tenant.subdomain} (ID: {tenant.id})")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--tenant-id', type=int, help='Filter by tenant ID')
@with_appcontext
def list_users(tenant_id):
    """List users with their role."""
    query = db.session.query(User)
    if tenant_id:
        query = query.filter_by(tenant_id=tenant_id)
    users = query.order_by(User.tenant_id, User.username).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Tenant':<7} {'Username':<20} {'Role':<10} {'Active':<8} {'Super'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.active else "No"
        super_str = "Yes" if user.is_super_admin else ""
        click.echo(f"{user.id:<5} {user.tenant_id:<7} {user.username:<20} {user.role:<10} {active_str:<8} {super_str}")
    click.echo("=" * 80 + "\n")


@users_group.command('create')
@click.option('--tenant-id', type=int, prompt=True, help='Tenant ID')
@click.option('--username', prompt=True, help='Username (unique within the tenant)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([role.value for role in Role]), default=Role.EMPLOYEE.value, show_default=True)
@click.option('--email', default=None)
@click.option('--full-name', default=None)
@click.option('--super-admin', is_flag=True, help='Allow access across tenants')
@with_appcontext
def create_user_command(tenant_id, username, password, role, email, full_name, super_admin):
    """Create a user."""
    result = create_user(
        tenant_id,
        username,
        password,
        role,
        email=email,
        full_name=full_name,
        is_super_admin=super_admin,
    )
    if not result.is_ok:
        raise click.ClickException(result.error.message)
    user = result.value
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, tenant {user.tenant_id}, role {user.role})")


@click.group('sessions')
def sessions_group():
    """Session and audit trail maintenance."""


@sessions_group.command('cleanup')
@click.option('--retention-days', type=int, default=7, show_default=True)
@with_appcontext
def cleanup_sessions(retention_days):
    """Delete sessions expired or revoked before the retention window."""
    if retention_days < 0:
        raise click.BadParameter("retention-days must be >= 0")
    deleted = cleanup_expired_sessions(retention_days)
    click.echo(f"Deleted {deleted} sessions expired or revoked over {retention_days} days ago.")


@sessions_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_events(retention_days):
    """Delete security events older than the retention window."""
    if retention_days < 1:
        raise click.BadParameter("retention-days must be >= 1")
    deleted = cleanup_security_events(retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
