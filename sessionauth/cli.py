"""
Administrative commands.

Configuration is read from the environment (see :mod:`.config`), e.g.:

.. code-block:: bash

   $ AUTH_DATABASE_URI=sqlite:///auth.db sessionauth create-db
   $ AUTH_DATABASE_URI=sqlite:///auth.db sessionauth create-user \
        --username jbloggs --email joe@bloggs.com
   Password:
   Repeat for confirmation:
   Created user 1
   $ AUTH_DATABASE_URI=sqlite:///auth.db sessionauth revoke-all-sessions

"""

import json
from typing import Optional, Tuple

import click

from . import capabilities, domain, factory, sessions, users, util


@click.group()
@click.pass_context
def main(ctx: click.Context) -> None:
    """Manage users, roles and sessions."""
    app = factory.create_web_app()
    ctx.obj = app
    app_context = app.app_context()
    app_context.push()
    ctx.call_on_close(lambda: app_context.pop())


@main.command('create-db')
def create_db() -> None:
    """Create all tables."""
    util.create_all()
    click.echo('Created tables')


@main.command('create-user')
@click.option('--username', prompt='Username')
@click.option('--email', prompt='Email address')
@click.option('--password', prompt=True, hide_input=True,
              confirmation_prompt=True)
@click.option('--role', default=None, help='Role to assign')
def create_user(username: str, email: str, password: str,
                role: Optional[str]) -> None:
    """Create a user account."""
    if users.username_exists(username):
        raise click.ClickException(f'Username {username} is taken')
    if users.email_exists(email):
        raise click.ClickException(f'Email address {email} is in use')
    try:
        user = users.create_user(username, email, password)
    except ValueError as e:
        raise click.ClickException(str(e))
    if role:
        capabilities.UserCapabilities(user.user_id).set_role(role)
    click.echo(f'Created user {user.user_id}')


@main.command('add-role')
@click.argument('key')
@click.argument('name')
@click.option('--cap', 'caps', multiple=True,
              help='Capability to grant; prefix with "!" to deny')
def add_role(key: str, name: str, caps: Tuple[str, ...]) -> None:
    """Define a role."""
    grants = {cap.lstrip('!'): not cap.startswith('!') for cap in caps}
    role = capabilities.Roles().add_role(key, name, grants)
    if role is None:
        raise click.ClickException(f'Role {key} already exists')
    click.echo(f'Added role {key}')


@main.command('grant-role')
@click.argument('username')
@click.argument('role')
@click.option('--replace', is_flag=True,
              help='Make this the only role of the user')
def grant_role(username: str, role: str, replace: bool) -> None:
    """Assign a role to a user."""
    user = _get_user(username)
    roles = capabilities.Roles()
    if not roles.is_role(role):
        raise click.ClickException(f'No such role: {role}')
    caps = capabilities.UserCapabilities(user.user_id, roles=roles)
    if replace:
        caps.set_role(role)
    else:
        caps.add_role(role)
    click.echo(f'Roles of {username}: {", ".join(caps.roles)}')


@main.command('list-sessions')
@click.argument('username')
def list_sessions(username: str) -> None:
    """Print the live sessions of a user as JSON."""
    user = _get_user(username)
    data = [dict(domain.to_dict(s),
                 started_at=s.started_at.isoformat(),
                 expires_at=s.expires_at.isoformat())
            for s in sessions.get_instance(user.user_id).get_all()]
    click.echo(json.dumps(data, indent=2))


@main.command('revoke-sessions')
@click.argument('username')
def revoke_sessions(username: str) -> None:
    """Destroy all sessions of a user."""
    user = _get_user(username)
    sessions.get_instance(user.user_id).destroy_all()
    click.echo(f'Destroyed sessions of {username}')


@main.command('revoke-all-sessions')
@click.confirmation_option(prompt='Log out every user?')
def revoke_all_sessions() -> None:
    """Destroy every session of every user."""
    count = sessions.destroy_all_for_all_users()
    click.echo(f'Destroyed {count} sessions')


@main.command('purge-expired')
def purge_expired() -> None:
    """Delete expired session records."""
    count = sessions.purge_expired()
    click.echo(f'Purged {count} expired sessions')


def _get_user(username: str) -> domain.User:
    user = users.get_user_by('login', username)
    if user is None:
        raise click.ClickException(f'No such user: {username}')
    return user


if __name__ == '__main__':
    main()
