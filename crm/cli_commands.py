"""
Flask CLI commands.

Commands:
- flask init-db: Create every table
- flask create-user: Create a user and add it to an organization
- flask replay-stock-operations: Retry failed sale stock operations
"""
import re

import click

from crm.database import create_all, get_session
from crm.models import AppUser, MemberRole, Organization, OrganizationMember
from crm.services.stock_service import list_failed_operations, replay_failed_operations


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create the database schema."""
        create_all()
        click.echo(click.style('✅ Tabelas criadas.', fg='green'))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='User email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='User password')
    @click.option('--organization', 'organization_slug', prompt=True, help='Organization slug (created if missing)')
    @click.option('--role', default=MemberRole.OWNER.value,
                  type=click.Choice([r.value for r in MemberRole]), help='Member role')
    @click.option('--whatsapp', default=None, help='WhatsApp number used by the assistant')
    def create_user(email, password, organization_slug, role, whatsapp):
        """Create a user and its membership in an organization."""
        db_session = get_session()

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email):
            click.echo(click.style('❌ Email inválido. Use o formato: user@example.com', fg='red'))
            return

        if len(password) < 6:
            click.echo(click.style('❌ A senha deve ter pelo menos 6 caracteres.', fg='red'))
            return

        if db_session.query(AppUser).filter_by(email=email).first():
            click.echo(click.style(f'❌ Já existe um usuário com o email: {email}', fg='red'))
            return

        try:
            organization = db_session.query(Organization).filter_by(slug=organization_slug).first()
            if organization is None:
                organization = Organization(slug=organization_slug, name=organization_slug, active=True)
                db_session.add(organization)
                db_session.flush()

            user = AppUser(email=email, whatsapp=re.sub(r'\D', '', whatsapp or '') or None)
            user.set_password(password)
            db_session.add(user)
            db_session.flush()

            db_session.add(OrganizationMember(organization_id=organization.id, user_id=user.id, role=role))
            db_session.commit()

            click.echo(click.style('\n✅ Usuário criado com sucesso!', fg='green', bold=True))
            click.echo(f'   Email: {email}')
            click.echo(f'   ID: {user.id}')
            click.echo(f'   Organização: {organization.slug} ({role})')
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Erro ao criar usuário: {str(e)}', fg='red'))
            raise click.Abort()

    @app.cli.command('replay-stock-operations')
    @click.option('--organization', 'organization_id', type=int, default=None,
                  help='Only replay operations of this organization id')
    @click.option('--dry-run', is_flag=True, help='List failed operations without retrying')
    def replay_stock_operations(organization_id, dry_run):
        """Retry stock operations that failed during sale transitions."""
        db_session = get_session()
        failed = list_failed_operations(db_session, organization_id)
        if not failed:
            click.echo(click.style('✅ Nenhuma operação de estoque pendente.', fg='green'))
            return

        for record in failed:
            click.echo(f'   #{record.id} venda {record.sale_id} {record.operation}: {record.error_message}')
        if dry_run:
            click.echo(f'{len(failed)} operação(ões) com falha.')
            return

        summary = replay_failed_operations(db_session, organization_id)
        color = 'green' if summary['failed'] == 0 else 'yellow'
        click.echo(click.style(
            f"Reprocessadas: {summary['applied']} aplicada(s), {summary['failed']} ainda com falha, "
            f"{summary['superseded']} descartada(s).", fg=color
        ))
