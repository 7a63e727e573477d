"""
WhatsApp lead secretary.

Inbound Z-API messages are matched to a user by phone, interpreted by the
LLM as one lead action, executed against the user's organization and
answered back through Z-API.
"""
import logging
from typing import Any, Dict, List, Optional

from flask import current_app

from crm.blueprints.metrics import whatsapp_messages_total
from crm.exceptions import BusinessLogicError, NotFoundError
from crm.models import AppUser, Lead, Organization, OrganizationMember, Product, STAGE_LABELS
from crm.services import lead_service
from crm.services.ai_client import AIClient, build_system_prompt
from crm.services.conversation_store import get_conversation_store
from crm.services.zapi_client import ZAPIClient
from crm.utils.phone import normalize_brazilian_phone, only_digits

logger = logging.getLogger(__name__)

CONFIRM_LEAD_CREATION = 'confirm_lead_creation'
WAITING_ANSWER = 'waiting_answer'

USER_NOT_FOUND_MESSAGE = (
    '❌ Desculpe, não encontrei sua conta no CRM.\n\n'
    'Para usar o assistente via WhatsApp, seu número precisa estar cadastrado no seu perfil do sistema.\n\n'
    'Acesse o CRM e adicione seu WhatsApp nas configurações do perfil.'
)

NO_ORGANIZATION_MESSAGE = (
    '❌ Sua conta não está associada a nenhuma organização.\n\n'
    'Entre em contato com o administrador do sistema.'
)

FALLBACK_MESSAGE = 'Desculpe, não entendi. Pode repetir?'

HELP_MESSAGE = (
    '🤖 *Sou sua secretária virtual do CRM!*\n\n'
    'Você pode me enviar mensagens como:\n\n'
    '📝 *Criar lead:*\n'
    '"Acabei de falar com Dr. João, cirurgião plástico, @drjoao no insta, muito interessado, 5 estrelas"\n\n'
    '🔍 *Buscar lead:*\n'
    '"Busca o lead João" ou "Procura @drjoao"\n\n'
    '📊 *Atualizar lead:*\n'
    '"O Dr. João agendou call para amanhã" ou "João agora é 5 estrelas"\n\n'
    'Sempre me diga a *etapa do funil* e *quantas estrelas* o lead merece! 🌟'
)


def find_user_by_whatsapp(session, phone: str) -> Optional[AppUser]:
    """Match a sender to an active user under any Brazilian variant of the number."""
    variants = normalize_brazilian_phone(phone)
    if not variants:
        return None
    clean = only_digits(phone)
    users = session.query(AppUser).filter(
        AppUser.whatsapp.in_(variants), AppUser.active.is_(True)
    ).order_by(AppUser.id).all()
    if not users:
        logger.info(f"[ZAPI] No user for {clean} (tried {sorted(variants)})")
        return None
    # Exact match wins over a variant match
    for user in users:
        if user.whatsapp == clean:
            return user
    return users[0]


def find_membership(session, user_id: int) -> Optional[OrganizationMember]:
    return session.query(OrganizationMember).join(
        Organization, Organization.id == OrganizationMember.organization_id
    ).filter(
        OrganizationMember.user_id == user_id,
        OrganizationMember.active.is_(True),
        Organization.active.is_(True),
    ).order_by(OrganizationMember.id).first()


def _organization_context(session, organization_id: int) -> Dict[str, List[str]]:
    members = session.query(AppUser).join(
        OrganizationMember, OrganizationMember.user_id == AppUser.id
    ).filter(
        OrganizationMember.organization_id == organization_id,
        OrganizationMember.active.is_(True),
    ).all()
    sources = session.query(Lead.lead_source).filter(
        Lead.organization_id == organization_id, Lead.lead_source.isnot(None)
    ).distinct().all()
    products = session.query(Product.name).filter(
        Product.organization_id == organization_id, Product.is_active.is_(True)
    ).order_by(Product.name).all()
    return {
        'team_members': [m.full_name for m in members if m.full_name],
        'lead_sources': sorted(s[0] for s in sources if s[0]),
        'products': [p[0] for p in products],
    }


def _stage_label(stage: str) -> str:
    return STAGE_LABELS.get(stage, stage or '')


def _format_lead_line(index: int, lead: Lead) -> str:
    line = f"{index}. *{lead.name}* {lead.stars}⭐\n   📍 {_stage_label(lead.stage)}\n"
    if lead.instagram:
        line += f"   📸 @{lead.instagram}\n"
    return line


def _lead_created_message(lead: Lead, base_url: str) -> str:
    message = (
        f"✅ Lead *{lead.name}* cadastrado!\n\n"
        f"📍 Etapa: {_stage_label(lead.stage)}\n"
        f"⭐ Estrelas: {lead.stars}\n"
    )
    if lead.instagram:
        message += f"📸 Instagram: @{lead.instagram}\n"
    if lead.whatsapp:
        message += f"📱 WhatsApp: {lead.whatsapp}\n"
    message += f"\n🔗 Ver no CRM: {base_url}/leads/{lead.id}"
    return message


def execute_action(session, organization_id: int, user_id: int, ai_response: Dict[str, Any],
                   context: Dict[str, Any], base_url: str) -> str:
    """Run the action chosen by the LLM and return the reply text."""
    action = ai_response.get('action')
    lead_data = ai_response.get('lead_data') or {}
    reply = ai_response.get('response_message') or FALLBACK_MESSAGE

    if action == 'create_lead' and lead_data.get('name'):
        confirmed = context.get('pending_action') == CONFIRM_LEAD_CREATION
        similar = [] if confirmed else lead_service.find_similar_leads(
            session, organization_id, lead_data.get('name'), lead_data.get('instagram')
        )
        if similar:
            listing = '\n'.join(
                f"• {l.name} (@{l.instagram or 'sem insta'}) - {_stage_label(l.stage)} {l.stars}⭐"
                for l in similar
            )
            context['pending_action'] = CONFIRM_LEAD_CREATION
            context['pending_lead'] = lead_data
            return (f"🔍 Encontrei leads parecidos:\n\n{listing}\n\n"
                    'É algum desses? Responda o número ou "novo" para criar um novo lead.')
        try:
            lead = lead_service.create_lead(session, organization_id, user_id, lead_data)
        except BusinessLogicError as e:
            return f"⚠️ {e.message}"
        context['pending_action'] = None
        context['pending_lead'] = None
        return _lead_created_message(lead, base_url)

    if action == 'update_lead' and ai_response.get('lead_id'):
        try:
            lead = lead_service.update_lead(session, organization_id, ai_response['lead_id'], lead_data)
        except (BusinessLogicError, NotFoundError) as e:
            return f"⚠️ {e.message}"
        return f"✅ Lead *{lead.name}* atualizado!\n\n📍 Etapa: {_stage_label(lead.stage)}\n⭐ Estrelas: {lead.stars}"

    if action == 'search_lead' and ai_response.get('search_query'):
        query = ai_response['search_query']
        leads = lead_service.search_leads(session, organization_id, query)
        if not leads:
            return f'🔍 Nenhum lead encontrado para "{query}"'
        listing = '\n'.join(_format_lead_line(i, l) for i, l in enumerate(leads, start=1))
        return f"🔍 Encontrei {len(leads)} lead(s):\n\n{listing}"

    if action == 'list_leads':
        leads = lead_service.list_leads(session, organization_id, stage=lead_data.get('stage'), limit=10)
        if not leads:
            return '📋 Nenhum lead cadastrado ainda.'
        listing = '\n'.join(_format_lead_line(i, l) for i, l in enumerate(leads, start=1))
        return f"📋 Últimos leads:\n\n{listing}"

    if action == 'ask_question':
        context['pending_action'] = WAITING_ANSWER
        context['pending_lead'] = lead_data or None
        return ai_response.get('response_message') or ai_response.get('question') or FALLBACK_MESSAGE

    if action == 'help':
        return HELP_MESSAGE

    return reply


def handle_incoming_message(session, payload: Dict[str, Any], messenger=None, ai=None,
                            store=None) -> Dict[str, Any]:
    """
    Process one Z-API webhook payload.

    Returns the JSON body of the webhook response. Outbound HTTP errors
    propagate to the caller.
    """
    phone = payload.get('phone')
    text = payload.get('text')
    text = text.get('message') if isinstance(text, dict) else None
    if not phone or not text:
        whatsapp_messages_total.labels(outcome='ignored').inc()
        return {'status': 'ignored'}

    if payload.get('fromMe') is True:
        whatsapp_messages_total.labels(outcome='ignored_self').inc()
        return {'status': 'ignored_self'}

    sender = only_digits(phone)
    messenger = messenger or ZAPIClient()
    logger.info(f"[ZAPI] Message from {sender}")

    user = find_user_by_whatsapp(session, sender)
    if user is None:
        messenger.send_text(sender, USER_NOT_FOUND_MESSAGE)
        whatsapp_messages_total.labels(outcome='user_not_found').inc()
        return {'status': 'user_not_found'}

    membership = find_membership(session, user.id)
    if membership is None:
        messenger.send_text(sender, NO_ORGANIZATION_MESSAGE)
        whatsapp_messages_total.labels(outcome='no_organization').inc()
        return {'status': 'no_organization'}

    organization_id = membership.organization_id
    store = store or get_conversation_store()
    ai = ai or AIClient()
    config = current_app.config

    context = store.load(organization_id, sender)
    context['history'].append(f"Usuário: {text}")

    prompt = build_system_prompt(
        user_name=user.full_name or user.email,
        history=context['history'],
        window=config.get('CONVERSATION_PROMPT_WINDOW', 10),
        pending_action=context.get('pending_action'),
        pending_lead=context.get('pending_lead'),
        **_organization_context(session, organization_id),
    )
    ai_response = ai.complete_json(prompt, text)

    reply = execute_action(
        session, organization_id, user.id, ai_response, context, config.get('APP_BASE_URL', '')
    )

    context['history'].append(f"Assistente: {reply}")
    store.save(organization_id, sender, context)

    messenger.send_text(sender, reply)
    whatsapp_messages_total.labels(outcome='success').inc()
    return {'status': 'success', 'action': ai_response.get('action'), 'message': reply}

