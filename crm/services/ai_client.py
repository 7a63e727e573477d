"""LLM chat-completions client used by the WhatsApp assistant."""
import json
from typing import Any, Dict, List, Optional

import requests
from flask import current_app

ACTIONS = ('create_lead', 'update_lead', 'search_lead', 'ask_question', 'list_leads', 'help')


class AIClientError(Exception):
    """The gateway answered with something that is not a usable action."""


class AIClient:
    """Cliente para o gateway de IA (API compatível com OpenAI chat completions)."""

    def __init__(self, api_key: Optional[str] = None, url: Optional[str] = None,
                 model: Optional[str] = None, timeout: Optional[int] = None):
        config = current_app.config
        self.api_key = api_key or config.get('AI_API_KEY')
        if not self.api_key:
            raise ValueError("AI_API_KEY is required")
        self.url = url or config.get('AI_GATEWAY_URL')
        self.model = model or config.get('AI_MODEL')
        self.timeout = timeout or config.get('AI_TIMEOUT', 30)
        self.headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json'
        }

    def complete_json(self, system_prompt: str, message: str) -> Dict[str, Any]:
        """
        Send one user message with a system prompt and parse the JSON answer.

        Raises:
            requests.HTTPError: gateway returned an error status
            AIClientError: answer is not a JSON object with a known action
        """
        payload = {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': system_prompt},
                {'role': 'user', 'content': message},
            ],
            'response_format': {'type': 'json_object'},
        }

        try:
            response = requests.post(self.url, json=payload, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            current_app.logger.error(f"[AI] Gateway error: {e.response.status_code} {e.response.text}")
            raise

        data = response.json()
        try:
            content = data['choices'][0]['message']['content']
            result = json.loads(content)
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
            current_app.logger.error(f"[AI] Unparseable answer: {e}")
            raise AIClientError('Resposta da IA inválida') from e

        if not isinstance(result, dict):
            raise AIClientError('Resposta da IA inválida')
        if result.get('action') not in ACTIONS:
            current_app.logger.warning(f"[AI] Unknown action: {result.get('action')}")
            result['action'] = None

        current_app.logger.info(f"[AI] Action: {result.get('action')}")
        return result


def build_system_prompt(user_name: str, team_members: List[str], lead_sources: List[str],
                        products: List[str], history: List[str], window: int = 10,
                        pending_action: Optional[str] = None,
                        pending_lead: Optional[Dict[str, Any]] = None) -> str:
    """System prompt for the lead secretary, with the recent conversation."""
    pending = ''
    if pending_action:
        pending += f"\nAÇÃO PENDENTE: {pending_action}"
    if pending_lead:
        pending += f"\nLEAD PENDENTE: {json.dumps(pending_lead, ensure_ascii=False)}"

    recent = '\n'.join(history[-window:]) or 'Nenhum histórico'

    return f"""Você é uma secretária virtual inteligente do CRM. Seu papel é ajudar usuários a gerenciar leads de vendas via WhatsApp.

CONTEXTO DO USUÁRIO:
- Nome do usuário: {user_name}
- Membros do time disponíveis para atribuição: {', '.join(team_members) or 'Nenhum configurado'}
- Fontes de lead disponíveis: {', '.join(lead_sources) or 'Nenhuma configurada'}
- Produtos disponíveis: {', '.join(products) or 'Nenhum configurado'}

ETAPAS DO FUNIL (use exatamente esses valores):
- prospect: Prospectando/Aguardando resposta
- contacted: Contatado
- convincing: Convencendo a marcar call
- scheduled: Call agendada
- positive: Positivo/Interessado após call
- waiting_payment: Aguardando pagamento
- success: Sucesso/Pagou
- trash: Não interessado/Descartado
- cloud: Nuvem (ainda não está pronto)

ESTRELAS (1-5): 5 = lead muito importante, 3 = médio (padrão), 1 = muito pequeno.

FORMATO DE RESPOSTA (JSON):
{{
  "action": "create_lead" | "update_lead" | "search_lead" | "ask_question" | "list_leads" | "help",
  "lead_data": {{"name": "", "whatsapp": "", "instagram": "", "email": "", "specialty": "",
                "followers": 0, "stage": "", "stars": 3, "assigned_to": "", "lead_source": "",
                "meeting_date": "YYYY-MM-DD", "meeting_time": "HH:MM", "meeting_link": "",
                "observations": ""}},
  "search_query": "texto para buscar leads",
  "lead_id": "id do lead a atualizar",
  "question": "pergunta para o usuário",
  "missing_fields": [],
  "response_message": "mensagem amigável para o usuário"
}}

REGRAS IMPORTANTES:
1. Se o usuário mencionar um lead mas não disser a etapa do funil ou estrelas, PERGUNTE
2. Sempre confirme a criação/atualização do lead
3. Se encontrar lead similar, pergunte se é o mesmo antes de criar novo
4. Responda SEMPRE em português brasileiro
{pending}

HISTÓRICO DA CONVERSA:
{recent}"""
