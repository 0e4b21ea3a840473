from __future__ import annotations

import json
import logging
from typing import Optional, Sequence
from urllib.error import URLError
from urllib.request import Request, urlopen

from config import Settings, get_settings
from csv_utils import format_decimal
from schemas import TransactionRecord

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
RECENT_LIMIT = 20

MISSING_KEY_MESSAGE = (
    "API Key no configurada. Por favor, asegúrate de tener acceso a la API de Gemini."
)
EMPTY_RESPONSE_MESSAGE = "No se pudo generar el análisis."
FAILURE_MESSAGE = (
    "Hubo un error al conectar con el analista virtual. Inténtalo más tarde."
)

PROMPT_TEMPLATE = """Actúa como un analista financiero experto para pequeños negocios.
Analiza las siguientes transacciones recientes de mi negocio:

{transactions}

Proporciona un resumen breve de 3 puntos clave:
1. Una observación sobre la salud financiera.
2. Una tendencia notable en gastos o ingresos.
3. Una recomendación accionable para mejorar la rentabilidad.

Mantén el tono profesional pero alentador. Usa formato Markdown.
"""


def build_prompt(transactions: Sequence[TransactionRecord]) -> str:
    lines = [
        f"{t.date.isoformat()}: {t.type.value} de ${format_decimal(t.amount)} "
        f"({t.category}) - {t.description}"
        for t in transactions[:RECENT_LIMIT]
    ]
    return PROMPT_TEMPLATE.format(transactions="\n".join(lines))


def _extract_text(payload: dict) -> Optional[str]:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return None
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    return text.strip() or None


class FinancialAdvisor:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def advice(self, transactions: Sequence[TransactionRecord]) -> str:
        api_key = self.settings.ai_api_key
        if not api_key:
            return MISSING_KEY_MESSAGE
        try:
            payload = self._generate(api_key, build_prompt(transactions))
        except RuntimeError:
            logger.exception("advice_failed")
            return FAILURE_MESSAGE
        return _extract_text(payload) or EMPTY_RESPONSE_MESSAGE

    def _generate(self, api_key: str, prompt: str) -> dict:
        url = GEMINI_URL.format(model=self.settings.ai_model)
        body = json.dumps({"contents": [{"parts": [{"text": prompt}]}]}).encode("utf-8")
        req = Request(
            url,
            data=body,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "x-goog-api-key": api_key,
            },
        )
        try:
            with urlopen(req, timeout=self.settings.ai_timeout_secs) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except (URLError, OSError, ValueError) as exc:
            raise RuntimeError("Failed to fetch advice from Gemini") from exc
