"""
main.py
-------
CampusGuide - Campus Directory Assistant - FastAPI webhook server
-----------------------------------------------------------------
Exposes the directory assistant as a conversational-platform fulfillment
webhook (Dialogflow ES envelope). Intent detection and parameter
extraction happen upstream; this server only dispatches on the detected
intent and always answers with exactly one text message.

Endpoints:
    GET  /         - Liveness text
    GET  /health   - Service health, including directory connection state
    POST /webhook  - Fulfillment webhook

Intents:
    Default Welcome Intent   - fixed greeting
    GetTeacherInfo           - time-budgeted directory answer (DirectoryOrchestrator)
    Default Fallback Intent  - playful out-of-scope refusal
    anything else            - treated as fallback

Project: CampusGuide - Campus Directory Assistant
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from campus_guidelines import GENERIC_ERROR_MESSAGE, WELCOME_MESSAGE
from config import DIRECTORY_DB_PATH, FALLBACK_TIMEOUT_MS, SERVICE_NAME, VERSION, BudgetPolicy
from directory_agent.fallback_node import generate_refusal
from directory_agent.workflow import DirectoryOrchestrator
from directory_store import DirectoryStore
from llm_backend import TextBackend
from schemas import Query

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

INTENT_WELCOME = "Default Welcome Intent"
INTENT_TEACHER_INFO = "GetTeacherInfo"
INTENT_FALLBACK = "Default Fallback Intent"

# ── Long-lived collaborators ───────────────────────────────────────────────────
# The store is connected in the app lifespan; until then (or if the connect
# fails) it reports connected=False and every lookup fails closed.

store = DirectoryStore(DIRECTORY_DB_PATH)
backend = TextBackend()
orchestrator = DirectoryOrchestrator(store, backend, BudgetPolicy.from_env())


@asynccontextmanager
async def lifespan(_: FastAPI):
    await store.connect()
    policy = orchestrator.policy
    logger.info("%s v%s ready. Response strategy:", SERVICE_NAME, VERSION)
    logger.info("  - name not found: generative name correction (cap %dms)", policy.corrector_cap_ms)
    logger.info("  - >= %dms left: FULL generative answer", policy.full_threshold_ms)
    logger.info("  - >= %dms left: QUICK generative answer", policy.quick_threshold_ms)
    logger.info("  - otherwise: deterministic TEMPLATE answer")
    yield
    await store.close()


app = FastAPI(
    title=SERVICE_NAME,
    version=VERSION,
    description="Campus directory fulfillment webhook with time-budgeted degradation.",
    lifespan=lifespan,
)


# ── Request / Response models ──────────────────────────────────────────────────

class WebhookIntent(BaseModel):
    displayName: str = ""


class WebhookQueryResult(BaseModel):
    queryText: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)
    intent: WebhookIntent = Field(default_factory=WebhookIntent)


class WebhookRequest(BaseModel):
    """Subset of the Dialogflow ES WebhookRequest this service reads."""
    responseId: Optional[str] = None
    session: Optional[str] = None
    queryResult: WebhookQueryResult = Field(default_factory=WebhookQueryResult)


class WebhookResponse(BaseModel):
    fulfillmentText: str
    fulfillmentMessages: List[dict]


# ── Helpers ────────────────────────────────────────────────────────────────────

def _extract_teacher_name(value: Any) -> str:
    """
    Normalise the teacherName parameter. The platform may send a plain
    string, a list of strings, or a person entity like {"name": "..."}.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        for item in value:
            name = _extract_teacher_name(item)
            if name:
                return name
        return ""
    if isinstance(value, dict):
        return _extract_teacher_name(value.get("name"))
    return str(value).strip()


def _single_message(text: str) -> WebhookResponse:
    return WebhookResponse(
        fulfillmentText=text,
        fulfillmentMessages=[{"text": {"text": [text]}}],
    )


async def _dispatch(request: WebhookRequest) -> str:
    intent = request.queryResult.intent.displayName
    query_text = request.queryResult.queryText

    if intent == INTENT_WELCOME:
        return WELCOME_MESSAGE

    if intent == INTENT_TEACHER_INFO:
        query = Query(
            raw_text=query_text,
            extracted_name=_extract_teacher_name(request.queryResult.parameters.get("teacherName")),
        )
        reply = await orchestrator.handle_query(query)
        return reply.text

    if intent != INTENT_FALLBACK:
        logger.info("Webhook: unmapped intent '%s'; handling as fallback", intent)
    return await generate_refusal(backend, query_text, FALLBACK_TIMEOUT_MS)


# ── Endpoints ──────────────────────────────────────────────────────────────────

@app.get("/", response_class=PlainTextResponse)
def root() -> str:
    return f"{SERVICE_NAME} webhook server v{VERSION} is running!"


@app.get("/health")
def health_check() -> dict:
    """
    Return service health status.

    Returns:
        dict: service, version, status, directory_connected, timestamp.
    """
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "status": "ok",
        "directory_connected": store.connected,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/webhook", response_model=WebhookResponse)
async def webhook(request: WebhookRequest) -> WebhookResponse:
    """
    Fulfillment webhook. Always returns exactly one text message, even when
    a handler fails unexpectedly.
    """
    try:
        text = await _dispatch(request)
    except Exception as e:
        logger.exception("Webhook: handler failed: %s", e)
        text = GENERIC_ERROR_MESSAGE
    if not text or not text.strip():
        text = GENERIC_ERROR_MESSAGE
    return _single_message(text)
