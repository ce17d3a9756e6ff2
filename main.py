from datetime import date
import logging
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from dotenv import load_dotenv
load_dotenv()

from financedesk.ai_service import ask_assistant, gen_reminder_digest
from financedesk.analytics import (
    DateRange,
    display_amounts,
    get_dashboard_analytics,
    get_pending_overview,
    get_summary_stats,
)
from financedesk.database import get_db
from financedesk.reminders import ALL_STATUSES, get_today_active_reminders, get_today_reminders, notify_today_reminders
from financedesk.search import KINDS, smart_search
from financedesk.settings import AppConfig, JsonFileStorage, SettingsStore
from financedesk.utils import compute_day_window

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Desk")

# browser clients call these handlers directly
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


def get_supabase():
    try:
        return get_db()
    except RuntimeError as e:
        logger.error(f"Database not configured: {e}")
        raise HTTPException(status_code=503, detail=str(e))


def get_config() -> AppConfig:
    return AppConfig.from_env()


_settings_store = None

def get_settings_store() -> SettingsStore:
    global _settings_store
    if _settings_store is None:
        _settings_store = SettingsStore(JsonFileStorage(get_config().settings_path))
    return _settings_store


class ChatRequest(BaseModel):
    message: Optional[str] = None
    model: Optional[str] = None


class SettingsPayload(BaseModel):
    is_millify_number: Optional[bool] = None
    model: Optional[str] = None
    fields: Optional[Dict[str, bool]] = None


def _custom_range(date_from: Optional[date], date_to: Optional[date]) -> Optional[DateRange]:
    if date_from is None and date_to is None:
        return None
    if date_from is None or date_to is None or date_from > date_to:
        raise HTTPException(status_code=400, detail="custom range needs from <= to")
    return DateRange(date_from, date_to)


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/day-window")
def day_window():
    window = compute_day_window()
    return {"date_ist": window.civil_date, "range_utc": {"from": window.start_iso, "to": window.end_iso}}


@app.post("/notify-reminders")
def notify_reminders(supabase=Depends(get_supabase), config: AppConfig = Depends(get_config)):
    if not config.reminder_recipients:
        logger.warning("REMINDER_RECIPIENTS is empty, reminder email goes nowhere")
    try:
        outcome = notify_today_reminders(supabase, config.reminder_recipients)
    except Exception as e:
        logger.error(f"notify-reminders failed: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Something went wrong"})

    body = outcome.to_dict()
    if not outcome.success and outcome.reminders == 0:
        # the reminder query itself failed
        return JSONResponse(status_code=400, content=body)
    if not outcome.success:
        return JSONResponse(status_code=502, content=body)
    return body


@app.get("/reminders/today")
def reminders_today(status: List[str] = Query(default=["pending", "snoozed"]),
                    with_transaction: bool = True,
                    supabase=Depends(get_supabase)):
    unknown = set(status) - set(ALL_STATUSES)
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown status: {sorted(unknown)}")
    result = get_today_reminders(supabase, statuses=status, with_transaction=with_transaction)
    if result.error:
        return JSONResponse(status_code=400, content=result.to_dict())
    return result.to_dict()


@app.get("/reminders/digest")
def reminders_digest(supabase=Depends(get_supabase), config: AppConfig = Depends(get_config)):
    result = get_today_active_reminders(supabase)
    if result.error:
        return JSONResponse(status_code=400, content=result.to_dict())
    digest = gen_reminder_digest(result.reminders, result.date_ist, model_name=config.gemini_model)
    return {"date_ist": result.date_ist, "digest": digest}


@app.get("/search")
def search(q: str = "", limit: int = Query(default=5, ge=1, le=50),
           kinds: List[str] = Query(default=list(KINDS)),
           supabase=Depends(get_supabase)):
    try:
        return smart_search(supabase, q, limit_per_kind=limit, kinds=kinds)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/analytics/summary")
def analytics_summary(period: str = "this_month",
                      date_from: Optional[date] = Query(default=None, alias="from"),
                      date_to: Optional[date] = Query(default=None, alias="to"),
                      supabase=Depends(get_supabase),
                      store: SettingsStore = Depends(get_settings_store)):
    try:
        stats = get_summary_stats(supabase, period, _custom_range(date_from, date_to))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    body = stats.to_dict()
    body["display"] = display_amounts(stats, compact=store.get().is_millify_number)
    return body


@app.get("/analytics/dashboard")
def analytics_dashboard(period: str = "this_month",
                        date_from: Optional[date] = Query(default=None, alias="from"),
                        date_to: Optional[date] = Query(default=None, alias="to"),
                        supabase=Depends(get_supabase)):
    try:
        return get_dashboard_analytics(supabase, period, _custom_range(date_from, date_to))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/analytics/pending")
def analytics_pending(supabase=Depends(get_supabase)):
    return get_pending_overview(supabase)


@app.post("/ai-chat")
def ai_chat(req: ChatRequest, supabase=Depends(get_supabase),
            store: SettingsStore = Depends(get_settings_store),
            config: AppConfig = Depends(get_config)):
    if not req.message or not req.message.strip():
        return JSONResponse(status_code=400, content={"success": False, "error": "message is required"})
    try:
        model_name = req.model or store.get().model or config.gemini_model
        reply = ask_assistant(req.message, supabase, model_name=model_name)
    except Exception as e:
        logger.error(f"ai-chat failed: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Something went wrong"})
    return {"success": True, "reply": reply}


@app.get("/settings")
def read_settings(store: SettingsStore = Depends(get_settings_store)):
    return store.get().to_dict()


@app.put("/settings")
def write_settings(payload: SettingsPayload, store: SettingsStore = Depends(get_settings_store)):
    changes = payload.model_dump(exclude_none=True)
    try:
        return store.update(**changes).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
