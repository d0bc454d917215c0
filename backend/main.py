from contextlib import asynccontextmanager
from typing import Optional
import logging

import anthropic
from fastapi import Body, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from agent import Orchestrator
from llm_agent import LLMAgent
from models import (
    AgentMessage,
    AgentReply,
    OwnerBody,
    TaskCreate,
    TaskUpdate,
    TaskValidationError,
    OWNER_SENTINEL,
)
from database import (
    init_db,
    create_task_db,
    get_task_db,
    list_tasks_db,
    update_task_db,
    delete_task_db,
)
from sessions import SessionManager, build_session_store

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

session_manager = SessionManager(
    build_session_store(config.SESSION_BACKEND),
    ttl_seconds=config.SESSION_TTL_SECONDS,
)
orchestrator = Orchestrator(session_manager)

# Only built when a key is configured; /api/llm-agent answers 503 otherwise
llm_agent: Optional[LLMAgent] = None
if config.api_key_configured():
    llm_agent = LLMAgent(anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY), model=config.LLM_MODEL)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    init_db()
    session_manager.purge_expired()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every failure leaves as {"success": false, "message": ...}
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error")
    return JSONResponse(status_code=500, content={"success": False, "message": str(exc) or "Internal server error"})


def resolve_owner(header_email: Optional[str], *fallbacks: Optional[str]) -> str:
    """Caller identity: the x-user-email header wins, then explicit fields, then the sentinel."""
    for candidate in (header_email, *fallbacks):
        if candidate and candidate.strip():
            return candidate.strip()
    return OWNER_SENTINEL


# Tasks

@app.get("/api/tasks")
def get_tasks(owner: Optional[str] = None) -> dict:
    return {"success": True, "tasks": list_tasks_db(owner=owner)}


@app.post("/api/tasks", status_code=201)
def create_task(task_data: TaskCreate, x_user_email: Optional[str] = Header(default=None)) -> dict:
    try:
        task = create_task_db(
            title=task_data.title,
            description=task_data.description,
            priority=task_data.priority,
            due_date=task_data.due_date,
            start_time=task_data.start_time,
            end_time=task_data.end_time,
            completed=task_data.completed,
            owner=resolve_owner(x_user_email, task_data.owner),
        )
    except TaskValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "task": task}


@app.get("/api/tasks/{task_id}")
def get_task(task_id: str, owner: Optional[str] = None, x_user_email: Optional[str] = Header(default=None)) -> dict:
    task = get_task_db(task_id, owner=resolve_owner(x_user_email, owner))
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return {"success": True, "task": task}


@app.put("/api/tasks/{task_id}")
@app.patch("/api/tasks/{task_id}")
def update_task(
    task_id: str,
    task_data: TaskUpdate,
    owner: Optional[str] = None,
    x_user_email: Optional[str] = Header(default=None),
) -> dict:
    updates = task_data.model_dump(exclude_none=True, exclude={"owner"})
    try:
        task = update_task_db(task_id, owner=resolve_owner(x_user_email, owner, task_data.owner), **updates)
    except TaskValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return {"success": True, "task": task}


@app.delete("/api/tasks/{task_id}")
def delete_task(
    task_id: str,
    owner: Optional[str] = None,
    body: Optional[OwnerBody] = Body(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> dict:
    body_owner = body.owner if body else None
    if not delete_task_db(task_id, owner=resolve_owner(x_user_email, owner, body_owner)):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"success": True, "message": "Task deleted successfully"}


# Agents

def _check_agent_message(chat_request: AgentMessage):
    if not chat_request.conversation_id:
        raise HTTPException(status_code=400, detail="conversationId is required")
    if not chat_request.message or not chat_request.message.strip():
        raise HTTPException(status_code=400, detail="message is required")


def _agent_response(agent_reply: AgentReply) -> dict:
    return {"success": True, **agent_reply.model_dump(by_alias=True, exclude_none=True)}


@app.get("/api/agent/health")
def agent_health() -> dict:
    return {"ok": True}


@app.post("/api/agent/messages")
def agent_message(chat_request: AgentMessage, x_user_email: Optional[str] = Header(default=None)) -> dict:
    """Rule-based slot-filling agent: one message in, one reply out."""
    _check_agent_message(chat_request)
    owner = resolve_owner(x_user_email, chat_request.user_email)
    try:
        agent_reply = orchestrator.handle(chat_request.conversation_id, chat_request.message, owner)
    except Exception as e:
        logger.exception("Agent error")
        raise HTTPException(status_code=500, detail=str(e) or "Agent error")
    return _agent_response(agent_reply)


@app.get("/api/llm-agent/health")
def llm_agent_health() -> dict:
    return {"ok": True, "configured": llm_agent is not None}


@app.post("/api/llm-agent/messages")
async def llm_agent_message(chat_request: AgentMessage, x_user_email: Optional[str] = Header(default=None)) -> dict:
    """Claude-backed agent using tool calls for the same task operations."""
    _check_agent_message(chat_request)
    if llm_agent is None:
        raise HTTPException(status_code=503, detail="LLM unavailable: missing ANTHROPIC_API_KEY")
    owner = resolve_owner(x_user_email, chat_request.user_email)
    try:
        agent_reply = await llm_agent.handle(chat_request.conversation_id, chat_request.message, owner)
    except anthropic.APIError as e:
        logger.error("LLM agent API error: %s", e)
        raise HTTPException(status_code=502, detail=f"API error: {e}")
    return _agent_response(agent_reply)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
