"""
FastAPI app for the Receipt Invoicer.

Exposes:
- GET  /                          : the current view (upload / verify / generate)
- POST /upload                    : choose a receipt image
- POST /extract                   : run the AI extraction → verify view
- POST /rows/{index}              : edit one field of one row (JSON)
- POST /commit                    : apply the table edits and generate invoices
- POST /reset                     : start over
- GET  /invoices/{index}          : one printable invoice
- GET  /receipt-images/{handle}   : receipt preview
- GET  /state                     : JSON snapshot of the session state
- GET  /health                    : health/info
"""

import logging
import uuid
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from receipt_invoicer import __version__
from receipt_invoicer.config import Settings
from receipt_invoicer.controller import ImageHandles, PageController
from receipt_invoicer.errors import InvalidTransitionError
from receipt_invoicer.graph.nodes.extract import ExtractionClient
from receipt_invoicer.graph.state import AppState, View
from receipt_invoicer.graph.workflow import build_graph
from receipt_invoicer.rendering import input_amount
from receipt_invoicer.verification import EDITABLE_FIELDS

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration constants
# ---------------------------------------------------------------------------
SESSION_COOKIE = "receipt_session"
_PACKAGE_DIR = Path(__file__).resolve().parent

_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:
	global _SETTINGS
	if _SETTINGS is None:
		_SETTINGS = Settings.from_env()
	return _SETTINGS


# Rate limiter — keyed by client IP
limiter = Limiter(key_func=get_remote_address)

# FastAPI app singleton
app = FastAPI(title="Receipt Invoicer", version=__version__)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.mount("/static", StaticFiles(directory=str(_PACKAGE_DIR / "static")), name="static")
templates = Jinja2Templates(directory=str(_PACKAGE_DIR / "templates"))
templates.env.filters["input_amount"] = input_amount


# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
	async def dispatch(self, request, call_next):
		response = await call_next(request)
		response.headers["X-Content-Type-Options"] = "nosniff"
		response.headers["X-Frame-Options"] = "DENY"
		response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
		response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
		return response

app.add_middleware(SecurityHeadersMiddleware)

# Compiled graph singleton, shared preview registry and per-session controllers.
# _SESSIONS is kept in least-recently-used order.
_APP_GRAPH = None
_IMAGES = ImageHandles()
_SESSIONS: "OrderedDict[str, PageController]" = OrderedDict()


def _get_graph():
	global _APP_GRAPH
	if _APP_GRAPH is None:
		_APP_GRAPH = build_graph(ExtractionClient(get_settings()))
	return _APP_GRAPH


def _lookup(request: Request) -> Tuple[Optional[str], Optional[PageController]]:
	"""The caller's session, if it has one. Never creates a session."""
	session_id = request.cookies.get(SESSION_COOKIE)
	controller = _SESSIONS.get(session_id) if session_id else None
	if controller is None:
		return None, None
	_SESSIONS.move_to_end(session_id)
	return session_id, controller


def _session(request: Request) -> Tuple[str, PageController]:
	"""The caller's session, started on the first state-changing action."""
	session_id, controller = _lookup(request)
	if controller is None:
		session_id = f"session-{uuid.uuid4().hex}"
		controller = PageController(get_settings(), _get_graph(), images=_IMAGES)
		_SESSIONS[session_id] = controller
		logger.debug("Started %s", session_id)
		_evict_sessions()
	return session_id, controller


def _evict_sessions() -> None:
	limit = get_settings().max_sessions
	while len(_SESSIONS) > limit:
		session_id, controller = _SESSIONS.popitem(last=False)
		controller.reset()
		logger.info("Evicted idle %s", session_id)


def _with_session(response: Response, session_id: Optional[str]) -> Response:
	if session_id:
		response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
	return response


def _back_to_page(session_id: Optional[str]) -> Response:
	return _with_session(RedirectResponse(url="/", status_code=303), session_id)


def _wrong_view(exc: InvalidTransitionError) -> HTTPException:
	return HTTPException(status_code=409, detail=str(exc))


def _no_session(action: str) -> HTTPException:
	# Without a session the caller is on a fresh upload view
	return _wrong_view(InvalidTransitionError(action, View.UPLOAD.value))


def _table_edits(form: Any) -> List[Tuple[int, str, Any]]:
	"""(index, field, value) for each name-0 / address-0 / amount-0 style field."""
	edits = []
	for key, value in form.items():
		field, sep, raw_index = key.rpartition("-")
		if not sep or field not in EDITABLE_FIELDS or not raw_index.isdigit():
			continue
		edits.append((int(raw_index), field, value))
	return edits


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

@app.get("/", response_class=HTMLResponse)
def page(request: Request) -> Response:
	session_id, controller = _lookup(request)
	state = controller.state if controller is not None else AppState()
	context: Dict[str, Any] = {"state": state, "fields": EDITABLE_FIELDS}
	if state.current_view == View.GENERATE:
		context["documents"] = controller.documents()
	template = f"{state.current_view.value}.html"
	return _with_session(templates.TemplateResponse(request, template, context), session_id)


@app.get("/invoices/{index}", response_class=HTMLResponse)
def invoice(request: Request, index: int) -> Response:
	session_id, controller = _lookup(request)
	if controller is None:
		raise _no_session("render invoices")
	try:
		documents = controller.documents()
	except InvalidTransitionError as e:
		raise _wrong_view(e)
	if not 0 <= index < len(documents):
		raise HTTPException(status_code=404, detail=f"No invoice {index}.")
	response = templates.TemplateResponse(request, "print.html", {"document": documents[index], "index": index})
	return _with_session(response, session_id)


@app.get("/receipt-images/{handle}")
def receipt_image(handle: str) -> Response:
	image = _IMAGES.get(handle)
	if image is None:
		raise HTTPException(status_code=404, detail="Receipt preview has been released.")
	return Response(content=image.data, media_type=image.content_type)


@app.get("/state")
def get_state(request: Request) -> Response:
	session_id, controller = _lookup(request)
	state = controller.state if controller is not None else AppState()
	return _with_session(JSONResponse(state.snapshot()), session_id)


@app.get("/health")
def info() -> Dict[str, Any]:
	settings = get_settings()
	return {
		"status": "ok",
		"version": app.version,
		"model": settings.extraction_model,
		"date_policy": settings.date_policy,
		"sessions": len(_SESSIONS),
	}


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@app.post("/upload")
async def upload_receipt(request: Request, file: Optional[UploadFile] = File(None)) -> Response:
	session_id, controller = _session(request)
	if file is None or not file.filename:
		return _back_to_page(session_id)

	try:
		content = await file.read()
	except OSError as e:
		logger.warning("Failed to read upload %s: %s", file.filename, e)
		controller.report_error(f"Could not read the uploaded file: {e}")
		return _back_to_page(session_id)

	# Sanitize original filename (strip path traversal chars)
	safe_filename = Path(file.filename).name.replace("..", "")
	try:
		controller.select_file(safe_filename, file.content_type, content)
	except InvalidTransitionError as e:
		raise _wrong_view(e)
	return _back_to_page(session_id)


@app.post("/extract")
@limiter.limit(lambda: get_settings().extract_rate_limit)
async def extract(request: Request) -> Response:
	session_id, controller = _session(request)
	try:
		await controller.extract()
	except InvalidTransitionError as e:
		raise _wrong_view(e)
	return _back_to_page(session_id)


@app.post("/rows/{index}")
def edit_row(request: Request, index: int, field: str = Form(...), value: str = Form("")) -> Response:
	"""Set one field of one row in the verify table."""
	session_id, controller = _lookup(request)
	if controller is None:
		raise _no_session("edit a row")
	try:
		controller.set_field(index, field, value)
	except InvalidTransitionError as e:
		raise _wrong_view(e)
	except IndexError as e:
		raise HTTPException(status_code=404, detail=str(e))
	except ValueError as e:
		raise HTTPException(status_code=422, detail=str(e))

	row = {"index": index, **controller.state.snapshot()["editable_set"][index]}
	return _with_session(JSONResponse(row), session_id)


@app.post("/commit")
async def commit(request: Request) -> Response:
	"""Apply the submitted table fields (name-0, amount-0, ...) then commit.

	Unchanged cells are left alone and nothing is applied if any cell is out
	of range.
	"""
	session_id, controller = _lookup(request)
	if controller is None:
		raise _no_session("generate invoices")
	form = await request.form()
	try:
		controller.apply_edits(_table_edits(form))
		controller.commit()
	except InvalidTransitionError as e:
		raise _wrong_view(e)
	except IndexError as e:
		raise HTTPException(status_code=404, detail=str(e))
	return _back_to_page(session_id)


@app.post("/reset")
def reset(request: Request) -> Response:
	session_id, controller = _lookup(request)
	if controller is not None:
		controller.reset()
	return _back_to_page(session_id)
