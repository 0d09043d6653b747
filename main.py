import html
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError
from pymongo.errors import PyMongoError

import config
from accounts import AccountService
from database import AccountStore, sanitize
from errors import (
    AmbiguousIdentity,
    FoodshareError,
    InvalidCredentials,
    StoreFailure,
    Unauthenticated,
    ValidationFailed,
)
from feedback import FeedbackService
from schemas import Role
from sessions import Identity, SessionManager
from validation import violations_from

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(name)-12s %(levelname)-8s %(message)s",
)
logger = logging.getLogger(__name__)

LOGIN_REQUIRED = "You have to be logged in to make a comment"
PAGE_DENIED = "You cannot access this page"
PUBLIC_PAGES = ("deliverySignUp.html", "feedback.html", "help.html", "login.html", "userSignUp.html")
COMMENT_MESSAGES = {"username": "Choose who the feedback is for", "msg": "Enter a valid message"}

# Helpers


def get_store(request: Request) -> AccountStore:
    return request.app.state.store


def get_sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def get_feedback(request: Request) -> FeedbackService:
    return request.app.state.feedback


async def read_fields(request: Request) -> Dict[str, Any]:
    """Body fields from either a JSON or a url-encoded/multipart form body."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
    form = await request.form()
    return dict(form)


def require_account(role: Role, message: str):
    """Dependency returning the account behind ``role``'s identity cookie."""

    def role_dep(request: Request, sessions: SessionManager = Depends(get_sessions)):
        try:
            return sessions.account_for(request.cookies, role)
        except FoodshareError as exc:
            raise Unauthenticated(message) from exc

    return role_dep


def current_identity(request: Request, sessions: SessionManager = Depends(get_sessions)) -> Identity:
    try:
        return sessions.resolve(request.cookies)
    except AmbiguousIdentity:
        raise
    except FoodshareError as exc:
        raise Unauthenticated(LOGIN_REQUIRED) from exc


def send_page(request: Request, filename: str) -> Response:
    path = os.path.join(request.app.state.pages_dir, filename)
    if not os.path.isfile(path):
        return PlainTextResponse("Not found", status_code=404)
    logger.info("Sent %s", filename)
    return FileResponse(path, media_type="text/html")


def page_route(filename: str):
    def public_page(request: Request):
        return send_page(request, filename)

    return public_page


# Request Models


class LoginForm(BaseModel):
    name: str = ""
    password: str = ""
    isDeliverer: bool = False


class CommentForm(BaseModel):
    username: str = ""
    # range and type are checked by FeedbackEntry
    rating: Any = None
    msg: str = ""


# Error translation


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationFailed)
    async def validation_failed(request: Request, exc: ValidationFailed):
        body = "<p>Errors:</p>" + "".join("<p>%s</p>" % html.escape(v.message) for v in exc.violations)
        return HTMLResponse(body, status_code=400)

    @app.exception_handler(FoodshareError)
    async def foodshare_error(request: Request, exc: FoodshareError):
        if isinstance(exc, StoreFailure):
            logger.error("%s %s failed on a store error", request.method, request.url.path)
        return PlainTextResponse(exc.message, status_code=400)


# Routes


def register_page_routes(app: FastAPI) -> None:
    @app.get("/")
    @app.get("/index.html")
    def index(request: Request):
        return send_page(request, "index.html")

    @app.get("/admin")
    def admin(request: Request):
        return send_page(request, "admin.html")

    for page in PUBLIC_PAGES:
        app.add_api_route("/" + page, page_route(page), methods=["GET"], name=page)

    @app.get("/deliveryProfile.html", dependencies=[Depends(require_account(Role.DELIVERER, PAGE_DENIED))])
    def delivery_profile(request: Request):
        return send_page(request, "deliveryProfile.html")

    @app.get("/userProfile.html", dependencies=[Depends(require_account(Role.USER, PAGE_DENIED))])
    def user_profile(request: Request):
        return send_page(request, "userProfile.html")


def register_api_routes(app: FastAPI) -> None:
    @app.post("/submit_delivery_form")
    def submit_delivery_form(fields: Dict[str, Any] = Depends(read_fields), accounts: AccountService = Depends(get_accounts)):
        accounts.register(Role.DELIVERER, fields)
        return Response(status_code=200)

    @app.post("/submit_user_form")
    def submit_user_form(fields: Dict[str, Any] = Depends(read_fields), accounts: AccountService = Depends(get_accounts)):
        accounts.register(Role.USER, fields)
        return Response(status_code=200)

    @app.post("/login")
    def login(
        fields: Dict[str, Any] = Depends(read_fields),
        accounts: AccountService = Depends(get_accounts),
        sessions: SessionManager = Depends(get_sessions),
    ):
        try:
            payload = LoginForm.model_validate(fields)
        except ValidationError as exc:
            raise InvalidCredentials() from exc
        role = Role.DELIVERER if payload.isDeliverer else Role.USER
        try:
            account_id = accounts.login(payload.name, payload.password, role)
        except StoreFailure as exc:
            # lookup failures look like bad credentials to the caller
            raise InvalidCredentials() from exc
        response = PlainTextResponse("Deliverer Success" if role is Role.DELIVERER else "Successful Login")
        sessions.set_cookie(response, role, account_id)
        return response

    @app.get("/get_deliverer_info")
    def get_deliverer_info(account=Depends(require_account(Role.DELIVERER, "Error in retrieving deliverer data"))):
        return sanitize(account)

    @app.get("/get_user_info")
    def get_user_info(account=Depends(require_account(Role.USER, "Error in retrieving user data"))):
        return sanitize(account)

    @app.get("/get_all_users")
    def get_all_users(store: AccountStore = Depends(get_store)):
        return list_names(store, Role.USER)

    @app.get("/get_all_deliverers")
    def get_all_deliverers(store: AccountStore = Depends(get_store)):
        return list_names(store, Role.DELIVERER)

    @app.post("/make_comment")
    def make_comment(
        fields: Dict[str, Any] = Depends(read_fields),
        identity: Identity = Depends(current_identity),
        feedback: FeedbackService = Depends(get_feedback),
    ):
        try:
            payload = CommentForm.model_validate(fields)
        except ValidationError as exc:
            raise ValidationFailed(violations_from(exc, COMMENT_MESSAGES, "Invalid feedback")) from exc
        feedback.submit(identity, payload.username, payload.rating, payload.msg)
        return PlainTextResponse("Success")

    @app.post("/make_order")
    def make_order():
        # orders are not implemented yet
        return PlainTextResponse("Nothing")

    # Utility endpoints
    @app.get("/test")
    def test_database(store: AccountStore = Depends(get_store)):
        try:
            collections = store.ping()
            return {"backend": "ok", "database": "ok", "collections": collections}
        except PyMongoError:
            logger.exception("Database health check failed")
            return {"backend": "ok", "database": "error"}


def list_names(store: AccountStore, role: Role):
    try:
        return store.list_names(role)
    except StoreFailure as exc:
        raise StoreFailure("No user found") from exc


def create_app(
    store: Optional[AccountStore] = None,
    *,
    secret_key: str = config.SECRET_KEY,
    cookie_secure: bool = config.COOKIE_SECURE,
    pages_dir: str = config.PAGES_DIR,
    static_dir: str = config.STATIC_DIR,
) -> FastAPI:
    """Build the app around one shared store handle."""
    if store is None:
        store = AccountStore.connect(config.DATABASE_URL, config.DATABASE_NAME)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.ensure_indexes()
        logger.info("Account indexes ready")
        yield

    app = FastAPI(title="Foodshare API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store
    app.state.sessions = SessionManager(
        store,
        secret_key,
        algorithm=config.ALGORITHM,
        minutes=config.SESSION_MINUTES,
        secure=cookie_secure,
        samesite=config.COOKIE_SAMESITE,
    )
    app.state.accounts = AccountService(store)
    app.state.feedback = FeedbackService(store)
    app.state.pages_dir = pages_dir

    register_error_handlers(app)
    register_page_routes(app)
    register_api_routes(app)
    if os.path.isdir(static_dir):
        app.mount("/static", StaticFiles(directory=static_dir), name="static")
    return app


app = create_app()
