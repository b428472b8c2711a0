import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from strawberry.fastapi import GraphQLRouter

import config
from config import settings
from database import SessionLocal, engine, get_db, init_db
from logging_setup import setup_logging
from resolvers import schema
from security import get_session_user, oauth2_scheme, purge_expired_sessions, resolve_current_user

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    if settings.jwt_secret == "change-me":
        logger.warning("JWT_SECRET is not set; using the insecure default secret")

    # Create tables and drop sessions that expired while we were down
    init_db(engine)
    with SessionLocal() as db:
        purged = purge_expired_sessions(db)
    logger.info("Startup complete, purged %d expired sessions", purged)
    yield


# Initialize FastAPI
app = FastAPI(title="Task Manager API", lifespan=lifespan)

# Configure CORS so the web/mobile frontend can call the API with cookies
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,  # Exact origins, e.g. the React dev server
    allow_origin_regex=settings.cors_origin_regex,  # e.g. every subdomain of the production site
    allow_credentials=True,  # Session cookies must cross origins
    allow_methods=["GET", "POST", "OPTIONS", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["set-cookie"],
)

# Security headers on every response, the same defaults helmet() applies.
# No Content-Security-Policy: GraphiQL loads its assets from a CDN.
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
}
HSTS_HEADER = "max-age=31536000; includeSubDomains"


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    # HSTS only makes sense once the deployment is HTTPS-only
    if config.settings.session_cookie_secure:
        response.headers.setdefault("Strict-Transport-Security", HSTS_HEADER)
    return response


# Per-request GraphQL context: the DB session plus whoever is making the request.
# Strawberry adds "request" and "response" to this dict.
def get_context(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    token: str | None = Depends(oauth2_scheme),
):
    user = resolve_current_user(db, request, response, token)
    return {"db": db, "user": user}


graphql_app = GraphQLRouter(
    schema,
    context_getter=get_context,
    graphql_ide="graphiql" if settings.graphiql else None,
)
app.include_router(graphql_app, prefix="/graphql")


# --- Plain HTTP endpoints ---
# Root endpoint
@app.get("/")
def read_root():
    return {"message": "Task Manager API. Use the /graphql endpoint"}


# Diagnostic route for checking the session from a browser or the mobile app
@app.get("/check-session")
def check_session(request: Request, response: Response, db: Session = Depends(get_db)):
    user = get_session_user(db, request, response)
    return {
        "authenticated": user is not None,
        "user_id": user.id if user is not None else None,
        "has_cookie": settings.session_cookie_name in request.cookies,
    }
