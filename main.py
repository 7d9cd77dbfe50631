# main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from dotenv import load_dotenv
from database import init_db, SessionLocal
from paths import UPLOAD_DIR
from Services.errors import AuthError, DocumentNotFound, StoreError, UploadError
from Services.i18n import LANGUAGE_COOKIE, Translator
from Services.dependencies import ServiceContainer
from Services.object_storage import PUBLIC_BASE_URL
from Services.vehicle_router import router as vehicle_router
from Services.spare_part_router import router as spare_part_router
from Services.account_router import router as account_router
from Services.submission_router import router as submission_router
from Services.chat_router import router as chat_router
from Services.admin_router import router as admin_router, socket_router as admin_socket_router
import logging
import os

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Zoe Car Dealership API",
    description="""
    API for the Zoe Car Dealership storefront including:
    - Vehicle and spare-part catalogs
    - Accounts, saved and liked items
    - Car submissions and trade-ins
    - Customer chat and contact form
    - Admin back office (inventory, customers, message center)
    """,
    version="1.0.0",
    debug=os.getenv("ENVIRONMENT", "development") == "development"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Collaborators shared by every request
app.state.container = ServiceContainer(SessionLocal)

# Uploaded images are served straight from the object storage directory
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
if PUBLIC_BASE_URL.startswith("/"):
    app.mount(PUBLIC_BASE_URL.rstrip("/"), StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")

NOT_FOUND_REDIRECTS = {
    "vehicles": "/inventory",
    "spare_parts": "/spare-parts",
}

def _translator(request: Request) -> Translator:
    return Translator(request.cookies.get(LANGUAGE_COOKIE))

@app.exception_handler(DocumentNotFound)
async def not_found_handler(request: Request, exc: DocumentNotFound):
    logger.info(f"Not found: {exc}")
    key = "spareParts.errors.notFound" if exc.collection == "spare_parts" else "inventory.errors.notFound"
    return JSONResponse(
        status_code=404,
        content={
            "detail": _translator(request).t(key),
            "redirect": NOT_FOUND_REDIRECTS.get(exc.collection, "/"),
        }
    )

@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(
        status_code=401,
        content={"detail": str(exc)}
    )

@app.exception_handler(UploadError)
async def upload_error_handler(request: Request, exc: UploadError):
    logger.error(f"Upload failed: {exc}", exc_info=True)
    return JSONResponse(
        status_code=400,
        content={"detail": _translator(request).t("submission.errors.upload")}
    )

@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Store error processing request: {exc}", exc_info=True)
    translator = _translator(request)
    detail = translator.t("common.offline") if not app.state.container.store.online else translator.t("common.unexpected")
    return JSONResponse(
        status_code=503,
        content={"detail": detail}
    )

# Exception handler for detailed error messages
@app.exception_handler(Exception)
async def debug_exception_handler(request: Request, exc: Exception):
    logger.error(f"Error processing request: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "type": type(exc).__name__}
    )

# Include routers
app.include_router(
    vehicle_router,
    prefix="/api/vehicles",
    tags=["vehicles"]
)

app.include_router(
    spare_part_router,
    prefix="/api/spare-parts",
    tags=["spare parts"]
)

app.include_router(
    account_router,
    prefix="/api",
    tags=["account"]
)

app.include_router(
    submission_router,
    prefix="/api/submissions",
    tags=["submissions"]
)

app.include_router(
    chat_router,
    prefix="/api",
    tags=["chat"]
)

app.include_router(
    admin_router,
    prefix="/api/admin",
    tags=["admin"]
)

app.include_router(
    admin_socket_router,
    prefix="/api/admin",
    tags=["admin"]
)

# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)
        raise
    app.state.container.store.add_connection_listener(log_connectivity)

def log_connectivity(online: bool):
    if not online:
        logger.warning("Document store offline; reads and writes fail until it reconnects")

@app.on_event("shutdown")
async def shutdown_event():
    app.state.container.close()

@app.get("/")
async def root():
    return {
        "message": "Welcome to Zoe Car Dealership API",
        "version": "1.0.0",
        "docs_url": "/docs",
        "redoc_url": "/redoc"
    }

@app.get("/health")
async def health():
    store = app.state.container.store
    return {
        "status": "ok" if store.online else "offline",
        "active_subscriptions": store.active_subscriptions,
        "sessions": len(app.state.container.sessions)
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=os.getenv("LOG_LEVEL", "info").lower())
