import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, Header, HTTPException, Query, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from jose import JWTError, jwt
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import load_settings, pwd_context
from errors import DuplicateError, UnsupportedMediaError, UploadTooLargeError, UpstreamError
from media import UPLOAD_URL_PREFIX, MediaGateway, UploadSizeLimit, check_media_type, read_limited
from notify import Notifier
from schemas import (
    AdminLogin,
    AdminToken,
    Category,
    CategoryUpdate,
    ContactSubmission,
    PortfolioItem,
    PortfolioItemUpdate,
    UploadedFile,
)
from storage import Storage, build_storage

# ==============
# Settings setup
# ==============
settings = load_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("portfolio")

ADMIN_SUBJECT = "admin"

storage: Storage = build_storage(settings)
media_gateway = MediaGateway(settings)
notifier = Notifier(settings)


def get_storage() -> Storage:
    return storage


def get_media_gateway() -> MediaGateway:
    return media_gateway


def get_notifier() -> Notifier:
    return notifier


# ==================
# FastAPI app config
# ==================
@asynccontextmanager
async def lifespan(app: FastAPI):
    storage.ensure_indexes()
    logger.info("Agency portfolio API started with %s", type(storage).__name__)
    yield


app = FastAPI(title="Agency Portfolio API", lifespan=lifespan)

app.add_middleware(UploadSizeLimit, max_body=media_gateway.max_body_bytes)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(settings.upload_dir, exist_ok=True)
app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=settings.upload_dir), name="uploads")


# ===============
# Error responses
# ===============
@app.exception_handler(StarletteHTTPException)
async def http_error(request, exc: StarletteHTTPException):
    return JSONResponse({"message": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error(request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return JSONResponse({"message": "Invalid data", "errors": errors}, status_code=400)


@app.exception_handler(DuplicateError)
async def duplicate_error(request, exc: DuplicateError):
    return JSONResponse({"message": str(exc), "field": exc.field}, status_code=409)


@app.exception_handler(UnsupportedMediaError)
async def unsupported_media(request, exc: UnsupportedMediaError):
    return JSONResponse({"message": str(exc)}, status_code=400)


@app.exception_handler(UploadTooLargeError)
async def upload_too_large(request, exc: UploadTooLargeError):
    return JSONResponse({"message": str(exc)}, status_code=413)


@app.exception_handler(Exception)
async def unhandled_error(request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"message": "Internal server error"}, status_code=500)


# =========
# Utilities
# =========
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def get_current_admin(authorization: Optional[str] = Header(None)):
    unauthorized = HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"})
    if not authorization or not authorization.lower().startswith("bearer "):
        raise unauthorized
    token = authorization.split(" ", 1)[1].strip()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token", headers={"WWW-Authenticate": "Bearer"})
    if payload.get("sub") != ADMIN_SUBJECT or payload.get("role") != "admin":
        raise unauthorized
    return payload


# ======
# Routes
# ======
@app.get("/")
def root():
    return {"status": "ok", "service": "agency-portfolio-api"}


@app.get("/test")
def health_check(store: Storage = Depends(get_storage)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "storage": type(store).__name__,
        "media_host": "cloudinary" if settings.media_host_configured else "local",
        "email": "✅ Configured" if settings.email_configured else "❌ Not Set",
        "collections": [],
    }
    try:
        status = store.status()
        response["database"] = "✅ Connected & Working"
        response["collections"] = status.get("collections", [])
    except Exception as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


# Auth
@app.post("/api/admin/login", response_model=AdminToken)
def login(data: AdminLogin):
    if not verify_password(data.password, settings.admin_password_hash):
        logger.warning("Failed admin login attempt")
        return JSONResponse({"success": False, "message": "Invalid password"}, status_code=401)
    token = create_access_token({"sub": ADMIN_SUBJECT, "role": "admin"})
    return AdminToken(access_token=token, expires_in=settings.token_expire_minutes * 60)


@app.get("/api/admin/me")
def admin_me(admin: dict = Depends(get_current_admin)):
    expires_at = datetime.fromtimestamp(admin["exp"], tz=timezone.utc)
    return {"role": admin.get("role"), "expires_at": expires_at.isoformat()}


@app.get("/api/admin/contacts")
def list_contacts(_: dict = Depends(get_current_admin), store: Storage = Depends(get_storage)):
    return store.list_contact_submissions()


@app.get("/api/admin/files")
def list_uploaded_files(_: dict = Depends(get_current_admin), store: Storage = Depends(get_storage)):
    return store.list_uploaded_files()


# Portfolio
@app.get("/api/portfolio")
def list_portfolio(category: Optional[str] = Query(None), store: Storage = Depends(get_storage)):
    return store.list_portfolio_items(category.strip() if category and category.strip() else None)


@app.get("/api/portfolio/{item_id}")
def get_portfolio_item(item_id: str, store: Storage = Depends(get_storage)):
    item = store.get_portfolio_item(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Portfolio item not found")
    return item


@app.post("/api/portfolio")
def create_portfolio_item(item: PortfolioItem, _: dict = Depends(get_current_admin), store: Storage = Depends(get_storage)):
    created = store.create_portfolio_item(item)
    logger.info("Created portfolio item %s in %s", created["id"], created["category"])
    return created


@app.put("/api/portfolio/{item_id}")
def update_portfolio_item(
    item_id: str,
    updates: PortfolioItemUpdate,
    _: dict = Depends(get_current_admin),
    store: Storage = Depends(get_storage),
):
    item = store.update_portfolio_item(item_id, updates.changes())
    if not item:
        raise HTTPException(status_code=404, detail="Portfolio item not found")
    return item


@app.delete("/api/portfolio/{item_id}")
def delete_portfolio_item(item_id: str, _: dict = Depends(get_current_admin), store: Storage = Depends(get_storage)):
    if not store.delete_portfolio_item(item_id):
        raise HTTPException(status_code=404, detail="Portfolio item not found")
    logger.info("Deleted portfolio item %s", item_id)
    return {"message": "Portfolio item deleted successfully"}


# Categories
@app.get("/api/categories")
def list_categories(store: Storage = Depends(get_storage)):
    return store.list_categories()


@app.post("/api/categories")
def create_category(category: Category, _: dict = Depends(get_current_admin), store: Storage = Depends(get_storage)):
    return store.create_category(category)


@app.put("/api/categories/{category_id}")
def update_category(
    category_id: str,
    updates: CategoryUpdate,
    _: dict = Depends(get_current_admin),
    store: Storage = Depends(get_storage),
):
    category = store.update_category(category_id, updates.changes())
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@app.delete("/api/categories/{category_id}")
def delete_category(category_id: str, _: dict = Depends(get_current_admin), store: Storage = Depends(get_storage)):
    if not store.delete_category(category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    return {"message": "Category deleted successfully"}


# Uploads
@app.post("/api/upload")
def upload_file(
    file: Optional[UploadFile] = File(None),
    _: dict = Depends(get_current_admin),
    gateway: MediaGateway = Depends(get_media_gateway),
    store: Storage = Depends(get_storage),
):
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    check_media_type(file.filename, file.content_type)
    data = read_limited(file.file, gateway.max_bytes)
    try:
        result = gateway.store(data, file.filename, file.content_type)
    except UpstreamError:
        raise HTTPException(status_code=500, detail="Failed to upload file")
    store.create_uploaded_file(UploadedFile(
        url=result.url,
        filename=result.filename,
        original_name=result.original_name,
        size=result.size,
        content_type=file.content_type,
    ))
    return result.as_response()


# Contact
@app.post("/api/contact")
def submit_contact(
    submission: ContactSubmission,
    background_tasks: BackgroundTasks,
    store: Storage = Depends(get_storage),
    mailer: Notifier = Depends(get_notifier),
):
    record = store.create_contact_submission(submission)
    background_tasks.add_task(mailer.send_contact_notification, record)
    return {"message": "Contact form submitted successfully"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
