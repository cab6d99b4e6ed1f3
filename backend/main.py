from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.openapi.utils import get_openapi
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv

load_dotenv()
from datetime import datetime
import logging
import os

from database import Base, engine
import models  # noqa: F401  registers every table on Base.metadata
import routers.sales as sales
import routers.ar_invoices as ar_invoices
import routers.customers as customers
import routers.access_rights as access_rights
import routers.audit_log as audit_log
from utils.errors import AppError
from utils.permissions import PermissionCache


LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "true").lower() not in ("0", "false", "no")
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

handlers = [logging.StreamHandler()]
if LOG_TO_FILE:
    os.makedirs(LOG_DIR, exist_ok=True)  # Create the log directory if it doesn't exist
    # One log file per start, named after the start time
    current_time_str = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    handlers.append(logging.FileHandler(os.path.join(LOG_DIR, f"app_{current_time_str}.log"), mode='a'))

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, handlers=handlers)

logger = logging.getLogger(__name__)
logger.info("Application starting up...")
# --- End Logging Configuration ---


# Create database tables
Base.metadata.create_all(bind=engine)


app = FastAPI()

# Group permission sets, evicted on every access-right write
app.state.permission_cache = PermissionCache()


allowed_origins_str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173"
)

# Split the string into a list, stripping any whitespace
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(',')]

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="Accounting API",
        version="1.0.0",
        description="API for sales documents, accounts receivable and access rights",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    # Apply security globally to all endpoints
    openapi_schema["security"] = [{"BearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi


HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def error_response(status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"success": False, "error": error}))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected with {exc.code}: {exc.message}")
    return error_response(exc.status_code, exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return error_response(400, {"code": "VALIDATION_ERROR", "message": "Invalid request", "details": fields})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(exc.status_code, {"code": code, "message": str(exc.detail)})


app.include_router(sales.router)
app.include_router(ar_invoices.router)
app.include_router(customers.router)
app.include_router(access_rights.router)
app.include_router(audit_log.router)

@app.get("/")
async def test_route():
    return {"message": "Welcome to the FastAPI application!"}
