# backend/main.py
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from config import settings
from database import init_db
from utils.ledger import InvalidDate, InvalidQuantity, TransactionNotFound
from utils.persistence import InvalidStockCard, PersistenceError, RecordNotFound

# Router imports
from routes.stock_cards import router as stock_cards_router
from routes.exports import router as exports_router
from routes.logs import router as logs_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialisation
init_db()

app = FastAPI(title=settings.APP_TITLE, version="1.0.0")

# CORS Configuration
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain errors -> HTTP status codes
@app.exception_handler(InvalidQuantity)
@app.exception_handler(InvalidDate)
@app.exception_handler(InvalidStockCard)
async def invalid_input_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(RecordNotFound)
@app.exception_handler(TransactionNotFound)
async def not_found_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Persistence error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# Router registration
app.include_router(stock_cards_router)
app.include_router(exports_router)
app.include_router(logs_router)

@app.get("/")
def read_root():
    return {"message": "Stock Card Ledger API is running"}
