import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from washop import config
from washop.api import payment_proof_router, payment_router, redemption_router
from washop.errors import WashopError

load_dotenv()
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="WaShop Payments")

# Подключаем роутеры
app.include_router(payment_router.router, prefix="/api")
app.include_router(redemption_router.router, prefix="/api")
app.include_router(payment_proof_router.router, prefix="/api")


@app.exception_handler(WashopError)
async def handle_washop_error(request: Request, exc: WashopError):
    """Клиент всегда получает {"success": false, "error": ...}."""
    if exc.status_code >= 500:
        logging.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


@app.get("/health")
async def health():
    return {"status": "ok"}
