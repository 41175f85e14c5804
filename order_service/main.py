"""
main.py — FastAPI Entry Point for the Order Service

This module provides the REST API of the shop backend for order placement.
It accepts cart submissions from the browser frontend, runs the placement
transaction and schedules the order confirmation as a background task.

Responsibilities:
    • Accept new orders via HTTP API and map failures to HTTP status codes
    • Trigger the post-commit notification after the response is produced
    • Administrative status updates of placed orders
    • Provide system health information
"""

from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from . import config
from .admin import update_order_status, update_payment_status
from .clients import TemplatedMailClient
from .db import dispose_engine, get_engine, get_session_factory, init_db
from .errors import OrderServiceError
from .logging_config import setup_logging, get_logger
from .models import NewOrderRequest, PaymentStatusUpdate, PlacementResult, StatusUpdate
from .notifications import send_order_confirmation
from .workflow import place_order

# Initialization
# Configure logging and initialize FastAPI app
setup_logging()
log = get_logger(__name__)
app = FastAPI(title="Shop Order Service")

# Browser-Frontend: alles erlauben
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type"],
)


_mailer = None


def get_mailer():
    """Notification provider used for order confirmations, one client per process."""
    global _mailer
    if _mailer is None:
        _mailer = TemplatedMailClient()
    return _mailer


# Startup Event: Schema
@app.on_event("startup")
def on_startup():
    """
    FastAPI startup event handler.

    Creates missing tables and the order number counter. Without DATABASE_URL
    the service still starts, but order placement answers with 500.
    """
    log.info("Order-Service startet...")
    if not config.DATABASE_URL:
        log.error("DATABASE_URL ist nicht gesetzt. POST /orders wird fehlschlagen.")
        return
    init_db(get_engine())


# Shutdown Event: Verbindungen schließen
@app.on_event("shutdown")
def on_shutdown():
    """Closes the shared mail client and the database connection pool."""
    global _mailer
    if _mailer is not None:
        _mailer.close()
        _mailer = None
    dispose_engine()
    log.info("Order-Service beendet.")


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    log.warning(f"Ungültige Anfrage an {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"error": "Ungültige Bestellung", "details": jsonable_encoder(exc.errors())},
    )


# API Endpoint: Shop-Frontend → Order Service
@app.post("/orders", status_code=201, response_model=PlacementResult)
def create_order(
        order: NewOrderRequest,
        background_tasks: BackgroundTasks,
        session_factory=Depends(get_session_factory),
        mailer=Depends(get_mailer)
):
    """
    Places a new order and schedules the order confirmation.

    The confirmation runs after the response was sent. Its outcome never
    changes the response: a committed order is reported as placed even if
    the mail provider is down.

    Args:
        order (NewOrderRequest): Cart submission from the frontend.
        background_tasks (BackgroundTasks): FastAPI background task handler.

    Returns:
        PlacementResult: success flag, internal order id and order number.

    Raises:
        OrderServiceError: Rendered as {"error": message} with 400/409/500.
    """
    try:
        result = place_order(order, session_factory=session_factory)
    except OrderServiceError:
        raise
    except Exception as e:
        log.critical(f"Kritischer Fehler beim Speichern der Bestellung: {e}", exc_info=True)
        raise OrderServiceError("Fehler beim Speichern der Bestellung")

    # Schedule post-commit notification
    background_tasks.add_task(
        send_order_confirmation,
        order_id=result.orderId,
        session_factory=session_factory,
        mailer=mailer
    )
    log.info(f"[Order: {result.orderNumber}] Bestellbestätigung zur Hintergrundverarbeitung eingeplant.")
    return result


@app.patch("/orders/{order_number}/status")
def change_order_status(order_number: str, update: StatusUpdate, session_factory=Depends(get_session_factory)):
    return update_order_status(order_number, update.status, session_factory=session_factory)


@app.patch("/orders/{order_number}/payment-status")
def change_payment_status(order_number: str, update: PaymentStatusUpdate, session_factory=Depends(get_session_factory)):
    return update_payment_status(order_number, update.paymentStatus, session_factory=session_factory)


@app.get("/", response_class=PlainTextResponse)
def root():
    return "Order-Service läuft"


# Health Check Endpoint
@app.get("/health")
def health_check():
    """
    Simple health check endpoint.

    Can be used by monitoring systems or container orchestrators
    (e.g., Docker, Kubernetes) to verify that the service is running.

    Returns:
        dict: A basic JSON object indicating service availability.
    """
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
