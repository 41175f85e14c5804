"""
mock_mail_provider.py — Mock Implementation of the Templated Mail Provider (REST API)

This module provides a simulated mail provider for local development of the
order confirmation. It exposes a simple FastAPI application that mimics the
EmailJS send endpoint.

Simulation Scenarios:
    • Successful delivery
    • Rejected request (HTTP 400, e.g. unknown template)
    • Provider outage (HTTP 503)
    • Timeout simulation (simulates client read timeout)

Endpoints:
    POST /api/v1.0/email/send — Accepts a templated mail.
    GET  /sent — Lists all mails accepted so far.

Port:
    Default: 8002 (HTTP)
"""

import logging
import time
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from pydantic import BaseModel

app = FastAPI(title="Mock Mail Provider")
logging.basicConfig(level=logging.INFO)

SENT = []


class SendRequest(BaseModel):
    """
    Represents a templated mail request payload.

    Attributes:
        service_id (str): Mail service configured at the provider.
        template_id (str): Template to render.
        user_id (str): Public key of the account.
        template_params (dict): Variables for the template (to_email, order_number, ...).
    """
    service_id: str
    template_id: str
    user_id: str
    template_params: dict
    accessToken: Optional[str] = None


@app.post("/api/v1.0/email/send", response_class=PlainTextResponse)
def send_email(request: SendRequest):
    """
        Accepts a templated mail.

        The outcome is chosen by the recipient address:
            - Starts with "reject@" → Request rejected (HTTP 400)
            - Starts with "outage@" → Provider unavailable (HTTP 503)
            - Starts with "timeout@" → Simulated timeout (long-running process)
            - Any other address → Mail accepted

        Returns:
            str: "OK", like the real provider.
    """
    to_email = request.template_params.get("to_email", "")
    order_number = request.template_params.get("order_number", "?")
    logging.info(f"[MAIL] Bestätigung für {order_number} an {to_email} (Template: {request.template_id})")

    if to_email.startswith("reject@"):
        raise HTTPException(status_code=400, detail="The template ID is invalid")

    if to_email.startswith("outage@"):
        raise HTTPException(status_code=503, detail="Service temporarily unavailable")

    if to_email.startswith("timeout@"):
        logging.info(f"[MAIL] Simuliere Timeout für {order_number}...")
        time.sleep(10)

    SENT.append(request.model_dump())
    return "OK"


@app.get("/sent")
def list_sent():
    return SENT


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8002)
