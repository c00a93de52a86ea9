from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pathlib import Path
import json
import os

app = FastAPI(title="Mock Payment Status Server", version="1.0.0")
# Support both local development and Docker
DATA_DIR = Path("/payment_stub") if os.path.exists("/payment_stub") else Path(__file__).resolve().parents[1] / "payment_stub"

@app.get("/health")
def health(): return {"status": "ok"}

@app.get("/payments/status")
def get_status(instructor_id: str, period: str):
    payments = json.loads((DATA_DIR / "payment_status.json").read_text())
    if instructor_id not in payments:
        raise HTTPException(status_code=404, detail="instructor not found")
    return JSONResponse(content={"status": payments[instructor_id].get(period, "Unpaid")})
