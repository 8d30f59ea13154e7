from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import models  # 👈 asegura que todas las tablas estén registradas
from utils.invoice_sequence import init_counter_store
from utils.logging_utils import log_error
from utils.rate_limiter import setup_rate_limiting

try:
    init_counter_store()
    print("[OK] Tabla de contadores creada (o ya existia)")
except Exception as e:
    log_error("startup", "Error creando tabla de contadores", e)
    print(f"[ERROR] Error creando tablas: {e}")

app = FastAPI(title="Motel Front-Desk Ledger")

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
setup_rate_limiting(app)

from endpoints import ledger, rooms
app.include_router(ledger.router)
app.include_router(rooms.router)


@app.get("/")
def read_root():
    return {"message": "FrontDesk ledger online"}
