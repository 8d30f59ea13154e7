from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from config import DATABASE_URL


def build_engine(url: str):
    # SQLite embebido: el contador se usa desde varios hilos
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


# Crear el engine sincronico
engine = build_engine(DATABASE_URL)

# Crear la sesión sincronica
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Declarative base
Base = declarative_base()

# ✅ IMPORTANTE: create_all se hace desde main.py / init_counter_store, luego de importar los modelos

