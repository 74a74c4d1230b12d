from __future__ import annotations
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy import create_engine
from typing import Callable
from .config import settings


class Base(DeclarativeBase):
    pass


# 컨텍스트마다 새 세션을 여는 팩토리 (job / watcher / write gate 공용)
SessionFactory = Callable[[], Session]

DB_URL = settings.DATABASE_URL
connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}
engine = create_engine(DB_URL, echo=False, future=True, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

