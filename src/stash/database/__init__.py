from .database import Base, create_all, make_engine, make_session_factory

__all__ = ["Base", "create_all", "make_engine", "make_session_factory"]
