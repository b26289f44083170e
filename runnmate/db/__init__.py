from runnmate.db.connection import Base, check_db_health, get_db, get_engine, get_sessionmaker

__all__ = ["Base", "get_engine", "get_sessionmaker", "get_db", "check_db_health"]
