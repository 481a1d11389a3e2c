"""Database layer: declarative base, engine, listeners, repositories."""
