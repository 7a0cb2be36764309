from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models in the Appointment Bridge service.

    Models register themselves on `Base.metadata` when imported; the session
    module imports all of them before any schema creation runs.
    """
    pass
