from sqlalchemy.orm import class_mapper
from datetime import datetime, date
from decimal import Decimal
from dotenv import load_dotenv
import enum
import os
import pytz

load_dotenv()

APP_TIMEZONE = pytz.timezone(os.getenv("APP_TIMEZONE", "Asia/Kuala_Lumpur"))


def local_now() -> datetime:
    """Current timestamp in the application's timezone."""
    return datetime.now(APP_TIMEZONE)


def local_today() -> date:
    return local_now().date()


def sqlalchemy_to_dict(obj):
    """Convert a SQLAlchemy object to a dictionary."""
    if not obj:
        return None
    mapper = class_mapper(obj.__class__)
    result = {}
    for c in mapper.columns:
        value = getattr(obj, c.key)
        # Convert datetime objects to ISO format strings
        if hasattr(value, 'isoformat'):
            value = value.isoformat()
        # Money is kept as a string so the audit trail never loses precision
        elif isinstance(value, Decimal):
            value = str(value)
        # Convert enum types to strings
        elif isinstance(value, enum.Enum):
            value = value.name
        result[c.key] = value
    return result

__all__ = ['APP_TIMEZONE', 'local_now', 'local_today', 'sqlalchemy_to_dict']
