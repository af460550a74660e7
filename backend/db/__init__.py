# Load the engine, Base and every model up front so that importing any
# single model module never sees a half-initialized registry.
from db import database  # noqa: F401
