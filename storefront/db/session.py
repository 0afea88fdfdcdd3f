# storefront/db/session.py
from sqlalchemy.orm import declarative_base

# Declarative base shared by the models and Alembic's autogenerate.
Base = declarative_base()
