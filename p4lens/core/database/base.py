# File: p4lens/core/database/base.py

from sqlalchemy.orm import declarative_base

# The shared registry. All feature models (scan cache today) inherit from this.
Base = declarative_base()
