# routes/loops/__init__.py
"""
Loop API Routes Package
All routes require an authenticated user; agents only see their own loops.

This package splits the loop routes into logical modules:
- crud.py: Loop CRUD operations (list, create, get, update, delete, archive)
- api.py: Dashboard and export endpoints (stats, closing, CSV, PDF)
- images.py: Loop image serving and removal
"""

from flask import Blueprint

# Create the blueprint - all sub-modules will register routes on this
loops_bp = Blueprint('loops', __name__, url_prefix='/api/loops')

# Import all route modules AFTER blueprint creation
# Each module imports loops_bp and registers routes on it
from . import crud
from . import api
from . import images
