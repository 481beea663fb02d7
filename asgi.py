"""
asgi.py -- Application assembly for Libris.

This is the ONLY file that imports from both api/ and web/. It joins the two
independent layers into a single ASGI app without coupling them to each other.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app
from web.routes import router as web_router

app.include_router(web_router, tags=["Web"])
