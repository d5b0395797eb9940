# backend/wsgi.py
from opsdesk import create_app

app = create_app()
