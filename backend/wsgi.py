# backend/wsgi.py
from quarrydesk import create_app

app = create_app()
