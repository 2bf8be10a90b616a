# backend/wsgi.py
from nexero import create_app

app = create_app()
