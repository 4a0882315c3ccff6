# backend/wsgi.py
from stationpos import create_app

app = create_app()
