# backend/wsgi.py
from imeipos import create_app

app = create_app()
