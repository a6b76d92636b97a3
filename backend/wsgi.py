# backend/wsgi.py
from adminku import create_app

app = create_app()
