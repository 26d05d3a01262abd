# backend/wsgi.py
# Entry point for `flask --app wsgi <command>` and WSGI servers.
from rbac_admin import create_app

app = create_app()
