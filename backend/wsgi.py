# Overview: WSGI entrypoint exposing the Flask application object.

from ledgerpos import create_app

app = create_app()
