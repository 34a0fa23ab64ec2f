# extensions.py
from flask import current_app

EXTENSION_KEY = "resumeforge"

def get_services():
    """The Services bundle the running app was built with."""
    return current_app.extensions[EXTENSION_KEY]
