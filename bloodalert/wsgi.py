"""
WSGI config for the bloodalert project.

It exposes the WSGI callable as a module-level variable named ``application``.
"""

import os

from dotenv import load_dotenv
from django.core.wsgi import get_wsgi_application

load_dotenv(override=False)

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bloodalert.settings')

application = get_wsgi_application()
