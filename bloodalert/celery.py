import os

from celery import Celery
from dotenv import load_dotenv


load_dotenv(override=False)


os.environ.setdefault("DJANGO_SETTINGS_MODULE", "bloodalert.settings")

app = Celery("bloodalert")

# Load any CELERY_* settings from Django settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from installed apps
app.autodiscover_tasks()
