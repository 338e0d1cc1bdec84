# leadcapture/celery.py

import os
from celery import Celery

# Set default Django settings module
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "leadcapture.settings.local")

app = Celery("leadcapture")

# Load config from Django settings, namespace='CELERY'
# This means all celery-related settings must have CELERY_ prefix
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for tasks.py in each installed app
app.autodiscover_tasks()
