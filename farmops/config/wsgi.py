"""
WSGI config for the farmops project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'farmops.config.settings')

application = get_wsgi_application()
