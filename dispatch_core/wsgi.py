"""
WSGI entry point for the DISPATCH driver agent.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dispatch_core.settings')

application = get_wsgi_application()
