"""
WSGI config for the Love Journey project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'lovejourney.settings')

application = get_wsgi_application()
