"""
WSGI config for the foodmarket project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "foodmarket.settings")

application = get_wsgi_application()
