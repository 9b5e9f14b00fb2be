"""
WSGI config for snippetlib project.
"""
import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'snippetlib.settings')
application = get_wsgi_application()
