"""
SnippetLib URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse
from django.utils import timezone


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'Welcome to Code Snippet Library API',
        'version': '2.0.0',
        'status': 'active',
        'endpoints': {
            'auth': '/api/auth/',
            'snippets': '/api/snippets/',
            'users': '/api/users/',
            'gamification': '/api/gamification/',
            'analytics': '/api/analytics/',
            'playground': '/api/playground/',
        },
        'admin': '/admin/',
    })


def health(request):
    return JsonResponse({
        'status': 'healthy',
        'timestamp': timezone.now().isoformat(),
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('health/', health, name='health'),
    path('admin/', admin.site.urls),
    path('api/', include('snippets.urls')),
]
