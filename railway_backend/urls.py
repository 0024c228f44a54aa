"""
URL configuration for railway_backend project.
"""
from django.urls import path, include
from django.http import JsonResponse
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView


def api_root(request):
    """Root API endpoint showing available endpoints."""
    return JsonResponse({
        'message': 'Welcome to the Railway Reservation API',
        'version': '1.0',
        'documentation': {
            'swagger_ui': '/api/docs/',
            'redoc': '/api/docs/redoc/',
            'openapi_schema': '/api/schema/',
        },
        'endpoints': {
            'auth': '/api/register/, /api/login/, /api/logout/, /api/admin/login/, /api/admin/logout/',
            'profile': '/api/profile/, /api/profile/password/',
            'trains': '/api/trains/, /api/trains/search/, /api/trains/<number>/',
            'bookings': '/api/bookings/stage/, /api/bookings/confirm/, /api/bookings/my/',
            'health': '/api/health/',
        }
    })


urlpatterns = [
    path('', api_root, name='api_root'),

    # API Documentation (Swagger UI)
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/docs/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),

    # API Endpoints
    path('api/', include('core.urls')),
    path('api/trains/', include('trains.urls')),
    path('api/bookings/', include('bookings.urls')),
]
