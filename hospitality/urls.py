"""
Root URL configuration.

Staff and public endpoints live under /api/, the OpenAPI schema and its
Swagger UI under /api/schema/ and /api/docs/.
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('rooms.urls')),
    path('api/', include('pos.urls')),
    path('api/', include('inventory.urls')),
    path('api/', include('billing.urls')),
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='docs'),
]
