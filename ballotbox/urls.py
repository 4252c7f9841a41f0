from django.contrib import admin
from django.urls import include, path

from . import views_health

urlpatterns = [
    path('django-admin/', admin.site.urls),
    path('healthz', views_health.healthz, name='healthz'),
    path('readyz', views_health.readyz, name='readyz'),

    # Public API
    path('api/', include('elections.urls')),
    path('api/', include('voting.urls')),
    path('api/events/', include('notifications.urls')),

    # Admin API (shared admin key)
    path('api/admin/', include('elections.admin_urls')),
    path('api/admin/', include('voters.urls')),
]
