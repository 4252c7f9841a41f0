from django.urls import path
from . import views

app_name = 'notifications'

urlpatterns = [
    path('', views.event_stream, name='event_stream'),
    path('state/', views.current_state, name='current_state'),
]
