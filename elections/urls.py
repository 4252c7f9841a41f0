from django.urls import path
from . import views

app_name = 'elections'

urlpatterns = [
    path('current-election/', views.current_election, name='current_election'),
    path('results/latest/', views.latest_results, name='latest_results'),
    path('results/<int:election_id>/', views.election_results, name='election_results'),
]
