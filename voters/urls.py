from django.urls import path
from . import views

app_name = 'voters'

urlpatterns = [
    path('voters/', views.VoterListView.as_view(), name='voter_list'),
    path('voters/import/', views.import_voters, name='import_voters'),
    path('voters/generate-keycode/', views.generate_key_code, name='generate_key_code'),
    path('voters/<int:voter_id>/', views.VoterDetailView.as_view(), name='voter_detail'),
]
