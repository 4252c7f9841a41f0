from django.urls import path
from . import views

app_name = 'elections_admin'

urlpatterns = [
    path('elections/', views.ElectionListCreateView.as_view(), name='election_list'),
    path('elections/<int:election_id>/', views.ElectionDetailView.as_view(), name='election_detail'),
    path('elections/<int:election_id>/close/', views.CloseElectionView.as_view(), name='close_election'),
    path('elections/<int:election_id>/detailed-results/', views.detailed_results, name='detailed_results'),
]
