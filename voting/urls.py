from django.urls import path
from . import views

app_name = 'voting'

urlpatterns = [
    path('vote/', views.CastVoteView.as_view(), name='cast_vote'),
]
