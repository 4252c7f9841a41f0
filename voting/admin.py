from django.contrib import admin
from .models import Vote


@admin.register(Vote)
class VoteAdmin(admin.ModelAdmin):
    list_display = ['id', 'get_voter_name', 'election', 'candidate', 'voted_at']
    list_filter = ['voted_at', 'election']
    search_fields = ['voter__name', 'election__name', 'candidate__name']
    date_hierarchy = 'voted_at'
    readonly_fields = ['election', 'candidate', 'voter', 'voted_at']

    def get_voter_name(self, obj):
        return obj.voter.name
    get_voter_name.short_description = 'Voter'
