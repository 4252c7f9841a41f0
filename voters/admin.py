from django.contrib import admin
from .models import Voter


@admin.register(Voter)
class VoterAdmin(admin.ModelAdmin):
    list_display = ['name', 'key_code', 'get_vote_count', 'created_at']
    search_fields = ['name', 'key_code']
    date_hierarchy = 'created_at'
    readonly_fields = ['created_at']
    ordering = ['name']

    def get_vote_count(self, obj):
        return obj.votes.count()
    get_vote_count.short_description = 'Votes'
