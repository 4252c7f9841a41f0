from django.contrib import admin
from .models import Election, Candidate


class CandidateInline(admin.TabularInline):
    model = Candidate
    extra = 0
    fields = ['name']
    readonly_fields = ['name']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Election)
class ElectionAdmin(admin.ModelAdmin):
    """
    Browse-only view of elections. Creation and closing go through the API so
    the lifecycle rules in ``elections.services`` always apply.
    """
    list_display = ['name', 'status', 'start_datetime', 'close_datetime', 'closed_manually', 'created_at']
    list_filter = ['status', 'closed_manually', 'start_datetime']
    search_fields = ['name']
    date_hierarchy = 'start_datetime'
    ordering = ['-id']
    readonly_fields = ['start_datetime', 'close_datetime', 'status', 'closed_manually', 'created_at']
    inlines = [CandidateInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('name',)
        }),
        ('Schedule', {
            'fields': ('start_datetime', 'close_datetime', 'status', 'closed_manually', 'created_at')
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        # Closed elections are immutable.
        if obj is not None and obj.is_closed():
            return False
        return super().has_change_permission(request, obj)


@admin.register(Candidate)
class CandidateAdmin(admin.ModelAdmin):
    list_display = ['name', 'election', 'get_vote_count']
    list_filter = ['election__status']
    search_fields = ['name', 'election__name']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def get_vote_count(self, obj):
        return obj.votes.count()
    get_vote_count.short_description = 'Votes'
