"""
Django Admin Configuration for Snippet Models
"""
from django.contrib import admin
from . import lifecycle
from .models import Profile, Snippet, SnippetComment, CodeFork, PointEvent


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'points', 'level', 'current_streak', 'longest_streak']
    list_filter = ['role']
    search_fields = ['user__username', 'user__email']
    readonly_fields = ['points', 'level', 'badges', 'current_streak', 'longest_streak', 'last_active_date']


@admin.register(Snippet)
class SnippetAdmin(admin.ModelAdmin):
    list_display = ['title', 'author', 'language', 'status', 'upvotes', 'views', 'created_at']
    list_filter = ['status', 'language', 'created_at']
    search_fields = ['title', 'problem_description', 'author__username']
    readonly_fields = ['upvotes', 'views', 'created_at', 'updated_at']
    actions = ['approve_selected', 'reject_selected']

    @admin.action(description='Approve selected snippets')
    def approve_selected(self, request, queryset):
        # Through lifecycle so the author's badges are checked
        for snippet_id in list(queryset.values_list('id', flat=True)):
            lifecycle.approve(snippet_id, request.user)

    @admin.action(description='Reject selected snippets')
    def reject_selected(self, request, queryset):
        for snippet_id in list(queryset.values_list('id', flat=True)):
            lifecycle.reject(snippet_id, request.user)


@admin.register(SnippetComment)
class SnippetCommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'snippet', 'author', 'created_at']
    search_fields = ['text', 'author__username']


@admin.register(CodeFork)
class CodeForkAdmin(admin.ModelAdmin):
    list_display = ['id', 'original_snippet', 'forked_by', 'status', 'votes', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['title', 'changes', 'forked_by__username']
    readonly_fields = ['votes', 'created_at', 'updated_at']


@admin.register(PointEvent)
class PointEventAdmin(admin.ModelAdmin):
    list_display = ['recipient', 'points', 'reason', 'created_at']
    list_filter = ['reason', 'created_at']
    search_fields = ['recipient__username']
    readonly_fields = ['recipient', 'points', 'reason', 'created_at']

    def has_add_permission(self, request):
        # PointEvents should only be created by the system
        return False

    def has_change_permission(self, request, obj=None):
        # PointEvents are immutable
        return False

    def has_delete_permission(self, request, obj=None):
        # PointEvents should never be deleted (audit trail)
        return False
