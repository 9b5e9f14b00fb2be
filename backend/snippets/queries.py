"""
Read Queries
============

Listing, profile and analytics queries. Nothing here writes.

Every list query joins the author and the author's profile, so serializing
N snippets costs one query, not N+1.
"""

import json
from datetime import timedelta
from typing import Optional

from django.contrib.auth.models import User
from django.db import connection
from django.db.models import Count, Q, QuerySet, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from .exceptions import NotFoundError, ValidationError
from .models import Snippet

SORT_OPTIONS = {
    'newest': ('-created_at', '-id'),
    'oldest': ('created_at', 'id'),
    'popular': ('-upvotes', '-created_at', '-id'),
    'views': ('-views', '-created_at', '-id'),
}


def _tag_filter(tag: str) -> Q:
    """
    Match snippets whose tag list holds `tag` as a whole element.

    Tags are stored lowercase. PostgreSQL and MySQL test JSON containment
    directly. SQLite has no JSON containment, so the quoted element is
    matched in the stored text; both sides go through the same json.dumps
    escaping, so non-ASCII tags still match.
    """
    if connection.features.supports_json_field_contains:
        return Q(tags__contains=[tag])
    return Q(tags__icontains=json.dumps(tag))


def list_approved_snippets(
    lang: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None
) -> QuerySet:
    """
    Approved snippets for the public listing.

    - lang: exact language, case-insensitive
    - tag: snippets carrying this tag, case-insensitive
    - search: substring of title or problem description, case-insensitive
    - sort: newest (default) | oldest | popular | views
    """
    sort = sort or 'newest'
    if sort not in SORT_OPTIONS:
        raise ValidationError(f"Invalid sort '{sort}'. Use one of: {', '.join(SORT_OPTIONS)}")

    queryset = (
        Snippet.objects
        .filter(status=Snippet.Status.APPROVED)
        .select_related('author', 'author__profile')
    )

    if lang:
        queryset = queryset.filter(language=lang.strip().lower())

    if tag:
        queryset = queryset.filter(_tag_filter(tag.strip().lower()))

    if search:
        queryset = queryset.filter(
            Q(title__icontains=search) | Q(problem_description__icontains=search)
        )

    return queryset.order_by(*SORT_OPTIONS[sort])


def list_pending_snippets() -> QuerySet:
    """Moderation queue, newest first."""
    return (
        Snippet.objects
        .filter(status=Snippet.Status.PENDING)
        .select_related('author', 'author__profile')
        .order_by('-created_at', '-id')
    )


def get_user_by_username(username: str) -> User:
    user = User.objects.select_related('profile').filter(username=username).first()
    if user is None:
        raise NotFoundError('User not found')
    return user


def get_user_profile_stats(user: User) -> dict:
    """
    Contribution stats shown on a profile page.

    Query: 1 (conditional aggregates over the user's snippets)
    """
    stats = Snippet.objects.filter(author=user).aggregate(
        total=Count('id'),
        approved=Count('id', filter=Q(status=Snippet.Status.APPROVED)),
        upvotes=Coalesce(Sum('upvotes', filter=Q(status=Snippet.Status.APPROVED)), 0),
    )
    return {
        'totalContributions': stats['total'],
        'approvedSnippets': stats['approved'],
        'totalUpvotes': stats['upvotes'],
    }


def list_user_approved_snippets(user: User) -> QuerySet:
    return (
        Snippet.objects
        .filter(author=user, status=Snippet.Status.APPROVED)
        .select_related('author', 'author__profile')
        .order_by('-created_at', '-id')
    )


def list_user_favorites(user: User) -> QuerySet:
    return user.favorite_snippets.select_related('author', 'author__profile').order_by('-created_at', '-id')


# ============================================================================
# ANALYTICS
# ============================================================================
def get_platform_overview() -> dict:
    approved = Snippet.objects.filter(status=Snippet.Status.APPROVED).aggregate(
        total=Count('id'),
        views=Coalesce(Sum('views'), 0),
        upvotes=Coalesce(Sum('upvotes'), 0),
    )
    return {
        'totalUsers': User.objects.count(),
        'totalSnippets': approved['total'],
        'totalViews': approved['views'],
        'totalUpvotes': approved['upvotes'],
    }


def get_language_distribution() -> list:
    """Approved snippets per language, most common first."""
    rows = (
        Snippet.objects
        .filter(status=Snippet.Status.APPROVED)
        .values('language')
        .annotate(count=Count('id'))
        .order_by('-count', 'language')
    )
    return [{'language': row['language'], 'count': row['count']} for row in rows]


def get_trending_snippets(days: int = 7, limit: int = 10) -> QuerySet:
    """Approved snippets from the last `days` days, by views then upvotes."""
    cutoff = timezone.now() - timedelta(days=days)
    return (
        Snippet.objects
        .filter(status=Snippet.Status.APPROVED, created_at__gte=cutoff)
        .select_related('author', 'author__profile')
        .order_by('-views', '-upvotes', '-id')[:limit]
    )
