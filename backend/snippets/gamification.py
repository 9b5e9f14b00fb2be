"""
Gamification Engine
===================

Points, levels, badges, streaks and the leaderboard.

RULES:
------
- Snippet submitted: +20 points
- Snippet forked: +10 points to the forker
- Fork accepted by the snippet owner: +50 points to the forker
- Points only ever go up through award(); level is a monotonic step
  function of total points
- Badges are one-time unlocks. check_badges() only adds, never removes

LEADERBOARD:
------------
- timeframe=all: rank by Profile.points (running total)
- timeframe=week|month: rank by SUM(PointEvent.points) in the last 7|30 days
  This leverages the index: (created_at, recipient)
- Ties are ordered by user id and share a rank (1, 2, 2, 4)
"""

import logging
from bisect import bisect_right
from datetime import timedelta
from typing import List, Optional, TypedDict

from django.contrib.auth.models import User
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from .exceptions import NotFoundError, ValidationError
from .models import PointEvent, Profile, Snippet, SnippetComment

logger = logging.getLogger(__name__)


# ============================================================================
# LEVELS
# ============================================================================
# Minimum points for levels 1..10. Past the table, one level per 1000 points.
LEVEL_THRESHOLDS = [0, 50, 150, 300, 500, 800, 1200, 1700, 2300, 3000]
POINTS_PER_LEVEL_AFTER_TABLE = 1000


def level_for_points(points: int) -> int:
    """
    Level for a point total.

    >>> level_for_points(0), level_for_points(50), level_for_points(4000)
    (1, 2, 11)
    """
    points = max(points, 0)
    top = LEVEL_THRESHOLDS[-1]
    if points >= top:
        return len(LEVEL_THRESHOLDS) + (points - top) // POINTS_PER_LEVEL_AFTER_TABLE
    return bisect_right(LEVEL_THRESHOLDS, points)


# ============================================================================
# BADGES
# ============================================================================
class BadgeStats(TypedDict):
    """Aggregates a user's badges are judged on."""
    total_snippets: int
    approved_snippets: int
    total_upvotes: int
    total_views: int
    comments: int
    longest_streak: int
    level: int


class Badge:
    """A badge definition: display data plus the unlock predicate."""

    def __init__(self, badge_id, name, icon, description, requirement, predicate):
        self.id = badge_id
        self.name = name
        self.icon = icon
        self.description = description
        self.requirement = requirement
        self.predicate = predicate

    def is_earned(self, stats: BadgeStats) -> bool:
        return bool(self.predicate(stats))

    def as_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'icon': self.icon,
            'description': self.description,
            'requirement': self.requirement,
        }


BADGES = [
    Badge('first_snippet', 'First Snippet', '🎯', 'Had your first snippet approved', '1 approved snippet',
          lambda s: s['approved_snippets'] >= 1),
    Badge('contributor', 'Contributor', '⭐', 'Created 10 snippets', '10 snippets',
          lambda s: s['total_snippets'] >= 10),
    Badge('code_master', 'Code Master', '🏆', 'Created 50 snippets', '50 snippets',
          lambda s: s['total_snippets'] >= 50),
    Badge('popular', 'Popular', '🔥', 'Received 100+ upvotes', '100 upvotes',
          lambda s: s['total_upvotes'] >= 100),
    Badge('influencer', 'Influencer', '💎', 'Received 1000+ views', '1000 views',
          lambda s: s['total_views'] >= 1000),
    Badge('consistent', 'Consistent', '⚡', '7 day contribution streak', '7 day streak',
          lambda s: s['longest_streak'] >= 7),
    Badge('helpful', 'Helpful', '💬', 'Made 50+ comments', '50 comments',
          lambda s: s['comments'] >= 50),
    Badge('rising_star', 'Rising Star', '🌟', 'Reached level 10', 'Level 10',
          lambda s: s['level'] >= 10),
    Badge('legend', 'Legend', '👑', 'Reached level 50', 'Level 50',
          lambda s: s['level'] >= 50),
]

BADGES_BY_ID = {badge.id: badge for badge in BADGES}


def get_badge_catalogue() -> List[dict]:
    return [badge.as_dict() for badge in BADGES]


def get_badge_stats(profile: Profile) -> BadgeStats:
    """
    Aggregate the numbers badges are judged on.

    Query: 2 (one aggregate over the user's snippets, one comment count)
    """
    snippet_stats = Snippet.objects.filter(author_id=profile.user_id).aggregate(
        total=Count('id'),
        approved=Count('id', filter=Q(status=Snippet.Status.APPROVED)),
        upvotes=Coalesce(Sum('upvotes'), 0),
        views=Coalesce(Sum('views'), 0),
    )
    comments = SnippetComment.objects.filter(author_id=profile.user_id).count()

    return {
        'total_snippets': snippet_stats['total'],
        'approved_snippets': snippet_stats['approved'],
        'total_upvotes': snippet_stats['upvotes'],
        'total_views': snippet_stats['views'],
        'comments': comments,
        'longest_streak': profile.longest_streak,
        'level': profile.level,
    }


# ============================================================================
# PROFILE ACCESS
# ============================================================================
def _locked_profile(user_id: int) -> Profile:
    """
    Fetch a user's profile with a row lock. Must run inside transaction.atomic().

    Users created before the profile signal was wired get a profile here.
    """
    profile = Profile.objects.select_for_update().filter(user_id=user_id).first()
    if profile is not None:
        return profile
    if not User.objects.filter(id=user_id).exists():
        raise NotFoundError(f"User {user_id} not found")
    profile, _ = Profile.objects.get_or_create(user_id=user_id)
    return profile


class AwardResult:
    """Outcome of an award() call."""
    def __init__(
        self,
        points: int,
        level: int,
        previous_level: int,
        awarded: int,
        new_badges: Optional[List[str]] = None
    ):
        self.points = points
        self.level = level
        self.previous_level = previous_level
        self.awarded = awarded
        self.new_badges = new_badges or []

    @property
    def leveled_up(self) -> bool:
        return self.level > self.previous_level


def award(user_id: int, points: int, reason: str) -> AwardResult:
    """
    Add points to a user's running total.

    OPERATION:
    1. Lock the profile row
    2. Add points, recompute level
    3. Append a PointEvent (for week/month leaderboards)
    4. Evaluate badges

    Raises ValidationError for non-positive or non-integer points, so the
    total can never go down through this path.
    """
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise ValidationError('Points must be a positive integer')
    reason = (reason or '').strip()[:100] or 'unspecified'

    with transaction.atomic():
        profile = _locked_profile(user_id)
        previous_level = profile.level

        profile.points += points
        profile.level = level_for_points(profile.points)
        profile.save(update_fields=['points', 'level'])

        PointEvent.objects.create(
            recipient_id=user_id,
            points=points,
            reason=reason
        )

        new_badges = check_badges(user_id)

    logger.info(
        "Awarded %s points to user %s for %s (total=%s, level=%s)",
        points, user_id, reason, profile.points, profile.level
    )
    return AwardResult(
        points=profile.points,
        level=profile.level,
        previous_level=previous_level,
        awarded=points,
        new_badges=new_badges
    )


def check_badges(user_id: int) -> List[str]:
    """
    Evaluate every badge predicate and store the newly earned ones.

    Returns only badges that were not held before this call. Badges already
    held are kept even if the underlying stat has since dropped.
    """
    with transaction.atomic():
        profile = _locked_profile(user_id)
        held = set(profile.badges or [])
        stats = get_badge_stats(profile)

        newly_earned = [
            badge.id for badge in BADGES
            if badge.id not in held and badge.is_earned(stats)
        ]
        if newly_earned:
            profile.badges = list(profile.badges or []) + newly_earned
            profile.save(update_fields=['badges'])

    if newly_earned:
        logger.info("User %s unlocked badges: %s", user_id, ', '.join(newly_earned))
    return newly_earned


def record_activity(user_id: int, day=None) -> Profile:
    """
    Streak bookkeeping for a contribution made on `day` (defaults to today).

    Same day: unchanged. Next day: streak + 1. Any gap: streak restarts at 1.
    """
    day = day or timezone.localdate()
    with transaction.atomic():
        profile = _locked_profile(user_id)
        last = profile.last_active_date

        if last == day:
            return profile
        if last is not None and last > day:
            # Out-of-order timestamp; nothing to extend
            return profile

        if last is not None and day - last == timedelta(days=1):
            profile.current_streak += 1
        else:
            profile.current_streak = 1
        profile.longest_streak = max(profile.longest_streak, profile.current_streak)
        profile.last_active_date = day
        profile.save(update_fields=['current_streak', 'longest_streak', 'last_active_date'])

    return profile


# ============================================================================
# RANK & LEADERBOARD
# ============================================================================
def rank(user_id: int) -> int:
    """
    1 + number of users with strictly more points.

    Users with equal points get the same rank.
    """
    profile = Profile.objects.filter(user_id=user_id).only('points').first()
    if profile is None:
        raise NotFoundError(f"User {user_id} not found")
    return Profile.objects.filter(points__gt=profile.points).count() + 1


class LeaderboardEntry(TypedDict):
    """Type hint for leaderboard entries."""
    rank: int
    user_id: int
    username: str
    points: int
    level: int
    badges: List[str]


TIMEFRAME_DAYS = {
    'week': 7,
    'month': 30,
}
MAX_LEADERBOARD_LIMIT = 100


def _assign_ranks(rows: List[dict]) -> List[LeaderboardEntry]:
    """Competition ranking over rows already sorted by points desc."""
    result: List[LeaderboardEntry] = []
    previous_points = None
    current_rank = 0
    for position, row in enumerate(rows, start=1):
        if row['points'] != previous_points:
            current_rank = position
            previous_points = row['points']
        result.append({'rank': current_rank, **row})
    return result


def get_leaderboard(timeframe: str = 'all', limit: int = 10) -> List[LeaderboardEntry]:
    """
    Top users by points.

    DJANGO ORM QUERY (week/month):
    ------------------------------
    PointEvent.objects
        .filter(created_at__gte=cutoff)
        .values('recipient_id')
        .annotate(total=Sum('points'))
        .order_by('-total', 'recipient_id')[:limit]
    """
    limit = max(1, min(int(limit), MAX_LEADERBOARD_LIMIT))

    if timeframe == 'all':
        profiles = (
            Profile.objects
            .select_related('user')
            .order_by('-points', 'user_id')[:limit]
        )
        rows = [
            {
                'user_id': p.user_id,
                'username': p.user.username,
                'points': p.points,
                'level': p.level,
                'badges': list(p.badges or []),
            }
            for p in profiles
        ]
        return _assign_ranks(rows)

    if timeframe not in TIMEFRAME_DAYS:
        raise ValidationError(
            f"Invalid timeframe '{timeframe}'. Use one of: all, {', '.join(TIMEFRAME_DAYS)}"
        )

    cutoff = timezone.now() - timedelta(days=TIMEFRAME_DAYS[timeframe])
    totals = list(
        PointEvent.objects
        .filter(created_at__gte=cutoff)
        .values('recipient_id', 'recipient__username')
        .annotate(total=Sum('points'))
        .order_by('-total', 'recipient_id')[:limit]
    )
    profiles = {
        p.user_id: p
        for p in Profile.objects.filter(user_id__in=[t['recipient_id'] for t in totals])
    }

    rows = []
    for entry in totals:
        profile = profiles.get(entry['recipient_id'])
        rows.append({
            'user_id': entry['recipient_id'],
            'username': entry['recipient__username'],
            'points': entry['total'] or 0,
            'level': profile.level if profile else 1,
            'badges': list(profile.badges or []) if profile else [],
        })
    return _assign_ranks(rows)


def get_user_points(user_id: int, days: Optional[int] = None) -> int:
    """Points a user earned in the last `days` days, or in total when None."""
    if days is None:
        profile = Profile.objects.filter(user_id=user_id).only('points').first()
        return profile.points if profile else 0

    cutoff = timezone.now() - timedelta(days=days)
    result = (
        PointEvent.objects
        .filter(recipient_id=user_id, created_at__gte=cutoff)
        .aggregate(total=Coalesce(Sum('points'), 0))
    )
    return result['total']


def get_user_stats(username: str) -> dict:
    """Gamification stats for a profile page, including rank."""
    profile = (
        Profile.objects
        .select_related('user')
        .filter(user__username=username)
        .first()
    )
    if profile is None:
        raise NotFoundError('User not found')

    return {
        'user_id': profile.user_id,
        'username': profile.user.username,
        'points': profile.points,
        'level': profile.level,
        'badges': list(profile.badges or []),
        'current_streak': profile.current_streak,
        'longest_streak': profile.longest_streak,
        'rank': rank(profile.user_id),
        'stats': get_badge_stats(profile),
    }
