"""
Data Models for SnippetLib
==========================

Design Philosophy:
------------------
1. Membership sets (upvoters, favoriters, fork voters) are ManyToMany relations
   - The through table IS the set; one row per (user, object) pair
   - Denormalized counters (upvotes, votes) sit next to them for sorting
   - Counters are only written by services.py, inside the same transaction
     that changes the set, and always recomputed from the set

2. Favorites are a single relation read from both sides
   - Snippet.favorited_by and User.favorite_snippets are the same rows
   - U in S.favorited_by <=> S in U.favorites holds by construction

3. Contributions are the reverse side of Snippet.author
   - Deleting a snippet drops it from the author's contributions

4. PointEvent is an append-only log of gamification awards
   - Profile.points is the running total used for levels and rank
   - Time-windowed leaderboards aggregate PointEvent rows

Indexes Strategy:
-----------------
- snippet.status + snippet.created_at: public listing and moderation queue
- snippet.upvotes / snippet.views: "popular" and "views" sorts
- codefork.original_snippet + votes + created_at: fork listing order
- pointevent.created_at + recipient: week/month leaderboard aggregation
"""

from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MaxLengthValidator
from django.utils import timezone


# ============================================================================
# POINT CONSTANTS
# ============================================================================
POINTS_SUBMIT = 20
POINTS_FORK = 10
POINTS_FORK_ACCEPTED = 50

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000
COMMENT_MAX_LENGTH = 500
BIO_MAX_LENGTH = 200


class Profile(models.Model):
    """
    Gamification and profile state attached to Django's built-in User.

    Created automatically by the post_save signal in signals.py.
    """

    class Role(models.TextChoices):
        USER = 'user', 'User'
        ADMIN = 'admin', 'Admin'

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    role = models.CharField(
        max_length=10,
        choices=Role.choices,
        default=Role.USER
    )
    bio = models.CharField(max_length=BIO_MAX_LENGTH, blank=True, default='')
    github_profile = models.URLField(blank=True, default='')

    points = models.PositiveIntegerField(default=0, db_index=True)
    level = models.PositiveIntegerField(default=1)
    # Badge ids in the order they were earned. Never shrinks.
    badges = models.JSONField(default=list, blank=True)

    current_streak = models.PositiveIntegerField(default=0)
    longest_streak = models.PositiveIntegerField(default=0)
    last_active_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=['-points', 'user'], name='profile_points_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} (level {self.level}, {self.points} pts)"

    @property
    def is_admin(self) -> bool:
        return (
            self.role == self.Role.ADMIN
            or self.user.is_staff
            or self.user.is_superuser
        )


def user_is_admin(user) -> bool:
    """Admin check that tolerates users created before their profile."""
    if user is None or not user.is_authenticated:
        return False
    if user.is_staff or user.is_superuser:
        return True
    profile = Profile.objects.filter(user_id=user.id).only('role').first()
    return profile is not None and profile.role == Profile.Role.ADMIN


class Snippet(models.Model):
    """
    A moderated code sample.

    Status flow: pending -> approved | rejected, and back to pending whenever
    a non-admin edits it or an accepted fork rewrites its code.
    """

    class Language(models.TextChoices):
        CPP = 'cpp', 'C++'
        PYTHON = 'python', 'Python'
        JAVASCRIPT = 'javascript', 'JavaScript'
        JAVA = 'java', 'Java'
        C = 'c', 'C'
        GO = 'go', 'Go'
        RUST = 'rust', 'Rust'
        TYPESCRIPT = 'typescript', 'TypeScript'
        PHP = 'php', 'PHP'
        RUBY = 'ruby', 'Ruby'

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'

    title = models.CharField(max_length=TITLE_MAX_LENGTH)
    problem_description = models.TextField(
        validators=[MaxLengthValidator(DESCRIPTION_MAX_LENGTH)]
    )
    language = models.CharField(
        max_length=20,
        choices=Language.choices,
        db_index=True
    )
    # Lowercase, stripped, de-duplicated
    tags = models.JSONField(default=list, blank=True)
    code = models.TextField()

    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='contributions',
        db_index=True
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )

    views = models.PositiveIntegerField(default=0, db_index=True)

    upvotes = models.PositiveIntegerField(default=0, db_index=True)
    upvoted_by = models.ManyToManyField(
        User,
        related_name='upvoted_snippets',
        blank=True
    )
    favorited_by = models.ManyToManyField(
        User,
        related_name='favorite_snippets',
        blank=True
    )

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', '-created_at'], name='snippet_status_created_idx'),
        ]

    def __str__(self):
        return f"{self.title[:50]} ({self.language}) by {self.author.username}"


class SnippetComment(models.Model):
    """Flat comment on a snippet, deletable by its author or an admin."""
    snippet = models.ForeignKey(
        Snippet,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='snippet_comments'
    )
    text = models.CharField(max_length=COMMENT_MAX_LENGTH)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['snippet', 'created_at'], name='comment_snippet_created_idx'),
        ]

    def __str__(self):
        return f"Comment by {self.author.username} on snippet {self.snippet_id}"


class CodeFork(models.Model):
    """
    A community modification of a snippet's code.

    pending --accept (snippet owner)--> accepted   (terminal)
    Votes never change status. Deleting a fork removes it entirely.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        ACCEPTED = 'accepted', 'Accepted'
        REJECTED = 'rejected', 'Rejected'

    original_snippet = models.ForeignKey(
        Snippet,
        on_delete=models.CASCADE,
        related_name='forks'
    )
    forked_by = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='forks'
    )
    title = models.CharField(max_length=200, blank=True, default='')
    description = models.TextField(blank=True, default='')
    modified_code = models.TextField()
    language = models.CharField(max_length=20, blank=True, default='')
    changes = models.TextField()
    test_results = models.JSONField(null=True, blank=True, default=None)

    votes = models.PositiveIntegerField(default=0)
    voted_by = models.ManyToManyField(
        User,
        related_name='fork_votes',
        blank=True
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING
    )

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        # Most voted first, then newest; id breaks exact timestamp ties
        ordering = ['-votes', '-created_at', '-id']
        indexes = [
            models.Index(fields=['original_snippet', '-votes', '-created_at'], name='fork_listing_idx'),
        ]

    def __str__(self):
        return f"Fork {self.id} of snippet {self.original_snippet_id} by {self.forked_by.username}"


class PointEvent(models.Model):
    """
    Append-only log of point awards.

    NEVER update or delete rows. Profile.points is the running total; this
    table answers "how many points in the last N days".
    """
    recipient = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='point_events',
        db_index=True
    )
    points = models.PositiveIntegerField()
    reason = models.CharField(max_length=100)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=['created_at', 'recipient'], name='pointevent_window_idx'),
            models.Index(fields=['recipient', '-created_at'], name='pointevent_history_idx'),
        ]

    def __str__(self):
        return f"{self.recipient.username} +{self.points} ({self.reason})"
