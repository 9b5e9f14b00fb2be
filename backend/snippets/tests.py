"""
Tests for the snippet library

Focus areas:
1. Vote / favorite toggles (set and counter stay in sync)
2. Snippet lifecycle and moderation
3. Fork workflow (accept applies once)
4. Gamification (points, levels, badges, rank, leaderboard)
5. Execution proxy (language mapping, response normalization, failures)
6. HTTP layer (response envelope, permissions)
"""

from datetime import date, timedelta
from io import StringIO
from unittest.mock import MagicMock, patch

import requests
from django.contrib.admin import site
from django.contrib.auth.models import User
from django.core.management import call_command
from django.db import DatabaseError, connection
from django.db.models import Q
from django.test import RequestFactory, TestCase
from django.utils import timezone
from rest_framework.test import APIClient, APITestCase

from . import execution, forks, gamification, lifecycle, queries, services
from .admin import SnippetAdmin
from .exceptions import (
    AuthorizationError,
    ExecutionServiceError,
    NotFoundError,
    UnsupportedLanguageError,
    ValidationError,
)
from .models import (
    POINTS_FORK,
    POINTS_FORK_ACCEPTED,
    POINTS_SUBMIT,
    CodeFork,
    PointEvent,
    Profile,
    Snippet,
    SnippetComment,
)


def make_snippet(author, status=Snippet.Status.APPROVED, **overrides):
    """Insert a snippet directly, bypassing submit() and its point award."""
    fields = {
        'title': 'Two Sum',
        'problem_description': 'Find two numbers adding up to target',
        'language': 'python',
        'tags': ['arrays'],
        'code': 'print(1)',
    }
    fields.update(overrides)
    return Snippet.objects.create(author=author, status=status, **fields)


def piston_session(body):
    """A requests.Session stand-in whose POST returns `body` as JSON."""
    session = MagicMock()
    session.post.return_value.json.return_value = body
    return session


class ProfileSignalTestCase(TestCase):

    def test_profile_created_with_user(self):
        user = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.assertEqual(user.profile.role, Profile.Role.USER)
        self.assertEqual(user.profile.points, 0)
        self.assertEqual(user.profile.level, 1)
        self.assertEqual(user.profile.badges, [])

    def test_superuser_gets_admin_role(self):
        admin = User.objects.create_superuser('root', 'r@test.com', 'pass')
        self.assertEqual(admin.profile.role, Profile.Role.ADMIN)


class ToggleTestCase(TestCase):
    """
    Toggles keep membership and counter in sync.

    CRITICAL: These tests verify that:
    1. Toggling twice restores the original state
    2. The counter always equals the size of the set
    3. Favorites are visible from both the snippet and the user
    """

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.voter = User.objects.create_user('voter', 'v@test.com', 'pass')
        self.other = User.objects.create_user('other', 'o@test.com', 'pass')
        self.snippet = make_snippet(self.author)

    def test_upvote_adds_and_counts(self):
        result = services.toggle_upvote(self.voter, self.snippet.id)

        self.assertTrue(result.active)
        self.assertEqual(result.count, 1)
        self.snippet.refresh_from_db()
        self.assertEqual(self.snippet.upvotes, 1)
        self.assertIn(self.voter, self.snippet.upvoted_by.all())

    def test_double_upvote_restores_state(self):
        services.toggle_upvote(self.voter, self.snippet.id)
        result = services.toggle_upvote(self.voter, self.snippet.id)

        self.assertFalse(result.active)
        self.assertEqual(result.count, 0)
        self.snippet.refresh_from_db()
        self.assertEqual(self.snippet.upvotes, 0)
        self.assertFalse(self.snippet.upvoted_by.exists())

    def test_counter_matches_set_size(self):
        services.toggle_upvote(self.voter, self.snippet.id)
        services.toggle_upvote(self.other, self.snippet.id)
        services.toggle_upvote(self.author, self.snippet.id)
        services.toggle_upvote(self.other, self.snippet.id)

        self.snippet.refresh_from_db()
        self.assertEqual(self.snippet.upvotes, self.snippet.upvoted_by.count())
        self.assertEqual(self.snippet.upvotes, 2)

    def test_upvote_missing_snippet(self):
        with self.assertRaises(NotFoundError):
            services.toggle_upvote(self.voter, 999999)

    def test_favorite_visible_from_both_sides(self):
        result = services.toggle_favorite(self.voter, self.snippet.id)

        self.assertTrue(result.active)
        self.assertIn(self.voter, self.snippet.favorited_by.all())
        self.assertIn(self.snippet, self.voter.favorite_snippets.all())

        result = services.toggle_favorite(self.voter, self.snippet.id)

        self.assertFalse(result.active)
        self.assertNotIn(self.voter, self.snippet.favorited_by.all())
        self.assertNotIn(self.snippet, self.voter.favorite_snippets.all())

    def test_fork_votes_from_three_users(self):
        code_fork = CodeFork.objects.create(
            original_snippet=self.snippet,
            forked_by=self.other,
            title='Improved: Two Sum',
            modified_code='print(2)',
            language='python',
            changes='faster'
        )
        for user in (self.author, self.voter, self.other):
            services.toggle_fork_vote(user, code_fork.id)

        code_fork.refresh_from_db()
        self.assertEqual(code_fork.votes, 3)
        self.assertEqual(code_fork.status, CodeFork.Status.PENDING)

        result = services.toggle_fork_vote(self.voter, code_fork.id)
        self.assertEqual(result.count, 2)
        self.assertFalse(result.active)


class SnippetLifecycleTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.stranger = User.objects.create_user('stranger', 's@test.com', 'pass')
        self.admin = User.objects.create_superuser('admin', 'admin@test.com', 'pass')

    def _submit(self, **overrides):
        fields = {
            'title': 'Two Sum',
            'problem_description': 'Find two numbers adding up to target',
            'language': 'python',
            'code': 'print(1)',
            'tags': ['Arrays', 'arrays', ' hashmap '],
        }
        fields.update(overrides)
        return lifecycle.submit(author=self.author, **fields)

    def test_submit_is_pending_with_normalized_language(self):
        snippet = self._submit(language='PYTHON')

        self.assertEqual(snippet.status, Snippet.Status.PENDING)
        self.assertEqual(snippet.language, 'python')
        self.assertEqual(snippet.tags, ['arrays', 'hashmap'])
        self.assertIn(snippet, self.author.contributions.all())

    def test_submit_awards_points(self):
        self._submit()
        self.author.profile.refresh_from_db()
        self.assertEqual(self.author.profile.points, POINTS_SUBMIT)
        self.assertEqual(self.author.profile.current_streak, 1)

    def test_submit_rejects_blank_fields(self):
        with self.assertRaises(ValidationError):
            self._submit(title='   ')
        with self.assertRaises(ValidationError):
            self._submit(code='')
        with self.assertRaises(ValidationError):
            self._submit(language='cobol')
        self.assertFalse(Snippet.objects.exists())

    def test_title_too_long(self):
        with self.assertRaises(ValidationError):
            self._submit(title='x' * 101)

    def test_non_admin_edit_resets_to_pending(self):
        snippet = make_snippet(self.author)

        edited = lifecycle.edit(snippet.id, self.author, {'code': 'print(2)'})

        self.assertEqual(edited.status, Snippet.Status.PENDING)
        self.assertEqual(edited.code, 'print(2)')

    def test_admin_edit_keeps_status(self):
        snippet = make_snippet(self.author)

        edited = lifecycle.edit(snippet.id, self.admin, {'title': 'Better title'})

        self.assertEqual(edited.status, Snippet.Status.APPROVED)
        self.assertEqual(edited.title, 'Better title')

    def test_edit_by_stranger_forbidden(self):
        snippet = make_snippet(self.author)
        with self.assertRaises(AuthorizationError):
            lifecycle.edit(snippet.id, self.stranger, {'title': 'Mine now'})

    def test_approve_requires_admin(self):
        snippet = self._submit()
        with self.assertRaises(AuthorizationError):
            lifecycle.approve(snippet.id, self.author)

        approved = lifecycle.approve(snippet.id, self.admin)
        self.assertEqual(approved.status, Snippet.Status.APPROVED)

    def test_reject(self):
        snippet = self._submit()
        rejected = lifecycle.reject(snippet.id, self.admin)
        self.assertEqual(rejected.status, Snippet.Status.REJECTED)

    def test_remove_cascades(self):
        snippet = make_snippet(self.author)
        lifecycle.add_comment(snippet.id, self.stranger, 'Nice')
        forks.fork(snippet.id, self.stranger, 'print(3)', 'shorter')

        lifecycle.remove(snippet.id, self.author)

        self.assertFalse(Snippet.objects.filter(id=snippet.id).exists())
        self.assertFalse(SnippetComment.objects.exists())
        self.assertFalse(CodeFork.objects.exists())
        self.assertFalse(self.author.contributions.exists())

    def test_remove_by_stranger_forbidden(self):
        snippet = make_snippet(self.author)
        with self.assertRaises(AuthorizationError):
            lifecycle.remove(snippet.id, self.stranger)

    def test_view_increments_counter(self):
        snippet = make_snippet(self.author)

        viewed = lifecycle.view(snippet.id)

        self.assertEqual(viewed.views, 1)
        snippet.refresh_from_db()
        self.assertEqual(snippet.views, 1)

    def test_view_survives_counter_failure(self):
        snippet = make_snippet(self.author)

        with patch('django.db.models.query.QuerySet.update', side_effect=DatabaseError('locked')):
            viewed = lifecycle.view(snippet.id)

        self.assertEqual(viewed.id, snippet.id)
        self.assertEqual(viewed.views, 0)

    def test_view_missing_snippet(self):
        with self.assertRaises(NotFoundError):
            lifecycle.view(999999)

    def test_comment_length_limit(self):
        snippet = make_snippet(self.author)
        with self.assertRaises(ValidationError):
            lifecycle.add_comment(snippet.id, self.stranger, 'x' * 501)

    def test_delete_comment_permissions(self):
        snippet = make_snippet(self.author)
        comment = lifecycle.add_comment(snippet.id, self.stranger, 'Nice')

        with self.assertRaises(AuthorizationError):
            lifecycle.delete_comment(snippet.id, comment.id, self.author)

        lifecycle.delete_comment(snippet.id, comment.id, self.admin)
        self.assertFalse(SnippetComment.objects.exists())


class ForkWorkflowTestCase(TestCase):

    def setUp(self):
        self.owner = User.objects.create_user('owner', 'o@test.com', 'pass')
        self.forker = User.objects.create_user('forker', 'f@test.com', 'pass')
        self.snippet = make_snippet(self.owner, language='rust', code='fn main() {}')

    def test_fork_copies_language_and_awards_points(self):
        code_fork = forks.fork(self.snippet.id, self.forker, 'fn main() { }', 'formatting')

        self.assertEqual(code_fork.language, 'rust')
        self.assertEqual(code_fork.title, 'Improved: Two Sum')
        self.assertEqual(code_fork.status, CodeFork.Status.PENDING)
        self.forker.profile.refresh_from_db()
        self.assertEqual(self.forker.profile.points, POINTS_FORK)

    def test_fork_requires_changes(self):
        with self.assertRaises(ValidationError):
            forks.fork(self.snippet.id, self.forker, 'fn main() {}', '  ')

    def test_fork_missing_snippet(self):
        with self.assertRaises(NotFoundError):
            forks.fork(999999, self.forker, 'x', 'y')

    def test_accept_writes_back_and_resets_parent(self):
        code_fork = forks.fork(self.snippet.id, self.forker, 'fn main() { println!("hi"); }', 'greeting')

        accepted = forks.accept(code_fork.id, self.owner)

        self.assertEqual(accepted.status, CodeFork.Status.ACCEPTED)
        self.snippet.refresh_from_db()
        self.assertEqual(self.snippet.code, 'fn main() { println!("hi"); }')
        self.assertEqual(self.snippet.status, Snippet.Status.PENDING)
        self.forker.profile.refresh_from_db()
        self.assertEqual(self.forker.profile.points, POINTS_FORK + POINTS_FORK_ACCEPTED)

    def test_second_accept_changes_nothing(self):
        code_fork = forks.fork(self.snippet.id, self.forker, 'fn main() { }', 'formatting')
        forks.accept(code_fork.id, self.owner)

        with self.assertRaises(NotFoundError):
            forks.accept(code_fork.id, self.owner)

        self.forker.profile.refresh_from_db()
        self.assertEqual(self.forker.profile.points, POINTS_FORK + POINTS_FORK_ACCEPTED)

    def test_only_owner_can_accept(self):
        code_fork = forks.fork(self.snippet.id, self.forker, 'fn main() { }', 'formatting')

        with self.assertRaises(AuthorizationError):
            forks.accept(code_fork.id, self.forker)

        code_fork.refresh_from_db()
        self.assertEqual(code_fork.status, CodeFork.Status.PENDING)

    def test_list_forks_most_voted_first(self):
        first = forks.fork(self.snippet.id, self.forker, 'a', 'one')
        second = forks.fork(self.snippet.id, self.forker, 'b', 'two')
        services.toggle_fork_vote(self.owner, first.id)

        listed = forks.list_forks(self.snippet.id)

        self.assertEqual([f.id for f in listed], [first.id, second.id])

    def test_list_forks_equal_votes_newest_first(self):
        """
        Equal votes fall back to created_at desc, then id desc.

        Setup:
        - oldest: 1 vote, created 2 hours ago
        - newest: 1 vote, created 1 hour ago
        - twin_a / twin_b: 1 vote, same created_at 3 hours ago
        """
        now = timezone.now()
        oldest = forks.fork(self.snippet.id, self.forker, 'a', 'one')
        newest = forks.fork(self.snippet.id, self.forker, 'b', 'two')
        twin_a = forks.fork(self.snippet.id, self.forker, 'c', 'three')
        twin_b = forks.fork(self.snippet.id, self.forker, 'd', 'four')
        CodeFork.objects.filter(id=oldest.id).update(created_at=now - timedelta(hours=2))
        CodeFork.objects.filter(id=newest.id).update(created_at=now - timedelta(hours=1))
        CodeFork.objects.filter(id__in=[twin_a.id, twin_b.id]).update(created_at=now - timedelta(hours=3))
        for code_fork in (oldest, newest, twin_a, twin_b):
            services.toggle_fork_vote(self.owner, code_fork.id)

        listed = forks.list_forks(self.snippet.id)

        self.assertEqual(
            [f.id for f in listed],
            [newest.id, oldest.id, twin_b.id, twin_a.id]
        )

    def test_list_forks_votes_beat_recency(self):
        older = forks.fork(self.snippet.id, self.forker, 'a', 'one')
        newer = forks.fork(self.snippet.id, self.forker, 'b', 'two')
        CodeFork.objects.filter(id=older.id).update(created_at=timezone.now() - timedelta(days=1))
        services.toggle_fork_vote(self.owner, older.id)
        services.toggle_fork_vote(self.forker, older.id)
        services.toggle_fork_vote(self.owner, newer.id)

        listed = forks.list_forks(self.snippet.id)

        self.assertEqual([f.id for f in listed], [older.id, newer.id])

    def test_delete_fork_by_forker(self):
        code_fork = forks.fork(self.snippet.id, self.forker, 'a', 'one')
        with self.assertRaises(AuthorizationError):
            forks.delete_fork(code_fork.id, self.owner)
        forks.delete_fork(code_fork.id, self.forker)
        self.assertFalse(CodeFork.objects.exists())


class GamificationTestCase(TestCase):
    """
    Points, levels and badges.

    CRITICAL: These tests verify that:
    1. Points never go down through award()
    2. Level follows the threshold table
    3. Badges are never taken away
    """

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.admin = User.objects.create_superuser('admin', 'admin@test.com', 'pass')

    def test_level_thresholds(self):
        self.assertEqual(gamification.level_for_points(0), 1)
        self.assertEqual(gamification.level_for_points(49), 1)
        self.assertEqual(gamification.level_for_points(50), 2)
        self.assertEqual(gamification.level_for_points(2999), 9)
        self.assertEqual(gamification.level_for_points(3000), 10)
        self.assertEqual(gamification.level_for_points(3999), 10)
        self.assertEqual(gamification.level_for_points(4000), 11)

    def test_award_updates_points_and_level(self):
        result = gamification.award(self.user.id, 160, 'bonus')

        self.assertEqual(result.points, 160)
        self.assertEqual(result.level, 3)
        self.assertTrue(result.leveled_up)
        self.assertEqual(PointEvent.objects.filter(recipient=self.user).count(), 1)

    def test_award_rejects_non_positive_points(self):
        for points in (0, -5, True, 1.5):
            with self.assertRaises(ValidationError):
                gamification.award(self.user.id, points, 'bad')

        self.user.profile.refresh_from_db()
        self.assertEqual(self.user.profile.points, 0)
        self.assertFalse(PointEvent.objects.exists())

    def test_award_unknown_user(self):
        with self.assertRaises(NotFoundError):
            gamification.award(999999, 10, 'ghost')

    def test_rising_star_on_level_ten(self):
        result = gamification.award(self.user.id, 3000, 'bonus')
        self.assertIn('rising_star', result.new_badges)

    def test_badges_are_permanent(self):
        snippet = make_snippet(self.user, status=Snippet.Status.PENDING)
        lifecycle.approve(snippet.id, self.admin)
        self.user.profile.refresh_from_db()
        self.assertIn('first_snippet', self.user.profile.badges)

        snippet.delete()
        new_badges = gamification.check_badges(self.user.id)

        self.assertEqual(new_badges, [])
        self.user.profile.refresh_from_db()
        self.assertIn('first_snippet', self.user.profile.badges)

    def test_check_badges_reports_only_new(self):
        make_snippet(self.user)
        self.assertEqual(gamification.check_badges(self.user.id), ['first_snippet'])
        self.assertEqual(gamification.check_badges(self.user.id), [])

    def test_streak_bookkeeping(self):
        start = date(2024, 3, 1)
        gamification.record_activity(self.user.id, start)
        gamification.record_activity(self.user.id, start + timedelta(days=1))
        gamification.record_activity(self.user.id, start + timedelta(days=1))
        profile = gamification.record_activity(self.user.id, start + timedelta(days=2))
        self.assertEqual(profile.current_streak, 3)

        profile = gamification.record_activity(self.user.id, start + timedelta(days=5))
        self.assertEqual(profile.current_streak, 1)
        self.assertEqual(profile.longest_streak, 3)

    def test_badge_catalogue(self):
        ids = [badge['id'] for badge in gamification.get_badge_catalogue()]
        self.assertEqual(len(ids), 9)
        self.assertIn('legend', ids)


class LeaderboardTestCase(TestCase):

    def setUp(self):
        self.user1 = User.objects.create_user('user1', 'u1@test.com', 'pass')
        self.user2 = User.objects.create_user('user2', 'u2@test.com', 'pass')
        self.user3 = User.objects.create_user('user3', 'u3@test.com', 'pass')

    def test_all_time_ordering_and_ties(self):
        gamification.award(self.user1.id, 100, 'a')
        gamification.award(self.user2.id, 100, 'b')
        gamification.award(self.user3.id, 300, 'c')

        leaderboard = gamification.get_leaderboard()

        self.assertEqual(
            [(e['username'], e['rank']) for e in leaderboard],
            [('user3', 1), ('user1', 2), ('user2', 2)]
        )

    def test_rank_counts_strictly_greater(self):
        gamification.award(self.user1.id, 100, 'a')
        gamification.award(self.user2.id, 100, 'b')
        gamification.award(self.user3.id, 300, 'c')

        self.assertEqual(gamification.rank(self.user3.id), 1)
        self.assertEqual(gamification.rank(self.user1.id), 2)
        self.assertEqual(gamification.rank(self.user2.id), 2)

    def test_week_excludes_old_points(self):
        PointEvent.objects.create(
            recipient=self.user1,
            points=500,
            reason='old',
            created_at=timezone.now() - timedelta(days=10)
        )
        PointEvent.objects.create(recipient=self.user2, points=20, reason='new')

        week = gamification.get_leaderboard('week')
        month = gamification.get_leaderboard('month')

        self.assertEqual([e['username'] for e in week], ['user2'])
        self.assertEqual([e['username'] for e in month], ['user1', 'user2'])

    def test_invalid_timeframe(self):
        with self.assertRaises(ValidationError):
            gamification.get_leaderboard('year')

    def test_limit(self):
        for user in (self.user1, self.user2, self.user3):
            gamification.award(user.id, 10, 'x')
        self.assertEqual(len(gamification.get_leaderboard(limit=2)), 2)

    def test_user_points_window(self):
        gamification.award(self.user1.id, 30, 'recent')
        PointEvent.objects.create(
            recipient=self.user1,
            points=70,
            reason='old',
            created_at=timezone.now() - timedelta(days=3)
        )
        self.assertEqual(gamification.get_user_points(self.user1.id, days=1), 30)


class QueriesTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.py = make_snippet(self.author, title='Django ORM tricks', tags=['django'], upvotes=5)
        self.go = make_snippet(self.author, title='Goroutines', language='go', tags=['go'], views=50)
        make_snippet(self.author, status=Snippet.Status.PENDING, title='Hidden')

    def test_only_approved_listed(self):
        titles = {s.title for s in queries.list_approved_snippets()}
        self.assertEqual(titles, {'Django ORM tricks', 'Goroutines'})

    def test_filter_by_tag_matches_whole_tag(self):
        result = list(queries.list_approved_snippets(tag='go'))
        self.assertEqual(result, [self.go])

    def test_filter_by_non_ascii_tag(self):
        cafe = make_snippet(self.author, title='Café menu', tags=['café', 'résumé'])

        self.assertEqual(list(queries.list_approved_snippets(tag='café')), [cafe])
        self.assertEqual(list(queries.list_approved_snippets(tag='CAFÉ')), [cafe])
        self.assertEqual(list(queries.list_approved_snippets(tag='caf')), [])

    def test_tag_filter_uses_containment_when_supported(self):
        with patch.object(connection.features, 'supports_json_field_contains', True):
            condition = queries._tag_filter('café')
        self.assertEqual(condition, Q(tags__contains=['café']))

        with patch.object(connection.features, 'supports_json_field_contains', False):
            condition = queries._tag_filter('go')
        self.assertEqual(condition, Q(tags__icontains='"go"'))

    def test_filter_by_language_and_search(self):
        self.assertEqual(list(queries.list_approved_snippets(lang='GO')), [self.go])
        self.assertEqual(list(queries.list_approved_snippets(search='orm')), [self.py])

    def test_sort_options(self):
        self.assertEqual(list(queries.list_approved_snippets(sort='popular'))[0], self.py)
        self.assertEqual(list(queries.list_approved_snippets(sort='views'))[0], self.go)
        with self.assertRaises(ValidationError):
            queries.list_approved_snippets(sort='random')

    def test_profile_stats(self):
        stats = queries.get_user_profile_stats(self.author)
        self.assertEqual(stats['totalContributions'], 3)
        self.assertEqual(stats['approvedSnippets'], 2)
        self.assertEqual(stats['totalUpvotes'], 5)

    def test_language_distribution(self):
        distribution = queries.get_language_distribution()
        self.assertEqual(
            sorted((d['language'], d['count']) for d in distribution),
            [('go', 1), ('python', 1)]
        )


class ExecutionTestCase(TestCase):

    def test_rust_maps_to_piston_rust(self):
        session = piston_session({'run': {'stdout': 'hi\n', 'stderr': '', 'code': 0}})

        result = execution.execute('fn main() {}', 'Rust', session=session)

        payload = session.post.call_args.kwargs['json']
        self.assertEqual(payload['language'], 'rust')
        self.assertEqual(payload['files'][0]['name'], 'code.rs')
        self.assertEqual(result.output, 'hi\n')
        self.assertIsNone(result.error)

    def test_nonzero_exit_with_stderr_is_error(self):
        session = piston_session({'run': {'stdout': '', 'stderr': 'Traceback...', 'code': 1}})

        result = execution.execute('raise SystemExit(1)', 'python', session=session)

        self.assertIsNone(result.output)
        self.assertEqual(result.error, 'Traceback...')

    def test_compile_error_without_run_stage(self):
        """A failed compile comes back with no run stage at all."""
        session = piston_session({
            'language': 'c',
            'version': '10.2.0',
            'compile': {'stdout': '', 'stderr': 'error: expected ;', 'code': 1, 'signal': None},
        })

        result = execution.execute('int main() {', 'c', session=session)

        self.assertEqual(result.error, 'error: expected ;')
        self.assertIsNone(result.output)

    def test_compile_error_falls_back_to_output(self):
        session = piston_session({'compile': {'stdout': '', 'stderr': '', 'output': 'bad syntax', 'code': 1}})

        result = execution.execute('fn main() {', 'rust', session=session)

        self.assertEqual(result.error, 'bad syntax')

    def test_successful_compile_then_run(self):
        session = piston_session({
            'compile': {'stdout': '', 'stderr': '', 'code': 0},
            'run': {'stdout': 'ok\n', 'stderr': '', 'code': 0},
        })

        result = execution.execute('int main() { puts("ok"); }', 'c', session=session)

        self.assertEqual(result.output, 'ok\n')
        self.assertIsNone(result.error)

    def test_empty_stdout_message(self):
        session = piston_session({'run': {'stdout': '', 'stderr': '', 'code': 0}})
        result = execution.execute('x = 1', 'python', session=session)
        self.assertEqual(result.output, execution.NO_OUTPUT_MESSAGE)

    def test_unsupported_language_makes_no_request(self):
        session = MagicMock()

        with self.assertRaises(UnsupportedLanguageError):
            execution.execute('DISPLAY "HI".', 'cobol', session=session)

        session.post.assert_not_called()

    def test_network_error(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError('connection refused')

        with self.assertRaises(ExecutionServiceError):
            execution.execute('print(1)', 'python', session=session)

    def test_timeout(self):
        session = MagicMock()
        session.post.side_effect = requests.Timeout()

        with self.assertRaises(ExecutionServiceError):
            execution.execute('while True: pass', 'python', session=session)

    def test_malformed_body(self):
        session = piston_session({'message': 'runtime unknown'})

        with self.assertRaises(ExecutionServiceError) as ctx:
            execution.execute('print(1)', 'python', session=session)
        self.assertEqual(ctx.exception.message, 'runtime unknown')

    def test_blank_code(self):
        with self.assertRaises(ValidationError):
            execution.execute('   ', 'python', session=MagicMock())


class SnippetAPITestCase(APITestCase):
    """HTTP layer: status codes and the {"success": ...} envelope."""

    def setUp(self):
        self.client = APIClient()
        self.author = User.objects.create_user('author', 'a@test.com', 'pass1234')
        self.viewer = User.objects.create_user('viewer', 'v@test.com', 'pass1234')
        self.admin = User.objects.create_superuser('admin', 'admin@test.com', 'pass1234')
        self.snippet = make_snippet(self.author)

    def test_register_and_login(self):
        response = self.client.post('/api/auth/register/', {
            'username': 'newbie',
            'email': 'n@test.com',
            'password': 'secret1'
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data['success'])
        self.assertTrue(response.data['token'])

        response = self.client.post('/api/auth/login/', {
            'username': 'newbie',
            'password': 'secret1'
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['user']['username'], 'newbie')

    def test_duplicate_registration(self):
        response = self.client.post('/api/auth/register/', {
            'username': 'author',
            'email': 'other@test.com',
            'password': 'secret1'
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data['success'])

    def test_list_envelope(self):
        make_snippet(self.author, status=Snippet.Status.PENDING, title='Hidden')

        response = self.client.get('/api/snippets/')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['snippets'][0]['submitted_by']['username'], 'author')

    def test_detail_counts_view(self):
        response = self.client.get(f'/api/snippets/{self.snippet.id}/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['snippet']['views'], 1)
        self.assertFalse(response.data['snippet']['user_upvoted'])

    def test_missing_snippet_is_404_envelope(self):
        response = self.client.get('/api/snippets/999999/')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {'success': False, 'message': 'Snippet not found'})

    def test_submit_requires_auth(self):
        response = self.client.post('/api/snippets/submit/', {}, format='json')
        self.assertIn(response.status_code, (401, 403))
        self.assertFalse(response.data['success'])

    def test_submit(self):
        self.client.force_authenticate(self.viewer)

        response = self.client.post('/api/snippets/submit/', {
            'title': 'Hello',
            'problem_description': 'Say hello',
            'language': 'JavaScript',
            'code': 'console.log("hi")',
            'tags': ['basics']
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['snippet']['status'], 'pending')
        self.assertEqual(response.data['snippet']['language'], 'javascript')

    def test_submit_blank_title_is_400(self):
        self.client.force_authenticate(self.viewer)

        response = self.client.post('/api/snippets/submit/', {
            'title': '',
            'problem_description': 'Say hello',
            'language': 'python',
            'code': 'print(1)'
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('title', response.data['errors'])

    def test_upvote_toggle(self):
        self.client.force_authenticate(self.viewer)
        url = f'/api/snippets/upvote/{self.snippet.id}/'

        first = self.client.patch(url)
        second = self.client.patch(url)

        self.assertEqual(first.data, {'success': True, 'upvotes': 1, 'upvoted': True})
        self.assertEqual(second.data, {'success': True, 'upvotes': 0, 'upvoted': False})

    def test_favorite_and_list(self):
        self.client.force_authenticate(self.viewer)

        response = self.client.patch(f'/api/snippets/favorite/{self.snippet.id}/')
        self.assertTrue(response.data['isFavorited'])

        response = self.client.get('/api/users/me/favorites/')
        self.assertEqual(response.data['count'], 1)

    def test_approve_requires_admin(self):
        self.client.force_authenticate(self.author)
        response = self.client.patch(f'/api/snippets/approve/{self.snippet.id}/')
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.data['success'])

        self.client.force_authenticate(self.admin)
        response = self.client.patch(f'/api/snippets/approve/{self.snippet.id}/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['snippet']['status'], 'approved')

    def test_comment_create_and_delete(self):
        self.client.force_authenticate(self.viewer)

        response = self.client.post(
            f'/api/snippets/{self.snippet.id}/comment/', {'text': 'Nice one'}, format='json'
        )
        self.assertEqual(response.status_code, 201)
        comment_id = response.data['comment']['id']

        response = self.client.delete(f'/api/snippets/{self.snippet.id}/comment/{comment_id}/')
        self.assertEqual(response.status_code, 200)

    def test_fork_vote_accept_flow(self):
        self.client.force_authenticate(self.viewer)
        response = self.client.post('/api/playground/fork/', {
            'snippet_id': self.snippet.id,
            'modified_code': 'print(2)',
            'changes': 'prints two'
        }, format='json')
        self.assertEqual(response.status_code, 201)
        fork_id = response.data['fork']['id']

        response = self.client.patch(f'/api/playground/fork/{fork_id}/vote/')
        self.assertEqual(response.data['votes'], 1)

        response = self.client.patch(f'/api/playground/fork/{fork_id}/accept/')
        self.assertEqual(response.status_code, 403)

        self.client.force_authenticate(self.author)
        response = self.client.patch(f'/api/playground/fork/{fork_id}/accept/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['fork']['status'], 'accepted')

        response = self.client.patch(f'/api/playground/fork/{fork_id}/accept/')
        self.assertEqual(response.status_code, 404)

        response = self.client.get(f'/api/playground/forks/{self.snippet.id}/')
        self.assertEqual(response.data['count'], 1)

    def test_execute(self):
        session = piston_session({'run': {'stdout': '3\n', 'stderr': '', 'code': 0}})

        with patch('snippets.execution._get_session', return_value=session):
            response = self.client.post('/api/playground/execute/', {
                'code': 'print(1 + 2)',
                'language': 'python'
            }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['output'], '3\n')
        self.assertIsNone(response.data['error'])
        self.assertTrue(response.data['executionTime'].endswith('ms'))

    def test_execute_compile_error_is_not_a_server_error(self):
        session = piston_session({'compile': {'stdout': '', 'stderr': 'error: expected ;', 'code': 1}})

        with patch('snippets.execution._get_session', return_value=session):
            response = self.client.post('/api/playground/execute/', {
                'code': 'int main() {',
                'language': 'c'
            }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
        self.assertIsNone(response.data['output'])
        self.assertEqual(response.data['error'], 'error: expected ;')

    def test_execute_unsupported_language(self):
        session = MagicMock()

        with patch('snippets.execution._get_session', return_value=session):
            response = self.client.post('/api/playground/execute/', {
                'code': 'DISPLAY "HI".',
                'language': 'cobol'
            }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Execution for cobol is not supported yet')
        session.post.assert_not_called()

    def test_execute_service_down(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError('connection refused')

        with patch('snippets.execution._get_session', return_value=session):
            response = self.client.post('/api/playground/execute/', {
                'code': 'print(1)',
                'language': 'python'
            }, format='json')

        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.data['success'])
        self.assertIsNone(response.data['output'])
        self.assertIn('connection refused', response.data['error'])

    def test_leaderboard_and_stats(self):
        gamification.award(self.author.id, 120, 'seed')

        response = self.client.get('/api/gamification/leaderboard/?timeframe=all')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['leaderboard'][0]['username'], 'author')

        response = self.client.get('/api/gamification/leaderboard/?timeframe=year')
        self.assertEqual(response.status_code, 400)

        response = self.client.get('/api/gamification/stats/author/')
        self.assertEqual(response.data['stats']['rank'], 1)
        self.assertEqual(response.data['stats']['level'], 2)

    def test_award_points_admin_only(self):
        payload = {'user_id': self.viewer.id, 'points': 60, 'reason': 'helpful review'}

        self.client.force_authenticate(self.viewer)
        response = self.client.post('/api/gamification/award-points/', payload, format='json')
        self.assertEqual(response.status_code, 403)

        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/gamification/award-points/', payload, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['newPoints'], 60)
        self.assertEqual(response.data['newLevel'], 2)

    def test_user_profile(self):
        response = self.client.get('/api/users/author/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['user']['stats']['approvedSnippets'], 1)

        response = self.client.get('/api/users/nobody/')
        self.assertEqual(response.status_code, 404)

    def test_update_my_profile(self):
        self.client.force_authenticate(self.viewer)
        response = self.client.put('/api/users/me/profile/', {'bio': 'I write Go'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['user']['profile']['bio'], 'I write Go')

    def test_analytics(self):
        response = self.client.get('/api/analytics/overview/')
        self.assertEqual(response.data['stats']['totalSnippets'], 1)

        response = self.client.get('/api/analytics/language-distribution/')
        self.assertEqual(response.data['distribution'], [{'language': 'python', 'count': 1}])

        response = self.client.get('/api/analytics/trending/')
        self.assertEqual(len(response.data['trending']), 1)


class SnippetAdminActionTestCase(TestCase):
    """Bulk moderation from the Django admin goes through lifecycle."""

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.admin = User.objects.create_superuser('admin', 'admin@test.com', 'pass')
        self.model_admin = SnippetAdmin(Snippet, site)
        self.request = RequestFactory().post('/admin/snippets/snippet/')
        self.request.user = self.admin

    def test_approve_selected_runs_badge_check(self):
        snippet = make_snippet(self.author, status=Snippet.Status.PENDING)

        self.model_admin.approve_selected(self.request, Snippet.objects.filter(id=snippet.id))

        snippet.refresh_from_db()
        self.assertEqual(snippet.status, Snippet.Status.APPROVED)
        self.author.profile.refresh_from_db()
        self.assertIn('first_snippet', self.author.profile.badges)

    def test_reject_selected(self):
        first = make_snippet(self.author, status=Snippet.Status.PENDING)
        second = make_snippet(self.author, status=Snippet.Status.PENDING)

        self.model_admin.reject_selected(self.request, Snippet.objects.filter(status=Snippet.Status.PENDING))

        self.assertEqual(
            set(Snippet.objects.filter(status=Snippet.Status.REJECTED).values_list('id', flat=True)),
            {first.id, second.id}
        )


class SeedCommandTestCase(TestCase):

    def test_seed_creates_data_through_services(self):
        out = StringIO()
        call_command('seed_data', users=3, snippets=4, stdout=out)

        self.assertEqual(Snippet.objects.count(), 4)
        self.assertTrue(User.objects.filter(username='admin', is_superuser=True).exists())
        for snippet in Snippet.objects.all():
            self.assertEqual(snippet.upvotes, snippet.upvoted_by.count())
        self.assertIn('Successfully created', out.getvalue())
