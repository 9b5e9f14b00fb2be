"""
DRF Views
=========

Thin HTTP layer over the service modules. Every response carries
{"success": bool, ...}; failures are rendered by exceptions.custom_exception_handler.

AUTHENTICATION:
---------------
Token (Authorization: Token <key>) or session. Tokens come from
/api/auth/register/ and /api/auth/login/.
"""

from rest_framework import permissions, status
from rest_framework.authtoken.models import Token
from rest_framework.authtoken.serializers import AuthTokenSerializer
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from . import execution, forks, gamification, lifecycle, queries, services
from .models import Profile, user_is_admin
from .serializers import (
    AwardPointsSerializer,
    CodeForkSerializer,
    CommentCreateSerializer,
    CurrentUserSerializer,
    ExecuteSerializer,
    ForkCreateSerializer,
    LeaderboardEntrySerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
    RegisterSerializer,
    SnippetCommentSerializer,
    SnippetDetailSerializer,
    SnippetListSerializer,
    SnippetSubmitSerializer,
    SnippetUpdateSerializer,
)


class IsAdmin(permissions.BasePermission):
    message = 'User role is not authorized to access this route'

    def has_permission(self, request, view):
        return user_is_admin(request.user)


class SnippetPagination(PageNumberPagination):
    """
    Page-number pagination for snippet listings.

    Sort order varies per request (newest/popular/views), so cursor
    pagination's single fixed ordering does not fit here.
    """
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100

    def get_paginated_response(self, data):
        return Response({
            'success': True,
            'count': self.page.paginator.count,
            'next': self.get_next_link(),
            'previous': self.get_previous_link(),
            'snippets': data,
        })


def _detail(snippet, request):
    return SnippetDetailSerializer(snippet, context={'request': request}).data


# ============================================================================
# AUTH
# ============================================================================
class RegisterView(APIView):
    """
    POST /api/auth/register/

    Body: { "username", "email", "password", "github_profile"? }
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        token, _ = Token.objects.get_or_create(user=user)
        return Response({
            'success': True,
            'token': token.key,
            'user': CurrentUserSerializer(user).data
        }, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """POST /api/auth/login/  Body: { "username", "password" }"""
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = AuthTokenSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data['user']
        token, _ = Token.objects.get_or_create(user=user)
        return Response({
            'success': True,
            'token': token.key,
            'user': CurrentUserSerializer(user).data
        })


class MeView(APIView):
    """GET /api/auth/me/"""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response({'success': True, 'user': CurrentUserSerializer(request.user).data})


# ============================================================================
# SNIPPETS
# ============================================================================
class SnippetListView(APIView):
    """
    GET /api/snippets/?lang=&tag=&search=&sort=&page=

    Approved snippets only. sort: newest (default) | oldest | popular | views
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        params = request.query_params
        queryset = queries.list_approved_snippets(
            lang=params.get('lang'),
            tag=params.get('tag'),
            search=params.get('search'),
            sort=params.get('sort'),
        )
        paginator = SnippetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(SnippetListSerializer(page, many=True).data)


class SnippetSubmitView(APIView):
    """POST /api/snippets/submit/"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = SnippetSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        snippet = lifecycle.submit(
            author=request.user,
            title=data['title'],
            problem_description=data['problem_description'],
            language=data['language'],
            code=data['code'],
            tags=data.get('tags'),
        )
        return Response({
            'success': True,
            'message': 'Snippet submitted successfully and is pending approval',
            'snippet': _detail(snippet, request)
        }, status=status.HTTP_201_CREATED)


class SnippetDetailView(APIView):
    """
    GET    /api/snippets/<id>/   fetch and count a view
    PUT    /api/snippets/<id>/   edit (owner or admin)
    DELETE /api/snippets/<id>/   delete (owner or admin)
    """
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get(self, request, snippet_id):
        snippet = lifecycle.view(snippet_id)
        return Response({'success': True, 'snippet': _detail(snippet, request)})

    def put(self, request, snippet_id):
        serializer = SnippetUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        snippet = lifecycle.edit(snippet_id, request.user, serializer.validated_data)
        return Response({
            'success': True,
            'message': 'Snippet updated successfully',
            'snippet': _detail(snippet, request)
        })

    def delete(self, request, snippet_id):
        lifecycle.remove(snippet_id, request.user)
        return Response({'success': True, 'message': 'Snippet deleted successfully'})


class PendingSnippetsView(APIView):
    """GET /api/snippets/pending/all/ (admin)"""
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def get(self, request):
        snippets = queries.list_pending_snippets()
        return Response({
            'success': True,
            'count': len(snippets),
            'snippets': SnippetListSerializer(snippets, many=True).data
        })


class SnippetApproveView(APIView):
    """PATCH /api/snippets/approve/<id>/ (admin)"""
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def patch(self, request, snippet_id):
        snippet = lifecycle.approve(snippet_id, request.user)
        return Response({
            'success': True,
            'message': 'Snippet approved successfully',
            'snippet': _detail(snippet, request)
        })


class SnippetRejectView(APIView):
    """PATCH /api/snippets/reject/<id>/ (admin)"""
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def patch(self, request, snippet_id):
        snippet = lifecycle.reject(snippet_id, request.user)
        return Response({
            'success': True,
            'message': 'Snippet rejected',
            'snippet': _detail(snippet, request)
        })


class UpvoteToggleView(APIView):
    """PATCH /api/snippets/upvote/<id>/"""
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, snippet_id):
        result = services.toggle_upvote(request.user, snippet_id)
        return Response({
            'success': True,
            'upvotes': result.count,
            'upvoted': result.active
        })


class FavoriteToggleView(APIView):
    """PATCH /api/snippets/favorite/<id>/"""
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, snippet_id):
        result = services.toggle_favorite(request.user, snippet_id)
        return Response({
            'success': True,
            'isFavorited': result.active,
            'message': 'Added to favorites' if result.active else 'Removed from favorites'
        })


class CommentCreateView(APIView):
    """
    POST /api/snippets/<id>/comment/

    Body: { "text": "..." }  (1..500 characters)
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, snippet_id):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = lifecycle.add_comment(snippet_id, request.user, serializer.validated_data['text'])
        return Response({
            'success': True,
            'message': 'Comment added successfully',
            'comment': SnippetCommentSerializer(comment).data
        }, status=status.HTTP_201_CREATED)


class CommentDeleteView(APIView):
    """DELETE /api/snippets/<id>/comment/<comment_id>/"""
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, snippet_id, comment_id):
        lifecycle.delete_comment(snippet_id, comment_id, request.user)
        return Response({'success': True, 'message': 'Comment deleted successfully'})


# ============================================================================
# PLAYGROUND
# ============================================================================
class ExecuteView(APIView):
    """
    POST /api/playground/execute/

    Body: { "code", "language", "input"? }
    Returns: { "success": true, "output", "error", "executionTime" }
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = ExecuteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = execution.execute(data['code'], data['language'], data.get('input', ''))
        return Response({'success': True, **result.as_dict()})


class ForkCreateView(APIView):
    """
    POST /api/playground/fork/

    Body: { "snippet_id", "modified_code", "changes", "description"?, "test_results"? }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ForkCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        code_fork = forks.fork(
            snippet_id=data['snippet_id'],
            forker=request.user,
            modified_code=data['modified_code'],
            changes=data['changes'],
            description=data.get('description', ''),
            test_results=data.get('test_results'),
        )
        return Response({
            'success': True,
            'message': 'Fork submitted successfully! The owner will be notified.',
            'fork': CodeForkSerializer(code_fork).data
        }, status=status.HTTP_201_CREATED)


class ForkListView(APIView):
    """GET /api/playground/forks/<snippet_id>/  most voted first, then newest"""
    permission_classes = [permissions.AllowAny]

    def get(self, request, snippet_id):
        fork_list = forks.list_forks(snippet_id)
        return Response({
            'success': True,
            'count': len(fork_list),
            'forks': CodeForkSerializer(fork_list, many=True).data
        })


class ForkVoteView(APIView):
    """PATCH /api/playground/fork/<id>/vote/"""
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, fork_id):
        result = services.toggle_fork_vote(request.user, fork_id)
        return Response({'success': True, 'votes': result.count, 'voted': result.active})


class ForkAcceptView(APIView):
    """PATCH /api/playground/fork/<id>/accept/ (snippet owner)"""
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, fork_id):
        code_fork = forks.accept(fork_id, request.user)
        return Response({
            'success': True,
            'message': 'Fork accepted! Snippet has been updated.',
            'fork': CodeForkSerializer(code_fork).data
        })


class ForkDetailView(APIView):
    """DELETE /api/playground/fork/<id>/ (forker or admin)"""
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, fork_id):
        forks.delete_fork(fork_id, request.user)
        return Response({'success': True, 'message': 'Fork deleted successfully'})


# ============================================================================
# GAMIFICATION
# ============================================================================
class LeaderboardView(APIView):
    """
    GET /api/gamification/leaderboard/?timeframe=all|week|month&limit=10

    limit is clamped to 1..100
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        timeframe = request.query_params.get('timeframe', 'all')
        try:
            limit = int(request.query_params.get('limit', 10))
        except ValueError:
            limit = 10

        leaderboard = gamification.get_leaderboard(timeframe=timeframe, limit=limit)
        return Response({
            'success': True,
            'timeframe': timeframe,
            'count': len(leaderboard),
            'leaderboard': LeaderboardEntrySerializer(leaderboard, many=True).data
        })


class BadgeCatalogueView(APIView):
    """GET /api/gamification/badges/"""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({'success': True, 'badges': gamification.get_badge_catalogue()})


class UserStatsView(APIView):
    """GET /api/gamification/stats/<username>/"""
    permission_classes = [permissions.AllowAny]

    def get(self, request, username):
        return Response({'success': True, 'stats': gamification.get_user_stats(username)})


class AwardPointsView(APIView):
    """
    POST /api/gamification/award-points/ (admin)

    Body: { "user_id", "points", "reason" }
    """
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def post(self, request):
        serializer = AwardPointsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = gamification.award(data['user_id'], data['points'], data['reason'])
        return Response({
            'success': True,
            'message': f"Awarded {result.awarded} points for {data['reason']}",
            'newPoints': result.points,
            'newLevel': result.level,
            'newBadges': result.new_badges
        })


# ============================================================================
# USERS
# ============================================================================
class UserProfileView(APIView):
    """GET /api/users/<username>/"""
    permission_classes = [permissions.AllowAny]

    def get(self, request, username):
        user = queries.get_user_by_username(username)
        profile, _ = Profile.objects.get_or_create(user=user)
        return Response({
            'success': True,
            'user': {
                'id': user.id,
                'username': user.username,
                'date_joined': user.date_joined,
                **ProfileSerializer(profile).data,
                'contributions': SnippetListSerializer(
                    user.contributions.select_related('author').order_by('-created_at'), many=True
                ).data,
                'stats': queries.get_user_profile_stats(user),
            }
        })


class UserSnippetsView(APIView):
    """GET /api/users/<username>/snippets/"""
    permission_classes = [permissions.AllowAny]

    def get(self, request, username):
        user = queries.get_user_by_username(username)
        snippets = queries.list_user_approved_snippets(user)
        return Response({
            'success': True,
            'count': len(snippets),
            'snippets': SnippetListSerializer(snippets, many=True).data
        })


class MyFavoritesView(APIView):
    """GET /api/users/me/favorites/"""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        favorites = queries.list_user_favorites(request.user)
        return Response({
            'success': True,
            'count': len(favorites),
            'favorites': SnippetListSerializer(favorites, many=True).data
        })


class MyProfileView(APIView):
    """PUT /api/users/me/profile/  Body: { "bio"?, "github_profile"? }"""
    permission_classes = [permissions.IsAuthenticated]

    def put(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        profile, _ = Profile.objects.get_or_create(user=request.user)
        for field, value in serializer.validated_data.items():
            setattr(profile, field, value)
        profile.save()
        request.user.profile = profile

        return Response({
            'success': True,
            'message': 'Profile updated successfully',
            'user': CurrentUserSerializer(request.user).data
        })


# ============================================================================
# ANALYTICS
# ============================================================================
class AnalyticsOverviewView(APIView):
    """GET /api/analytics/overview/"""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({'success': True, 'stats': queries.get_platform_overview()})


class LanguageDistributionView(APIView):
    """GET /api/analytics/language-distribution/"""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({'success': True, 'distribution': queries.get_language_distribution()})


class TrendingView(APIView):
    """GET /api/analytics/trending/"""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        snippets = queries.get_trending_snippets()
        return Response({
            'success': True,
            'trending': SnippetListSerializer(snippets, many=True).data
        })
