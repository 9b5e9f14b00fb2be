"""
Snippets App URL Configuration
"""
from django.urls import path
from .views import (
    RegisterView,
    LoginView,
    MeView,
    SnippetListView,
    SnippetSubmitView,
    SnippetDetailView,
    PendingSnippetsView,
    SnippetApproveView,
    SnippetRejectView,
    UpvoteToggleView,
    FavoriteToggleView,
    CommentCreateView,
    CommentDeleteView,
    ExecuteView,
    ForkCreateView,
    ForkListView,
    ForkVoteView,
    ForkAcceptView,
    ForkDetailView,
    LeaderboardView,
    BadgeCatalogueView,
    UserStatsView,
    AwardPointsView,
    UserProfileView,
    UserSnippetsView,
    MyFavoritesView,
    MyProfileView,
    AnalyticsOverviewView,
    LanguageDistributionView,
    TrendingView,
)

urlpatterns = [
    # Auth
    path('auth/register/', RegisterView.as_view(), name='register'),
    path('auth/login/', LoginView.as_view(), name='login'),
    path('auth/me/', MeView.as_view(), name='me'),

    # Snippets
    path('snippets/', SnippetListView.as_view(), name='snippet-list'),
    path('snippets/submit/', SnippetSubmitView.as_view(), name='snippet-submit'),
    path('snippets/pending/all/', PendingSnippetsView.as_view(), name='snippet-pending'),
    path('snippets/<int:snippet_id>/', SnippetDetailView.as_view(), name='snippet-detail'),
    path('snippets/upvote/<int:snippet_id>/', UpvoteToggleView.as_view(), name='snippet-upvote'),
    path('snippets/favorite/<int:snippet_id>/', FavoriteToggleView.as_view(), name='snippet-favorite'),
    path('snippets/approve/<int:snippet_id>/', SnippetApproveView.as_view(), name='snippet-approve'),
    path('snippets/reject/<int:snippet_id>/', SnippetRejectView.as_view(), name='snippet-reject'),
    path('snippets/<int:snippet_id>/comment/', CommentCreateView.as_view(), name='comment-create'),
    path(
        'snippets/<int:snippet_id>/comment/<int:comment_id>/',
        CommentDeleteView.as_view(),
        name='comment-delete'
    ),

    # Playground
    path('playground/execute/', ExecuteView.as_view(), name='playground-execute'),
    path('playground/fork/', ForkCreateView.as_view(), name='fork-create'),
    path('playground/forks/<int:snippet_id>/', ForkListView.as_view(), name='fork-list'),
    path('playground/fork/<int:fork_id>/', ForkDetailView.as_view(), name='fork-detail'),
    path('playground/fork/<int:fork_id>/vote/', ForkVoteView.as_view(), name='fork-vote'),
    path('playground/fork/<int:fork_id>/accept/', ForkAcceptView.as_view(), name='fork-accept'),

    # Gamification
    path('gamification/leaderboard/', LeaderboardView.as_view(), name='leaderboard'),
    path('gamification/badges/', BadgeCatalogueView.as_view(), name='badges'),
    path('gamification/stats/<str:username>/', UserStatsView.as_view(), name='user-stats'),
    path('gamification/award-points/', AwardPointsView.as_view(), name='award-points'),

    # Users ("me" routes first so they are not read as a username)
    path('users/me/favorites/', MyFavoritesView.as_view(), name='my-favorites'),
    path('users/me/profile/', MyProfileView.as_view(), name='my-profile'),
    path('users/<str:username>/', UserProfileView.as_view(), name='user-profile'),
    path('users/<str:username>/snippets/', UserSnippetsView.as_view(), name='user-snippets'),

    # Analytics
    path('analytics/overview/', AnalyticsOverviewView.as_view(), name='analytics-overview'),
    path(
        'analytics/language-distribution/',
        LanguageDistributionView.as_view(),
        name='analytics-languages'
    ),
    path('analytics/trending/', TrendingView.as_view(), name='analytics-trending'),
]
