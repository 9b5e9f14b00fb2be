"""
DRF Serializers
===============

Serializers handle:
1. Shape of incoming data (types, required keys)
2. Transformation of model instances to JSON

Business rules (empty fields, language enum, permissions) live in the
service modules so they hold for every caller, not just HTTP.
"""

from django.contrib.auth.models import User
from rest_framework import serializers

from .models import BIO_MAX_LENGTH, COMMENT_MAX_LENGTH, CodeFork, Profile, Snippet, SnippetComment


class UserSerializer(serializers.ModelSerializer):
    """Minimal user representation for embedding in other objects."""
    github_profile = serializers.CharField(source='profile.github_profile', read_only=True, default='')
    level = serializers.IntegerField(source='profile.level', read_only=True, default=1)

    class Meta:
        model = User
        fields = ['id', 'username', 'github_profile', 'level']
        read_only_fields = fields


class ProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = Profile
        fields = [
            'role',
            'bio',
            'github_profile',
            'points',
            'level',
            'badges',
            'current_streak',
            'longest_streak',
            'last_active_date',
        ]
        read_only_fields = fields


class CurrentUserSerializer(serializers.ModelSerializer):
    profile = ProfileSerializer(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'profile']
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    username = serializers.CharField(min_length=3, max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True)
    github_profile = serializers.URLField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if User.objects.filter(username__iexact=attrs['username']).exists() or \
                User.objects.filter(email__iexact=attrs['email']).exists():
            raise serializers.ValidationError('User with this email or username already exists')
        return attrs

    def create(self, validated_data):
        github_profile = validated_data.pop('github_profile', '')
        user = User.objects.create_user(
            username=validated_data['username'],
            email=validated_data['email'],
            password=validated_data['password']
        )
        if github_profile:
            Profile.objects.filter(user=user).update(github_profile=github_profile)
        return user


class ProfileUpdateSerializer(serializers.Serializer):
    bio = serializers.CharField(max_length=BIO_MAX_LENGTH, required=False, allow_blank=True)
    github_profile = serializers.URLField(required=False, allow_blank=True)


class SnippetCommentSerializer(serializers.ModelSerializer):
    user = UserSerializer(source='author', read_only=True)

    class Meta:
        model = SnippetComment
        fields = ['id', 'user', 'text', 'created_at']
        read_only_fields = fields


class SnippetListSerializer(serializers.ModelSerializer):
    """
    Serializer for list views.

    No comments and no membership sets. Uses select_related('author') in
    the query.
    """
    submitted_by = UserSerializer(source='author', read_only=True)

    class Meta:
        model = Snippet
        fields = [
            'id',
            'title',
            'problem_description',
            'language',
            'tags',
            'submitted_by',
            'status',
            'upvotes',
            'views',
            'created_at',
        ]
        read_only_fields = fields


class SnippetDetailSerializer(serializers.ModelSerializer):
    """Full snippet with code, comments and the viewer's own state."""
    submitted_by = UserSerializer(source='author', read_only=True)
    comments = SnippetCommentSerializer(many=True, read_only=True)
    upvoted_by = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    favorited_by = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    user_upvoted = serializers.SerializerMethodField()
    user_favorited = serializers.SerializerMethodField()

    class Meta:
        model = Snippet
        fields = [
            'id',
            'title',
            'problem_description',
            'language',
            'tags',
            'code',
            'submitted_by',
            'status',
            'upvotes',
            'upvoted_by',
            'favorited_by',
            'views',
            'comments',
            'created_at',
            'updated_at',
            'user_upvoted',
            'user_favorited',
        ]
        read_only_fields = fields

    def _viewer_id(self):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return None
        return request.user.id

    def get_user_upvoted(self, obj):
        viewer_id = self._viewer_id()
        return viewer_id is not None and viewer_id in {u.id for u in obj.upvoted_by.all()}

    def get_user_favorited(self, obj):
        viewer_id = self._viewer_id()
        return viewer_id is not None and viewer_id in {u.id for u in obj.favorited_by.all()}


class SnippetSubmitSerializer(serializers.Serializer):
    """Shape of a submission. Emptiness and the language enum are checked by lifecycle.submit."""
    title = serializers.CharField(allow_blank=True, trim_whitespace=False)
    problem_description = serializers.CharField(allow_blank=True, trim_whitespace=False)
    language = serializers.CharField(allow_blank=True)
    tags = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False, default=list)
    code = serializers.CharField(allow_blank=True, trim_whitespace=False)


class SnippetUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    problem_description = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    language = serializers.CharField(required=False, allow_blank=True)
    tags = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    code = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)


class CommentCreateSerializer(serializers.Serializer):
    text = serializers.CharField(max_length=COMMENT_MAX_LENGTH)


class CodeForkSerializer(serializers.ModelSerializer):
    forked_by = UserSerializer(read_only=True)
    original_snippet = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = CodeFork
        fields = [
            'id',
            'original_snippet',
            'forked_by',
            'title',
            'description',
            'modified_code',
            'language',
            'changes',
            'test_results',
            'votes',
            'status',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ForkCreateSerializer(serializers.Serializer):
    snippet_id = serializers.IntegerField(min_value=1)
    modified_code = serializers.CharField(allow_blank=True, trim_whitespace=False)
    changes = serializers.CharField(allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    test_results = serializers.JSONField(required=False, allow_null=True, default=None)


class ExecuteSerializer(serializers.Serializer):
    code = serializers.CharField(allow_blank=True, trim_whitespace=False)
    language = serializers.CharField()
    input = serializers.CharField(required=False, allow_blank=True, default='', trim_whitespace=False)


class AwardPointsSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
    points = serializers.IntegerField()
    reason = serializers.CharField(max_length=100)


class LeaderboardEntrySerializer(serializers.Serializer):
    """Serializer for leaderboard entries."""
    rank = serializers.IntegerField()
    user_id = serializers.IntegerField()
    username = serializers.CharField()
    points = serializers.IntegerField()
    level = serializers.IntegerField()
    badges = serializers.ListField(child=serializers.CharField())
