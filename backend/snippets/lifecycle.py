"""
Snippet Lifecycle Manager
=========================

Submission, moderation, editing, deletion, views and comments.

STATUS FLOW:
------------
    submit ──> pending ──approve──> approved
                  │   └──reject───> rejected
                  ▲
                  └── any non-admin edit, or an accepted fork

ORDER OF CHECKS:
----------------
1. Existence (NotFoundError)
2. Permission (AuthorizationError)
3. Input (ValidationError)
4. Writes, inside one transaction
"""

import logging
from typing import Iterable, Optional

from django.contrib.auth.models import User
from django.db import DatabaseError, transaction
from django.db.models import F

from . import gamification
from .exceptions import AuthorizationError, NotFoundError, ValidationError
from .models import (
    COMMENT_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    POINTS_SUBMIT,
    TITLE_MAX_LENGTH,
    Snippet,
    SnippetComment,
    user_is_admin,
)

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = frozenset(Snippet.Language.values)
EDITABLE_FIELDS = ('title', 'problem_description', 'language', 'tags', 'code')


# ============================================================================
# INPUT NORMALIZATION
# ============================================================================
def normalize_language(language) -> str:
    if not isinstance(language, str) or not language.strip():
        raise ValidationError('Please specify a language', {'language': ['This field is required.']})
    value = language.strip().lower()
    if value not in SUPPORTED_LANGUAGES:
        raise ValidationError(
            'Invalid language',
            {'language': [f"'{language}' is not one of: {', '.join(sorted(SUPPORTED_LANGUAGES))}"]}
        )
    return value


def normalize_tags(tags: Optional[Iterable]) -> list:
    """Lowercase, strip, drop blanks and duplicates, keep first-seen order."""
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = tags.split(',')
    result = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError('Tags must be strings', {'tags': ['Tags must be strings.']})
        value = tag.strip().lower()
        if value and value not in result:
            result.append(value)
    return result


def _required_text(field: str, value, label: str, max_length: Optional[int] = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{label} is required', {field: [f'{label} cannot be empty.']})
    if max_length is not None and len(value.strip()) > max_length:
        raise ValidationError(
            f'{label} cannot be more than {max_length} characters',
            {field: [f'Ensure this field has no more than {max_length} characters.']}
        )
    return value.strip()


def _clean_code(value) -> str:
    # Code keeps its indentation; only emptiness is checked
    if not isinstance(value, str) or not value.strip():
        raise ValidationError('Code is required', {'code': ['Code cannot be empty.']})
    return value


def get_snippet(snippet_id: int) -> Snippet:
    try:
        return Snippet.objects.select_related('author').get(id=snippet_id)
    except Snippet.DoesNotExist:
        raise NotFoundError('Snippet not found')


def _require_owner_or_admin(snippet: Snippet, user: User, action: str) -> bool:
    """Returns whether `user` is an admin; raises if neither owner nor admin."""
    is_admin = user_is_admin(user)
    if snippet.author_id != user.id and not is_admin:
        raise AuthorizationError(f'Not authorized to {action} this snippet')
    return is_admin


# ============================================================================
# OPERATIONS
# ============================================================================
def submit(
    author: User,
    title: str,
    problem_description: str,
    language: str,
    code: str,
    tags: Optional[Iterable] = None
) -> Snippet:
    """
    Create a snippet in `pending` status.

    The snippet joins the author's contributions, the author earns
    POINTS_SUBMIT and the day counts towards their streak.
    """
    cleaned = {
        'title': _required_text('title', title, 'Title', TITLE_MAX_LENGTH),
        'problem_description': _required_text(
            'problem_description', problem_description, 'Problem description', DESCRIPTION_MAX_LENGTH
        ),
        'language': normalize_language(language),
        'code': _clean_code(code),
        'tags': normalize_tags(tags),
    }

    with transaction.atomic():
        snippet = Snippet.objects.create(
            author=author,
            status=Snippet.Status.PENDING,
            **cleaned
        )
        gamification.record_activity(author.id)
        gamification.award(author.id, POINTS_SUBMIT, 'snippet submitted')

    logger.info("Snippet %s submitted by %s (pending review)", snippet.id, author.username)
    return snippet


def edit(snippet_id: int, editor: User, patch: dict) -> Snippet:
    """
    Apply the provided fields. Missing keys are left alone.

    A non-admin edit always sends the snippet back to `pending`, whatever it
    was before.
    """
    snippet = get_snippet(snippet_id)
    is_admin = _require_owner_or_admin(snippet, editor, 'update')

    changes = {}
    if patch.get('title') is not None:
        changes['title'] = _required_text('title', patch['title'], 'Title', TITLE_MAX_LENGTH)
    if patch.get('problem_description') is not None:
        changes['problem_description'] = _required_text(
            'problem_description', patch['problem_description'], 'Description', DESCRIPTION_MAX_LENGTH
        )
    if patch.get('language') is not None:
        changes['language'] = normalize_language(patch['language'])
    if patch.get('tags') is not None:
        changes['tags'] = normalize_tags(patch['tags'])
    if patch.get('code') is not None:
        changes['code'] = _clean_code(patch['code'])

    for field, value in changes.items():
        setattr(snippet, field, value)
    if not is_admin:
        snippet.status = Snippet.Status.PENDING

    snippet.save()
    return snippet


def _set_status(snippet_id: int, moderator: User, new_status: str) -> Snippet:
    if not user_is_admin(moderator):
        raise AuthorizationError('Only admins can moderate snippets')
    snippet = get_snippet(snippet_id)

    snippet.status = new_status
    snippet.save(update_fields=['status', 'updated_at'])
    logger.info("Snippet %s %s by %s", snippet.id, new_status, moderator.username)
    return snippet


def approve(snippet_id: int, moderator: User) -> Snippet:
    with transaction.atomic():
        snippet = _set_status(snippet_id, moderator, Snippet.Status.APPROVED)
        gamification.check_badges(snippet.author_id)
    return snippet


def reject(snippet_id: int, moderator: User) -> Snippet:
    return _set_status(snippet_id, moderator, Snippet.Status.REJECTED)


def remove(snippet_id: int, requester: User) -> None:
    """
    Delete a snippet. Author or admin only.

    Comments, forks and vote rows cascade. The snippet leaves the author's
    contributions because that set is the reverse side of Snippet.author.
    """
    snippet = get_snippet(snippet_id)
    _require_owner_or_admin(snippet, requester, 'delete')

    with transaction.atomic():
        snippet.delete()
    logger.info("Snippet %s deleted by %s", snippet_id, requester.username)


def view(snippet_id: int) -> Snippet:
    """
    Fetch a snippet and count the view.

    The counter update is best-effort: it runs in its own savepoint and a
    database error there is logged, not raised.
    """
    snippet = get_snippet(snippet_id)

    try:
        with transaction.atomic():
            Snippet.objects.filter(id=snippet_id).update(views=F('views') + 1)
    except DatabaseError:
        logger.warning("Could not increment views for snippet %s", snippet_id, exc_info=True)
    else:
        snippet.views += 1

    return snippet


def add_comment(snippet_id: int, author: User, text: str) -> SnippetComment:
    snippet = get_snippet(snippet_id)
    cleaned = _required_text('text', text, 'Comment', COMMENT_MAX_LENGTH)
    return SnippetComment.objects.create(snippet=snippet, author=author, text=cleaned)


def delete_comment(snippet_id: int, comment_id: int, requester: User) -> None:
    get_snippet(snippet_id)
    comment = SnippetComment.objects.filter(id=comment_id, snippet_id=snippet_id).first()
    if comment is None:
        raise NotFoundError('Comment not found')
    if comment.author_id != requester.id and not user_is_admin(requester):
        raise AuthorizationError('Not authorized to delete this comment')
    comment.delete()
