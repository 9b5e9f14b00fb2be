"""
Fork Workflow
=============

Forks are community rewrites of a snippet's code.

STATE MACHINE:
--------------
    pending --vote--> pending                (votes never change status)
    pending --accept (snippet owner)--> accepted
        - parent.code   = fork.modified_code
        - parent.status = pending (back to moderation)
        - forker        + POINTS_FORK_ACCEPTED
    pending --delete (forker or admin)--> gone

`accepted` is terminal. accept() only looks at pending forks, so a second
accept of the same fork raises NotFoundError and changes nothing.
"""

import logging
from typing import List, Optional

from django.contrib.auth.models import User
from django.db import transaction

from . import gamification
from .exceptions import AuthorizationError, NotFoundError, ValidationError
from .models import POINTS_FORK, POINTS_FORK_ACCEPTED, CodeFork, Snippet, user_is_admin

logger = logging.getLogger(__name__)


def fork(
    snippet_id: int,
    forker: User,
    modified_code: str,
    changes: str,
    description: str = '',
    test_results: Optional[dict] = None
) -> CodeFork:
    """
    Create a pending fork of a snippet and give the forker POINTS_FORK.

    The fork copies the parent's language and is titled "Improved: <title>".
    """
    try:
        snippet = Snippet.objects.get(id=snippet_id)
    except Snippet.DoesNotExist:
        raise NotFoundError('Snippet not found')

    if not isinstance(modified_code, str) or not modified_code.strip():
        raise ValidationError('Modified code is required', {'modified_code': ['This field may not be blank.']})
    if not isinstance(changes, str) or not changes.strip():
        raise ValidationError('Please describe your changes', {'changes': ['This field may not be blank.']})

    with transaction.atomic():
        code_fork = CodeFork.objects.create(
            original_snippet=snippet,
            forked_by=forker,
            title=f"Improved: {snippet.title}"[:200],
            description=(description or '').strip(),
            modified_code=modified_code,
            language=snippet.language,
            changes=changes.strip(),
            test_results=test_results
        )
        gamification.record_activity(forker.id)
        gamification.award(forker.id, POINTS_FORK, 'snippet forked')

    logger.info("Fork %s of snippet %s created by %s", code_fork.id, snippet.id, forker.username)
    return code_fork


def accept(fork_id: int, requester: User) -> CodeFork:
    """
    Owner of the parent snippet accepts a pending fork.

    ATOMICITY:
    Parent write-back, fork status and the forker's points are one
    transaction; the fork row is locked so two racing accepts apply once.
    """
    with transaction.atomic():
        code_fork = (
            CodeFork.objects
            .select_for_update()
            .filter(id=fork_id, status=CodeFork.Status.PENDING)
            .first()
        )
        if code_fork is None:
            raise NotFoundError('Fork not found or already resolved')

        parent = Snippet.objects.select_for_update().get(id=code_fork.original_snippet_id)
        if parent.author_id != requester.id:
            raise AuthorizationError('Only the snippet owner can accept forks')

        parent.code = code_fork.modified_code
        parent.status = Snippet.Status.PENDING
        parent.save(update_fields=['code', 'status', 'updated_at'])

        code_fork.status = CodeFork.Status.ACCEPTED
        code_fork.save(update_fields=['status', 'updated_at'])

        gamification.award(code_fork.forked_by_id, POINTS_FORK_ACCEPTED, 'fork accepted')

    logger.info(
        "Fork %s accepted by %s; snippet %s back to pending",
        code_fork.id, requester.username, parent.id
    )
    return code_fork


def list_forks(snippet_id: int) -> List[CodeFork]:
    """
    Forks of a snippet: most votes first, then newest, then highest id.

    Query: 1 (with forker JOIN)
    """
    return list(
        CodeFork.objects
        .filter(original_snippet_id=snippet_id)
        .select_related('forked_by', 'forked_by__profile')
        .order_by('-votes', '-created_at', '-id')
    )


def get_fork(fork_id: int) -> CodeFork:
    try:
        return CodeFork.objects.select_related('forked_by', 'original_snippet').get(id=fork_id)
    except CodeFork.DoesNotExist:
        raise NotFoundError('Fork not found')


def delete_fork(fork_id: int, requester: User) -> None:
    code_fork = get_fork(fork_id)
    if code_fork.forked_by_id != requester.id and not user_is_admin(requester):
        raise AuthorizationError('Not authorized to delete this fork')
    code_fork.delete()
    logger.info("Fork %s deleted by %s", fork_id, requester.username)
