"""Task comments and their like/dislike reactions."""

from dataclasses import dataclass
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.exceptions import ConflictError, ForbiddenError, NotFoundError
from taskboard.models.enums import ReactionState, ReactionType
from taskboard.models.project import CommentReaction, Task, TaskComment
from taskboard.models.user import User
from taskboard.services import access_control

logger = structlog.get_logger()


# (current state, command) -> (new state, likes delta, dislikes delta)
_TRANSITIONS: dict[tuple[ReactionState, ReactionType], tuple[ReactionState, int, int]] = {
    (ReactionState.NONE, ReactionType.LIKE): (ReactionState.LIKED, 1, 0),
    (ReactionState.NONE, ReactionType.DISLIKE): (ReactionState.DISLIKED, 0, 1),
    (ReactionState.LIKED, ReactionType.LIKE): (ReactionState.NONE, -1, 0),
    (ReactionState.LIKED, ReactionType.DISLIKE): (ReactionState.DISLIKED, -1, 1),
    (ReactionState.DISLIKED, ReactionType.DISLIKE): (ReactionState.NONE, 0, -1),
    (ReactionState.DISLIKED, ReactionType.LIKE): (ReactionState.LIKED, 1, -1),
}

_STATE_FOR_TYPE = {
    ReactionType.LIKE: ReactionState.LIKED,
    ReactionType.DISLIKE: ReactionState.DISLIKED,
}
_TYPE_FOR_STATE = {state: kind for kind, state in _STATE_FOR_TYPE.items()}


def reaction_state(reaction: CommentReaction | None) -> ReactionState:
    if reaction is None:
        return ReactionState.NONE
    return _STATE_FOR_TYPE[reaction.reaction_type]


def next_reaction_state(
    current: ReactionState,
    command: ReactionType,
) -> tuple[ReactionState, int, int]:
    """Toggle transition for one (comment, user) pair.

    Repeating the current reaction clears it; the opposite reaction switches.

    Returns:
        The new state and the deltas to apply to the like and dislike counters
    """
    return _TRANSITIONS[(current, command)]


@dataclass
class ReactionResult:
    """Comment with its updated counters and the caller's own reaction."""

    comment: TaskComment
    user_reaction: ReactionState


class CommentService:
    """Service for commenting on tasks and reacting to comments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_accessible_task(self, user: User, task_id: UUID) -> Task:
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, Task.active_criteria())
        )
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task not found")
        if not await access_control.has_access(self.db, user, task.project_id):
            raise ForbiddenError("You don't have access to this task")
        return task

    async def add_comment(self, user: User, task_id: UUID, content: str) -> TaskComment:
        task = await self._get_accessible_task(user, task_id)

        comment = TaskComment(
            task_id=task.id,
            user_id=user.id,
            content=content,
            likes_count=0,
            dislikes_count=0,
        )
        self.db.add(comment)
        await self.db.flush()

        logger.info(
            "comment_created",
            comment_id=str(comment.id),
            task_id=str(task.id),
            user_id=str(user.id),
        )
        return comment

    async def list_comments(
        self,
        user: User,
        task_id: UUID,
    ) -> list[tuple[TaskComment, ReactionState]]:
        """Comments on a task, newest first, each with the caller's reaction."""
        task = await self._get_accessible_task(user, task_id)

        result = await self.db.execute(
            select(TaskComment, CommentReaction)
            .outerjoin(
                CommentReaction,
                (CommentReaction.comment_id == TaskComment.id)
                & (CommentReaction.user_id == user.id),
            )
            .where(TaskComment.task_id == task.id)
            .order_by(TaskComment.created_at.desc())
        )
        return [(comment, reaction_state(reaction)) for comment, reaction in result.all()]

    async def like(self, user: User, comment_id: UUID) -> ReactionResult:
        return await self._react(user, comment_id, ReactionType.LIKE)

    async def dislike(self, user: User, comment_id: UUID) -> ReactionResult:
        return await self._react(user, comment_id, ReactionType.DISLIKE)

    async def _react(
        self,
        user: User,
        comment_id: UUID,
        command: ReactionType,
    ) -> ReactionResult:
        """Apply one toggle command and keep the counters in step.

        The comment row is locked for the read-modify-write where the backend
        supports it; a concurrent insert for the same pair trips the unique
        constraint and surfaces as a retryable conflict.
        """
        result = await self.db.execute(
            select(TaskComment).where(TaskComment.id == comment_id).with_for_update()
        )
        comment = result.scalar_one_or_none()
        if comment is None:
            raise NotFoundError("Comment not found")

        await self._get_accessible_task(user, comment.task_id)

        result = await self.db.execute(
            select(CommentReaction).where(
                CommentReaction.comment_id == comment.id,
                CommentReaction.user_id == user.id,
            )
        )
        reaction = result.scalar_one_or_none()

        current = reaction_state(reaction)
        new_state, likes_delta, dislikes_delta = next_reaction_state(current, command)

        if new_state == ReactionState.NONE:
            await self.db.delete(reaction)
        elif reaction is None:
            self.db.add(
                CommentReaction(
                    comment_id=comment.id,
                    user_id=user.id,
                    reaction_type=_TYPE_FOR_STATE[new_state],
                )
            )
        else:
            reaction.reaction_type = _TYPE_FOR_STATE[new_state]

        comment.likes_count = max(0, comment.likes_count + likes_delta)
        comment.dislikes_count = max(0, comment.dislikes_count + dislikes_delta)

        try:
            await self.db.flush()
        except IntegrityError as e:
            logger.warning(
                "comment_reaction_conflict",
                comment_id=str(comment_id),
                user_id=str(user.id),
                error=str(e.orig),
            )
            raise ConflictError(
                "Reaction was changed concurrently, please retry",
                retryable=True,
            ) from e

        logger.info(
            "comment_reaction_toggled",
            comment_id=str(comment.id),
            user_id=str(user.id),
            command=command.value,
            previous=current.value,
            current=new_state.value,
        )
        return ReactionResult(comment=comment, user_reaction=new_state)
