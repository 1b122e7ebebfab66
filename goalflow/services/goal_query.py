from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from goalflow.cache.keys import ABSENT, build_goals_page_key, normalize
from goalflow.core.config import Settings, get_settings
from goalflow.models import Goal, GoalPage, GoalSummary


def clamp_paging(
    page: int | None,
    page_size: int | None,
    default_page_size: int = 20,
    max_page_size: int = 100,
) -> tuple[int, int]:
    """
    The single paging rule for list queries.

    Out-of-range values are replaced, not rejected: a page below 1 becomes 1,
    a page size outside [1, max_page_size] becomes the default.
    """
    page = page if page and page > 0 else 1
    if not page_size or page_size <= 0 or page_size > max_page_size:
        page_size = default_page_size
    return page, page_size


@dataclass(frozen=True)
class GoalQuerySpec:
    """A clamped goals list query with normalized filters."""

    user_id: UUID
    page: int = 1
    page_size: int = 20
    search: str = ABSENT
    status: str = ABSENT
    priority: str = ABSENT

    @classmethod
    def build(
        cls,
        user_id: UUID,
        page: int | None = None,
        page_size: int | None = None,
        search: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        settings: Settings | None = None,
    ) -> "GoalQuerySpec":
        settings = settings or get_settings()
        page, page_size = clamp_paging(
            page, page_size, settings.default_page_size, settings.max_page_size
        )
        return cls(
            user_id=user_id,
            page=page,
            page_size=page_size,
            search=normalize(search),
            status=normalize(status),
            priority=normalize(priority),
        )

    @property
    def cache_key(self) -> str:
        return build_goals_page_key(
            self.user_id,
            self.page,
            self.page_size,
            self.search,
            self.status,
            self.priority,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class PagedGoalsQuery:
    """Filtered, paginated read of a user's goals from the system of record."""

    def conditions(self, spec: GoalQuerySpec) -> list:
        conds = [Goal.user_id == spec.user_id]
        if spec.search != ABSENT:
            pattern = _like_pattern(spec.search)
            conds.append(
                or_(
                    func.lower(Goal.title).like(pattern, escape="\\"),
                    func.lower(Goal.description).like(pattern, escape="\\"),
                )
            )
        if spec.status != ABSENT:
            conds.append(Goal.status == spec.status)
        if spec.priority != ABSENT:
            conds.append(Goal.priority == spec.priority)
        return conds

    async def execute(self, db: AsyncSession, spec: GoalQuerySpec) -> GoalPage:
        conds = self.conditions(spec)

        count_query = select(func.count()).select_from(Goal).where(*conds)
        total = (await db.exec(count_query)).one()

        query = (
            select(Goal)
            .where(*conds)
            .order_by(Goal.created_at.desc(), Goal.id)
            .offset(spec.offset)
            .limit(spec.page_size)
        )
        goals = (await db.exec(query)).all()

        return GoalPage(
            items=[GoalSummary.model_validate(goal) for goal in goals],
            page=spec.page,
            page_size=spec.page_size,
            total=total,
        )
