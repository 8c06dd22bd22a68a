"""Filter chain for the public job listing.

Filter order:
  1. RoleFilter        case-insensitive substring of the role
  2. LocationFilter    case-insensitive substring of the location
  3. ExperienceFilter  exact experience band
  4. KeywordsFilter    any keyword in the job's keywords, role or description
  5. SkillsFilter      any skill in any of the job's skill lists
"""

import logging
from collections.abc import Callable

from jobboard.core.schemas import Job, JobFilters

logger = logging.getLogger(__name__)

# A filter is a callable that takes jobs and returns a subset.
Filter = Callable[[list[Job]], list[Job]]


def _terms(values: list[str]) -> list[str]:
    return [v.lower().strip() for v in values if v.strip()]


class RoleFilter:
    def __init__(self, role: str) -> None:
        self._role = role.lower().strip()

    def __call__(self, jobs: list[Job]) -> list[Job]:
        return [j for j in jobs if self._role in j.role.lower()]


class LocationFilter:
    def __init__(self, location: str) -> None:
        self._location = location.lower().strip()

    def __call__(self, jobs: list[Job]) -> list[Job]:
        return [j for j in jobs if self._location in j.location.lower()]


class ExperienceFilter:
    def __init__(self, experience: str) -> None:
        self._experience = experience.strip()

    def __call__(self, jobs: list[Job]) -> list[Job]:
        return [j for j in jobs if j.experience == self._experience]


class KeywordsFilter:
    """Keep jobs tagged with, or whose role or description mentions, any keyword."""

    def __init__(self, keywords: list[str]) -> None:
        self._keywords = _terms(keywords)

    def __call__(self, jobs: list[Job]) -> list[Job]:
        if not self._keywords:
            return jobs
        return [j for j in jobs if self._matches(j)]

    def _matches(self, job: Job) -> bool:
        tags = {k.lower() for k in job.keywords}
        text = f"{job.role} {job.description}".lower()
        return any(kw in tags or kw in text for kw in self._keywords)


class SkillsFilter:
    """Keep jobs listing any of the skills in any skill category (case-insensitive)."""

    def __init__(self, skills: list[str]) -> None:
        self._skills = set(_terms(skills))

    def __call__(self, jobs: list[Job]) -> list[Job]:
        if not self._skills:
            return jobs
        return [j for j in jobs if self._skills & self._job_skills(j)]

    @staticmethod
    def _job_skills(job: Job) -> set[str]:
        s = job.skills
        every = s.languages + s.technologies + s.frameworks + s.databases + s.tools + s.others
        return {skill.lower().strip() for skill in every}


def build_filters(filters: JobFilters) -> list[Filter]:
    """Turn listing filters into the chain that applies them. Unset filters are skipped."""
    chain: list[Filter] = []
    if filters.role and filters.role.strip():
        chain.append(RoleFilter(filters.role))
    if filters.location and filters.location.strip():
        chain.append(LocationFilter(filters.location))
    if filters.experience and filters.experience.strip():
        chain.append(ExperienceFilter(filters.experience))
    if filters.keywords:
        chain.append(KeywordsFilter(filters.keywords))
    if filters.skills:
        chain.append(SkillsFilter(filters.skills))
    return chain


def run_filter_chain(jobs: list[Job], filters: list[Filter]) -> list[Job]:
    """Apply filters in order, returning the surviving jobs."""
    result = jobs
    for f in filters:
        result = f(result)
    logger.debug("Filter chain kept %d of %d jobs", len(result), len(jobs))
    return result
