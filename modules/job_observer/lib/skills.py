from __future__ import annotations

import logging
import re

from .db import Store

LOG = logging.getLogger(__name__)

# Canonical lowercase names. Matching is dictionary-only.
SKILL_DICTIONARY: frozenset[str] = frozenset({
    # JVM
    "java", "kotlin", "scala",
    # Frameworks
    "spring", "spring boot", "spring mvc", "spring security", "hibernate",
    "micronaut", "quarkus",
    # Frontend
    "react", "angular", "vue", "javascript", "typescript", "html", "css",
    # Backend
    "node.js", "express", "django", "flask", "fastapi",
    # Databases
    "postgresql", "mysql", "mongodb", "redis", "elasticsearch",
    "cassandra", "oracle",
    # Cloud & DevOps
    "aws", "gcp", "azure", "docker", "kubernetes", "jenkins",
    "terraform", "ansible", "linux",
    # Data
    "python", "spark", "kafka", "airflow", "pandas", "sql",
    # Tools
    "git", "maven", "gradle", "jira", "rest api", "graphql",
    "microservices", "rabbitmq",
})  # fmt: skip


def _skill_re(skill: str) -> re.Pattern[str]:
    if " " in skill:
        return re.compile(re.escape(skill))
    # Single words need whitespace (or the text edge) on both sides,
    # so "java" stays out of "javascript".
    return re.compile(r"(?<!\S)" + re.escape(skill) + r"(?!\S)")


def find_skills(text: str | None, dictionary: frozenset[str] = SKILL_DICTIONARY) -> list[str]:
    """Sorted dictionary skills mentioned in text."""
    if not text or not text.strip():
        return []
    lowered = text.lower()
    return sorted(s for s in dictionary if _skill_re(s).search(lowered))


class SkillMatcher:
    def __init__(self, store: Store, dictionary: frozenset[str] = SKILL_DICTIONARY) -> None:
        self.store = store
        self.dictionary = dictionary

    def extract_and_attach(self, job_id: int, description: str | None) -> list[str]:
        """
        Attach every dictionary skill found in description to the job.
        Idempotent per (job, skill); returns only the newly attached names.
        """
        found = find_skills(description, self.dictionary)
        if not found:
            LOG.debug("No skills found for job %s", job_id)
            return []

        attached: list[str] = []
        with self.store.unit_of_work() as uow:
            for name in found:
                skill = uow.ensure_skill(name)
                if uow.attach_skill(job_id, skill.id):
                    attached.append(name)
        if attached:
            LOG.info("Attached %d skills to job %s", len(attached), job_id)
        return attached
