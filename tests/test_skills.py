from datetime import datetime, timezone

from modules.job_observer.lib.resolver import Resolver
from modules.job_observer.lib.skills import SkillMatcher, find_skills

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_single_words_need_whitespace_boundaries():
    assert find_skills("Strong JavaScript and TypeScript") == ["javascript", "typescript"]
    assert find_skills("Core Java and SQL required") == ["java", "sql"]


def test_multi_word_skills_match_as_substrings():
    found = find_skills("Experience with Spring Boot microservices on AWS")
    assert "spring boot" in found
    assert "microservices" in found
    assert "aws" in found


def test_empty_text_finds_nothing():
    assert find_skills(None) == []
    assert find_skills("   ") == []
    assert find_skills("We value curiosity") == []


def test_extract_and_attach_is_idempotent(store):
    job = Resolver(store).resolve("Acme", "Java Developer", "Pune", now=T0)
    matcher = SkillMatcher(store)

    first = matcher.extract_and_attach(job.id, "java kafka docker")
    again = matcher.extract_and_attach(job.id, "java kafka docker redis")

    assert first == ["docker", "java", "kafka"]
    assert again == ["redis"]
    assert store.count_rows("job_skills") == 4
    assert store.count_rows("skills") == 4
    with store.reader() as uow:
        assert uow.skill_names_for_job(job.id) == ["docker", "java", "kafka", "redis"]


def test_skills_never_touch_identity(store):
    job = Resolver(store).resolve("Acme", "Java Developer", "Pune", now=T0)
    SkillMatcher(store).extract_and_attach(job.id, "python django postgresql")

    with store.reader() as uow:
        assert uow.get_job(job.id).fingerprint == job.fingerprint
