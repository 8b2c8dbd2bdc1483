import pytest

from modules.job_observer.lib.extractors import ExtractionError, all_sites, extract, get, register
from modules.job_observer.lib.extractors.base import BaseExtractor

FRESHERSWORLD_PAGE = """
<html><body>
<div id="all-jobs-append">
  <div class="job-container" job_display_url="https://www.freshersworld.com/jobs/java-developer-101">
    <h3 class="latest-jobs-title"><a href="/jobs/java-developer-101">Java Developer</a></h3>
    <div class="company-name">Acme Technologies Pvt Ltd</div>
    <span class="job-location">Bengaluru</span>
  </div>
  <div class="job-container">
    <h3 class="latest-jobs-title"><a href="/jobs/qa-engineer-202">QA Engineer</a></h3>
    <div class="company-name">Globex</div>
  </div>
  <div class="job-container" job_display_url="https://www.freshersworld.com/jobs/no-company-303">
    <h3 class="latest-jobs-title"><a href="/jobs/no-company-303">Python Developer</a></h3>
  </div>
</div>
</body></html>
"""

TIMESJOBS_PAGE = """
<html><body>
<ul class="new-joblist">
  <li class="clearfix job-bx wht-shd-bx">
    <header class="clearfix">
      <h2><a class="jobTitle" href="https://www.timesjobs.com/job-detail/backend-1">Backend Developer</a></h2>
      <h3 class="joblist-comp-name">Initech Solutions</h3>
    </header>
    <ul class="top-jd-dtl clearfix"><li><i class="material-icons">location_on</i><span>Pune</span></li></ul>
  </li>
  <li class="clearfix job-bx wht-shd-bx">
    <header class="clearfix">
      <h2 class="job-tittle"><a href="/job-detail/qa-2">QA Engineer</a></h2>
      <h3 class="joblist-comp-name">Umbrella Corp</h3>
    </header>
  </li>
</ul>
</body></html>
"""


def test_sites_are_registered():
    assert {"freshersworld", "timesjobs", "stub"} <= set(all_sites())
    assert get("FreshersWorld").site == "freshersworld"


def test_freshersworld_cards():
    records = extract(FRESHERSWORLD_PAGE, "freshersworld", base_url="https://www.freshersworld.com/jobs/search")

    assert len(records) == 2  # the card without a company is skipped
    first, second = records
    assert first.raw_title == "Java Developer"
    assert first.raw_company == "Acme Technologies Pvt Ltd"
    assert first.raw_location == "Bengaluru"
    assert first.listing_url == "https://www.freshersworld.com/jobs/java-developer-101"
    # No display URL: the title link is resolved against the page URL
    assert second.listing_url == "https://www.freshersworld.com/jobs/qa-engineer-202"
    assert second.raw_location == "India"


def test_timesjobs_cards_both_title_layouts():
    records = extract(TIMESJOBS_PAGE, "timesjobs", base_url="https://www.timesjobs.com/candidate/search.html")

    assert [r.raw_title for r in records] == ["Backend Developer", "QA Engineer"]
    assert records[0].raw_company == "Initech Solutions"
    assert records[0].raw_location == "Pune"
    assert records[0].listing_url == "https://www.timesjobs.com/job-detail/backend-1"
    assert records[1].listing_url == "https://www.timesjobs.com/job-detail/qa-2"
    assert records[1].raw_location == "India"


def test_page_without_cards_is_an_empty_result():
    assert extract("<html><body><p>No jobs today</p></body></html>", "timesjobs") == []


def test_unknown_site_raises():
    with pytest.raises(ExtractionError, match="No extractor"):
        extract("<html></html>", "monster")


@pytest.mark.parametrize("document", ["", "   \n"])
def test_blank_document_raises(document):
    with pytest.raises(ExtractionError):
        extract(document, "freshersworld")


def test_stub_extractor_passes_fields_through():
    doc = '{"jobs": [{"title": "SRE", "company": "Hooli", "location": "Remote", "url": "u1", "salary": "10 LPA"}]}'
    (rec,) = extract(doc, "stub")
    assert (rec.raw_title, rec.raw_company, rec.raw_location) == ("SRE", "Hooli", "Remote")
    assert rec.listing_url == "u1"
    assert rec.salary_text == "10 LPA"
    assert rec.description is None


@pytest.mark.parametrize("doc", ["not json", '{"items": []}', "[1, 2]"])
def test_stub_extractor_structural_errors(doc):
    with pytest.raises(ExtractionError):
        extract(doc, "stub")


def test_parser_crash_is_wrapped(monkeypatch):
    from modules.job_observer.lib.extractors import timesjobs

    def _boom(*args, **kwargs):
        raise AttributeError("layout changed")

    monkeypatch.setattr(timesjobs, "BeautifulSoup", _boom)
    with pytest.raises(ExtractionError, match="layout changed"):
        extract(TIMESJOBS_PAGE, "timesjobs")


def test_register_rejects_conflicts():
    class NoSite(BaseExtractor):
        def extract(self, document, *, base_url=None):
            return []

    class Impostor(NoSite):
        site = "stub"

    with pytest.raises(ValueError):
        register(NoSite)
    with pytest.raises(ValueError):
        register(Impostor)
