from modules.job_observer.lib.seed import sync_sites_and_aliases

SITES = [
    {
        "name": "freshersworld",
        "inactive_threshold_days": 7,
        "repost_threshold_days": 30,
        "crawl_delay_seconds": 3.0,
        "max_retries": 2,
        "crawl_enabled": True,
        "reliability_weight": 0.6,
        "targets": [
            {"url": "https://www.freshersworld.com/jobs/jobsearch/java", "active": True},
            {"url": "https://www.freshersworld.com/jobs/jobsearch/python", "active": True},
        ],
    }
]
ALIASES = [{"company": "Tata Consultancy Services", "aliases": ["TCS", "T.C.S.", "Tata Consultancy"]}]


def test_sync_is_idempotent(store):
    first = sync_sites_and_aliases(store, SITES, ALIASES)
    second = sync_sites_and_aliases(store, SITES, ALIASES)

    # "T.C.S." cleans to the same alias as "TCS"; "Tata Consultancy" is the company itself
    assert first == {"sites": 1, "targets": 2, "companies": 1, "aliases": 1}
    assert second == {"sites": 1, "targets": 2, "companies": 0, "aliases": 0}
    assert store.count_rows("source_sites") == 1
    assert store.count_rows("crawl_targets") == 2
    assert store.count_rows("company_aliases") == 1


def test_sync_overwrites_policy_and_target_flags(store):
    sync_sites_and_aliases(store, SITES)
    changed = [
        {
            **SITES[0],
            "inactive_threshold_days": 14,
            "crawl_enabled": False,
            "targets": [{"url": "https://www.freshersworld.com/jobs/jobsearch/java", "active": False}],
        }
    ]
    sync_sites_and_aliases(store, changed)

    with store.reader() as uow:
        site = uow.find_site_by_name("freshersworld")
        targets = {t.url: t.active for t, _ in uow.list_targets()}
    assert site.inactive_threshold_days == 14
    assert site.crawl_enabled is False
    assert targets == {
        "https://www.freshersworld.com/jobs/jobsearch/java": False,
        # Not in the new config: left as it was
        "https://www.freshersworld.com/jobs/jobsearch/python": True,
    }


def test_alias_never_moves_to_another_company(store):
    sync_sites_and_aliases(store, [], [{"company": "Tata Consultancy Services", "aliases": ["TCS"]}])
    sync_sites_and_aliases(store, [], [{"company": "Tech Consulting Squad", "aliases": ["TCS"]}])

    with store.reader() as uow:
        assert uow.find_alias_target("tcs") == "tata consultancy"
