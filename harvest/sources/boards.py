"""Built-in source table.

Selectors drift as boards redesign their markup; operators can replace this
table with a YAML file (HARVEST_SOURCES_FILE) without touching code.
"""
from __future__ import annotations

DEFAULT_SOURCES: list[dict] = [
    {
        "name": "LinkedIn",
        "url": "https://www.linkedin.com/jobs/search?keywords={role}&location={location}&start={start}&f_TPR=r86400",
        "page_step": 25,
        "link_selector": "a.base-card__full-link, a.job-card-list__title",
        "title_selector": "span.sr-only, h3.base-search-card__title",
        "base_url": "https://www.linkedin.com",
    },
    {
        "name": "Naukri",
        "url": (
            "https://www.naukri.com/{role_slug}-jobs-in-{location_slug}"
            "?k={role}&l={location}&experience={experience}&page={page}"
        ),
        "link_selector": "a.title, a[data-job-id]",
        "base_url": "https://www.naukri.com",
    },
    {
        "name": "Indeed",
        "url": "https://www.indeed.com/jobs?q={role}&l={location}&fromage=1&start={start}",
        "page_step": 10,
        "link_selector": 'a[data-jk], a[href*="/viewjob"]',
        "title_selector": "h2.jobTitle, span[title]",
        "base_url": "https://www.indeed.com",
    },
    {
        "name": "Glassdoor",
        "url": "https://www.glassdoor.com/Job/jobs.htm?sc.keyword={role}&locT=C&locId={location}&fromAge=1&page={page}",
        "link_selector": 'a[data-test="job-link"], a.jobLink',
        "title_selector": 'div[data-test="job-title"], a[data-test="job-title"]',
        "base_url": "https://www.glassdoor.com",
        "requires_scripting": True,
    },
    {
        "name": "Monster",
        "url": "https://www.monster.com/jobs/search?q={role}&where={location}&page={page}&postedDate=1",
        "link_selector": 'a[data-test-id="svx-job-title"], a.sc-fzqBZW',
        "base_url": "https://www.monster.com",
        "requires_scripting": True,
    },
    {
        "name": "ZipRecruiter",
        "url": "https://www.ziprecruiter.com/jobs-search?search={role}&location={location}&page={page}&days=1",
        "link_selector": 'a.job_link, a[data-testid="job-title"]',
        "base_url": "https://www.ziprecruiter.com",
    },
    {
        "name": "SimplyHired",
        "url": "https://www.simplyhired.com/search?q={role}&l={location}&fdb=1&page={page}",
        "link_selector": 'a[data-testid="job-title"], a.SerpJob-link',
        "base_url": "https://www.simplyhired.com",
    },
    {
        "name": "CareerBuilder",
        "url": "https://www.careerbuilder.com/jobs?keywords={role}&location={location}&posted=1&page={page}",
        "link_selector": 'a.data-results-content, a[data-testid="job-title"]',
        "base_url": "https://www.careerbuilder.com",
    },
    {
        "name": "Google Jobs",
        "kind": "google",
    },
]
