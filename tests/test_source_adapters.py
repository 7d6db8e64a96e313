import os
import tempfile
import unittest
from datetime import datetime, timezone

from harvest.core.document import Document
from harvest.sources import REGISTRY, adapter_from_entry, build_sources, load_sources
from harvest.sources.boards import DEFAULT_SOURCES
from harvest.sources.selector import GoogleJobsAdapter, SelectorAdapter

BOARD_HTML = """
<html><head><title>Jobs</title></head><body>
  <ul>
    <li><a class="job" href="/viewjob?jk=1"><h2>DevOps Engineer</h2><span>Acme</span></a></li>
    <li><a class="job" href="https://jobs.example.com/2">  Senior   DevOps Engineer </a></li>
    <li><a class="job" href="javascript:void(0)">Broken</a></li>
    <li><a class="job">No href</a></li>
    <li><a class="other" href="/viewjob?jk=3">Not a listing</a></li>
  </ul>
</body></html>
"""

GOOGLE_HTML = """
<html><body>
  <a href="/url?q=https://careers.acme.com/jobs/42&sa=U"><h3>Cloud Engineer - Acme</h3></a>
  <a href="/url?q=https://www.wikipedia.org/wiki/Cloud&sa=U"><h3>Cloud - Wikipedia</h3></a>
  <a data-ved="x" href="https://boards.example.com/position/7"><div>Cloud Engineer II</div></a>
</body></html>
"""


class SelectorAdapterTests(unittest.TestCase):
    def setUp(self):
        self.adapter = SelectorAdapter(
            "Example",
            "https://example.com/jobs?q={role}&l={location}&start={start}&p={page}&slug={role_slug}",
            "a.job",
            base_url="https://example.com",
            page_step=10,
        )

    def test_build_url_encodes_and_pages(self):
        url = self.adapter.build_url("DevOps Engineer", "United States", 2)
        self.assertEqual(
            url,
            "https://example.com/jobs?q=DevOps%20Engineer&l=United%20States&start=20&p=3&slug=devops-engineer",
        )

    def test_extract_resolves_links_and_titles(self):
        seen = datetime(2025, 1, 1, tzinfo=timezone.utc)
        listings = list(self.adapter.extract(Document(url="https://example.com", html=BOARD_HTML), seen))
        self.assertEqual([l.url for l in listings], [
            "https://example.com/viewjob?jk=1",
            "https://jobs.example.com/2",
        ])
        self.assertEqual(listings[0].title, "DevOps Engineer Acme")
        self.assertEqual(listings[1].title, "Senior DevOps Engineer")
        self.assertTrue(all(l.source_name == "Example" and l.observed_at == seen for l in listings))

    def test_title_selector_preferred(self):
        adapter = SelectorAdapter("Example", "https://example.com/?q={role}", "a.job",
                                  base_url="https://example.com", title_selector="h2")
        first = next(adapter.extract(Document(url="u", html=BOARD_HTML)))
        self.assertEqual(first.title, "DevOps Engineer")

    def test_malformed_html_yields_what_parses(self):
        html = "<div><a class='job' href='/a'>Data Engineer<a class='job' href='/b'>ML Engineer</div></p>"
        listings = list(self.adapter.extract(Document(url="u", html=html)))
        self.assertEqual([l.url for l in listings], ["https://example.com/a", "https://example.com/b"])

    def test_empty_page_yields_nothing(self):
        self.assertEqual(list(self.adapter.extract(Document(url="u", html=""))), [])

    def test_relative_link_without_base_skipped(self):
        adapter = SelectorAdapter("NoBase", "https://example.com/?q={role}", "a.job")
        urls = [l.url for l in adapter.extract(Document(url="u", html=BOARD_HTML))]
        self.assertEqual(urls, ["https://jobs.example.com/2"])

    def test_max_results(self):
        adapter = SelectorAdapter("Capped", "https://example.com/?q={role}", "a.job",
                                  base_url="https://example.com", max_results=1)
        self.assertEqual(len(list(adapter.extract(Document(url="u", html=BOARD_HTML)))), 1)


class GoogleJobsAdapterTests(unittest.TestCase):
    def test_unwraps_redirects_and_keeps_jobish_links(self):
        adapter = GoogleJobsAdapter()
        listings = list(adapter.extract(Document(url="u", html=GOOGLE_HTML)))
        self.assertEqual([l.url for l in listings], [
            "https://careers.acme.com/jobs/42",
            "https://boards.example.com/position/7",
        ])
        self.assertEqual(listings[0].title, "Cloud Engineer - Acme")
        self.assertEqual(listings[1].title, "Cloud Engineer II")

    def test_single_page_defaults(self):
        adapter = GoogleJobsAdapter()
        self.assertEqual(adapter.page_cap, 1)
        self.assertEqual(adapter.max_results, 20)
        self.assertIn("q=Cloud%20Engineer+jobs+United%20States", adapter.build_url("Cloud Engineer", "United States", 0))


class SourceTableTests(unittest.TestCase):
    def test_default_table_builds(self):
        adapters = build_sources(DEFAULT_SOURCES)
        names = [a.name for a in adapters]
        self.assertEqual(len(names), len(set(names)))
        self.assertIn("Google Jobs", names)
        scripted = {a.name for a in adapters if a.requires_scripting}
        self.assertEqual(scripted, {"Glassdoor", "Monster"})
        for adapter in adapters:
            self.assertTrue(adapter.build_url("Data Engineer", "United States", 0).startswith("https://"))

    def test_disabled_and_duplicates(self):
        table = [
            {"name": "A", "url": "https://a/?q={role}", "link_selector": "a"},
            {"name": "B", "url": "https://b/?q={role}", "link_selector": "a", "enabled": False},
        ]
        self.assertEqual([a.name for a in build_sources(table)], ["A"])
        with self.assertRaises(ValueError):
            build_sources(table[:1] * 2)

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            adapter_from_entry({"name": "X", "kind": "rss"})

    def test_google_entry_options(self):
        adapter = adapter_from_entry({"name": "G", "kind": "google", "max_results": 5, "enabled": True})
        self.assertIsInstance(adapter, GoogleJobsAdapter)
        self.assertEqual(adapter.max_results, 5)

    def test_load_sources_from_yaml(self):
        with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as f:
            f.write(
                "sources:\n"
                "  - name: Board\n"
                "    url: \"https://board.example/jobs?q={role}&page={page}\"\n"
                "    link_selector: a.job\n"
                "    requires_scripting: true\n"
                "    page_cap: 3\n"
            )
            path = f.name
        try:
            adapters = load_sources(path)
        finally:
            os.unlink(path)
            load_sources()
        self.assertEqual([a.name for a in adapters], ["Board"])
        self.assertTrue(adapters[0].requires_scripting)
        self.assertEqual(adapters[0].page_cap, 3)

    def test_registry_reloads_defaults(self):
        load_sources()
        self.assertEqual(list(REGISTRY), [e["name"] for e in DEFAULT_SOURCES])


if __name__ == "__main__":
    unittest.main()
