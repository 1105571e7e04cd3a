import pytest

from sitedump.frontier import CrawlFrontier
from sitedump.urls import in_same_scope, normalize_url

SEED = "https://example.com"


def make(max_depth=3, max_pages=100, **kwargs) -> CrawlFrontier:
    return CrawlFrontier(SEED, max_depth=max_depth, max_pages=max_pages, **kwargs)


def test_level_zero_is_the_seed():
    frontier = make()
    assert frontier.next_level() == [("https://example.com/", 0)]
    assert frontier.visited == {"https://example.com/"}
    assert frontier.enqueued == 1


def test_equivalent_urls_collapse_to_one_entry():
    frontier = make()
    added = frontier.advance([
        ("https://example.com/", [
            "/about",
            "/about/",
            "https://example.com/about#team",
            "HTTPS://EXAMPLE.COM:443/about",
            "/",
            "https://example.com/#top",
        ]),
    ])
    assert added == 1
    assert frontier.next_level() == [("https://example.com/about", 1)]


def test_out_of_scope_and_non_http_links_are_dropped():
    frontier = make()
    frontier.advance([
        ("https://example.com/", [
            "https://other.com/x",
            "mailto:someone@example.com",
            "https://blog.example.com/post",
            "/contact",
        ]),
    ])
    assert [u for u, _ in frontier.next_level()] == [
        "https://blog.example.com/post",
        "https://example.com/contact",
    ]


def test_exact_host_scope_when_subdomains_excluded():
    frontier = make(include_subdomains=False)
    frontier.advance([("https://example.com/", ["https://blog.example.com/post", "/contact"])])
    assert [u for u, _ in frontier.next_level()] == ["https://example.com/contact"]


def test_visited_urls_are_never_enqueued_again():
    frontier = make()
    frontier.advance([("https://example.com/", ["/a", "/b"])])
    frontier.advance([
        ("https://example.com/a", ["/", "/b", "/c"]),
        ("https://example.com/b", ["/a", "/c", "/d"]),
    ])
    assert frontier.next_level() == [("https://example.com/c", 2), ("https://example.com/d", 2)]
    assert frontier.claim("https://example.com/c") is False


def test_page_budget_limits_enqueued_urls():
    frontier = make(max_pages=3)
    added = frontier.advance([("https://example.com/", ["/1", "/2", "/3", "/4", "/5"])])
    assert added == 2
    assert frontier.enqueued == 3
    assert frontier.budget_left == 0
    assert frontier.advance([("https://example.com/1", ["/6"])]) == 0
    assert frontier.done


def test_nothing_beyond_max_depth_is_enqueued():
    frontier = make(max_depth=1)
    assert frontier.advance([("https://example.com/", ["/a"])]) == 1
    assert frontier.depth == 1
    assert frontier.advance([("https://example.com/a", ["/b"])]) == 0
    assert frontier.done
    assert "https://example.com/b" not in frontier.visited


def test_max_depth_zero_only_visits_seed():
    frontier = make(max_depth=0)
    assert frontier.next_level() == [("https://example.com/", 0)]
    assert frontier.advance([("https://example.com/", ["/a"])]) == 0
    assert frontier.done


def test_empty_level_ends_the_crawl():
    frontier = make()
    assert frontier.advance([]) == 0
    assert frontier.done
    assert frontier.next_level() == []


def test_record_page_never_exceeds_budget():
    frontier = make(max_pages=1)
    frontier.record_page()
    with pytest.raises(RuntimeError):
        frontier.record_page()


def test_mark_visited_does_not_use_budget():
    frontier = make(max_pages=2)
    frontier.mark_visited("https://example.com/landing/")
    assert "https://example.com/landing" in frontier.visited
    assert frontier.enqueued == 1


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("https://example.com", "https://example.com/"),
        ("https://example.com/about/", "https://example.com/about"),
        ("https://example.com/about#x", "https://example.com/about"),
        ("http://Example.com:80//a//b/", "http://example.com/a/b"),
        ("https://example.com/s?b=2&a=1", "https://example.com/s?a=1&b=2"),
        ("https://user:pw@example.com/", "https://example.com/"),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


def test_scope_for_local_hosts_compares_hostnames():
    assert in_same_scope("http://localhost:8000/a", "http://localhost:8000/")
    assert not in_same_scope("http://127.0.0.1/a", "http://localhost/")
