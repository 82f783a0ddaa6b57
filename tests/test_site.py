from datetime import datetime

import pytest

from inkwell.content import PostMeta, SiteMeta
from inkwell.errors import MissingImageError, PathResolutionError
from inkwell.site import Post, Site


def make_site(**meta):
    return Site(SiteMeta(**meta), rendered=datetime(2020, 1, 1))


def add_post(site, id, date, slug=None, tags=(), **meta):
    post_meta = PostMeta(
        title=meta.pop("title", id),
        date=date,
        slug=slug or id,
        tags=list(tags),
        **meta,
    )
    post = Post(id, f"src/posts/{id}", post_meta, datetime.strptime(date, "%Y-%m-%d"), site)
    site.add_post(post)
    return post


def test_post_path_from_default_format():
    site = make_site(root="https://example.com")
    post = add_post(site, "01-test", "2012-09-07", slug="Hello-World")
    assert post.slug == "hello-world"
    assert post.date_path == "2012-09-07"
    assert post.path == "/2012-09-07/hello-world"
    assert post.permalink == "https://example.com/2012-09-07/hello-world"
    assert post.url == "https://example.com/2012-09-07/hello-world"
    assert post.formatted_date == "Fri Sep 07, 2012"


def test_post_path_from_custom_formats():
    site = make_site(path_format="/{{ date.year }}/{{ id }}", date_format="%Y/%m")
    post = Post(
        "01-test",
        "src/posts/01-test",
        PostMeta(title="t", date="2012/09", slug="s"),
        datetime(2012, 9, 1),
        site,
    )
    assert post.path == "/2012/01-test"
    assert post.date_path == "2012/09"


def test_bad_path_format_raises():
    site = make_site(path_format="/{{ nope }}")
    post = add_post(site, "01-test", "2012-09-07")
    with pytest.raises(PathResolutionError):
        post.path
    broken = make_site(path_format="/{{ slug ")
    other = add_post(broken, "01-test", "2012-09-07")
    with pytest.raises(PathResolutionError):
        other.path


def test_go_style_path_format_points_to_jinja_form():
    site = make_site(path_format="/{{.DatePath}}/{{.Slug}}")
    post = add_post(site, "01-test", "2012-09-07")
    with pytest.raises(PathResolutionError) as excinfo:
        post.path
    assert "{{ date_path }}" in str(excinfo.value)


def test_tag_path():
    assert make_site().tag_path("hello") == "/tags/hello"
    assert make_site(tags_format="/t/{{ tag | upper }}.html").tag_path("x") == "/t/X.html"
    with pytest.raises(PathResolutionError):
        make_site(tags_format="{{ missing }}").tag_path("x")


def test_chronology_next_and_prev():
    site = make_site()
    oldest = add_post(site, "01-a", "2012-01-01")
    middle = add_post(site, "02-b", "2012-06-01")
    newest = add_post(site, "03-c", "2013-01-01")

    assert site.posts_by_date == [newest, middle, oldest]
    assert newest.next is None
    assert newest.prev is middle
    assert middle.next is newest
    assert middle.prev is oldest
    assert oldest.prev is None
    assert oldest.next is middle


def test_chronology_cache_invalidated_by_add_post():
    site = make_site()
    first = add_post(site, "01-a", "2012-01-01")
    assert site.posts_by_date == [first]
    second = add_post(site, "02-b", "2012-01-01")
    assert site.posts_by_date == [second, first]


def test_recent_posts_clamped():
    site = make_site(recent_count=2)
    posts = [add_post(site, f"0{i}", f"2012-01-0{i}") for i in range(1, 4)]
    assert site.recent_posts == [posts[2], posts[1]]
    site.meta.recent_count = 10
    assert len(site.recent_posts) == 3
    site.meta.recent_count = -1
    assert site.recent_posts == []


def test_scripts_styles_and_metadata():
    site = make_site()
    post = add_post(
        site,
        "01-test",
        "2012-09-07",
        slug="s",
        scripts=["app.js", "/static/common.js"],
        styles=["post.css"],
        metadata={"mood": "happy"},
    )
    assert post.scripts == ["/2012-09-07/s/app.js", "/static/common.js"]
    assert post.styles == ["/2012-09-07/s/post.css"]
    assert post.has_metadata("mood")
    assert post.metadata["mood"] == "happy"


def test_tags_and_counts():
    site = make_site()
    a = add_post(site, "01-a", "2012-01-01", tags=["hello", "world"])
    b = add_post(site, "02-b", "2012-01-02", tags=["hello"])
    assert site.tags["hello"] == [a, b]
    assert [(c.tag, c.count) for c in site.tag_counts] == [("hello", 2), ("world", 1)]


def test_missing_image_lookup():
    site = make_site()
    post = add_post(site, "01-a", "2012-01-01")
    assert post.image_if_exists("nope") is None
    assert post.image_list("nope") == []
    with pytest.raises(MissingImageError):
        post.image("nope")
