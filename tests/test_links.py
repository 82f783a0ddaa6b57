from datetime import datetime

from inkwell.content import PostMeta, SiteMeta
from inkwell.filesystem import MemoryFilesystem
from inkwell.links import LinkTable, build_links
from inkwell.site import Post, Site


def test_link_table_resolution_prefers_scope():
    links = LinkTable()
    links.register("01-test", "/2012-09-07/test", ["img.png", "body.md"])
    links.register("02-other", "/2012-09-08/other", ["img.png"])

    assert links.resolve("01-test") == "/2012-09-07/test"
    assert links.resolve("01-test/img.png") == "/2012-09-07/test/img.png"
    assert links.resolve("img.png", scope="02-other") == "/2012-09-08/other/img.png"
    assert links.resolve("01-test/img.png", scope="02-other") == "/2012-09-07/test/img.png"
    assert links.resolve("img.png") == ""
    assert links.resolve("missing", scope="01-test") == ""
    assert len(links) == 5
    assert links["02-other"] == "/2012-09-08/other"


def test_build_links_registers_post_resources():
    fs = MemoryFilesystem()
    fs.write("src/posts/01-test/meta.yaml", "")
    fs.write("src/posts/01-test/img.png", b"")
    site = Site(SiteMeta())
    post = Post(
        "01-test",
        "src/posts/01-test",
        PostMeta(title="Test", date="2012-09-07", slug="hello-world"),
        datetime(2012, 9, 7),
        site,
    )
    site.add_post(post)

    links = build_links(fs, site.posts.values())

    assert links.resolve("01-test") == "/2012-09-07/hello-world"
    assert links.resolve("01-test/img.png") == "/2012-09-07/hello-world/img.png"
    assert links.resolve("img.png", scope="01-test") == "/2012-09-07/hello-world/img.png"
