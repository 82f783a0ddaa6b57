from datetime import datetime

import pytest

from inkwell.content import PostMeta, SiteMeta
from inkwell.errors import (
    MissingPostTemplateError,
    TemplateParseError,
    TemplateRenderError,
)
from inkwell.filesystem import MemoryFilesystem
from inkwell.functions import PostFunctions
from inkwell.links import LinkTable
from inkwell.site import Post, Site
from inkwell.templates import compose_templates, extend_layout

ROOT = "<html><title>{% block title %}{{ site.title }}{% endblock %}</title><body>{% block content %}{% endblock %}</body></html>"
POST = "{% block title %}{{ post.title }}{% endblock %}{% block content %}{{ post.body }}{% endblock %}"
TAGS = "{% block content %}{{ tag }}:{% for p in posts %}{{ p.id }},{% endfor %}{% endblock %}"


def make_post(site, id="01-test"):
    post = Post(
        id,
        f"src/posts/{id}",
        PostMeta(title="Hello", date="2012-09-07", slug="hello"),
        datetime(2012, 9, 7),
        site,
    )
    site.add_post(post)
    return post


def templates_fs(**files):
    fs = MemoryFilesystem()
    for name, text in files.items():
        fs.write(f"src/templates/{name.replace('_', '.')}", text)
    return fs


def test_extend_layout():
    assert extend_layout("{% block a %}{% endblock %}", "root.tmpl").startswith(
        '{% extends "root.tmpl" %}'
    )
    assert extend_layout('{% extends "other.tmpl" %}', "root.tmpl") == '{% extends "other.tmpl" %}'
    assert extend_layout("text", None) == "text"


def test_post_and_tags_templates_extend_the_root_layout():
    fs = templates_fs(root_tmpl=ROOT, post_tmpl=POST, tags_tmpl=TAGS)
    templates = compose_templates(fs, "src/templates")
    assert templates.layout == "root.tmpl"

    site = Site(SiteMeta(title="My Blog"))
    post = make_post(site)
    post.body = "<p>Body</p>"

    page = templates.render_post_page(post, site)
    assert page == "<html><title>Hello</title><body><p>Body</p></body></html>"
    tags_page = templates.render_tags_page("hello", [post], site)
    assert tags_page == "<html><title>My Blog</title><body>hello:01-test,</body></html>"


def test_layout_falls_back_to_first_shared_template():
    fs = templates_fs(base_tmpl=ROOT, zzz_tmpl="unused", post_tmpl=POST)
    templates = compose_templates(fs, "src/templates")
    assert templates.layout == "base.tmpl"
    assert templates.tags is None


def test_post_template_is_layout_without_shared_templates():
    fs = templates_fs(post_tmpl="<main>{% block content %}{{ post.body }}{% endblock %}</main>")
    templates = compose_templates(fs, "src/templates")
    assert templates.layout == "post.tmpl"
    site = Site(SiteMeta())
    post = make_post(site)
    post.body = "x"
    assert templates.render_post_page(post, site) == "<main>x</main>"
    misc = templates.render_misc("{% block content %}{{ site.title }}!{% endblock %}", site, "src/a.tmpl")
    assert misc == "<main>!</main>"


def test_missing_post_template_is_fatal():
    fs = templates_fs(root_tmpl=ROOT)
    with pytest.raises(MissingPostTemplateError):
        compose_templates(fs, "src/templates")


def test_missing_templates_directory_renders_empty(capsys):
    templates = compose_templates(MemoryFilesystem(), "src/templates")
    site = Site(SiteMeta())
    post = make_post(site)
    assert templates.render_post_page(post, site) == ""
    assert templates.render_tags_page("t", [post], site) == ""
    assert "Templates directory not found src/templates" in capsys.readouterr().out


def test_syntax_error_reports_file_and_line():
    fs = templates_fs(root_tmpl=ROOT, post_tmpl="{% block content %}\n{{ post.body + }}\n{% endblock %}")
    with pytest.raises(TemplateParseError) as excinfo:
        compose_templates(fs, "src/templates")
    assert excinfo.value.source_path == "src/templates/post.tmpl"
    assert excinfo.value.lineno == 2


def test_runtime_error_is_wrapped():
    fs = templates_fs(root_tmpl=ROOT, post_tmpl="{% block content %}{{ post.body.nope.deeper }}{% endblock %}")
    templates = compose_templates(fs, "src/templates")
    site = Site(SiteMeta())
    post = make_post(site)
    with pytest.raises(TemplateRenderError) as excinfo:
        templates.render_post_page(post, site)
    assert excinfo.value.source_path == "src/templates/post.tmpl"


def test_value_helpers_are_filters_and_globals():
    fs = templates_fs(
        root_tmpl="{% block content %}{% endblock %}",
        post_tmpl="{% block content %}{{ post.date | timeformat('%Y') }} {{ textcontent('<b>x</b>') }}{% endblock %}",
    )
    templates = compose_templates(fs, "src/templates")
    site = Site(SiteMeta())
    post = make_post(site)
    assert templates.render_post_page(post, site) == "2012 x"


def test_body_sees_registry_and_shared_macros():
    fs = templates_fs(
        root_tmpl=ROOT,
        post_tmpl=POST,
        macros_tmpl='{% macro shout(text) %}{{ text | upper }}!{% endmacro %}',
    )
    templates = compose_templates(fs, "src/templates")
    site = Site(SiteMeta())
    post = make_post(site)
    links = LinkTable()
    links.register("02-other", "/2012-09-08/other")
    functions = PostFunctions(fs, post, links, templates.env)

    body = templates.render_body(
        '{% from "macros.tmpl" import shout %}{{ shout("hi") }} {{ link("02-other") }}',
        functions,
    )
    assert body == "HI! /2012-09-08/other"


def test_body_syntax_error_points_at_body():
    templates = compose_templates(templates_fs(post_tmpl=POST), "src/templates")
    site = Site(SiteMeta())
    post = make_post(site)
    functions = PostFunctions(MemoryFilesystem(), post, LinkTable(), templates.env)
    with pytest.raises(TemplateParseError) as excinfo:
        templates.render_body("{{ broken", functions)
    assert excinfo.value.source_path == "src/posts/01-test/body.md"
