import io
import json
from datetime import datetime

import pytest
import yaml
from jinja2 import DictLoader, Environment
from PIL import Image as PILImage

from inkwell.content import PostMeta, SiteMeta
from inkwell.errors import ImageMetadataError, TemplateRenderError
from inkwell.filesystem import MemoryFilesystem
from inkwell.functions import (
    PostFunctions,
    make_map,
    make_slice,
    textcontent,
    to_plain,
    tojson,
    toyaml,
)
from inkwell.images import ImageData
from inkwell.links import LinkTable
from inkwell.site import Post, Site


def png_bytes(width, height):
    buffer = io.BytesIO()
    PILImage.new("RGB", (width, height)).save(buffer, format="PNG")
    return buffer.getvalue()


def make_functions(fs, templates=None):
    site = Site(SiteMeta())
    post = Post(
        "01-test",
        "src/posts/01-test",
        PostMeta(title="Test", date="2012-09-07", slug="test"),
        datetime(2012, 9, 7),
        site,
    )
    site.add_post(post)
    links = LinkTable()
    links.register("01-test", post.path, ["img.png"])
    env = Environment(loader=DictLoader(templates or {}))
    return PostFunctions(fs, post, links, env)


def test_link_scopes_to_current_post():
    functions = make_functions(MemoryFilesystem())
    assert functions.link("img.png") == "/2012-09-07/test/img.png"
    assert functions.link("01-test") == "/2012-09-07/test"
    assert functions.link("nope") == ""


def test_include_reads_or_inlines_marker():
    fs = MemoryFilesystem()
    fs.write("src/posts/01-test/snippet.html", "<b>included</b>")
    functions = make_functions(fs)
    assert functions.include("snippet.html") == "<b>included</b>"
    assert functions.include("missing.html") == "[[ERROR: Could not read src/posts/01-test/missing.html]]"


def test_imagemeta():
    fs = MemoryFilesystem()
    fs.write("src/posts/01-test/gallery/photo.png", png_bytes(250, 340))
    fs.write("src/posts/01-test/notes.txt", "not an image")
    functions = make_functions(fs)
    assert functions.imagemeta("gallery/photo.png") == ImageData(
        250, 340, "/2012-09-07/test/gallery/photo.png"
    )
    with pytest.raises(ImageMetadataError):
        functions.imagemeta("notes.txt")
    with pytest.raises(ImageMetadataError):
        functions.imagemeta("missing.png")


def test_yamltemplate_from_name_and_macro():
    templates = {
        "data.tmpl": "title: {{ 'Gallery' }}\nitems:\n  - a\n  - b\n",
        "list.tmpl": "- a\n- b\n",
    }
    functions = make_functions(MemoryFilesystem(), templates)
    assert functions.yamltemplate("data.tmpl") == {"title": "Gallery", "items": ["a", "b"]}

    macro_env = Environment()
    macro = macro_env.from_string(
        "{% macro meta() %}width: 10\nheight: 20\n{% endmacro %}"
    ).module.meta
    assert functions.yamltemplate(macro) == {"width": 10, "height": 20}

    with pytest.raises(TemplateRenderError):
        functions.yamltemplate("list.tmpl")
    with pytest.raises(TemplateRenderError):
        functions.yamltemplate("missing.tmpl")


def test_value_helpers():
    assert make_slice(1, 2, 3) == [1, 2, 3]
    assert make_map("a", 1, "b", 2) == {"a": 1, "b": 2}
    with pytest.raises(TemplateRenderError):
        make_map("a")

    data = {"image": ImageData(1, 2, "/x.png"), "when": datetime(2012, 9, 7)}
    assert to_plain(data) == {
        "image": {"width": 1, "height": 2, "path": "/x.png"},
        "when": "2012-09-07T00:00:00",
    }
    assert json.loads(tojson(data))["image"]["width"] == 1
    assert yaml.safe_load(toyaml(data))["image"]["path"] == "/x.png"


def test_registry_globals_render_in_body():
    fs = MemoryFilesystem()
    fs.write("src/posts/01-test/img.png", png_bytes(3, 4))
    functions = make_functions(fs)
    env = Environment()
    body = env.from_string(
        "{% set img = imagemeta('img.png') %}"
        "<img src=\"{{ link('img.png') }}\" width=\"{{ img.width }}\">"
        "{{ tojson(map('k', slice(1, 2))) }}",
        globals=functions.as_globals(),
    ).render()
    assert body == '<img src="/2012-09-07/test/img.png" width="3">{"k": [1, 2]}'


def test_textcontent_unescapes_entities_and_collapses_whitespace():
    html = "<h1>Fish &amp; chips</h1>\n\n<p>  served   <em>hot</em></p>"
    assert textcontent(html) == "Fish & chips served hot"
