"""Tests for the press pipeline."""

import io
import re

import pytest

from html_press import (
    CompressorError,
    ConfigurationError,
    PressOptions,
    PressResult,
    press,
    press_file,
    press_with_stats,
)
from html_press.options import BLOCK_ELEMENTS, VOID_ELEMENTS
from html_press.press import (
    _collapse_block_whitespace,
    _fix_void_elements,
    _normalize_attributes,
    _normalize_whitespace,
    _reindent,
    _strip_empty_comments,
    _trim_lines,
)


IDENTITY = {
    "script_minifier": lambda text, options, cache_dir: text,
    "style_minifier": lambda text, cache_dir: text,
}

PAGE = """<!DOCTYPE html>
<html>
<head>
  <title> Test </title>
  <style>
    body { color: red; }
  </style>
</head>
<body>
  <div   class="a"
       id="b">
    <p>Hello <b>there</b>   friend<br></p>
    <img src="x.png" >
  </div>
  <script>
    var x = "<div>";
  </script>
</body>
</html>"""

PRESSED_PAGE = """<!DOCTYPE html>
<html>
  <head>
    <title> Test</title>
    <style>
      body { color: red; }
    </style>
  </head>
  <body>
    <div class="a" id="b">
      <p>Hello <b>there</b> friend<br/></p>
      <img src="x.png"/>
    </div>
    <script>
      var x = "<div>";
    </script>
  </body>
</html>"""

MESSY_DOCUMENTS = [
    PAGE,
    "<div>\n  <p>Hello   world</p>\n</div>",
    "</div>\n</div>\n<div>\n\t<p>x</p>\n</div>",
    "<ul>\n  <li>a\n  </li><li>b\n  </li>\n</ul>",
    "  text   <span>  x  </span>   \n\n\n   <div>\t</div>   ",
    "<table>\r\n<tr><td> 1 </td>   <td>2</td></tr>\r\n</table>",
    "<p>a<br>b<br/>c<br />d<BR  >e</p>\n<input\n  type=\"text\"\n  name=\"q\" >",
    "<!-- -->\n<!--[if IE]><p>old</p><![endif]-->\n<!-- keep me -->",
    "<script>\n  if (a<b && c>d) {\n    go();\n  }\n</script>\n<style>\n  p {  }\n</style>",
    "<script>\nunterminated();\n",
    "",
]


class TestPress:
    def test_returns_string(self):
        assert isinstance(press("<p>x</p>"), str)

    def test_nested_block_is_reindented(self):
        assert press("<div>\n  <p>Hello   world</p>\n</div>") == "<div>\n  <p>Hello world</p>\n</div>"

    def test_full_page(self):
        assert press(PAGE, **IDENTITY) == PRESSED_PAGE

    def test_empty_string(self):
        assert press("") == ""

    def test_whitespace_only(self):
        assert press("   \n\t\n   ") == ""

    def test_carriage_returns_removed(self):
        assert press("<div>\r\n<p>a</p>\r\n</div>") == "<div>\n  <p>a</p>\n</div>"

    def test_readable_input(self):
        assert press(io.StringIO("<div>\n<p>x</p>\n</div>")) == "<div>\n  <p>x</p>\n</div>"

    def test_accepts_options_object(self):
        options = PressOptions(strip_line_breaks=True)
        assert press("<b>a</b>\n<i>b</i>", options) == "<b>a</b> <i>b</i>"

    def test_overrides_applied_on_top_of_options(self):
        options = PressOptions(strip_line_breaks=True)
        assert press("<b>a</b>\n<i>b</i>", options, strip_line_breaks=False) == "<b>a</b>\n<i>b</i>"


class TestEmbeddedScripts:
    def test_identity_minifier_keeps_body_and_tags(self):
        html = "<script>\n  var x = 1;\n</script>"
        assert press(html, **IDENTITY) == "<script>\n  var x = 1;\n</script>"

    def test_default_minifier(self):
        html = "<script>\n  var  answer = 42;\n</script>"
        assert press(html) == "<script>\n  var answer=42\n</script>"

    def test_body_shielded_from_markup_passes(self):
        html = "<script>\n  var s = 'a    b';\n  var t = '<br>';\n</script>"
        result = press(html, **IDENTITY)
        assert "var s = 'a    b';" in result
        assert "'<br>'" in result

    def test_tags_inside_script_do_not_indent(self):
        html = "<div>\n<script>\nif (a<b && c>d) { x(); }\n</script>\n<p>y</p>\n</div>"
        assert press(html, **IDENTITY) == (
            "<div>\n"
            "  <script>\n"
            "    if (a<b && c>d) { x(); }\n"
            "  </script>\n"
            "  <p>y</p>\n"
            "</div>"
        )

    def test_nested_script_tags_form_one_block(self):
        html = "<script>\ndocument.write('<script>x</script>');\nvar y = 1;\n</script>"
        result = press_with_stats(html, **IDENTITY)
        assert len(result.embedded_blocks) == 1
        assert result.text == (
            "<script>\n"
            "  document.write('<script>x</script>');\n"
            "  var y = 1;\n"
            "</script>"
        )

    def test_single_line_script_left_in_markup(self):
        result = press_with_stats("<script>var a = 1;</script>")
        assert result.text == "<script>var a = 1;</script>"
        assert result.embedded_blocks == ()

    def test_self_closing_script_does_not_open_block(self):
        html = '<script src="a.js"/>\n<div>\n<p>x</p>\n</div>'
        assert press(html) == '<script src="a.js"/>\n<div>\n  <p>x</p>\n</div>'

    def test_unterminated_block_kept_verbatim(self):
        result = press_with_stats("<script>\nvar a  =  1;", **IDENTITY)
        assert result.text == "<script>\n  var a  =  1;"
        assert result.embedded_blocks == ()

    def test_minifier_disabled_passes_body_through(self):
        html = "<script>\n  var  a = 1;\n</script>"
        assert press(html, script_minifier=None) == "<script>\n  var  a = 1;\n</script>"

    def test_script_options_forwarded(self):
        seen = []

        def minifier(text, options, cache_dir):
            seen.append((text, options, cache_dir))
            return text

        press("<script>\nx();\n</script>", script_minifier=minifier, script_options={"k": 1}, cache_dir="/tmp/c")
        assert seen == [("x();", {"k": 1}, "/tmp/c")]


class TestEmbeddedStyles:
    def test_default_minifier(self):
        html = "<style>\n  body {\n    color: red;\n  }\n</style>"
        lines = press(html).split("\n")
        assert lines[0] == "<style>"
        assert lines[-1] == "</style>"
        assert len(lines) == 3
        assert "color:red" in lines[1]

    def test_style_inside_script_is_script_text(self):
        html = "<script>\nvar css = '<style>';\n</script>\n<p>x</p>"
        result = press_with_stats(html, **IDENTITY)
        assert [b.kind for b in result.embedded_blocks] == ["script"]
        assert result.text == "<script>\n  var css = '<style>';\n</script>\n<p>x</p>"

    def test_block_lengths_recorded(self):
        result = press_with_stats("<style>\n  p {  }\n</style>", **IDENTITY)
        (block,) = result.embedded_blocks
        assert block.kind == "style"
        assert block.original_length == len("  p {  }")
        assert block.compressed_length == len("  p {  }")


class TestCompressorFailure:
    class RecordingLogger:
        def __init__(self):
            self.messages = []

        def error(self, message):
            self.messages.append(message)

    @staticmethod
    def broken(text, options, cache_dir):
        raise RuntimeError("boom")

    def test_error_propagates_with_snippet(self):
        with pytest.raises(CompressorError) as exc_info:
            press("<script>\n  var a = 1;\n</script>", script_minifier=self.broken)
        assert exc_info.value.kind == "script"
        assert exc_info.value.snippet == "  var a = 1;"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_snippet_sent_to_logger(self):
        logger = self.RecordingLogger()
        with pytest.raises(CompressorError):
            press("<script>\n  var a = 1;\n</script>", script_minifier=self.broken, logger=logger)
        assert len(logger.messages) == 1
        assert "var a = 1;" in logger.messages[0]

    def test_compressor_error_from_minifier_not_rewrapped(self):
        def failing(text, cache_dir):
            raise CompressorError("style", text, "bad css")

        with pytest.raises(CompressorError, match="bad css"):
            press("<style>\np {\n</style>", style_minifier=failing)


class TestComments:
    def test_empty_comment_removed(self):
        assert press("<div><!-- --></div>") == "<div></div>"

    def test_tab_comment_removed(self):
        assert _strip_empty_comments("a<!--\t\t-->b<!---->c") == "abc"

    def test_comment_with_text_kept(self):
        assert press("<div><!-- keep me --></div>") == "<div><!-- keep me --></div>"

    def test_conditional_comment_kept(self):
        html = "<!--[if IE]><p>x</p><![endif]-->"
        assert press(html) == html

    def test_comment_line_disappears(self):
        assert press("<div>\n  <!-- -->\n</div>") == "<div>\n</div>"


class TestLineTrimming:
    def test_trims_each_line(self):
        assert _trim_lines("  a  \n\tb\t\n c") == "a\nb\nc"

    def test_line_breaks_untouched(self):
        assert _trim_lines("a\n\n b") == "a\n\nb"


class TestBlockElements:
    def test_space_before_block_tag_removed(self):
        assert _collapse_block_whitespace("text   <div>x</div>", BLOCK_ELEMENTS) == "text<div>x</div>"

    def test_space_before_closing_block_tag_removed(self):
        assert _collapse_block_whitespace("<td>x \t</td>", BLOCK_ELEMENTS) == "<td>x</td>"

    def test_inline_tag_keeps_space(self):
        assert _collapse_block_whitespace("text   <span>x</span>", BLOCK_ELEMENTS) == "text   <span>x</span>"

    def test_text_between_tags_edges_squeezed(self):
        assert _collapse_block_whitespace("<b>   x  y   </b>", BLOCK_ELEMENTS) == "<b> x  y </b>"

    def test_prefix_of_longer_name_not_block(self):
        assert _collapse_block_whitespace("a <param> b <pre>", BLOCK_ELEMENTS) == "a<param> b <pre>"

    def test_custom_block_elements(self):
        assert press("a <span>b</span>", block_elements=("span",)) == "a<span>b</span>"

    def test_empty_block_set_keeps_space_before_tags(self):
        assert press("a <span>b</span>", block_elements=()) == "a <span>b</span>"
        assert press("a <div>b</div>", block_elements=()) == "a <div>b</div>"


class TestWhitespace:
    def test_runs_collapsed(self):
        assert _normalize_whitespace("a\n\n\nb   c\t\td") == "a\nb c d"

    def test_strip_line_breaks(self):
        assert _normalize_whitespace("a\n\n b\nc", strip_line_breaks=True) == "a b c"

    def test_empty_lines_removed(self):
        assert _normalize_whitespace("\n\na\n\n") == "a"

    def test_strip_line_breaks_drops_space_before_block_tags(self):
        assert press("<p>a</p>\n<p>b</p>", strip_line_breaks=True) == "<p>a</p><p>b</p>"

    def test_strip_line_breaks_keeps_space_before_inline_tags(self):
        assert press("<b>a</b>\n<i>b</i>", strip_line_breaks=True) == "<b>a</b> <i>b</i>"

    def test_strip_line_breaks_flattens_unminified_script(self):
        html = "<div>\n<script>\nvar a = 1;\nvar b = 2;\n</script>\n</div>"
        result = press(html, strip_line_breaks=True, script_minifier=None)
        assert result == "<div> <script> var a = 1; var b = 2; </script></div>"

    def test_strip_line_breaks_flattens_multiline_minifier_output(self):
        html = "<style>\np { margin: 0 }\n</style>"
        result = press(html, strip_line_breaks=True, style_minifier=lambda text, cache_dir: "p {\n  margin: 0\n}")
        assert result == "<style> p { margin: 0 } </style>"


class TestAttributes:
    def test_whitespace_collapsed(self):
        assert _normalize_attributes('<a  href="x"\n   title="y"  >') == '<a href="x" title="y">'

    def test_self_closing_slash_kept(self):
        assert _normalize_attributes('<foo  bar="1"  />') == '<foo bar="1"/>'

    def test_close_tag_untouched(self):
        assert _normalize_attributes("</a  >") == "</a  >"

    def test_multiline_tag_joined(self):
        html = '<div\n  class="a"\n  id="b">\n<p>x</p>\n</div>'
        assert press(html) == '<div class="a" id="b">\n  <p>x</p>\n</div>'


class TestVoidElements:
    @pytest.mark.parametrize("tag", ["<br>", "<br/>", "<br />", "<br  / >"])
    def test_void_forms_normalized(self, tag: str):
        assert press(f"<p>a{tag}b</p>") == "<p>a<br/>b</p>"

    def test_attributes_kept(self):
        assert _fix_void_elements('<img src="a.png" alt="a">', VOID_ELEMENTS) == '<img src="a.png" alt="a"/>'

    def test_uppercase_name(self):
        assert _fix_void_elements("<BR>", VOID_ELEMENTS) == "<BR/>"

    def test_longer_name_untouched(self):
        assert press("<brick>x</brick>") == "<brick>x</brick>"

    def test_custom_void_elements(self):
        assert press("<p>a<br>b<x-icon>c</p>", void_elements=("x-icon",)) == "<p>a<br>b<x-icon/>c</p>"


class TestReindent:
    def test_nesting(self):
        assert _reindent("<div>\n<p>\nx\n</p>\n</div>") == "<div>\n  <p>\n    x\n  </p>\n</div>"

    def test_unmatched_close_clamps_at_zero(self):
        html = "</div>\n</div>\n<div>\n<p>x</p>\n</div>"
        assert press(html) == "</div>\n</div>\n<div>\n  <p>x</p>\n</div>"

    def test_extra_close_does_not_raise(self):
        assert press("<div>\n</div>\n</div>\n<p>x</p>") == "<div>\n</div>\n</div>\n<p>x</p>"

    def test_line_indented_at_shallower_level(self):
        assert _reindent("<div>\n<p>a</p></div>") == "<div>\n<p>a</p></div>"

    def test_close_and_reopen_on_one_line(self):
        html = "<ul>\n<li>a\n</li><li>b\n</li>\n</ul>"
        assert _reindent(html) == "<ul>\n  <li>a\n    </li><li>b\n  </li>\n</ul>"

    def test_declarations_do_not_nest(self):
        html = "<!DOCTYPE html>\n<html>\n<body>\n</body>\n</html>"
        assert press(html) == "<!DOCTYPE html>\n<html>\n  <body>\n  </body>\n</html>"

    def test_self_closing_does_not_nest(self):
        assert _reindent("<div>\n<foo/>\n</div>") == "<div>\n  <foo/>\n</div>"


class TestProperties:
    @pytest.mark.parametrize("html", MESSY_DOCUMENTS)
    def test_no_whitespace_only_lines(self, html: str):
        result = press(html, **IDENTITY)
        assert not any(line.strip() == "" and line for line in result.split("\n"))

    @pytest.mark.parametrize("html", MESSY_DOCUMENTS)
    def test_indentation_is_even(self, html: str):
        for line in press(html, **IDENTITY).split("\n"):
            indent = len(line) - len(line.lstrip(" "))
            assert indent % 2 == 0

    @pytest.mark.parametrize("html", MESSY_DOCUMENTS)
    def test_void_elements_self_closed(self, html: str):
        result = press(html, **IDENTITY)
        for tag in re.findall(r"<(?:br|img|input|hr|meta|link)\b[^>]*>", result, re.IGNORECASE):
            assert tag.endswith("/>")

    @pytest.mark.parametrize("html", MESSY_DOCUMENTS)
    def test_second_pass_is_fixed_point(self, html: str):
        once = press(html, **IDENTITY)
        assert press(once, **IDENTITY) == once

    @pytest.mark.parametrize("html", MESSY_DOCUMENTS)
    def test_second_pass_is_fixed_point_on_one_line(self, html: str):
        once = press(html, strip_line_breaks=True, **IDENTITY)
        assert "\n" not in once
        assert press(once, strip_line_breaks=True, **IDENTITY) == once

    def test_second_pass_with_default_minifiers(self):
        once = press(PAGE)
        assert press(once) == once

    def test_second_pass_on_one_line_with_default_minifiers(self):
        once = press(PAGE, strip_line_breaks=True)
        assert press(once, strip_line_breaks=True) == once


class TestPressWithStats:
    def test_result_text_matches_press(self):
        assert press_with_stats(PAGE).text == press(PAGE)

    def test_lengths(self):
        result = press_with_stats(PAGE)
        assert result.original_length == len(PAGE)
        assert result.compressed_length == len(result.text)
        assert result.compressed_length < result.original_length

    def test_ratio_and_savings(self):
        result = press_with_stats(PAGE)
        assert abs(result.ratio - result.compressed_length / result.original_length) < 0.001
        assert abs(result.savings_pct - (1 - result.ratio) * 100) < 0.001

    def test_embedded_blocks_in_order(self):
        result = press_with_stats(PAGE, **IDENTITY)
        assert [b.kind for b in result.embedded_blocks] == ["script", "style"]

    def test_str_returns_text(self):
        result = press_with_stats("<p>x</p>")
        assert isinstance(result, PressResult)
        assert str(result) == result.text

    def test_empty_input(self):
        result = press_with_stats("")
        assert result.text == ""
        assert result.original_length == 0
        assert result.ratio == 1.0
        assert result.savings_pct == 0.0
        assert result.embedded_blocks == ()


class TestPressFile:
    def test_reads_whole_file(self, tmp_path):
        path = tmp_path / "page.html"
        path.write_text(PAGE, encoding="utf-8")
        assert press_file(path, **IDENTITY) == PRESSED_PAGE

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            press_file(tmp_path / "missing.html")


class TestConfiguration:
    def test_logger_without_error_method_rejected(self):
        with pytest.raises(ConfigurationError, match="error method"):
            press("<p>x</p>", logger=object())

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            press("<p>x</p>", no_such_option=True)

    def test_deprecated_option_remapped(self):
        with pytest.warns(FutureWarning, match="strip_crlf"):
            result = press("<b>a</b>\n<i>b</i>", strip_crlf=True)
        assert result == "<b>a</b> <i>b</i>"
