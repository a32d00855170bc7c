"""Tests for sanitizer.sanitize, sanitize_markup and collapse_whitespace."""

from wcag_analyzer.services.sanitizer import collapse_whitespace, sanitize, sanitize_markup


class TestSanitize:
    def test_removes_script_tags(self):
        soup = sanitize("<p>Text</p><script>alert('xss')</script>")
        assert "alert" not in soup.get_text()

    def test_removes_style_tags(self):
        soup = sanitize("<style>body { color: red; }</style><p>Text</p>")
        assert "color" not in soup.get_text()

    def test_removes_noscript_and_template(self):
        soup = sanitize("<noscript>Enable JS</noscript><template><b>x</b></template><p>Keep</p>")
        assert "Enable JS" not in soup.get_text()
        assert soup.find("template") is None
        assert "Keep" in soup.get_text()

    def test_removes_comments(self):
        soup = sanitize("<p>Visible</p><!-- secret note -->")
        assert "secret note" not in str(soup)

    def test_removes_inline_hidden_elements(self):
        soup = sanitize(
            '<div style="display: none">Hidden</div>'
            '<span style="visibility:hidden">Also hidden</span>'
            "<p>Shown</p>"
        )
        text = soup.get_text()
        assert "Hidden" not in text
        assert "Also hidden" not in text
        assert "Shown" in text

    def test_keeps_alt_role_and_aria_attributes(self):
        soup = sanitize(
            '<img src="a.png" alt="A chart" class="hero">'
            '<nav role="navigation" aria-label="Main"><a href="/">Home</a></nav>'
        )
        img = soup.find("img")
        assert img["alt"] == "A chart"
        assert img["src"] == "a.png"
        assert "class" not in img.attrs

        nav = soup.find("nav")
        assert nav["role"] == "navigation"
        assert nav["aria-label"] == "Main"

    def test_keeps_missing_alt_missing(self):
        soup = sanitize('<img src="a.png">')
        assert "alt" not in soup.find("img").attrs

    def test_drops_presentation_and_event_attributes(self):
        soup = sanitize('<button onclick="go()" data-track="1" style="color:red" type="button">Go</button>')
        button = soup.find("button")
        assert set(button.attrs) == {"type"}

    def test_keeps_form_labelling(self):
        soup = sanitize('<label for="email">Email</label><input id="email" type="email" required>')
        assert soup.find("label")["for"] == "email"
        assert soup.find("input")["id"] == "email"

    def test_keeps_lang_on_html(self):
        soup = sanitize('<html lang="en"><body><p>Hi</p></body></html>')
        assert soup.find("html")["lang"] == "en"

    def test_strips_svg_drawing_but_keeps_accessible_name(self):
        soup = sanitize('<svg role="img" aria-label="Logo"><path d="M0 0L10 10"></path></svg>')
        svg = soup.find("svg")
        assert svg.find("path") is None
        assert svg["role"] == "img"
        assert svg["aria-label"] == "Logo"

    def test_empty_html_returns_empty_soup(self):
        soup = sanitize("")
        assert soup.get_text() == ""


class TestSanitizeMarkup:
    def test_returns_html_root_with_collapsed_whitespace(self):
        markup = sanitize_markup(
            "<html>\n  <head><title>Page</title></head>\n"
            "  <body>\n    <h1>Heading</h1>\n\n    <p>Body   text</p>\n  </body>\n</html>"
        )
        assert markup.startswith("<html>")
        assert "\n" not in markup
        assert "Body text" in markup
        assert "<h1>Heading</h1>" in markup

    def test_preserves_heading_structure(self):
        markup = sanitize_markup("<h1>One</h1><h3>Three</h3>")
        assert markup.index("<h1>") < markup.index("<h3>")


class TestCollapseWhitespace:
    def test_collapses_runs(self):
        assert collapse_whitespace("a \n\t b") == "a b"

    def test_trims(self):
        assert collapse_whitespace("  padded  ") == "padded"

    def test_empty(self):
        assert collapse_whitespace("") == ""
