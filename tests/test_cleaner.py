"""Tests for HTML cleaning."""

from party_venues.ingestion.cleaner import clean_html, prepare_content, truncate


class TestCleanHtml:
    """Tests for clean_html."""

    def test_strips_scripts_and_styles(self) -> None:
        """Test that non-visible content is removed."""
        html = """
        <html>
          <head><style>body { color: red; }</style><script>var x = 1;</script></head>
          <body>
            <h1>Bounce   Zone</h1>
            <noscript>Enable JavaScript</noscript>
            <p>Birthday parties
               from £180</p>
          </body>
        </html>
        """

        text = clean_html(html)

        assert text == "Bounce Zone Birthday parties from £180"

    def test_empty_input(self) -> None:
        """Test that empty HTML gives empty text."""
        assert clean_html("") == ""
        assert clean_html("<script>only()</script>") == ""


class TestPrepareContent:
    """Tests for truncation and content preparation."""

    def test_truncate(self) -> None:
        """Test truncation to a character budget."""
        assert truncate("abcdef", 3) == "abc"
        assert truncate("abc", 10) == "abc"
        assert truncate("abc", 0) == ""

    def test_prepare_content_budget(self) -> None:
        """Test that prepared content respects the budget."""
        html = "<p>" + "party " * 5000 + "</p>"

        content = prepare_content(html, max_chars=8000)

        assert len(content) == 8000
        assert content.startswith("party party")
