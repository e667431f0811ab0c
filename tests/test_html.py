from bs4 import BeautifulSoup

from atletiek_scraper.utils.html import clean_html, normalize_space


class TestCleanHtml:
    def test_keeps_top_level_text_only(self) -> None:
        """Test that text inside nested tags is dropped."""
        assert clean_html('Venlo <span class="subtext">NED</span>') == "Venlo "

    def test_wrapping_tag_drops_everything(self) -> None:
        """Test that a wrapping element counts as nesting too."""
        assert clean_html("<span>Pinkstermeeting</span>") == ""

    def test_void_tags_do_not_change_depth(self) -> None:
        """Test that <br>, <br/> and <img> keep the following text at top level."""
        fragment = 'a<br>b<br/>c<img src="x.png">d'
        assert clean_html(fragment) == "abcd"

    def test_unescapes_entities(self) -> None:
        assert clean_html("Avond &amp; Jeugd<b>x</b>") == "Avond & Jeugd"

    def test_comments_are_skipped(self) -> None:
        assert clean_html("a<!-- <span> -->b") == "ab"

    def test_text_after_closed_tag_is_kept(self) -> None:
        fragment = '<span class="badge">BM</span> Piet Jansen'
        assert clean_html(fragment) == " Piet Jansen"

    def test_plain_text(self) -> None:
        assert clean_html("9,62") == "9,62"

    def test_parsed_element(self) -> None:
        soup = BeautifulSoup(
            "<table><tr><td>Sanne Bakker <small>AV Fortuna</small></td></tr></table>",
            "lxml",
        )
        assert clean_html(soup.td) == "Sanne Bakker "

    def test_angle_bracket_inside_script(self) -> None:
        """Test that script source does not hide the text that follows it."""
        soup = BeautifulSoup(
            "<table><tr><td>"
            "<script>if (a <b) x()</script>Sanne <b>BM</b>Bakker"
            "</td></tr></table>",
            "lxml",
        )
        assert clean_html(soup.td) == "Sanne Bakker"
        assert clean_html("<script>if (a <b) x()</script>Sanne") == "Sanne"


def test_normalize_space() -> None:
    """Test that whitespace runs and nbsp collapse to single spaces."""
    assert normalize_space("  Jan de\xa0Vries \n ") == "Jan de Vries"
