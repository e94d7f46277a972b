from __future__ import annotations

from musescape.gui.markup import styled_text


def test_model_text_is_escaped():
    out = styled_text("div", "opening", 'The sign read "<b>KEEP OUT</b>" & nothing more.')
    assert out.startswith('<div class="opening">')
    assert "<b>" not in out
    assert "&lt;b&gt;KEEP OUT&lt;/b&gt;" in out
    assert "&amp; nothing more." in out


def test_quoted_analysis():
    assert styled_text("p", "analysis", "dim", quoted=True) == '<p class="analysis">&quot;dim&quot;</p>'


def test_script_tags_neutralized():
    out = styled_text("p", "analysis", "<script>alert(1)</script>")
    assert "<script>" not in out
