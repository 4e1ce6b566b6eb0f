from __future__ import annotations

from pwtelemetry.reports.templating import render_template, to_script_json


def test_substitution_is_single_pass():
    rendered = render_template("<p>{{a}}</p><p>{{b}}</p>", {"a": "{{b}}", "b": "x"})
    assert rendered == "<p>{{b}}</p><p>x</p>"


def test_unknown_placeholders_are_left_alone():
    assert render_template("{{known}} {{unknown}}", {"known": 1}) == "1 {{unknown}}"


def test_script_json_cannot_close_the_script_element():
    serialized = to_script_json({"url": "https://a.example.com/</script><script>alert(1)"})
    assert "</script>" not in serialized
    assert serialized.startswith('{"url": ')
