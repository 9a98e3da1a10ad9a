"""Tests for applying content rules to the page."""

from utm_magic.client.dom import (
    ContentApplicator,
    is_button_like,
    should_observe,
    strip_html,
)
from utm_magic.schemas import ContentRule


class FakeElement:
    def __init__(self, tag_name, attributes=None, fail_on=()):
        self.tag_name = tag_name
        self.attributes = dict(attributes or {})
        self.text = None
        self.html = None
        self.fail_on = set(fail_on)
        self.calls = []

    def _maybe_fail(self, name):
        self.calls.append(name)
        if name in self.fail_on:
            raise RuntimeError(f"{name} not allowed")

    def get_attribute(self, name):
        return self.attributes.get(name)

    def set_attribute(self, name, value):
        self._maybe_fail("set_attribute")
        self.attributes[name] = value

    def set_text_content(self, text):
        self._maybe_fail("set_text_content")
        self.text = text

    def replace_children_with_text(self, text):
        self._maybe_fail("replace_children_with_text")
        self.text = text

    def set_inner_html(self, markup):
        self._maybe_fail("set_inner_html")
        self.html = markup


class FakeMutator:
    def __init__(self, elements=None):
        self.elements = elements or {}
        self.watchers = []

    def query_all(self, selector):
        if selector == "!!bad":
            raise ValueError("invalid selector")
        return self.elements.get(selector, [])

    def watch(self, predicate, callback):
        watcher = (predicate, callback)
        self.watchers.append(watcher)
        return lambda: self.watchers.remove(watcher)

    def insert(self, selector, element):
        self.elements.setdefault(selector, []).append(element)
        for predicate, callback in list(self.watchers):
            added = [element] if predicate(element) else []
            if added:
                callback(added)


def rule(selector, value="newsletter", content="<b>Subscribe</b>", condition_type="utm_source"):
    return ContentRule(
        selector=selector,
        condition_type=condition_type,
        condition_value=value,
        replacement_content=content,
    )


NEWSLETTER = {"utm_source": "newsletter"}


def test_strip_html():
    assert strip_html("<b>Subscribe</b>") == "Subscribe"
    assert strip_html("<span>Save&nbsp;20%</span>\n <i>now</i>") == "Save 20% now"


def test_button_text_is_stripped_markup():
    button = FakeElement("button", {"id": "cta"})
    applicator = ContentApplicator(FakeMutator({"button#cta": [button]}))

    report = applicator.apply([rule("button#cta")], NEWSLETTER)

    assert button.text == "Subscribe"
    assert button.html is None
    assert report.matched_rules == 1
    assert report.updated == 1


def test_button_falls_back_to_node_replacement():
    button = FakeElement("button", fail_on={"set_text_content"})
    applicator = ContentApplicator(FakeMutator({"button": [button]}))

    applicator.apply([rule("button")], NEWSLETTER)

    assert button.text == "Subscribe"
    assert button.calls == ["set_text_content", "replace_children_with_text"]


def test_submit_input_gets_value_and_labels():
    submit = FakeElement("input", {"type": "submit"})
    text_input = FakeElement("input", {"type": "text"})
    applicator = ContentApplicator(FakeMutator({"input": [submit, text_input]}))

    applicator.apply([rule("input")], NEWSLETTER)

    assert submit.attributes["value"] == "Subscribe"
    assert submit.attributes["data-text"] == "Subscribe"
    assert submit.attributes["aria-label"] == "Subscribe"
    assert text_input.attributes["value"] == "Subscribe"
    assert "aria-label" not in text_input.attributes


def test_other_elements_receive_html():
    heading = FakeElement("h1")
    applicator = ContentApplicator(FakeMutator({"h1": [heading]}))

    applicator.apply([rule("h1", content="<em>Welcome back</em>")], NEWSLETTER)

    assert heading.html == "<em>Welcome back</em>"


def test_html_failure_falls_back_to_text():
    heading = FakeElement("h1", fail_on={"set_inner_html"})
    applicator = ContentApplicator(FakeMutator({"h1": [heading]}))

    applicator.apply([rule("h1", content="<em>Welcome back</em>")], NEWSLETTER)

    assert heading.text == "Welcome back"


def test_element_failure_does_not_stop_others():
    broken = FakeElement("input", fail_on={"set_attribute"})
    healthy = FakeElement("p")
    mutator = FakeMutator({"input": [broken], "p": [healthy], "!!bad": []})
    applicator = ContentApplicator(mutator)

    report = applicator.apply([rule("input"), rule("!!bad"), rule("p")], NEWSLETTER)

    assert healthy.html == "<b>Subscribe</b>"
    assert report.updated == 1
    assert report.failed == 1


def test_non_matching_rules_are_skipped():
    button = FakeElement("button")
    applicator = ContentApplicator(FakeMutator({"button": [button]}))

    report = applicator.apply(
        [rule("button", value="Newsletter"), rule("button", condition_type="utm_medium")],
        NEWSLETTER,
    )

    assert report.matched_rules == 0
    assert button.text is None


def test_should_observe_heuristic():
    assert should_observe([rule("h1"), rule("button#cta")])
    assert should_observe([rule(".hero .BTN-primary")])
    assert should_observe([rule("input[type=submit]")])
    assert not should_observe([rule("h1"), rule(".headline")])
    assert not should_observe([])


def test_is_button_like():
    assert is_button_like(FakeElement("BUTTON"))
    assert is_button_like(FakeElement("input", {"type": "Submit"}))
    assert is_button_like(FakeElement("div", {"role": "button"}))
    assert not is_button_like(FakeElement("input", {"type": "email"}))
    assert not is_button_like(FakeElement("div"))


def test_watch_reapplies_on_inserted_buttons():
    mutator = FakeMutator()
    applicator = ContentApplicator(mutator)
    rules = [rule("button#cta")]

    assert applicator.watch(rules, NEWSLETTER) is True
    late_button = FakeElement("button", {"id": "cta"})
    mutator.insert("button#cta", late_button)

    assert late_button.text == "Subscribe"


def test_watch_ignores_unrelated_insertions():
    heading = FakeElement("h1")
    mutator = FakeMutator({"h1": [heading]})
    applicator = ContentApplicator(mutator)
    applicator.watch([rule("h1"), rule("button#cta")], NEWSLETTER)

    mutator.insert("div", FakeElement("div"))

    assert heading.calls == []


def test_watch_not_installed_without_button_selectors():
    mutator = FakeMutator()
    applicator = ContentApplicator(mutator)

    assert applicator.watch([rule("h1")], NEWSLETTER) is False
    assert mutator.watchers == []


def test_stop_removes_watcher():
    mutator = FakeMutator()
    applicator = ContentApplicator(mutator)
    applicator.watch([rule("button")], NEWSLETTER)

    applicator.stop()

    assert mutator.watchers == []


def test_button_with_no_working_strategy_counts_as_failure():
    button = FakeElement("button", fail_on={"set_text_content", "replace_children_with_text"})
    applicator = ContentApplicator(FakeMutator({"button": [button]}))

    report = applicator.apply([rule("button")], NEWSLETTER)

    assert report.failed == 1
    assert report.updated == 0
    assert button.text is None
