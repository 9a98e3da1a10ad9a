"""DOM Rule Applicator.

The page is reached only through a `Mutator`: it finds elements for a
selector and reports newly inserted elements to a watcher. Elements expose
the handful of mutation methods the strategies below need.
"""

import html
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from ..schemas import ContentRule, condition_matches

logger = logging.getLogger(__name__)

# Selectors containing any of these probably target a button or submit control
BUTTON_SELECTOR_HINTS = ("button", "btn", "submit", "cta")

BUTTON_INPUT_TYPES = ("submit", "button")

# Text strategies for buttons, tried in order until one succeeds
BUTTON_TEXT_STRATEGIES = (
    "set_text_content",
    "replace_children_with_text",
)


class Element(Protocol):
    tag_name: str

    def get_attribute(self, name: str) -> Optional[str]:
        ...

    def set_attribute(self, name: str, value: str) -> None:
        ...

    def set_text_content(self, text: str) -> None:
        ...

    def replace_children_with_text(self, text: str) -> None:
        ...

    def set_inner_html(self, markup: str) -> None:
        ...


class Mutator(Protocol):
    def query_all(self, selector: str) -> Sequence[Element]:
        ...

    def watch(
        self,
        predicate: Callable[[Element], bool],
        callback: Callable[[List[Element]], None],
    ) -> Callable[[], None]:
        """Call `callback` with inserted elements passing `predicate`; returns an unsubscribe."""
        ...


class DomMutationError(Exception):
    """No strategy could update an element."""


def strip_html(markup: str) -> str:
    """Reduce markup to its visible text."""
    text = re.sub(r"<[^>]+>", "", markup or "")
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def should_observe(rules: Iterable[ContentRule]) -> bool:
    """True when some rule's selector looks like it targets a button or submit control."""
    for rule in rules:
        selector = (rule.selector or "").lower()
        if any(hint in selector for hint in BUTTON_SELECTOR_HINTS):
            return True
    return False


def is_button_like(element: Element) -> bool:
    tag = (element.tag_name or "").lower()
    if tag == "button":
        return True
    if tag == "input" and (element.get_attribute("type") or "").lower() in BUTTON_INPUT_TYPES:
        return True
    return element.get_attribute("role") == "button"


def set_button_text(element: Element, text: str) -> str:
    """Apply the first text strategy the element supports without error."""
    errors = []
    for name in BUTTON_TEXT_STRATEGIES:
        strategy = getattr(element, name, None)
        if strategy is None:
            continue
        try:
            strategy(text)
            return name
        except Exception as e:
            errors.append(f"{name}: {e}")
    raise DomMutationError("; ".join(errors) or "element supports no text strategy")


def replace_content(element: Element, replacement: str) -> None:
    """Rewrite one element according to its tag."""
    tag = (element.tag_name or "").lower()

    if tag == "button":
        set_button_text(element, strip_html(replacement))
    elif tag == "input":
        text = strip_html(replacement)
        element.set_attribute("value", text)
        if (element.get_attribute("type") or "").lower() in BUTTON_INPUT_TYPES:
            # Some frameworks render button labels from these attributes
            element.set_attribute("data-text", text)
            element.set_attribute("aria-label", text)
    else:
        try:
            element.set_inner_html(replacement)
        except Exception as e:
            logger.warning(f"HTML injection failed on <{tag}>, falling back to text: {e}")
            element.set_text_content(strip_html(replacement))


@dataclass
class ApplyReport:
    matched_rules: int = 0
    updated: int = 0
    failed: int = 0


class ContentApplicator:
    """Applies matching content rules to the page and keeps them applied."""

    def __init__(self, mutator: Mutator):
        self.mutator = mutator
        self._applying = False
        self._unwatch: Optional[Callable[[], None]] = None

    def apply(self, rules: Iterable[ContentRule], attribution: Dict[str, str]) -> ApplyReport:
        """Rewrite every element selected by every matching rule."""
        report = ApplyReport()
        self._applying = True
        try:
            for rule in rules:
                if not condition_matches(rule.condition_type, rule.condition_value, attribution):
                    continue
                report.matched_rules += 1
                self._apply_rule(rule, report)
        finally:
            self._applying = False
        return report

    def _apply_rule(self, rule: ContentRule, report: ApplyReport) -> None:
        try:
            elements = self.mutator.query_all(rule.selector)
        except Exception as e:
            logger.error(f"Error applying rule for selector \"{rule.selector}\": {e}")
            return

        if not elements:
            logger.debug(f"No elements found for selector \"{rule.selector}\"")
            return

        for element in elements:
            try:
                replace_content(element, rule.replacement_content)
                report.updated += 1
            except Exception as e:
                report.failed += 1
                logger.error(f"Failed to update <{element.tag_name}> for \"{rule.selector}\": {e}")

    def watch(self, rules: Sequence[ContentRule], attribution: Dict[str, str]) -> bool:
        """
        Re-apply the rules when button-like elements are inserted later.
        Nothing is installed unless some selector targets such elements.
        """
        self.stop()
        rules = list(rules)
        if not should_observe(rules):
            return False

        def on_inserted(elements: List[Element]) -> None:
            if self._applying:
                return
            if not any(is_button_like(element) for element in elements):
                return
            report = self.apply(rules, attribution)
            logger.debug(f"Re-applied rules after insertion: {report}")

        self._unwatch = self.mutator.watch(is_button_like, on_inserted)
        return True

    def stop(self) -> None:
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
