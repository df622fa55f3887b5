"""
Canned rule snippets.

The library is a small registry of reusable DRL rule templates, editable at
runtime. It is owned by whoever constructs it (normally the completion
orchestrator) and shared by every session of that orchestrator.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class RuleTemplate:
    """A named DRL rule snippet."""

    label: str
    body: str
    detail: str = "DRL Rule Template"
    documentation: str = ""


HIGH_PREMIUM_TEMPLATE = RuleTemplate(
    label="Flag high premium greater than 500",
    detail="DRL Rule Template",
    documentation="A rule that flags quotes with premium greater than 500 for review",
    body="""rule "Flag high premium greater than 500"
when
    $quote : Quote(premium > 500)
then
    $quote.setRequiresReview(true);
    System.out.println("Quote requires case review");
end""",
)


class TemplateLibrary:
    """Ordered collection of rule templates, unique by label."""

    def __init__(self, templates: Iterable[RuleTemplate] = ()):
        self._templates: list[RuleTemplate] = []
        for template in templates:
            self.upsert(template)

    def all(self) -> list[RuleTemplate]:
        """Return every template in insertion order."""
        return list(self._templates)

    def labels(self) -> list[str]:
        return [t.label for t in self._templates]

    def find_by_label(self, label: str) -> RuleTemplate | None:
        """Return the template with ``label``, or None."""
        for template in self._templates:
            if template.label == label:
                return template
        return None

    def upsert(self, template: RuleTemplate) -> None:
        """Replace the template with the same label, or append a new one."""
        for index, existing in enumerate(self._templates):
            if existing.label == template.label:
                self._templates[index] = template
                return
        self._templates.append(template)

    def filter(self, predicate: Callable[[RuleTemplate], bool]) -> list[RuleTemplate]:
        return [t for t in self._templates if predicate(t)]

    def __len__(self) -> int:
        return len(self._templates)

    def __iter__(self):
        return iter(list(self._templates))


def default_library() -> TemplateLibrary:
    """Build a library seeded with the built-in templates."""
    return TemplateLibrary([HIGH_PREMIUM_TEMPLATE])
