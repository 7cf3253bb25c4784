"""Step producer interface and the template-driven implementation."""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple

from just_built.step import Step, StepId


class ProducerError(Exception):
    """Raised when a producer cannot turn a step into a result."""
    pass


class StepProducer(ABC):
    """Turns a single step into a concrete result (code or explanation)."""

    @abstractmethod
    def produce(self, step: Step, plan_context: str) -> str:
        """
        Produce the result for one step.

        Args:
            step: The step being executed (already RUNNING)
            plan_context: Text describing the whole plan

        Returns:
            The generated result.

        Raises:
            ProducerError: If nothing could be produced.
        """
        pass


# =============================================================================
# TEMPLATE SNIPPETS
# =============================================================================

STRUCTURE_SNIPPET = """project/
  index.html
  css/styles.css
  js/app.js
  README.md"""

HTML_SNIPPET = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>App</title>
  <link rel="stylesheet" href="css/styles.css">
</head>
<body>
  <div id="app"></div>
  <script src="js/app.js"></script>
</body>
</html>"""

CSS_SNIPPET = """body {
  font-family: system-ui, sans-serif;
  margin: 0;
  padding: 2rem;
}

#app h1 {
  color: #2b6cb0;
}"""

JS_SNIPPET = """function setupApplication() {
  const app = document.getElementById('app');
  app.innerHTML = '<h1>Hello World</h1>';
  console.log('Application initialized');
  return app;
}

// Initialize the application
document.addEventListener('DOMContentLoaded', () => {
  setupApplication();
});"""

TEST_SNIPPET = """describe('setupApplication', () => {
  it('renders the heading', () => {
    document.body.innerHTML = '<div id="app"></div>';
    const app = setupApplication();
    expect(app.querySelector('h1').textContent).toBe('Hello World');
  });
});"""

GENERIC_SNIPPET = """// Generated code for: {title}
function handleStep() {{
  // {description}
  return true;
}}"""

# Checked in order against the title, then against the description
KEYWORD_SNIPPETS: List[Tuple[Tuple[str, ...], str]] = [
    (("structure", "setup", "scaffold"), STRUCTURE_SNIPPET),
    (("html", "layout", "markup"), HTML_SNIPPET),
    (("css", "style"), CSS_SNIPPET),
    (("test", "debug"), TEST_SNIPPET),
    (("javascript", "functionality", "logic", "feature"), JS_SNIPPET),
]


def snippet_for(step: Step) -> str:
    """Pick the canned snippet whose keywords match the step text."""
    for text in (step.title.lower(), step.description.lower()):
        for keywords, snippet in KEYWORD_SNIPPETS:
            if any(keyword in text for keyword in keywords):
                return snippet
    return GENERIC_SNIPPET.format(title=step.title, description=step.description)


class TemplateStepProducer(StepProducer):
    """
    Offline producer backed by the keyword lookup table.

    fail_ids lets callers force specific steps to fail, so the failure
    path can be exercised without a real backend.
    """

    def __init__(self, fail_ids: Optional[Iterable[StepId]] = None):
        self.fail_ids = set(fail_ids or ())
        self.calls: List[StepId] = []

    def produce(self, step: Step, plan_context: str) -> str:
        self.calls.append(step.id)
        if step.id in self.fail_ids:
            raise ProducerError(f"Failed to execute step {step.id}: {step.title}")
        return snippet_for(step)
