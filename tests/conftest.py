import pytest


class FakeReporter:
    """Collects status lines instead of printing them."""

    def __init__(self) -> None:
        self.lines: list[tuple[str, str]] = []
        self.records: list[tuple[str, dict]] = []

    def info(self, message: str) -> None:
        self.lines.append(("info", message))

    def success(self, message: str) -> None:
        self.lines.append(("success", message))

    def warn(self, message: str) -> None:
        self.lines.append(("warning", message))

    def error(self, message: str) -> None:
        self.lines.append(("error", message))

    def stage(self, message: str) -> None:
        self.lines.append(("stage", message))

    def record(self, action: str, results: dict) -> None:
        self.records.append((action, results))

    def messages(self, level: str | None = None) -> list[str]:
        return [m for lvl, m in self.lines if level is None or lvl == level]

    def warned(self, fragment: str) -> bool:
        return any(fragment in m for m in self.messages("warning"))


@pytest.fixture
def reporter() -> FakeReporter:
    return FakeReporter()
