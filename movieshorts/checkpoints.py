"""
On-disk checkpoints.

There is no state ledger: a stage is complete when its output file exists
and passes validation. Each stage asks its Checkpoint before doing any
work, so re-running a movie only redoes what is missing.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Checkpoint:
    """A stage output file plus the rule that makes it count as done."""

    name: str
    path: Path
    min_bytes: int = 0  # 0 = existence is enough

    def exists(self) -> bool:
        return self.path.is_file()

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

    def validate(self) -> bool:
        """True if the artifact exists and is large enough to trust."""
        return self.exists() and self.size() >= self.min_bytes

    def discard_if_invalid(self) -> int | None:
        """Delete an existing artifact that fails validation.

        Returns the size of the discarded file, or None if nothing was
        removed.
        """
        if not self.exists() or self.validate():
            return None
        size = self.size()
        self.path.unlink(missing_ok=True)
        return size


def part_path(path: Path) -> Path:
    """Sibling an artifact is written to before it is moved onto its checkpoint path.

    The suffix is kept so ffmpeg still picks the right container.
    """
    path = Path(path)
    return path.with_name(f"{path.stem}.part{path.suffix}")
