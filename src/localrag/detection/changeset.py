"""Classification of what changed in a source tree since it was indexed."""

from dataclasses import dataclass, field


@dataclass
class ChangeSet:
    """Disjoint lists of added, modified and deleted relative paths.

    Recomputed on every run and never persisted.
    """

    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.deleted)

    @property
    def changed_files(self) -> list[str]:
        """Files whose content must be (re)indexed."""
        return self.added + self.modified

    @property
    def removed_files(self) -> list[str]:
        """Files whose existing chunks are stale."""
        return self.modified + self.deleted

    def summary(self) -> str:
        return f"{len(self.added)} added, {len(self.modified)} modified, {len(self.deleted)} deleted"
