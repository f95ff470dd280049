from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FlattenConfig:
    """
    Stage 1 flattening parameters.

    `workflow_id` selects one workflow out of a multi-workflow export; when
    None the export must contain exactly one workflow.
    """

    workflow_id: str | None = None
    ignored_subject_data_keys: tuple[str, ...] = ("retired",)

    def validate(self) -> None:
        if self.workflow_id is not None and self.workflow_id.strip() == "":
            raise ValueError("workflow_id must be non-empty when given")
        if not isinstance(self.ignored_subject_data_keys, tuple):
            raise TypeError("ignored_subject_data_keys must be a tuple of strings")

    def to_dict(self) -> dict[str, object]:
        return {
            "workflow_id": self.workflow_id,
            "ignored_subject_data_keys": list(self.ignored_subject_data_keys),
        }
