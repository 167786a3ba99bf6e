import pytest

from stagewise.exceptions import InvalidSnapshotNameError
from stagewise.snapshot import MAX_NAME_LENGTH, SnapshotDiff, validate_snapshot_name


@pytest.mark.parametrize("name", ["v1", "1.0", "release_2024-01", "A", "x" * MAX_NAME_LENGTH])
def test_valid_names(name: str) -> None:
    assert validate_snapshot_name(name) == name


@pytest.mark.parametrize(
    ("name", "reason"),
    [
        ("", "required"),
        ("x" * (MAX_NAME_LENGTH + 1), "too long"),
        ("..", "path traversal"),
        ("a..b", "path traversal"),
        ("../up", "path traversal"),
        (".hidden", "must start alphanumeric"),
        ("-flag", "must start alphanumeric"),
        ("with space", "must start alphanumeric"),
        ("a/b", "must start alphanumeric"),
        ("v1.tmp", "reserved"),
    ],
)
def test_invalid_names(name: str, reason: str) -> None:
    with pytest.raises(InvalidSnapshotNameError, match=reason) as exc_info:
        _ = validate_snapshot_name(name)

    assert exc_info.value.name == name


class TestSnapshotDiff:
    def test_from_hashes(self) -> None:
        diff = SnapshotDiff.from_hashes(
            {"same": "1", "changed": "1", "removed": "1"},
            {"same": "1", "changed": "2", "added": "1"},
        )

        assert diff == SnapshotDiff(
            added=("added",), removed=("removed",), changed=("changed",)
        )
        assert not diff.is_empty

    def test_empty(self) -> None:
        assert SnapshotDiff.from_hashes({"a": "1"}, {"a": "1"}).is_empty
