import pytest

from nginx_auditor.utils.globbing import glob_match, match_files


@pytest.mark.parametrize(
    "path, pattern, expected",
    [
        ("app.yaml", "**/*.yaml", True),
        ("deploy/prod/app.yaml", "**/*.yaml", True),
        ("deploy/prod/APP.YAML", "**/*.yaml", True),
        ("deploy/app.yml", "**/*.yaml", False),
        ("node_modules/pkg/a.yaml", "**/node_modules/**", True),
        ("src/node_modules/a.yaml", "**/node_modules/**", True),
        ("deploy/app.yaml", "deploy/*.yaml", True),
        ("deploy/nested/app.yaml", "deploy/*.yaml", False),
    ],
)
def test_glob_match(path, pattern, expected):
    assert glob_match(path, pattern) is expected


def test_match_files_applies_include_and_exclude(tmp_path):
    (tmp_path / "b.yaml").write_text("kind: A", encoding="utf-8")
    (tmp_path / "A.yml").write_text("kind: A", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
    vendored = tmp_path / "vendor" / "chart"
    vendored.mkdir(parents=True)
    (vendored / "c.yaml").write_text("kind: A", encoding="utf-8")

    files = match_files(tmp_path)

    assert [path.name for path in files] == ["A.yml", "b.yaml"]


def test_match_files_with_custom_patterns(tmp_path):
    nested = tmp_path / "k8s"
    nested.mkdir()
    (nested / "app.yaml").write_text("kind: A", encoding="utf-8")
    (tmp_path / "root.yaml").write_text("kind: A", encoding="utf-8")

    files = match_files(tmp_path, include=["k8s/**"], exclude=[])

    assert [path.name for path in files] == ["app.yaml"]


def test_match_files_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        match_files(tmp_path / "missing")
