import os

import pytest

from manifestcheck.files import FilesExtractor

VALID_POLICIES = """\
apiVersion: v1
policies:
  - name: production
    isDefault: true
    rules:
      - identifier: CONTAINERS_MISSING_IMAGE_VALUE_VERSION
        messageOnFailure: missing image version
"""

INVALID_YAML = "apiVersion: v1\n  policies: broken\n"


@pytest.fixture
def extractor():
    return FilesExtractor()


def _write(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return str(path)


def test_valid_yaml_file_returns_struct(extractor, tmp_path):
    path = _write(tmp_path, "valid-schema.yaml", VALID_POLICIES)
    result = extractor.extract_yaml_file_to_unknown_struct(path)
    assert result["apiVersion"] == "v1"
    assert result["policies"][0]["name"] == "production"
    assert result["policies"][0]["rules"][0]["identifier"] == (
        "CONTAINERS_MISSING_IMAGE_VALUE_VERSION"
    )


def test_invalid_yaml_file_raises(extractor, tmp_path):
    path = _write(tmp_path, "invalid-yaml.yaml", INVALID_YAML)
    with pytest.raises(ValueError, match=r"^yaml: line 2: "):
        extractor.extract_yaml_file_to_unknown_struct(path)


def test_missing_file_raises(extractor, tmp_path):
    with pytest.raises(FileNotFoundError):
        extractor.extract_yaml_file_to_unknown_struct(str(tmp_path / "absent.yaml"))


def test_empty_file_raises(extractor, tmp_path):
    path = _write(tmp_path, "empty.yaml", "")
    with pytest.raises(ValueError):
        extractor.extract_yaml_file_to_unknown_struct(path)


def test_null_document_gives_empty_struct(extractor, tmp_path):
    path = _write(tmp_path, "null.yaml", "---\n")
    assert extractor.extract_yaml_file_to_unknown_struct(path) == {}


def test_non_mapping_document_raises(extractor, tmp_path):
    path = _write(tmp_path, "list.yaml", "- a\n- b\n")
    with pytest.raises(ValueError):
        extractor.extract_yaml_file_to_unknown_struct(path)


def test_only_first_document_is_decoded(extractor, tmp_path):
    path = _write(tmp_path, "multi.yaml", "a: 1\n---\nb: 2\n")
    assert extractor.extract_yaml_file_to_unknown_struct(path) == {"a": 1}


def test_extract_files_configurations_splits_valid_and_invalid(extractor, tmp_path):
    multi = _write(
        tmp_path,
        "multi.yaml",
        "kind: Deployment\nmetadata:\n  name: web\n---\n---\nkind: Service\n",
    )
    broken = _write(tmp_path, "broken.yaml", INVALID_YAML)
    missing = str(tmp_path / "missing.yaml")

    valid, invalid = extractor.extract_files_configurations([multi, broken, missing])

    assert len(valid) == 1
    assert valid[0].file_name == os.path.abspath(multi)
    assert [c["kind"] for c in valid[0].configurations] == ["Deployment", "Service"]
    assert [f.path for f in invalid] == [broken, missing]
    assert all(len(f.validation_errors) == 1 for f in invalid)
    assert str(invalid[0].validation_errors[0]).startswith("yaml: line 2:")


def test_relative_paths_become_absolute(extractor, tmp_path, monkeypatch):
    _write(tmp_path, "deploy.yaml", "kind: Pod\n")
    monkeypatch.chdir(tmp_path)
    valid, invalid = extractor.extract_files_configurations(["deploy.yaml"])
    assert invalid == []
    assert valid[0].file_name == os.path.join(os.getcwd(), "deploy.yaml")
    assert valid[0].configurations == [{"kind": "Pod"}]