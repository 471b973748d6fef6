import pytest

from vwd.manifest import ManifestMissing, locate_manifest
from vwd.settings import DeployerError


def test_locate_existing_manifest(tmp_path):
    (tmp_path / "docker-compose.yml").write_text("services: {}\n")

    assert locate_manifest(tmp_path) == tmp_path / "docker-compose.yml"


def test_custom_manifest_name(tmp_path):
    (tmp_path / "compose.yaml").write_text("services: {}\n")

    assert locate_manifest(tmp_path, "compose.yaml").name == "compose.yaml"


def test_missing_manifest_is_distinct_error(tmp_path):
    with pytest.raises(ManifestMissing) as exc:
        locate_manifest(tmp_path)

    assert isinstance(exc.value, DeployerError)
    assert not isinstance(exc.value, OSError)
    assert exc.value.repo_path == tmp_path
    assert "docker-compose.yml" in str(exc.value)


def test_directory_with_manifest_name_is_missing(tmp_path):
    (tmp_path / "docker-compose.yml").mkdir()

    with pytest.raises(ManifestMissing):
        locate_manifest(tmp_path)
