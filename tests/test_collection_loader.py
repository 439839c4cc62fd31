from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from collection_runner.collection import Collection, collect_requests
from collection_runner.errors import LoaderError, NoRequestsError
from collection_runner.loader import load_collection, load_environment


def _tree() -> Collection:
    return Collection.model_validate(
        {
            "name": "Shop",
            "requests": [{"name": "health", "url": "/health"}],
            "folders": [
                {
                    "name": "Users",
                    "requests": [{"name": "list users", "url": "/users"}],
                    "folders": [
                        {"name": "Admin", "requests": [{"name": "admins", "url": "/admins", "method": "post"}]},
                        {"name": "Empty"},
                    ],
                },
                {"name": "Orders", "requests": [{"name": "orders", "url": "/orders"}]},
            ],
        }
    )


def test_collect_whole_collection_depth_first() -> None:
    names = [request.name for request in collect_requests(_tree())]

    assert names == ["health", "list users", "admins", "orders"]


def test_collect_folder_subtree() -> None:
    requests = collect_requests(_tree(), ["Users"])

    assert [request.name for request in requests] == ["list users", "admins"]
    assert requests[1].method == "POST"


def test_empty_or_missing_folder_raises() -> None:
    with pytest.raises(NoRequestsError):
        collect_requests(_tree(), ["Users", "Empty"])
    with pytest.raises(NoRequestsError):
        collect_requests(_tree(), ["Nope"])
    with pytest.raises(NoRequestsError):
        collect_requests(Collection(name="blank"))


def test_load_yaml_collection(tmp_path: Path) -> None:
    path = tmp_path / "shop.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "requests": [
                    {
                        "name": "login",
                        "method": "POST",
                        "url": "{{base}}/login",
                        "body": {"user": "{{user}}"},
                        "scripts": {"post_response": "hooks:store_token"},
                    }
                ]
            }
        ),
        encoding="utf-8",
    )

    collection = load_collection(path)

    assert collection.name == "shop"
    assert collection.requests[0].post_response_script == "hooks:store_token"
    assert collection.requests[0].pre_request_script == ""


def test_legacy_environment_values_are_migrated(tmp_path: Path) -> None:
    path = tmp_path / "dev.json"
    path.write_text(json.dumps({"name": "dev", "variables": {"base": "http://api.test", "api_token": "s3cr3t"}}))

    env = load_environment(path)

    assert env.active_variables() == {"base": "http://api.test", "api_token": "s3cr3t"}
    assert env.variables["api_token"].secret is True
    assert env.variables["base"].secret is False


def test_invalid_files_raise_loader_error(tmp_path: Path) -> None:
    not_mapping = tmp_path / "list.yaml"
    not_mapping.write_text("- a\n- b\n", encoding="utf-8")
    invalid = tmp_path / "bad.yaml"
    invalid.write_text(yaml.safe_dump({"requests": [{"name": "no url"}]}), encoding="utf-8")

    with pytest.raises(LoaderError):
        load_collection(not_mapping)
    with pytest.raises(LoaderError):
        load_collection(invalid)
    with pytest.raises(LoaderError):
        load_environment(tmp_path / "missing.yaml")
