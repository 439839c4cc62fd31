"""Collection and environment models, plus flattening of a run's requests."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from .errors import NoRequestsError

_SECRET_KEYWORDS = ("password", "secret", "token", "key", "auth", "credential")


class RequestScripts(BaseModel):
    """Hook scripts attached to a saved request."""

    pre_request: str = ""
    post_response: str = ""


class CollectionRequest(BaseModel):
    """A request saved in a collection."""

    id: str = ""
    name: str
    description: Optional[str] = None
    method: str = "GET"
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
    scripts: Optional[RequestScripts] = None

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    @property
    def pre_request_script(self) -> str:
        return self.scripts.pre_request if self.scripts else ""

    @property
    def post_response_script(self) -> str:
        return self.scripts.post_response if self.scripts else ""


class Folder(BaseModel):
    name: str
    description: Optional[str] = None
    folders: list["Folder"] = Field(default_factory=list)
    requests: list[CollectionRequest] = Field(default_factory=list)


class Collection(BaseModel):
    """Top-level collection file."""

    name: str
    description: Optional[str] = None
    folders: list[Folder] = Field(default_factory=list)
    requests: list[CollectionRequest] = Field(default_factory=list)

    def find_folder(self, path: Sequence[str]) -> Folder | None:
        """Walk ``path`` (folder names, outermost first) down the folder tree."""

        folders = self.folders
        found: Folder | None = None
        for name in path:
            found = next((folder for folder in folders if folder.name == name), None)
            if found is None:
                return None
            folders = found.folders
        return found


class EnvironmentVariable(BaseModel):
    value: str = ""
    secret: bool = False
    active: bool = True


class Environment(BaseModel):
    """Named set of variables a run is seeded from."""

    name: str = "default"
    description: Optional[str] = None
    variables: dict[str, EnvironmentVariable] = Field(default_factory=dict)

    @field_validator("variables", mode="before")
    @classmethod
    def _migrate_legacy_values(cls, value: Any) -> Any:
        # Older environment files store plain ``name: value`` pairs.
        if not isinstance(value, dict):
            return value
        migrated: dict[str, Any] = {}
        for name, item in value.items():
            if item is None or isinstance(item, (str, int, float, bool)):
                migrated[name] = {
                    "value": "" if item is None else str(item),
                    "secret": _is_secret_name(name),
                    "active": True,
                }
            else:
                migrated[name] = item
        return migrated

    def clone(self) -> "Environment":
        return self.model_copy(deep=True)

    def active_variables(self) -> dict[str, str]:
        return {name: var.value for name, var in self.variables.items() if var.active}


def _is_secret_name(name: str) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in _SECRET_KEYWORDS)


def _flatten_folder(folder: Folder) -> list[CollectionRequest]:
    requests = list(folder.requests)
    for child in folder.folders:
        requests.extend(_flatten_folder(child))
    return requests


def collect_requests(collection: Collection, folder_path: Sequence[str] = ()) -> list[CollectionRequest]:
    """Flatten a collection, or one folder subtree of it, into execution order.

    Depth first: a folder's own requests come before those of its subfolders,
    and sibling order is preserved.
    """

    if folder_path:
        folder = collection.find_folder(folder_path)
        if folder is None:
            raise NoRequestsError(f"folder not found: {'/'.join(folder_path)}")
        requests = _flatten_folder(folder)
    else:
        requests = list(collection.requests)
        for folder in collection.folders:
            requests.extend(_flatten_folder(folder))

    if not requests:
        raise NoRequestsError()
    return requests
