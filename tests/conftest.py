"""Shared fixtures: in-memory stand-ins for the registry and image tools."""

from __future__ import annotations

import pytest

from ci_image_cache.builds.docker import ImageCommandError
from ci_image_cache.registry.client import RegistryError, RepositoryNotFoundError
from ci_image_cache.types import BuildRequest, RepositoryInfo

REGISTRY_HOST = "123456789012.dkr.ecr.us-east-1.amazonaws.com"


class FakeRegistryClient:
    """Registry client that keeps repositories in memory."""

    def __init__(self) -> None:
        self.repositories: dict[str, RepositoryInfo] = {}
        self.tags: dict[str, dict[str, str]] = {}
        self.policies: dict[str, dict] = {}
        self.calls: list[str] = []
        self.describe_error: RegistryError | None = None
        self.policy_error: RegistryError | None = None

    def describe_repository(self, name: str) -> RepositoryInfo:
        self.calls.append("describe")
        if self.describe_error is not None:
            raise self.describe_error
        if name not in self.repositories:
            raise RepositoryNotFoundError(name)
        return self.repositories[name]

    def create_repository(self, name, tags=None) -> RepositoryInfo:
        self.calls.append("create")
        if name in self.repositories:
            raise RegistryError("RepositoryAlreadyExistsException")
        repo = RepositoryInfo(
            name=name,
            uri=f"{REGISTRY_HOST}/{name}",
            registry_id="123456789012",
            arn=f"arn:aws:ecr:us-east-1:123456789012:repository/{name}",
        )
        self.repositories[name] = repo
        self.tags[repo.arn] = dict(tags or {})
        return repo

    def tag_resource(self, arn, tags) -> None:
        self.calls.append("tag")
        self.tags.setdefault(arn, {}).update(tags)

    def put_lifecycle_policy(self, name, policy) -> None:
        self.calls.append("policy")
        if self.policy_error is not None:
            raise self.policy_error
        self.policies[name] = policy

    def get_login_password(self) -> str:
        self.calls.append("password")
        return "password"


class FakeDockerClient:
    """Image client whose remote registry is a dict of ref -> image id."""

    def __init__(self) -> None:
        self.remote: dict[str, str] = {}
        self.local: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        self.requests: list[BuildRequest] = []
        self._builds = 0

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise ImageCommandError(f"docker {operation} failed", exit_code=1)

    def pull(self, ref: str) -> bool:
        self.calls.append(("pull", ref))
        if ref not in self.remote:
            return False
        self.local[ref] = self.remote[ref]
        return True

    def build(self, request: BuildRequest, tag: str) -> None:
        self.calls.append(("build", tag))
        self.requests.append(request)
        self._check("build")
        self._builds += 1
        self.local[tag] = f"sha256:image{self._builds}"

    def tag(self, source: str, target: str) -> None:
        self.calls.append(("tag", source, target))
        self._check("tag")
        self.local[target] = self.local[source]

    def push(self, ref: str) -> None:
        self.calls.append(("push", ref))
        if ref.endswith(":latest"):
            self._check("push_latest")
        self._check("push")
        self.remote[ref] = self.local[ref]

    def login(self, registry: str, username: str, password: str) -> None:
        self.calls.append(("login", registry, username))

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def registry() -> FakeRegistryClient:
    return FakeRegistryClient()


@pytest.fixture
def docker() -> FakeDockerClient:
    return FakeDockerClient()


@pytest.fixture
def build_request() -> BuildRequest:
    return BuildRequest(dockerfile="Dockerfile", context=".")
