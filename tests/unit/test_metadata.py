"""Tests for CI metadata."""

import pytest

from boostsec.synthetics_ci.metadata import (
    CI_PIPELINE_URL,
    CI_PROVIDER_NAME,
    GIT_BRANCH,
    GIT_SHA,
    GIT_TAG,
    get_ci_metadata,
    get_ci_tags,
    get_user_ci_metadata,
    get_user_git_metadata,
)


def test_get_ci_tags_outside_ci() -> None:
    """No provider is detected in a plain environment."""
    assert get_ci_tags({"HOME": "/root"}) == {}


def test_get_ci_tags_github() -> None:
    """GitHub Actions variables are mapped to tags."""
    env = {
        "GITHUB_ACTIONS": "true",
        "GITHUB_SERVER_URL": "https://github.com",
        "GITHUB_REPOSITORY": "acme/app",
        "GITHUB_RUN_ID": "42",
        "GITHUB_RUN_ATTEMPT": "2",
        "GITHUB_SHA": "abc123",
        "GITHUB_REF": "refs/heads/main",
    }

    tags = get_ci_tags(env)

    assert tags[CI_PROVIDER_NAME] == "github"
    assert tags[CI_PIPELINE_URL] == (
        "https://github.com/acme/app/actions/runs/42/attempts/2"
    )
    assert tags[GIT_SHA] == "abc123"
    assert tags[GIT_BRANCH] == "main"


def test_get_ci_tags_github_pull_request_uses_head_ref() -> None:
    """The head ref of a pull request wins over the merge ref."""
    env = {
        "GITHUB_ACTIONS": "true",
        "GITHUB_HEAD_REF": "feature/login",
        "GITHUB_REF": "refs/pull/12/merge",
    }

    assert get_ci_tags(env)[GIT_BRANCH] == "feature/login"


def test_get_ci_tags_gitlab() -> None:
    """GitLab CI variables are mapped to tags and empty ones dropped."""
    env = {
        "GITLAB_CI": "true",
        "CI_PIPELINE_URL": "https://gitlab.com/acme/app/-/pipelines/7",
        "CI_COMMIT_SHA": "def456",
        "CI_COMMIT_REF_NAME": "develop",
    }

    tags = get_ci_tags(env)

    assert tags[CI_PROVIDER_NAME] == "gitlab"
    assert tags[CI_PIPELINE_URL] == "https://gitlab.com/acme/app/-/pipelines/7"
    assert tags[GIT_BRANCH] == "develop"
    assert GIT_TAG not in tags


@pytest.mark.parametrize(
    ("env", "provider"),
    [
        (
            {"TF_BUILD": "True", "BUILD_SOURCEBRANCH": "refs/heads/main"},
            "azurepipelines",
        ),
        ({"BITBUCKET_COMMIT": "abc", "BITBUCKET_BRANCH": "main"}, "bitbucket"),
    ],
)
def test_get_ci_tags_other_providers(env: dict[str, str], provider: str) -> None:
    """Azure Pipelines and Bitbucket are detected."""
    tags = get_ci_tags(env)

    assert tags[CI_PROVIDER_NAME] == provider
    assert tags[GIT_BRANCH] == "main"


def test_get_user_git_metadata_tag_replaces_branch() -> None:
    """A user-provided tag removes the branch."""
    env = {"DD_GIT_BRANCH": "main", "DD_GIT_TAG": "v1.0.0", "DD_GIT_COMMIT_SHA": "a"}

    assert get_user_git_metadata(env) == {GIT_TAG: "v1.0.0", GIT_SHA: "a"}


def test_get_user_ci_metadata() -> None:
    """DD_CI_* variables are mapped to tags."""
    env = {"DD_CI_PIPELINE_URL": "https://ci.example.org/1", "DD_CI_JOB_NAME": ""}

    assert get_user_ci_metadata(env) == {CI_PIPELINE_URL: "https://ci.example.org/1"}


def test_get_ci_metadata_user_tags_win() -> None:
    """User-provided tags override the detected ones and are nested."""
    env = {
        "GITHUB_ACTIONS": "true",
        "GITHUB_SHA": "abc123",
        "GITHUB_REF": "refs/heads/main",
        "DD_GIT_COMMIT_SHA": "fff000",
        "DD_CI_PIPELINE_NAME": "release",
    }

    metadata = get_ci_metadata(env)

    git = metadata["git"]
    ci = metadata["ci"]
    assert isinstance(git, dict)
    assert isinstance(ci, dict)
    assert git["branch"] == "main"
    assert git["commit"] == {"sha": "fff000"}
    assert ci["pipeline"]["name"] == "release"
    assert ci["provider"] == {"name": "github"}


def test_get_ci_metadata_user_tag_drops_detected_branch() -> None:
    """A user-provided tag drops the branch detected from the CI."""
    env = {
        "GITLAB_CI": "true",
        "CI_COMMIT_BRANCH": "main",
        "DD_GIT_TAG": "v2.0.0",
    }

    metadata = get_ci_metadata(env)

    assert metadata["git"] == {"tag": "v2.0.0"}


def test_get_ci_metadata_empty() -> None:
    """No metadata is built outside CI without user tags."""
    assert get_ci_metadata({}) == {}
