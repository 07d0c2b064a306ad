"""CI and git metadata attached to a triggered batch.

Every function takes an explicit environment snapshot (usually
``dict(os.environ)``) instead of reading the process environment.
"""

from collections.abc import Callable, Mapping

Tags = dict[str, str]

GIT_BRANCH = "git.branch"
GIT_COMMIT_AUTHOR_DATE = "git.commit.author.date"
GIT_COMMIT_AUTHOR_EMAIL = "git.commit.author.email"
GIT_COMMIT_AUTHOR_NAME = "git.commit.author.name"
GIT_COMMIT_COMMITTER_DATE = "git.commit.committer.date"
GIT_COMMIT_COMMITTER_EMAIL = "git.commit.committer.email"
GIT_COMMIT_COMMITTER_NAME = "git.commit.committer.name"
GIT_COMMIT_MESSAGE = "git.commit.message"
GIT_REPOSITORY_URL = "git.repository_url"
GIT_SHA = "git.commit.sha"
GIT_TAG = "git.tag"

CI_JOB_NAME = "ci.job.name"
CI_JOB_URL = "ci.job.url"
CI_PIPELINE_ID = "ci.pipeline.id"
CI_PIPELINE_NAME = "ci.pipeline.name"
CI_PIPELINE_NUMBER = "ci.pipeline.number"
CI_PIPELINE_URL = "ci.pipeline.url"
CI_PROVIDER_NAME = "ci.provider.name"
CI_STAGE_NAME = "ci.stage.name"
CI_WORKSPACE_PATH = "ci.workspace_path"

_USER_GIT_VARIABLES = {
    "DD_GIT_REPOSITORY_URL": GIT_REPOSITORY_URL,
    "DD_GIT_BRANCH": GIT_BRANCH,
    "DD_GIT_COMMIT_SHA": GIT_SHA,
    "DD_GIT_COMMIT_MESSAGE": GIT_COMMIT_MESSAGE,
    "DD_GIT_COMMIT_AUTHOR_NAME": GIT_COMMIT_AUTHOR_NAME,
    "DD_GIT_COMMIT_AUTHOR_EMAIL": GIT_COMMIT_AUTHOR_EMAIL,
    "DD_GIT_COMMIT_AUTHOR_DATE": GIT_COMMIT_AUTHOR_DATE,
    "DD_GIT_COMMIT_COMMITTER_NAME": GIT_COMMIT_COMMITTER_NAME,
    "DD_GIT_COMMIT_COMMITTER_EMAIL": GIT_COMMIT_COMMITTER_EMAIL,
    "DD_GIT_COMMIT_COMMITTER_DATE": GIT_COMMIT_COMMITTER_DATE,
    "DD_GIT_TAG": GIT_TAG,
}

_USER_CI_VARIABLES = {
    "DD_CI_JOB_NAME": CI_JOB_NAME,
    "DD_CI_JOB_URL": CI_JOB_URL,
    "DD_CI_PIPELINE_ID": CI_PIPELINE_ID,
    "DD_CI_PIPELINE_NAME": CI_PIPELINE_NAME,
    "DD_CI_PIPELINE_NUMBER": CI_PIPELINE_NUMBER,
    "DD_CI_PIPELINE_URL": CI_PIPELINE_URL,
    "DD_CI_PROVIDER_NAME": CI_PROVIDER_NAME,
    "DD_CI_STAGE_NAME": CI_STAGE_NAME,
    "DD_CI_WORKSPACE_PATH": CI_WORKSPACE_PATH,
}


def _normalize_ref(ref: str | None) -> str:
    """Strip ``refs/heads/`` and ``origin/`` prefixes from a git ref."""
    if not ref:
        return ""
    for prefix in ("refs/heads/", "refs/", "origin/"):
        if ref.startswith(prefix):
            ref = ref[len(prefix) :]
    return ref


def _github_tags(env: Mapping[str, str]) -> Tags:
    server_url = env.get("GITHUB_SERVER_URL", "https://github.com")
    repository = env.get("GITHUB_REPOSITORY", "")
    run_id = env.get("GITHUB_RUN_ID", "")
    pipeline_url = f"{server_url}/{repository}/actions/runs/{run_id}"
    if env.get("GITHUB_RUN_ATTEMPT"):
        pipeline_url += f"/attempts/{env['GITHUB_RUN_ATTEMPT']}"

    return {
        CI_PROVIDER_NAME: "github",
        CI_PIPELINE_ID: run_id,
        CI_PIPELINE_NAME: env.get("GITHUB_WORKFLOW", ""),
        CI_PIPELINE_NUMBER: env.get("GITHUB_RUN_NUMBER", ""),
        CI_PIPELINE_URL: pipeline_url,
        CI_JOB_NAME: env.get("GITHUB_JOB", ""),
        CI_WORKSPACE_PATH: env.get("GITHUB_WORKSPACE", ""),
        GIT_REPOSITORY_URL: f"{server_url}/{repository}.git",
        GIT_SHA: env.get("GITHUB_SHA", ""),
        GIT_BRANCH: _normalize_ref(
            env.get("GITHUB_HEAD_REF") or env.get("GITHUB_REF")
        ),
    }


def _gitlab_tags(env: Mapping[str, str]) -> Tags:
    return {
        CI_PROVIDER_NAME: "gitlab",
        CI_PIPELINE_ID: env.get("CI_PIPELINE_ID", ""),
        CI_PIPELINE_NAME: env.get("CI_PROJECT_PATH", ""),
        CI_PIPELINE_NUMBER: env.get("CI_PIPELINE_IID", ""),
        CI_PIPELINE_URL: env.get("CI_PIPELINE_URL", ""),
        CI_JOB_NAME: env.get("CI_JOB_NAME", ""),
        CI_JOB_URL: env.get("CI_JOB_URL", ""),
        CI_STAGE_NAME: env.get("CI_JOB_STAGE", ""),
        CI_WORKSPACE_PATH: env.get("CI_PROJECT_DIR", ""),
        GIT_REPOSITORY_URL: env.get("CI_REPOSITORY_URL", ""),
        GIT_SHA: env.get("CI_COMMIT_SHA", ""),
        GIT_BRANCH: env.get("CI_COMMIT_BRANCH") or env.get("CI_COMMIT_REF_NAME", ""),
        GIT_TAG: env.get("CI_COMMIT_TAG", ""),
        GIT_COMMIT_MESSAGE: env.get("CI_COMMIT_MESSAGE", ""),
    }


def _azure_tags(env: Mapping[str, str]) -> Tags:
    server_uri = env.get("SYSTEM_TEAMFOUNDATIONSERVERURI", "").rstrip("/")
    project_id = env.get("SYSTEM_TEAMPROJECTID", "")
    build_id = env.get("BUILD_BUILDID", "")
    pipeline_url = ""
    if server_uri and project_id and build_id:
        pipeline_url = f"{server_uri}/{project_id}/_build/results?buildId={build_id}"

    return {
        CI_PROVIDER_NAME: "azurepipelines",
        CI_PIPELINE_ID: build_id,
        CI_PIPELINE_NAME: env.get("BUILD_DEFINITIONNAME", ""),
        CI_PIPELINE_NUMBER: build_id,
        CI_PIPELINE_URL: pipeline_url,
        CI_JOB_NAME: env.get("SYSTEM_JOBDISPLAYNAME", ""),
        CI_STAGE_NAME: env.get("SYSTEM_STAGEDISPLAYNAME", ""),
        CI_WORKSPACE_PATH: env.get("BUILD_SOURCESDIRECTORY", ""),
        GIT_REPOSITORY_URL: env.get("BUILD_REPOSITORY_URI", ""),
        GIT_SHA: env.get("BUILD_SOURCEVERSION", ""),
        GIT_BRANCH: _normalize_ref(
            env.get("SYSTEM_PULLREQUEST_SOURCEBRANCH")
            or env.get("BUILD_SOURCEBRANCH")
        ),
        GIT_COMMIT_MESSAGE: env.get("BUILD_SOURCEVERSIONMESSAGE", ""),
    }


def _bitbucket_tags(env: Mapping[str, str]) -> Tags:
    repo = env.get("BITBUCKET_REPO_FULL_NAME", "")
    build_number = env.get("BITBUCKET_BUILD_NUMBER", "")
    return {
        CI_PROVIDER_NAME: "bitbucket",
        CI_PIPELINE_ID: env.get("BITBUCKET_PIPELINE_UUID", "").strip("{}"),
        CI_PIPELINE_NAME: repo,
        CI_PIPELINE_NUMBER: build_number,
        CI_PIPELINE_URL: (
            f"https://bitbucket.org/{repo}/addon/pipelines/home#!/results/"
            f"{build_number}"
        ),
        CI_WORKSPACE_PATH: env.get("BITBUCKET_CLONE_DIR", ""),
        GIT_REPOSITORY_URL: env.get("BITBUCKET_GIT_SSH_ORIGIN", ""),
        GIT_SHA: env.get("BITBUCKET_COMMIT", ""),
        GIT_BRANCH: env.get("BITBUCKET_BRANCH", ""),
        GIT_TAG: env.get("BITBUCKET_TAG", ""),
    }


_PROVIDERS: list[tuple[str, Callable[[Mapping[str, str]], Tags]]] = [
    ("GITHUB_ACTIONS", _github_tags),
    ("GITLAB_CI", _gitlab_tags),
    ("TF_BUILD", _azure_tags),
    ("BITBUCKET_COMMIT", _bitbucket_tags),
]


def get_ci_tags(env: Mapping[str, str]) -> Tags:
    """Return the tags of the CI provider detected in ``env``."""
    for marker, resolver in _PROVIDERS:
        if env.get(marker):
            return {k: v for k, v in resolver(env).items() if v}
    return {}


def _get_user_tags(env: Mapping[str, str], variables: Mapping[str, str]) -> Tags:
    return {tag: env[name] for name, tag in variables.items() if env.get(name)}


def get_user_git_metadata(env: Mapping[str, str]) -> Tags:
    """Return git tags provided through ``DD_GIT_*`` variables.

    A tag replaces the branch since both can't describe the same ref.
    """
    tags = _get_user_tags(env, _USER_GIT_VARIABLES)
    if GIT_TAG in tags:
        tags.pop(GIT_BRANCH, None)
    return tags


def get_user_ci_metadata(env: Mapping[str, str]) -> Tags:
    """Return CI tags provided through ``DD_CI_*`` variables."""
    return _get_user_tags(env, _USER_CI_VARIABLES)


def get_ci_metadata(env: Mapping[str, str]) -> dict[str, object]:
    """Build the batch metadata from the detected CI and user-provided tags.

    User-provided tags take precedence over the detected ones.
    """
    tags = get_ci_tags(env)
    user_git = get_user_git_metadata(env)
    if GIT_TAG in user_git:
        tags.pop(GIT_BRANCH, None)
    tags.update(user_git)
    tags.update(get_user_ci_metadata(env))

    metadata: dict[str, object] = {}
    for tag, value in sorted(tags.items()):
        node = metadata
        *parents, leaf = tag.split(".")
        for parent in parents:
            child = node.setdefault(parent, {})
            assert isinstance(child, dict)  # noqa: S101
            node = child
        node[leaf] = value

    return metadata
