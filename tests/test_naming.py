"""
Unit tests for tool naming (apiscope/naming.py).

Naming is a pure function of (method, path, operationId), so every test is a
direct input/output check.
"""

import pytest

from apiscope.naming import (
    MAX_TOOL_NAME_LENGTH,
    default_action,
    is_clean_operation_id,
    name_from_path,
    sanitize_operation_id,
    tool_name,
)


class TestCleanClassification:
    @pytest.mark.parametrize("operation_id", ["secrets-list", "workplace-get", "users_list"])
    def test_semantic_ids_are_clean(self, operation_id):
        assert is_clean_operation_id(operation_id)

    @pytest.mark.parametrize(
        "operation_id",
        [
            "get_v3workplacechange_requests",  # version token leaked in
            "configsV3list",  # version token, any case
            "secrets-{secret}-get",  # path template
            "post_configs",  # method prefix
            "DELETE_config",
        ],
    )
    def test_generated_ids_are_ugly(self, operation_id):
        assert not is_clean_operation_id(operation_id)

    def test_version_token_is_configurable(self):
        assert is_clean_operation_id("configs-v3-list", version_prefix="v1")
        assert not is_clean_operation_id("configs-v1-list", version_prefix="v1")


class TestCleanIds:
    def test_dashes_become_underscores(self):
        assert tool_name("GET", "/v3/configs/config/secrets", "secrets-list") == "secrets_list"

    def test_underscore_runs_are_collapsed(self):
        assert sanitize_operation_id("service--accounts__list_") == "service_accounts_list"

    def test_long_ids_are_truncated_without_trailing_underscore(self):
        operation_id = "a" * 63 + "-suffix"

        name = sanitize_operation_id(operation_id)

        assert name == "a" * 63
        assert len(name) <= MAX_TOOL_NAME_LENGTH

    def test_empty_result_falls_back_to_path(self):
        assert tool_name("GET", "/v3/projects", "--") == "projects_list"


class TestPathDerivedNames:
    def test_ugly_id_uses_method_and_path(self):
        name = tool_name("GET", "/v3/workplace/change_requests", "get_v3workplacechange_requests")

        assert name == "workplace_change_requests_list"

    def test_get_on_a_parameter_is_get(self):
        assert name_from_path("GET", "/v3/environments/{environment}") == "environments_get"

    @pytest.mark.parametrize(
        "method,expected",
        [
            ("POST", "configs_create"),
            ("PUT", "configs_update"),
            ("PATCH", "configs_update"),
            ("DELETE", "configs_delete"),
            ("OPTIONS", "configs_options"),
        ],
    )
    def test_default_actions(self, method, expected):
        assert name_from_path(method, "/v3/configs") == expected

    def test_dashes_in_segments_become_underscores(self):
        assert name_from_path("GET", "/v3/service-accounts") == "service_accounts_list"

    def test_action_word_replaces_default_action(self):
        assert name_from_path("POST", "/v3/configs/config/clone") == "configs_config_clone"

    def test_delete_on_action_path_gets_delete_suffix(self):
        post = tool_name(
            "POST",
            "/v3/configs/config/trusted_ips/review",
            "post_v3configsconfigtrusted_ipsreview",
        )
        delete = tool_name(
            "DELETE",
            "/v3/configs/config/trusted_ips/review",
            "delete_v3configsconfigtrusted_ipsreview",
        )

        assert post == "configs_config_trusted_ips_review"
        assert delete == "configs_config_trusted_ips_review_delete"
        assert post != delete

    def test_action_not_repeated_when_name_already_ends_with_it(self):
        assert name_from_path("GET", "/v3/secrets/list") == "secrets_list"

    def test_root_path(self):
        assert name_from_path("GET", "/") == "list"

    def test_long_paths_are_truncated(self):
        path = "/v3/" + "/".join(["segment_name"] * 10)

        name = name_from_path("GET", path)

        assert len(name) <= MAX_TOOL_NAME_LENGTH
        assert not name.endswith("_")

    def test_default_action_get_list(self):
        assert default_action("get", ends_with_param=True) == "get"
        assert default_action("get", ends_with_param=False) == "list"


@pytest.mark.parametrize(
    "method,path,operation_id",
    [
        ("GET", "/v3/" + "x" * 80, None),
        ("POST", "/v3/" + "ab_" * 30 + "/clone", "post_v3whatever"),
        ("GET", "/v3/configs", "c" * 64 + "_"),
        ("DELETE", "/v3/{a}/{b}", "delete_v3ab"),
        ("GET", "/v3/x", "x" * 63 + "-y"),
    ],
)
def test_names_are_bounded_and_never_end_with_underscore(method, path, operation_id):
    name = tool_name(method, path, operation_id)

    assert 0 < len(name) <= MAX_TOOL_NAME_LENGTH
    assert not name.endswith("_")
