import pytest

from manifest_patch.apply import (
    LegacyStrategy,
    StructuredStrategy,
    apply_json_patch,
    apply_strategic_merge,
    strategy_for,
)
from manifest_patch.errors import ApplyError
from manifest_patch.loader import parse_json_patch, parse_strategic_merge
from manifest_patch.resources.base import Resource

STRATEGIES = [LegacyStrategy(), StructuredStrategy()]
STRATEGY_IDS = ["legacy", "structured"]


def _deployment() -> dict:
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": "web", "namespace": "prod", "labels": {"app": "web"}, "finalizers": ["a", "b", "c"]},
        "spec": {
            "replicas": 1,
            "template": {
                "spec": {
                    "containers": [
                        {"name": "app", "image": "app:v1", "ports": [{"containerPort": 80, "name": "http"}]},
                        {"name": "proxy", "image": "proxy:v1", "args": ["--a", "--b"]},
                    ],
                },
            },
        },
    }


def _containers(content: dict) -> list:
    return content["spec"]["template"]["spec"]["containers"]


MERGE_CORPUS = [
    (
        "scalar-replace",
        {"spec": {"replicas": 3}},
        lambda doc: doc["spec"].update(replicas=3),
    ),
    (
        "null-deletes-field",
        {"spec": {"replicas": None}},
        lambda doc: doc["spec"].pop("replicas"),
    ),
    (
        "nested-merge-keeps-siblings",
        {"metadata": {"labels": {"tier": "backend"}}},
        lambda doc: doc["metadata"]["labels"].update(tier="backend"),
    ),
    (
        "map-replaced-by-scalar",
        {"spec": {"template": "none"}},
        lambda doc: doc["spec"].update(template="none"),
    ),
    (
        "scalar-replaced-by-map",
        {"spec": {"replicas": {"min": 1, "max": 2}}},
        lambda doc: doc["spec"].update(replicas={"min": 1, "max": 2}),
    ),
    (
        "keyed-list-merge",
        {"spec": {"template": {"spec": {"containers": [
            {"name": "proxy", "image": "proxy:v2"},
            {"name": "sidecar", "image": "sidecar:v1"},
        ]}}}},
        lambda doc: (
            _containers(doc)[1].update(image="proxy:v2"),
            _containers(doc).append({"name": "sidecar", "image": "sidecar:v1"}),
        ),
    ),
    (
        "keyed-element-delete",
        {"spec": {"template": {"spec": {"containers": [{"name": "proxy", "$patch": "delete"}]}}}},
        lambda doc: _containers(doc).pop(1),
    ),
    (
        "nested-unkeyed-list-replace",
        {"spec": {"template": {"spec": {"containers": [{"name": "proxy", "args": ["--c"]}]}}}},
        lambda doc: _containers(doc)[1].update(args=["--c"]),
    ),
    (
        "nested-keyed-ports",
        {"spec": {"template": {"spec": {"containers": [
            {"name": "app", "ports": [{"containerPort": 80, "protocol": "TCP"}, {"containerPort": 443}]},
        ]}}}},
        lambda doc: _containers(doc)[0].update(
            ports=[{"containerPort": 80, "name": "http", "protocol": "TCP"}, {"containerPort": 443}]
        ),
    ),
    (
        "map-replace-directive",
        {"metadata": {"labels": {"$patch": "replace", "team": "core"}}},
        lambda doc: doc["metadata"].update(labels={"team": "core"}),
    ),
    (
        "map-delete-directive",
        {"metadata": {"labels": {"$patch": "delete"}}},
        lambda doc: doc["metadata"].pop("labels"),
    ),
    (
        "list-replace-marker",
        {"spec": {"template": {"spec": {"containers": [{"$patch": "replace"}, {"name": "only", "image": "x"}]}}}},
        lambda doc: doc["spec"]["template"]["spec"].update(containers=[{"name": "only", "image": "x"}]),
    ),
    (
        "delete-from-primitive-list",
        {"metadata": {"$deleteFromPrimitiveList/finalizers": ["b"]}},
        lambda doc: doc["metadata"].update(finalizers=["a", "c"]),
    ),
    (
        "new-map-drops-nulls",
        {"spec": {"strategy": {"type": "Recreate", "rollingUpdate": None}}},
        lambda doc: doc["spec"].update(strategy={"type": "Recreate"}),
    ),
    (
        "non-string-keys-kept",
        {"spec": {"selector": {2: "two", True: "on"}}},
        lambda doc: doc["spec"].update(selector={2: "two", True: "on"}),
    ),
    (
        "whole-resource-delete",
        {"$patch": "delete"},
        lambda doc: doc.clear(),
    ),
]


@pytest.mark.parametrize("strategy", STRATEGIES, ids=STRATEGY_IDS)
@pytest.mark.parametrize("case_id,patch,mutate", MERGE_CORPUS, ids=[case[0] for case in MERGE_CORPUS])
def test_merge_corpus(strategy, case_id, patch, mutate) -> None:
    expected = _deployment()
    mutate(expected)

    assert strategy.merge(_deployment(), patch) == expected


@pytest.mark.parametrize("strategy", STRATEGIES, ids=STRATEGY_IDS)
def test_merge_does_not_mutate_inputs(strategy) -> None:
    target = _deployment()
    patch = {"spec": {"replicas": None, "template": {"spec": {"containers": [{"name": "app", "image": "x"}]}}}}

    strategy.merge(target, patch)

    assert target == _deployment()
    assert patch["spec"]["replicas"] is None


@pytest.mark.parametrize("strategy", STRATEGIES, ids=STRATEGY_IDS)
@pytest.mark.parametrize(
    "patch",
    [
        {"spec": {"$patch": "bogus"}},
        {"spec": {"$retainKeys": ["replicas"]}},
        {"metadata": {"$deleteFromPrimitiveList/finalizers": "b"}},
    ],
)
def test_malformed_directive_raises(strategy, patch) -> None:
    with pytest.raises(ApplyError):
        strategy.merge(_deployment(), patch)


@pytest.mark.parametrize("strategy", STRATEGIES, ids=STRATEGY_IDS)
def test_custom_merge_key(strategy) -> None:
    strategy = type(strategy)({"rules": "host"})
    target = {"spec": {"rules": [{"host": "a", "path": "/"}, {"host": "b", "path": "/"}]}}
    patch = {"spec": {"rules": [{"host": "b", "path": "/api"}]}}

    merged = strategy.merge(target, patch)

    assert merged["spec"]["rules"] == [{"host": "a", "path": "/"}, {"host": "b", "path": "/api"}]


@pytest.mark.parametrize("yaml_support", [True, False])
def test_empty_patch_is_a_no_op(yaml_support) -> None:
    resource = Resource(_deployment())
    patch = parse_strategic_merge("apiVersion: apps/v1\nkind: Deployment\nmetadata:\n  name: web\n  namespace: prod\n")[0]

    emptied = apply_strategic_merge(resource, patch, strategy_for(yaml_support))

    assert emptied is False
    assert resource.content == _deployment()


@pytest.mark.parametrize("yaml_support", [True, False])
def test_identity_only_patch_keeps_non_string_keys(yaml_support) -> None:
    content = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "flags"}, "data": {2: "two", True: "on"}}
    resource = Resource(dict(content, data=dict(content["data"])))
    patch = parse_strategic_merge("apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: flags\n")[0]

    apply_strategic_merge(resource, patch, strategy_for(yaml_support))

    assert resource.content == content
    assert list(resource.content["data"]) == [2, True]


@pytest.mark.parametrize("yaml_support", [True, False])
def test_patch_identity_is_replaced_by_target_identity(yaml_support) -> None:
    resource = Resource(_deployment())
    patch = parse_strategic_merge(
        "apiVersion: apps/v2\nkind: Other\nmetadata:\n  name: elsewhere\n  namespace: dev\nspec:\n  replicas: 4\n"
    )[0]

    apply_strategic_merge(resource, patch, strategy_for(yaml_support))

    assert resource.name == "web"
    assert resource.namespace == "prod"
    assert resource.kind == "Deployment"
    assert resource.api_version == "apps/v1"
    assert resource.content["spec"]["replicas"] == 4
    assert patch.resource.name == "elsewhere"


@pytest.mark.parametrize("yaml_support", [True, False])
def test_whole_resource_delete_reports_emptied(yaml_support) -> None:
    resource = Resource(_deployment())
    patch = parse_strategic_merge("$patch: delete\n")[0]

    assert apply_strategic_merge(resource, patch, strategy_for(yaml_support)) is True
    assert resource.content == {}


@pytest.mark.parametrize("yaml_support", [True, False])
def test_apply_error_names_target(yaml_support) -> None:
    resource = Resource(_deployment())
    patch = parse_strategic_merge("spec:\n  $patch: bogus\n")[0]

    with pytest.raises(ApplyError) as excinfo:
        apply_strategic_merge(resource, patch, strategy_for(yaml_support))

    assert excinfo.value.target == "apps/v1/Deployment prod/web"
    assert resource.content == _deployment()


@pytest.mark.parametrize("strategy", STRATEGIES, ids=STRATEGY_IDS)
def test_json_patch_removes_exactly_one_field(strategy) -> None:
    resource = Resource(_deployment())
    patch = parse_json_patch('[{"op": "remove", "path": "/spec/replicas"}]')

    apply_json_patch(resource, patch, strategy)

    expected = _deployment()
    del expected["spec"]["replicas"]
    assert resource.content == expected


@pytest.mark.parametrize("strategy", STRATEGIES, ids=STRATEGY_IDS)
def test_json_patch_operations(strategy) -> None:
    resource = Resource(_deployment())
    patch = parse_json_patch(
        """
- op: add
  path: /metadata/labels/tier
  value: backend
- op: replace
  path: /spec/replicas
  value: 5
- op: copy
  from: /metadata/labels/app
  path: /metadata/labels/component
- op: move
  from: /spec/template/spec/containers/1
  path: /spec/template/spec/containers/0
- op: test
  path: /spec/template/spec/containers/0/name
  value: proxy
"""
    )

    apply_json_patch(resource, patch, strategy)

    assert resource.content["metadata"]["labels"] == {"app": "web", "tier": "backend", "component": "web"}
    assert resource.content["spec"]["replicas"] == 5
    assert [c["name"] for c in _containers(resource.content)] == ["proxy", "app"]


@pytest.mark.parametrize("strategy", STRATEGIES, ids=STRATEGY_IDS)
@pytest.mark.parametrize(
    "operations",
    [
        '[{"op": "add", "path": "/spec/paused", "value": true}, {"op": "test", "path": "/spec/replicas", "value": 9}]',
        '[{"op": "replace", "path": "/spec/missing", "value": 1}]',
        '[{"op": "remove", "path": "/spec/missing"}]',
        '[{"op": "move", "from": "/spec/missing", "path": "/spec/other"}]',
        '[{"op": "copy", "from": "/nope/deeper", "path": "/spec/other"}]',
        '[{"op": "add", "path": "/spec/paused"}]',
    ],
)
def test_failed_json_patch_leaves_resource_untouched(strategy, operations) -> None:
    resource = Resource(_deployment())
    patch = parse_json_patch(operations)

    with pytest.raises(ApplyError) as excinfo:
        apply_json_patch(resource, patch, strategy)

    assert resource.content == _deployment()
    assert excinfo.value.target == "apps/v1/Deployment prod/web"
