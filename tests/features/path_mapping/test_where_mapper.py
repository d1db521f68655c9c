import os
from unittest.mock import Mock

import pytest

from p4lens.core.process.types import ProcessFailure
from p4lens.core.shared_types import P4Session
from p4lens.features.path_mapping.data.where_adapter import (
    P4WherePathMapper,
    parse_where_output,
    resolve_against,
)
from p4lens.features.path_mapping.domain.models import PathMapping
from p4lens.features.path_mapping.service.api import map_depot_paths

WHERE_OUTPUT = """... depotFile //depot/main/...
... clientFile //ws/main/...
... path /home/ann/ws/main/...

... depotFile //depot/main/vendor/...
... clientFile //ws/third_party/...
... path /home/ann/ws/third_party/...

... depotFile //depot/main/secret/...
... clientFile //ws/main/secret/...
... path /home/ann/ws/main/secret/...
... unmap

... depotFile //depot/tools/...
... clientFile //ws/tools/...
"""


def native(path):
    return path.replace("/", os.sep)


def test_parse_where_output():
    mappings = parse_where_output(WHERE_OUTPUT)

    assert mappings == [
        PathMapping("//depot/main/", "//ws/main/", "/home/ann/ws/main/"),
        PathMapping("//depot/main/vendor/", "//ws/third_party/", "/home/ann/ws/third_party/"),
        # local falls back to client when `path` is missing
        PathMapping("//depot/tools/", "//ws/tools/", "//ws/tools/"),
    ]


def test_parse_keeps_first_duplicate_and_ignores_noise():
    output = (
        "... clientFile //ws/orphan\n"
        "... depotFile //depot/a/...\n... clientFile //ws/first/...\n... path /first/...\n"
        "... depotFile //depot/a/...\n... clientFile //ws/second/...\n... path /second/...\n"
    )
    assert parse_where_output(output) == [PathMapping("//depot/a/", "//ws/first/", "/first/")]
    assert parse_where_output("") == []


def test_longest_prefix_wins():
    mappings = parse_where_output(WHERE_OUTPUT)

    vendored = resolve_against("//depot/main/vendor/lib/x.c", mappings)
    assert vendored.client_path == "//ws/third_party/lib/x.c"
    assert vendored.local_path == native("/home/ann/ws/third_party/lib/x.c")

    plain = resolve_against("//depot/main/src/app.c", mappings)
    assert plain.client_path == "//ws/main/src/app.c"
    assert plain.local_path == native("/home/ann/ws/main/src/app.c")

    assert resolve_against("//other/x.c", mappings) is None


def test_equal_length_prefixes_first_inserted_wins():
    mappings = [
        PathMapping("//depot/ab/", "//ws/one/", "/one/"),
        PathMapping("//depot/ab/", "//ws/two/", "/two/"),
    ]
    assert resolve_against("//depot/ab/f.txt", mappings).client_path == "//ws/one/f.txt"


def test_mapper_makes_one_call_with_stdin_batch(workspace):
    runner = Mock()
    runner.run.return_value = WHERE_OUTPUT
    mapper = P4WherePathMapper(P4Session(binary="p4"), runner)
    depots = ["//depot/main/a.c", "//depot/main/vendor/b.c", "//elsewhere/c.c"]

    resolved = mapper.resolve_paths(depots, workspace)

    assert runner.run.call_count == 1
    cmd, cwd = runner.run.call_args.args[:2]
    assert cmd == ["p4", "-ztag", "-x", "-", "where"]
    assert cwd == workspace
    assert runner.run.call_args.kwargs["stdin_text"] == "\n".join(depots) + "\n"
    assert set(resolved) == {"//depot/main/a.c", "//depot/main/vendor/b.c"}


def test_mapper_failure_degrades_to_empty(workspace):
    runner = Mock()
    runner.run.side_effect = ProcessFailure(["p4"], 1, stderr="Connect to server failed")
    assert P4WherePathMapper(P4Session(), runner).resolve_paths(["//depot/main/a.c"], workspace) == {}


def test_mapper_uses_partial_output(workspace):
    runner = Mock()
    runner.run.side_effect = ProcessFailure(
        ["p4"], 1, stderr="//elsewhere/c.c - file(s) not in client view.", partial_output=WHERE_OUTPUT
    )
    resolved = P4WherePathMapper(P4Session(), runner).resolve_paths(["//depot/main/a.c", "//elsewhere/c.c"], workspace)
    assert list(resolved) == ["//depot/main/a.c"]


def test_mapper_skips_call_for_empty_batch():
    runner = Mock()
    assert P4WherePathMapper(P4Session(), runner).resolve_paths([]) == {}
    runner.run.assert_not_called()


def test_map_depot_paths_requires_files():
    with pytest.raises(ValueError):
        map_depot_paths(P4Session(), [])
