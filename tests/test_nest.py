"""Block nesting tests."""

from huffstyle import parse
from huffstyle.nest import NestResult, nest_scope


def nest(*body: str) -> NestResult:
    source = "#define macro A() = takes (0) returns (0) {\n" + "\n".join(body) + "\n}\n"
    return nest_scope(parse(source).macros()[0].scope)


def test_sibling_labels_and_nested_jump():
    result = nest(
        "0x01 first jumpi",
        "0x02 second jumpi",
        "first:",
        "stop",
        "second:",
        "0x03 third jumpi",
        "stop",
        "third:",
        "stop",
    )
    assert result.depths == [0, 0, 1, 1, 1, 1, 1, 2, 2]
    assert result.label_depths == {"first": 1, "second": 1, "third": 2}
    assert result.unresolved == []
    assert result.unreferenced == []


def test_consecutive_labels_share_the_deepest_depth():
    result = nest(
        "0x01 shallow jumpi",
        "0x01 outer jumpi",
        "stop",
        "outer:",
        "0x01 deep jumpi",
        "stop",
        "shallow:",
        "deep:",
        "stop",
    )
    assert result.depths == [0, 0, 0, 1, 1, 1, 2, 2, 2]
    assert result.label_depths["shallow"] == 2
    assert result.label_depths["deep"] == 2


def test_unconditional_jump_keeps_current_depth():
    result = nest(
        "0x01 inside jumpi",
        "inside:",
        "end jump",
        "end:",
        "stop",
    )
    assert result.depths == [0, 1, 1, 1, 1]
    assert result.label_depths["end"] == 1


def test_unreferenced_label_is_depth_zero():
    result = nest(
        "0x01 a jumpi",
        "a:",
        "stop",
        "orphan:",
        "stop",
    )
    assert result.depths == [0, 1, 1, 0, 0]
    assert [label.name for label in result.unreferenced] == ["orphan"]


def test_unresolved_jump_keeps_last_depth():
    result = nest(
        "0x01 a jumpi",
        "a:",
        "nowhere jump",
        "stop",
    )
    assert result.depths == [0, 1, 1, 1]
    assert [tok.value for tok in result.unresolved] == ["nowhere"]


def test_pushed_label_counts_as_reference():
    result = nest(
        "0x01 target",
        "jumpi",
        "target:",
        "stop",
    )
    assert result.label_depths["target"] == 0
    assert result.unreferenced == []


def test_duplicate_label_keeps_first_depth():
    result = nest(
        "0x01 done jumpi",
        "done:",
        "stop",
        "done:",
        "stop",
    )
    assert result.label_depths["done"] == 1
    assert result.depths == [0, 1, 1, 1, 1]


def test_depth_changes_only_on_label_lines():
    body = (
        "0x00 calldataload 0xe0 shr",
        "dup1 __FUNC_SIG(get) eq get jumpi",
        "dup1 __FUNC_SIG(set) eq set jumpi",
        "0x00 dup1 revert",
        "get:",
        "0x01 done jumpi",
        "0x00 0x00 revert",
        "done:",
        "stop",
        "set:",
        "stop",
    )
    result = nest(*body)
    assert len(result.depths) == len(body)
    i = 1
    while i < len(body):
        if not body[i].endswith(":"):
            assert result.depths[i] == result.depths[i - 1]
        assert result.depths[i] >= 0
        i += 1


def test_comment_between_labels_keeps_the_run():
    result = nest(
        "0x01 shallow jumpi",
        "0x01 outer jumpi",
        "stop",
        "outer:",
        "0x01 deep jumpi",
        "stop",
        "shallow:",
        "// no code here",
        "deep:",
        "stop",
    )
    assert result.label_depths["shallow"] == 2
    assert result.label_depths["deep"] == 2
    assert result.depths == [0, 0, 0, 1, 1, 1, 2, 2, 2, 2]


def test_builtin_arguments_are_not_label_references():
    result = nest(
        "0x00 calldataload 0xe0 shr",
        "dup1 __FUNC_SIG(owner) eq get_owner jumpi",
        "0x00 dup1 revert",
        "get_owner:",
        "stop",
        "owner:",
        "stop",
    )
    assert [label.name for label in result.unreferenced] == ["owner"]
    assert result.label_depths == {"get_owner": 1, "owner": 0}
    assert result.depths == [0, 0, 0, 1, 1, 0, 0]


def test_bracketed_names_are_not_label_references():
    result = nest(
        "[done] <done> 0x01 other jumpi",
        "other:",
        "stop",
        "done:",
        "stop",
    )
    assert [label.name for label in result.unreferenced] == ["done"]
    assert result.label_depths == {"other": 1, "done": 0}


def test_macro_argument_label_is_a_reference():
    result = nest(
        "CHECK(fail)",
        "stop",
        "fail:",
        "0x00 dup1 revert",
    )
    assert result.unreferenced == []
    assert result.label_depths["fail"] == 0
